"""Tests for core/additional module reclassification (ColumnMutator)."""
import random

import pytest

from app.buildboard.ordering import ColumnMutator, Leaf, NotFound, is_contiguous


def _catalog():
    items = [
        Leaf(id="projects", order=0, payload={"bucket": "core", "enabled": True}),
        Leaf(id="tasks", order=1, payload={"bucket": "core", "enabled": True}),
        Leaf(id="roadmap", order=0, payload={"bucket": "additional", "enabled": True}),
        Leaf(id="reports", order=1, payload={"bucket": "additional", "enabled": False}),
    ]
    return ColumnMutator(("core", "additional"), items)


def _ids(cat, bucket):
    return [n.id for n in cat.members(bucket)]


def test_reclassify_into_other_bucket():
    cat = _catalog()
    snap = cat.reclassify("roadmap", "core", 1)
    assert _ids(cat, "core") == ["projects", "roadmap", "tasks"]
    assert _ids(cat, "additional") == ["reports"]
    assert [i["order"] for i in snap["core"]] == [0, 1, 2]
    assert snap["additional"][0]["order"] == 0
    assert cat.item("roadmap").payload["bucket"] == "core"


def test_reclassify_into_empty_bucket_lands_at_zero():
    cat = ColumnMutator(("core", "additional"), [Leaf(id="a", payload={"bucket": "core"})])
    cat.reclassify("a", "additional", 5)
    assert _ids(cat, "additional") == ["a"]
    assert cat.item("a").order == 0
    assert _ids(cat, "core") == []


def test_reorder_within_bucket():
    cat = _catalog()
    cat.reclassify("projects", "core", 10)
    assert _ids(cat, "core") == ["tasks", "projects"]


def test_unknown_item_or_bucket():
    cat = _catalog()
    before = cat.snapshot()
    with pytest.raises(NotFound):
        cat.reclassify("ghost", "core", 0)
    with pytest.raises(NotFound) as exc:
        cat.reclassify("tasks", "premium", 0)
    assert exc.value.kind == "bucket"
    assert cat.snapshot() == before


def test_item_with_unknown_bucket_rejected_on_load():
    with pytest.raises(NotFound):
        ColumnMutator(("core",), [Leaf(id="x", payload={"bucket": "other"})])


def test_toggle_flag():
    cat = _catalog()
    assert cat.toggle_flag("reports") is True
    assert cat.toggle_flag("reports") is False
    assert cat.snapshot()["additional"][1]["payload"]["enabled"] is False


def test_random_reclassify_keeps_buckets_contiguous():
    rng = random.Random(7)
    cat = ColumnMutator(("core", "additional"))
    for i in range(20):
        cat.add_item(rng.choice(cat.buckets), f"m{i}")
    for _ in range(300):
        cat.reclassify(f"m{rng.randrange(20)}", rng.choice(cat.buckets), rng.randint(-2, 25))
        assert cat.count() == 20
        assert sum(len(cat.members(b)) for b in cat.buckets) == 20
        for b in cat.buckets:
            assert is_contiguous(cat.members(b))


@pytest.mark.parametrize("key", ["projects", "tasks", "roadmap", "reports"])
def test_reclassify_to_current_slot_is_a_no_op(key):
    cat = _catalog()
    before = cat.snapshot()
    bucket = cat.item(key).payload["bucket"]
    assert cat.reclassify(key, bucket, cat.index_in(key, bucket)) == before


def test_snapshot_carries_bucket_not_parent():
    cat = _catalog()
    cat.add_item("core", "notes")
    cat.reclassify("roadmap", "core", 0)
    snap = cat.snapshot()
    assert all(m["container_id"] == b for b, members in snap.items() for m in members)
    assert not any("parent_id" in m for members in snap.values() for m in members)
