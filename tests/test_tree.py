"""Tests for the menu tree (TreeMutator)."""
import itertools
import random

import pytest

from app.buildboard.ordering import BRANCH, LEAF, Branch, InvalidTarget, Leaf, NotFound, TreeMutator, is_contiguous


def _tree():
    counter = itertools.count(1)
    return TreeMutator(id_factory=lambda: f"n{next(counter)}")


def _labels(nodes):
    return [n.payload["label"] for n in nodes]


def _assert_contiguous(tree):
    assert is_contiguous(tree.roots)
    for node, _depth in tree.walk():
        if isinstance(node, Branch):
            assert is_contiguous(node.children)
            assert all(c.parent_id == node.id for c in node.children)


def test_add_child_appends_in_order():
    t = _tree()
    r = t.add_root("Projects")
    t.add_child(r.id, "C1")
    t.add_child(r.id, "C2")
    t.add_child(r.id, "C3")
    kids = t.siblings(r.id)
    assert _labels(kids) == ["C1", "C2", "C3"]
    assert [k.order for k in kids] == [0, 1, 2]


def test_remove_renumbers_siblings():
    t = _tree()
    r = t.add_root("R")
    c1 = t.add_child(r.id, "C1")
    t.add_child(r.id, "C2")
    t.add_child(r.id, "C3")
    assert t.remove(c1.id) == 1
    kids = t.siblings(r.id)
    assert _labels(kids) == ["C2", "C3"]
    assert [k.order for k in kids] == [0, 1]


def test_swap_up_then_noop_at_top():
    t = _tree()
    r = t.add_root("R")
    c2 = t.add_child(r.id, "C2")
    c3 = t.add_child(r.id, "C3")
    assert t.swap_with_sibling(c3.id, "up") is True
    assert _labels(t.siblings(r.id)) == ["C3", "C2"]
    assert t.swap_with_sibling(c3.id, "up") is False
    assert _labels(t.siblings(r.id)) == ["C3", "C2"]
    assert t.swap_with_sibling(c2.id, "down") is False
    with pytest.raises(ValueError):
        t.swap_with_sibling(c2.id, "sideways")


def test_remove_branch_cascades():
    t = _tree()
    a = t.add_root("A")
    b = t.add_root("B")
    sub = t.add_child(a.id, "Sub", kind=BRANCH)
    t.add_child(sub.id, "Deep")
    t.add_child(a.id, "Leaf")
    assert t.count() == 5
    assert t.remove(a.id) == 4
    assert t.count() == 1
    assert [n.id for n in t.roots] == [b.id]
    assert t.roots[0].order == 0
    with pytest.raises(NotFound):
        t.find(sub.id)


def test_move_into_places_first_child():
    t = _tree()
    a = t.add_root("A")
    b = t.add_root("B")
    t.add_child(b.id, "Existing")
    moved = t.move_into(a.id, b.id)
    assert moved.parent_id == b.id
    assert _labels(t.siblings(b.id)) == ["A", "Existing"]
    assert [n.id for n in t.roots] == [b.id]
    _assert_contiguous(t)


def test_move_into_self_or_descendant_rejected():
    t = _tree()
    a = t.add_root("A")
    child = t.add_child(a.id, "Child", kind=BRANCH)
    grandchild = t.add_child(child.id, "Grandchild", kind=BRANCH)
    before = t.snapshot()

    for target in (a.id, child.id, grandchild.id):
        with pytest.raises(InvalidTarget):
            t.move_into(a.id, target)
    assert t.snapshot() == before


def test_move_into_leaf_or_missing_is_not_found():
    t = _tree()
    a = t.add_root("A")
    leaf = t.add_child(a.id, "Leaf")
    other = t.add_root("Other")
    before = t.snapshot()
    with pytest.raises(NotFound) as exc:
        t.move_into(other.id, leaf.id)
    assert exc.value.kind == "branch"
    with pytest.raises(NotFound):
        t.move_into(other.id, "ghost")
    with pytest.raises(NotFound):
        t.move_into("ghost", a.id)
    assert t.snapshot() == before


def test_add_child_to_leaf_is_not_found():
    t = _tree()
    a = t.add_root("A", kind=LEAF)
    with pytest.raises(NotFound):
        t.add_child(a.id, "X")


def test_move_to_index_and_root():
    t = _tree()
    a = t.add_root("A")
    b = t.add_root("B")
    x = t.add_child(a.id, "X")
    t.add_child(b.id, "P")
    t.add_child(b.id, "Q")

    t.move_to(x.id, b.id, 1)
    assert _labels(t.siblings(b.id)) == ["P", "X", "Q"]
    t.move_to(x.id, None, 0)
    assert _labels(t.roots) == ["X", "A", "B"]
    assert t.find(x.id).parent_id is None
    with pytest.raises(InvalidTarget):
        t.move_to(a.id, a.id, 0)
    _assert_contiguous(t)


def test_edits_do_not_mutate_previous_roots():
    t = _tree()
    a = t.add_root("A")
    t.add_child(a.id, "X")
    old_roots = t.roots
    t.rename(a.id, "Renamed")
    t.toggle_visible(a.id)
    assert old_roots[0].payload["label"] == "A"
    assert old_roots[0].payload["visible"] is True
    assert t.find(a.id).payload["label"] == "Renamed"
    assert t.find(a.id).payload["visible"] is False


def test_walk_and_ancestors():
    t = _tree()
    a = t.add_root("A")
    sub = t.add_child(a.id, "Sub", kind=BRANCH)
    deep = t.add_child(sub.id, "Deep")
    t.add_root("B")
    assert [(n.payload["label"], d) for n, d in t.walk()] == [("A", 0), ("Sub", 1), ("Deep", 2), ("B", 0)]
    assert [n.id for n in t.ancestors(deep.id)] == [sub.id, a.id]


def test_from_rows_builds_and_normalises():
    rows = [
        {"id": "settings", "parent_id": None, "order": 5, "kind": "branch", "payload": {"label": "Settings"}},
        {"id": "dash", "parent_id": None, "order": 1, "kind": "leaf", "payload": {"label": "Dashboard"}},
        {"id": "users", "parent_id": "settings", "order": 9, "kind": "leaf", "payload": {"label": "Users"}},
        {"id": "menu", "parent_id": "settings", "order": 3, "kind": "leaf", "payload": {"label": "Menu"}},
        {"id": "stray", "parent_id": "gone", "order": 0, "kind": "leaf", "payload": {"label": "Stray"}},
    ]
    t = TreeMutator.from_rows(rows)
    assert _labels(t.roots) == ["Stray", "Dashboard", "Settings"]
    assert _labels(t.siblings("settings")) == ["Menu", "Users"]
    _assert_contiguous(t)

    flat = t.flatten()
    assert [r["id"] for r in flat] == ["stray", "dash", "settings", "menu", "users"]
    rebuilt = TreeMutator.from_rows(flat)
    assert rebuilt.snapshot() == t.snapshot()


def test_from_rows_drops_children_of_leaf():
    rows = [
        {"id": "a", "parent_id": None, "order": 0, "kind": "leaf", "payload": {"label": "A"}},
        {"id": "b", "parent_id": "a", "order": 0, "kind": "leaf", "payload": {"label": "B"}},
    ]
    t = TreeMutator.from_rows(rows)
    assert t.count() == 1


def test_drop_uses_move_into():
    t = _tree()
    a = t.add_root("A")
    b = t.add_root("B")
    snap = t.drop(a.id, None, b.id, 7)
    assert snap[0]["id"] == b.id
    assert snap[0]["children"][0]["id"] == a.id
    assert snap[0]["children"][0]["parent_id"] == b.id


def test_random_edits_keep_tree_valid():
    rng = random.Random(42)
    t = _tree()
    for i in range(4):
        t.add_root(f"root-{i}")

    for step in range(300):
        nodes = [n for n, _ in t.walk()]
        branches = [n for n in nodes if isinstance(n, Branch)]
        op = rng.choice(("add", "move_into", "move_to", "swap", "remove"))
        if op == "add" and branches:
            t.add_child(rng.choice(branches).id, f"c{step}", kind=rng.choice((LEAF, BRANCH)))
        elif op == "move_into" and nodes and branches:
            dragged, target = rng.choice(nodes), rng.choice(branches)
            before = t.snapshot()
            try:
                t.move_into(dragged.id, target.id)
            except InvalidTarget:
                assert t.snapshot() == before
                assert target.id == dragged.id or dragged.id in {x.id for x in t.ancestors(target.id)}
        elif op == "move_to" and nodes:
            node = rng.choice(nodes)
            parent = rng.choice([None, *[b.id for b in branches]])
            try:
                t.move_to(node.id, parent, rng.randint(0, 6))
            except InvalidTarget:
                pass
        elif op == "swap" and nodes:
            t.swap_with_sibling(rng.choice(nodes).id, rng.choice(("up", "down")))
        elif op == "remove" and len(nodes) > 3:
            t.remove(rng.choice(nodes).id)

        ids = [n.id for n, _ in t.walk()]
        assert len(ids) == len(set(ids)) == t.count()
        _assert_contiguous(t)


def _hand_built():
    return TreeMutator(
        [
            Branch(id="R", children=[Leaf(id="C1", order=5), Leaf(id="C2", order=9), Leaf(id="C3")]),
            Branch(id="T"),
        ]
    )


def test_constructor_links_children_and_renumbers():
    t = _hand_built()
    _assert_contiguous(t)
    assert [c.order for c in t.find("R").children] == [0, 1, 2]
    assert t.find("C2").parent_id == "R"
    assert t.count() == 5


def test_edits_on_hand_built_tree():
    t = _hand_built()
    assert t.remove("C1") == 1
    assert t.count() == 4
    assert [c.id for c in t.find("R").children] == ["C2", "C3"]

    assert t.swap_with_sibling("C3", "up") is True
    assert [r.id for r in t.roots] == ["R", "T"]
    assert [c.id for c in t.find("R").children] == ["C3", "C2"]

    t.move_into("C2", "T")
    assert t.count() == 4
    assert [c.id for c in t.find("R").children] == ["C3"]
    assert [c.id for c in t.find("T").children] == ["C2"]
    _assert_contiguous(t)
