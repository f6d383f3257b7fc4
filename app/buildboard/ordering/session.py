"""
Pointer-drag gesture handling.

A DragController owns one orderable structure (Board, ColumnMutator or
TreeMutator) and at most one live DragSession. Sessions move through

    Idle -> Armed -> Dragging -> Committing | Cancelled -> Idle

and never touch the structure before ``commit_drag()``. Once a session
returns to Idle it is discarded; the next gesture gets a fresh one.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from .errors import OrderingError
from .resolver import DropGeometry

logger = logging.getLogger(__name__)

DEFAULT_MOTION_THRESHOLD = 4


class DragState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


TRANSITIONS = {
    DragState.IDLE: {DragState.ARMED},
    # Releasing an armed session is a click, not a drop.
    DragState.ARMED: {DragState.DRAGGING, DragState.CANCELLED, DragState.IDLE},
    DragState.DRAGGING: {DragState.COMMITTING, DragState.CANCELLED},
    DragState.COMMITTING: {DragState.IDLE},
    DragState.CANCELLED: {DragState.IDLE},
}


class Orderable(Protocol):
    hierarchical: bool

    def item_count(self, container_id: Any) -> int: ...

    def index_in(self, item_id: str, container_id: Any) -> int: ...

    def drop(self, item_id: str, source_container_id: Any, target_container_id: Any, target_index: int) -> Any: ...

    def snapshot(self) -> Any: ...


@dataclass(frozen=True)
class HoverTarget:
    container_id: Any
    index: int


@dataclass
class DragSession:
    item_id: str
    source_container_id: Any
    source_index: int
    hierarchical: bool = False
    state: DragState = DragState.IDLE
    hover_target: HoverTarget | None = None
    history: list[DragState] = field(default_factory=list)

    @property
    def source_parent_id(self) -> Any:
        return self.source_container_id if self.hierarchical else None

    @property
    def is_live(self) -> bool:
        return self.state in (DragState.ARMED, DragState.DRAGGING)

    def transition(self, new_state: DragState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise ValueError(f"Invalid drag transition: {self.state.value} -> {new_state.value}")
        self.history.append(self.state)
        self.state = new_state


CommitListener = Callable[[Any], None]


class DragController:
    def __init__(
        self,
        target: Orderable,
        *,
        geometry: DropGeometry | None = None,
        motion_threshold: float = DEFAULT_MOTION_THRESHOLD,
    ):
        self.target = target
        self.geometry = geometry or DropGeometry()
        self.motion_threshold = motion_threshold
        self._session: DragSession | None = None
        self._listeners: list[CommitListener] = []

    @property
    def session(self) -> DragSession | None:
        return self._session

    def on_commit(self, listener: CommitListener) -> CommitListener:
        """Register a ``committed(final_snapshot)`` listener; usable as a decorator."""
        self._listeners.append(listener)
        return listener

    def snapshot(self) -> Any:
        return self.target.snapshot()

    # ---------- gesture surface ----------
    def begin_drag(self, item_id: str, source_location: Any) -> DragSession:
        current = self._session
        if current is not None and current.state == DragState.DRAGGING:
            logger.debug("begin_drag(%s) ignored: %s is already dragging", item_id, current.item_id)
            return current
        source_index = self.target.index_in(item_id, source_location)
        session = DragSession(
            item_id=item_id,
            source_container_id=source_location,
            source_index=source_index,
            hierarchical=bool(getattr(self.target, "hierarchical", False)),
        )
        session.transition(DragState.ARMED)
        self._session = session
        return session

    def pointer_moved(self, dx: float, dy: float = 0.0) -> DragState:
        """Report pointer travel since press; crossing the threshold starts the drag."""
        session = self._session
        if session is None:
            return DragState.IDLE
        if session.state == DragState.ARMED and math.hypot(dx, dy) >= self.motion_threshold:
            session.transition(DragState.DRAGGING)
        return session.state

    def update_drag_hover(self, container_id: Any, pointer_coordinate: float | None = None, *, index: int | None = None) -> HoverTarget | None:
        """
        Recompute the drop preview. A pointer coordinate is resolved through
        the drop geometry; an explicit index is taken as-is (clamped on
        commit). Hierarchical targets always land at index 0.
        """
        session = self._session
        if session is None or session.state != DragState.DRAGGING:
            return None
        if session.hierarchical:
            resolved = 0
        elif pointer_coordinate is not None:
            resolved = self.geometry.resolve(pointer_coordinate, self.target.item_count(container_id))
        elif index is not None:
            resolved = max(0, int(index))
        else:
            resolved = self.target.item_count(container_id)
        session.hover_target = HoverTarget(container_id=container_id, index=resolved)
        return session.hover_target

    def leave_hover(self) -> None:
        """Pointer left every valid drop zone."""
        if self._session is not None and self._session.state == DragState.DRAGGING:
            self._session.hover_target = None

    def commit_drag(self) -> Any:
        """
        Apply the drop and notify ``committed`` listeners with the new
        snapshot. Returns None when nothing was applied (click, or release
        outside any valid target). Engine rejections propagate after the
        session has been cleared.
        """
        session = self._session
        if session is None:
            return None
        if session.state == DragState.ARMED:
            session.transition(DragState.IDLE)
            self._session = None
            return None
        if session.state != DragState.DRAGGING or session.hover_target is None:
            self.cancel_drag()
            return None

        session.transition(DragState.COMMITTING)
        hover = session.hover_target
        try:
            result = self.target.drop(session.item_id, session.source_container_id, hover.container_id, hover.index)
        except OrderingError as e:
            logger.info("Drop of %s rejected: %s", session.item_id, e)
            raise
        finally:
            session.transition(DragState.IDLE)
            self._session = None

        self._notify(result)
        return result

    def cancel_drag(self) -> None:
        session = self._session
        if session is None:
            return
        if session.is_live:
            session.transition(DragState.CANCELLED)
            session.transition(DragState.IDLE)
        self._session = None

    def perform_drop(
        self,
        item_id: str,
        source_location: Any,
        target_location: Any,
        *,
        pointer_coordinate: float | None = None,
        index: int | None = None,
    ) -> Any:
        """Run a whole gesture (press, travel, hover, release) in one call."""
        if self._session is not None and self._session.state == DragState.DRAGGING:
            logger.debug("perform_drop(%s) ignored: %s is already dragging", item_id, self._session.item_id)
            return None
        self.begin_drag(item_id, source_location)
        self.pointer_moved(math.inf)
        try:
            self.update_drag_hover(target_location, pointer_coordinate, index=index)
        except OrderingError:
            self.cancel_drag()
            raise
        return self.commit_drag()

    def _notify(self, snapshot: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                # Optimistic update: the in-memory order stands even if persistence fails.
                logger.exception("committed listener %r failed", listener)
