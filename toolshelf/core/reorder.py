"""
Drag-and-drop Reorder Engine for toolshelf

Headless state machine that turns pointer events into index-accurate moves on
a ToolShelf. One engine instance exists per draggable kind (groups, items):

    IDLE -> ARMED(source) -> TRACKING(source, target) -> commit | cancel -> IDLE

While tracking, the tentative target is an insertion index in the original
(pre-removal) ordering: a slot's own index when the pointer is in its upper
half, index + 1 in its lower half. On release the target is corrected for the
removal of the source element before the move is applied.

The engine never keeps a reference into the shelf between events. Each commit
looks the shelf up again and re-checks every index, so a stale session
degrades to a no-op instead of corrupting the order.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

from .events import DragStateChanged, NotificationChannel, Reordered
from .group import ToolShelf

logger = logging.getLogger(__name__)


class DragKind(str, Enum):
    GROUP = "group"
    ITEM = "item"


class DragState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    TRACKING = "tracking"


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned region in presentation coordinates (y grows downwards)"""
    x: float
    y: float
    width: float
    height: float

    def contains(self, point: Point) -> bool:
        return self.x <= point.x < self.x + self.width and self.y <= point.y < self.y + self.height

    def in_upper_half(self, point: Point) -> bool:
        return point.y < self.y + self.height / 2


@dataclass(frozen=True)
class DragOutcome:
    """What a pointer release did"""
    committed: bool
    source_index: Optional[int] = None
    final_index: Optional[int] = None
    group_index: Optional[int] = None


def corrected_drop_index(source_index: int, target_index: int, count: int) -> int:
    """
    Convert a pre-removal insertion index into the index to insert at after the
    source element has been removed, clamped to [0, count - 1].

    Example:
        >>> corrected_drop_index(0, 3, 4)
        2
        >>> corrected_drop_index(3, 0, 4)
        0
    """
    final_index = target_index - 1 if source_index < target_index else target_index
    return max(0, min(final_index, count - 1))


ShelfProvider = Callable[[], Optional[ToolShelf]]
Slots = Iterable[Tuple[int, Rect]]


class ReorderEngine:
    """
    Drag session state machine for one draggable kind.

    Args:
        kind: DragKind.GROUP or DragKind.ITEM
        shelf_provider: Returns the currently active shelf (or None) at commit time
        channel: Optional channel for DragStateChanged / Reordered announcements
    """

    def __init__(self, kind: DragKind, shelf_provider: ShelfProvider,
                 channel: Optional[NotificationChannel] = None):
        self.kind = DragKind(kind)
        self._shelf_provider = shelf_provider
        self._channel = channel
        self._state = DragState.IDLE
        self._source_index: Optional[int] = None
        self._tentative_target: Optional[int] = None
        self._group_index: Optional[int] = None

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not DragState.IDLE

    @property
    def source_index(self) -> Optional[int]:
        return self._source_index

    @property
    def tentative_target(self) -> Optional[int]:
        return self._tentative_target

    @property
    def group_index(self) -> Optional[int]:
        return self._group_index

    def pointer_down(self, index: int, region: Rect, point: Point, group_index: Optional[int] = None) -> bool:
        """
        Arm a session if the pointer went down inside a candidate's region.

        Args:
            index: Index of the candidate under the pointer
            region: The candidate's interactive region
            point: Pointer position
            group_index: Owning group; required for item drags

        Returns:
            True if a session was armed
        """
        if self._state is not DragState.IDLE:
            return False
        if not region.contains(point):
            return False
        if self.kind is DragKind.ITEM and group_index is None:
            raise ValueError("Item drags need the index of the owning group")

        self._source_index = index
        self._tentative_target = None
        self._group_index = group_index if self.kind is DragKind.ITEM else None
        self._state = DragState.ARMED
        self._publish(DragStateChanged(kind=self.kind.value, active=True))
        return True

    def pointer_move(self, point: Point, slots: Slots, group_index: Optional[int] = None) -> Optional[int]:
        """
        Update the tentative target from the pointer position.

        Slots belonging to another group than the one captured when the item
        session was armed are ignored.

        Returns:
            The current tentative target (None while no slot has been hit)
        """
        if self._state is DragState.IDLE:
            return None
        if self.kind is DragKind.ITEM and group_index != self._group_index:
            return self._tentative_target

        self._state = DragState.TRACKING
        for slot_index, rect in slots:
            if rect.contains(point):
                self._tentative_target = slot_index if rect.in_upper_half(point) else slot_index + 1
                break
        return self._tentative_target

    def pointer_up(self) -> DragOutcome:
        """
        End the session, committing the move when there is a valid target.

        Returns:
            DragOutcome describing the applied move, or committed=False
        """
        if self._state is DragState.IDLE:
            return DragOutcome(committed=False)
        try:
            return self._commit()
        finally:
            self._end()

    def cancel(self) -> None:
        """Abandon the current session without touching the shelf."""
        if self._state is not DragState.IDLE:
            logger.debug(f"{self.kind.value} drag cancelled")
            self._end()

    def reset(self) -> None:
        """Force the engine back to IDLE, e.g. when the owning panel goes away."""
        self.cancel()

    def _commit(self) -> DragOutcome:
        source = self._source_index
        target = self._tentative_target
        group_index = self._group_index
        not_committed = DragOutcome(committed=False, source_index=source, group_index=group_index)

        if self._state is not DragState.TRACKING or source is None or target is None or source == target:
            return not_committed

        shelf = self._shelf_provider()
        if shelf is None or shelf.groups is None:
            return not_committed

        if self.kind is DragKind.GROUP:
            count = shelf.group_count
        else:
            if not 0 <= group_index < shelf.group_count:
                logger.debug(f"Dropping item move: group {group_index} no longer exists")
                return not_committed
            count = shelf.item_count(group_index)

        if not 0 <= source < count or not 0 <= target <= count:
            logger.debug(f"Dropping stale {self.kind.value} move {source} -> {target} (count {count})")
            return not_committed

        final_index = corrected_drop_index(source, target, count)
        if self.kind is DragKind.GROUP:
            moved = shelf.move_group(source, final_index)
        else:
            moved = shelf.move_item(group_index, source, final_index)

        if not moved:
            return not_committed

        self._publish(Reordered(kind=self.kind.value, group_index=group_index,
                                from_index=source, to_index=final_index))
        return DragOutcome(committed=True, source_index=source, final_index=final_index, group_index=group_index)

    def _end(self) -> None:
        self._state = DragState.IDLE
        self._source_index = None
        self._tentative_target = None
        self._group_index = None
        self._publish(DragStateChanged(kind=self.kind.value, active=False))

    def _publish(self, message) -> None:
        if self._channel is not None:
            self._channel.publish(message)
