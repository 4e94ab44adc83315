"""
Ordered Group Store for toolshelf

This module provides the root aggregate of a tool shelf: an ordered list of
named groups, each holding an ordered list of tool items, plus the shelf-wide
settings. All structural mutations go through ToolShelf so that they can be
announced on the notification channel the shelf is bound to.

Items are addressed by position only. Group names are expected to be unique,
but that is checked by validation rather than rejected at insertion time.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .events import (
    GroupAdded,
    GroupMoved,
    GroupRemoved,
    GroupRenamed,
    ItemAdded,
    ItemModified,
    ItemMoved,
    ItemRemoved,
    Message,
    NotificationChannel,
)
from .items import Handle, ItemError, ToolItem, ToolShelfError, item_from_dict

logger = logging.getLogger(__name__)

DEFAULT_GROUP_NAME = "Default Group"
NEW_GROUP_NAME = "New Group"


class InvariantError(ToolShelfError):
    """Raised when a mutation meets a structure that breaks the shelf invariants"""
    pass


@dataclass
class ShelfSettings:
    """Shelf-wide settings stored alongside the groups"""
    log_limit: int = 30
    screenshot_directory: str = "Screenshots/Capture/"
    online_start_scene: Handle = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_limit": self.log_limit,
            "screenshot_directory": self.screenshot_directory,
            "online_start_scene": self.online_start_scene,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ShelfSettings":
        settings = cls()
        if not isinstance(data, dict):
            return settings
        log_limit = data.get("log_limit")
        if isinstance(log_limit, int) and not isinstance(log_limit, bool) and log_limit >= 0:
            settings.log_limit = log_limit
        elif log_limit is not None:
            logger.warning(f"Invalid log_limit {log_limit!r}, using default {settings.log_limit}")
        if isinstance(data.get("screenshot_directory"), str):
            settings.screenshot_directory = data["screenshot_directory"]
        scene = data.get("online_start_scene")
        if isinstance(scene, str) and scene:
            settings.online_start_scene = scene
        return settings


class Group:
    """
    A named, ordered container of tool items.

    `items` may be None only when loaded from a damaged snapshot; validation
    reports that case and mutations refuse to touch it.
    """

    def __init__(self, name: str = NEW_GROUP_NAME, items: Optional[List[ToolItem]] = None):
        self.name = name
        self.items: Optional[List[ToolItem]] = [] if items is None else items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "items": None if self.items is None else [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        """
        Create a Group from stored data.

        Items that cannot be deserialized are skipped with a warning so that one
        damaged entry does not make the whole snapshot unusable.
        """
        if not isinstance(data, dict):
            raise ItemError("Group data must be a dictionary")
        name = data.get("name")
        group = cls(name if isinstance(name, str) else "")
        raw_items = data.get("items")
        if raw_items is None:
            group.items = None
            return group
        for index, raw_item in enumerate(raw_items):
            try:
                group.items.append(item_from_dict(raw_item))
            except ItemError as e:
                logger.warning(f"Skipping item {index} of group '{group.name}': {e}")
        return group

    @property
    def item_count(self) -> int:
        return len(self.items) if self.items is not None else 0

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0

    def __repr__(self) -> str:
        return f"Group(name='{self.name}', items={self.item_count})"


def _move_within(sequence: list, from_index: int, to_index: int) -> bool:
    """
    Move one element, with to_index expressed in post-removal index space.

    Returns False (and leaves the list alone) for out-of-range indices or
    from_index == to_index.
    """
    count = len(sequence)
    if from_index == to_index:
        return False
    if not (0 <= from_index < count) or not (0 <= to_index < count):
        return False
    element = sequence.pop(from_index)
    sequence.insert(to_index, element)
    return True


class ToolShelf:
    """
    The ordered group store: root aggregate of one shelf configuration.

    Example:
        >>> shelf = ToolShelf()
        >>> shelf.add_group("Scenes")
        0
        >>> shelf.add_item(0, SceneOpenerItem(scene="scenes/main.scene"))
        0
    """

    def __init__(self, groups: Optional[List[Group]] = None, settings: Optional[ShelfSettings] = None):
        self.groups: Optional[List[Group]] = [] if groups is None else groups
        self.settings = settings or ShelfSettings()
        self._channel: Optional[NotificationChannel] = None

    # Channel binding

    def bind(self, channel: Optional[NotificationChannel]) -> None:
        """Announce future mutations on channel (None detaches)."""
        self._channel = channel

    def _publish(self, message: Message) -> None:
        if self._channel is not None:
            self._channel.publish(message)

    # Index resolution

    def _group_list(self) -> List[Group]:
        if self.groups is None:
            raise InvariantError("Shelf has no group list")
        return self.groups

    def _group_at(self, group_index: int) -> Group:
        groups = self._group_list()
        if not 0 <= group_index < len(groups):
            raise IndexError(f"Group index {group_index} out of range [0, {len(groups)})")
        return groups[group_index]

    def _items_of(self, group_index: int) -> List[ToolItem]:
        group = self._group_at(group_index)
        if group.items is None:
            raise InvariantError(f"Group '{group.name}' has no item list")
        return group.items

    @property
    def group_count(self) -> int:
        return len(self.groups) if self.groups is not None else 0

    def item_count(self, group_index: int) -> int:
        return len(self._items_of(group_index))

    def group_names(self) -> List[str]:
        return [group.name for group in self._group_list()]

    # Group operations

    def add_group(self, name: str = NEW_GROUP_NAME) -> int:
        """
        Append a new empty group.

        Args:
            name: Display name; uniqueness is left to validation

        Returns:
            Index of the new group
        """
        groups = self._group_list()
        groups.append(Group(name))
        index = len(groups) - 1
        self._publish(GroupAdded(index=index, name=name))
        return index

    def remove_group(self, group_index: int) -> Group:
        """
        Remove a group together with all of its items.

        Raises:
            IndexError: If group_index is out of range
        """
        self._group_at(group_index)
        removed = self.groups.pop(group_index)
        self._publish(GroupRemoved(index=group_index))
        return removed

    def rename_group(self, group_index: int, name: str) -> None:
        """
        Raises:
            IndexError: If group_index is out of range
        """
        group = self._group_at(group_index)
        group.name = name
        self._publish(GroupRenamed(index=group_index, name=name))

    def move_group(self, from_index: int, to_index: int) -> bool:
        """
        Move a group; to_index is already corrected for the removal of the source.

        Returns:
            True if the order changed, False for a silent no-op
        """
        if not _move_within(self._group_list(), from_index, to_index):
            return False
        self._publish(GroupMoved(from_index=from_index, to_index=to_index))
        return True

    # Item operations

    def add_item(self, group_index: int, item: ToolItem) -> int:
        """
        Append a clone of item to a group.

        The stored item is independent of the argument, so a UI template can
        keep being edited after it has been added.

        Returns:
            Index of the new item

        Raises:
            IndexError: If group_index is out of range
            TypeError: If item is not a ToolItem
        """
        if not isinstance(item, ToolItem):
            raise TypeError(f"Expected a ToolItem, got {type(item).__name__}")
        items = self._items_of(group_index)
        items.append(item.clone())
        item_index = len(items) - 1
        self._publish(ItemAdded(group_index=group_index, item_index=item_index))
        return item_index

    def remove_item(self, group_index: int, item_index: int) -> ToolItem:
        """
        Raises:
            IndexError: If either index is out of range
        """
        items = self._items_of(group_index)
        if not 0 <= item_index < len(items):
            raise IndexError(f"Item index {item_index} out of range [0, {len(items)})")
        removed = items.pop(item_index)
        self._publish(ItemRemoved(group_index=group_index, item_index=item_index))
        return removed

    def update_item(self, group_index: int, item_index: int, **fields: Any) -> ToolItem:
        """
        Edit an item's fields in place.

        Raises:
            IndexError: If either index is out of range
            ValueError: If a field is unknown or has the wrong type
        """
        items = self._items_of(group_index)
        if not 0 <= item_index < len(items):
            raise IndexError(f"Item index {item_index} out of range [0, {len(items)})")
        item = items[item_index]
        item.update(**fields)
        self._publish(ItemModified(group_index=group_index, item_index=item_index))
        return item

    def move_item(self, group_index: int, from_index: int, to_index: int) -> bool:
        """
        Move an item within one group. Same contract as move_group.

        An out-of-range group index is a silent no-op as well.
        """
        groups = self._group_list()
        if not 0 <= group_index < len(groups):
            return False
        items = self._items_of(group_index)
        if not _move_within(items, from_index, to_index):
            return False
        self._publish(ItemMoved(group_index=group_index, from_index=from_index, to_index=to_index))
        return True

    def clear_items(self, group_index: int) -> None:
        items = self._items_of(group_index)
        for item_index in range(len(items) - 1, -1, -1):
            items.pop(item_index)
            self._publish(ItemRemoved(group_index=group_index, item_index=item_index))

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "settings": self.settings.to_dict(),
            "groups": None if self.groups is None else [group.to_dict() for group in self.groups],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolShelf":
        """
        Create a shelf from snapshot data.

        Raises:
            ItemError: If data or one of its groups is not a dictionary
        """
        if not isinstance(data, dict):
            raise ItemError("Shelf data must be a dictionary")
        shelf = cls(settings=ShelfSettings.from_dict(data.get("settings")))
        raw_groups = data.get("groups")
        if raw_groups is None:
            shelf.groups = None
        else:
            shelf.groups = [Group.from_dict(raw_group) for raw_group in raw_groups]
        return shelf

    def __repr__(self) -> str:
        return f"ToolShelf(groups={self.group_names() if self.groups is not None else None})"
