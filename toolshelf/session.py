"""
Session wiring for toolshelf

A ToolShelfSession owns one instance of every engine component and is passed
explicitly to whatever drives it (the HTTP handlers, tests, scripts).
"""

import logging
from typing import Optional

from .core.events import NotificationChannel
from .core.group import ToolShelf
from .core.preferences import PreferenceStore
from .core.reorder import DragKind, ReorderEngine
from .core.storage import ConfigurationStore, LoadResult

logger = logging.getLogger(__name__)


class ToolShelfSession:
    """
    Channel, preferences, configuration store and the two reorder engines of
    one project, created and torn down together.

    Args:
        project_root: Directory holding the project's snapshots and assets
        user_dir: Directory for per-user preferences (see resolve_user_directory)
        check_files: Passed through to ConfigurationStore
    """

    def __init__(self, project_root: str, user_dir: Optional[str] = None, check_files: bool = True):
        self.channel = NotificationChannel()
        self.preferences = PreferenceStore(user_dir)
        self.store = ConfigurationStore(project_root, self.channel, self.preferences, check_files=check_files)
        self.group_drag = ReorderEngine(DragKind.GROUP, self._active_shelf, self.channel)
        self.item_drag = ReorderEngine(DragKind.ITEM, self._active_shelf, self.channel)
        self._closed = False

    def _active_shelf(self) -> Optional[ToolShelf]:
        return self.store.active

    @property
    def shelf(self) -> Optional[ToolShelf]:
        return self.store.active

    def engine_for(self, kind: DragKind) -> ReorderEngine:
        return self.group_drag if DragKind(kind) is DragKind.GROUP else self.item_drag

    def start(self) -> Optional[LoadResult]:
        """Discover snapshots and reopen the last-used one."""
        return self.store.initialize()

    def close(self) -> None:
        if self._closed:
            return
        self.group_drag.reset()
        self.item_drag.reset()
        self.store.close()
        self.channel.clear()
        self._closed = True
        logger.debug("toolshelf session closed")

    def __enter__(self) -> "ToolShelfSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
