# =============================================================================
# Standard Library Imports
# =============================================================================

import logging

"""
toolshelf

A configuration engine for tool shelves: ordered groups of small action
descriptors (run a command, locate an asset, open a scene, path or link,
notes and separators) that can be edited, reordered by drag and drop and
persisted as JSON snapshots inside a project.

This package includes:
- The ordered group store and the eight tool item variants
- A drag-and-drop reorder state machine per draggable kind
- Snapshot discovery, load/save, validation and a last-used pointer
- A typed notification channel for presentation layers
- An aiohttp API through which a web front end drives a session
"""

# =============================================================================
# Package Metadata
# =============================================================================

__version__ = "0.1.0"
__description__ = "Configurable tool shelf engine with drag-and-drop ordering and JSON snapshots"

# =============================================================================
# Local/Project Imports
# =============================================================================

try:
    from .core import (
        ToolShelf,
        Group,
        ToolItem,
        NotificationChannel,
        ConfigurationStore,
        PreferenceStore,
        ReorderEngine,
        DragKind,
        create_item,
    )
    from .session import ToolShelfSession
except Exception as e:
    logging.getLogger(__name__).error(f"Failed to import core functionality: {e}")
    raise

# =============================================================================
# Module-Level Variables
# =============================================================================

logger = logging.getLogger(__name__)

# Package exports
__all__ = [
    "ToolShelf",
    "Group",
    "ToolItem",
    "NotificationChannel",
    "ConfigurationStore",
    "PreferenceStore",
    "ReorderEngine",
    "DragKind",
    "ToolShelfSession",
    "create_item",
]
