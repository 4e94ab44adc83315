"""
Core Engine Components for toolshelf

This package contains the data structures and operations behind a tool shelf:

- items: the eight tool item variants and their tag registry
- group: groups and the ToolShelf aggregate with its ordered mutations
- reorder: the drag-and-drop reorder state machine
- validation: snapshot schema, structural and reference validation
- events: the typed notification channel and its messages
- preferences: the per-user preference file holding the last-used pointer
- storage: discovery, load, save and creation of shelf snapshots

The HTTP handlers and the session object are built on top of these modules.
"""

from .items import (
    ToolShelfError,
    ItemError,
    SeparatorStyle,
    RenderModel,
    ToolItem,
    CommandItem,
    AssetLocatorItem,
    SceneObjectLocatorItem,
    TextNoteItem,
    PathOpenerItem,
    SceneOpenerItem,
    LinkOpenerItem,
    SeparatorItem,
    ITEM_TYPES,
    create_item,
    item_from_dict
)

from .group import (
    DEFAULT_GROUP_NAME,
    NEW_GROUP_NAME,
    InvariantError,
    ShelfSettings,
    Group,
    ToolShelf
)

from .events import (
    Message,
    NotificationChannel,
    Subscription,
    ConfigurationLoaded,
    ConfigurationSaved,
    ConfigurationDirty,
    AvailableConfigurationsUpdated,
    LoadFailed,
    SaveFailed,
    CollectionMutated,
    GroupAdded,
    GroupRemoved,
    GroupRenamed,
    GroupMoved,
    ItemAdded,
    ItemRemoved,
    ItemModified,
    ItemMoved,
    DragStateChanged,
    Reordered,
    ErrorOccurred
)

from .validation import (
    ValidationResult,
    ReferenceProblem,
    ReferenceReport,
    validate_snapshot_data,
    validate_collection,
    collect_reference_problems
)

from .reorder import (
    DragKind,
    DragState,
    Point,
    Rect,
    DragOutcome,
    ReorderEngine,
    corrected_drop_index
)

from .preferences import (
    LAST_CONFIGURATION_KEY,
    PreferenceStore
)

from .storage import (
    SNAPSHOT_SUFFIX,
    DEFAULT_SAVE_FOLDER,
    StorageError,
    LoadResult,
    SaveResult,
    CreateResult,
    ConfigurationStore
)

__all__ = [
    # Items
    "ToolItem",
    "CommandItem",
    "AssetLocatorItem",
    "SceneObjectLocatorItem",
    "TextNoteItem",
    "PathOpenerItem",
    "SceneOpenerItem",
    "LinkOpenerItem",
    "SeparatorItem",
    "SeparatorStyle",
    "RenderModel",
    "ITEM_TYPES",
    "create_item",
    "item_from_dict",

    # Groups and the shelf
    "DEFAULT_GROUP_NAME",
    "NEW_GROUP_NAME",
    "ShelfSettings",
    "Group",
    "ToolShelf",

    # Exceptions
    "ToolShelfError",
    "ItemError",
    "InvariantError",
    "StorageError",

    # Notification channel
    "Message",
    "NotificationChannel",
    "Subscription",
    "ConfigurationLoaded",
    "ConfigurationSaved",
    "ConfigurationDirty",
    "AvailableConfigurationsUpdated",
    "LoadFailed",
    "SaveFailed",
    "CollectionMutated",
    "GroupAdded",
    "GroupRemoved",
    "GroupRenamed",
    "GroupMoved",
    "ItemAdded",
    "ItemRemoved",
    "ItemModified",
    "ItemMoved",
    "DragStateChanged",
    "Reordered",
    "ErrorOccurred",

    # Validation
    "ValidationResult",
    "ReferenceProblem",
    "ReferenceReport",
    "validate_snapshot_data",
    "validate_collection",
    "collect_reference_problems",

    # Reordering
    "DragKind",
    "DragState",
    "Point",
    "Rect",
    "DragOutcome",
    "ReorderEngine",
    "corrected_drop_index",

    # Persistence
    "LAST_CONFIGURATION_KEY",
    "PreferenceStore",
    "SNAPSHOT_SUFFIX",
    "DEFAULT_SAVE_FOLDER",
    "LoadResult",
    "SaveResult",
    "CreateResult",
    "ConfigurationStore"
]
