"""
Tool Item Variants for toolshelf

This module defines the polymorphic leaf of the shelf hierarchy: the tool item.
Each variant is a small action descriptor (run a menu command, locate an asset,
open a scene, show a note, ...) stored as a tagged dataclass.

Every variant supports:
- clone(): value copy with no shared mutable state
- to_dict() / item_from_dict(): serialization with an explicit "type" tag
- render(): a presentation-neutral description consumed by the UI layer
- update(): in-place edit of known fields

Variants that hold handles to external resources (assets, scenes) also implement
the reference validator capability: is_valid() and describe_problem().
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable, ClassVar, Dict, List, Optional, Type
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Handles are project-relative paths to external resources. They are immutable
# strings, so copying one copies the identifier and never the resource itself.
Handle = Optional[str]
HandleResolver = Callable[[str], bool]


class ToolShelfError(Exception):
    """Base exception for toolshelf operations"""
    pass


class ItemError(ToolShelfError):
    """Raised when an item cannot be created or deserialized"""
    pass


class SeparatorStyle(str, Enum):
    """How a separator is displayed"""
    LINE = "line"
    TITLED_BOX = "titled_box"


@dataclass(frozen=True)
class RenderModel:
    """
    Presentation-neutral description of one item.

    The UI layer turns this into widgets; the core never draws anything.
    A non-empty warning means the UI should show it instead of the action control.
    """
    kind: str
    heading: str = ""
    button_text: str = ""
    tooltip: str = ""
    warning: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "heading": self.heading,
            "button_text": self.button_text,
            "tooltip": self.tooltip,
            "warning": self.warning,
            "extra": dict(self.extra),
        }


def _handle_stem(handle: Handle) -> str:
    if not handle:
        return ""
    name = PurePosixPath(handle).name
    # Snapshot-style double suffixes ("x.scene.json") keep only the first part
    return name.split(".", 1)[0] if name else handle


def _handle_resolves(handle: Handle, resolver: Optional[HandleResolver]) -> bool:
    if not handle:
        return False
    if resolver is None:
        return True
    try:
        return bool(resolver(handle))
    except Exception as e:
        logger.warning(f"Handle resolver failed for '{handle}': {e}")
        return False


@dataclass
class ToolItem:
    """
    Base class for all tool item variants.

    Subclasses set TYPE_TAG and declare their fields as dataclass fields.
    All fields must be immutable values (str, bool, enum members, handles).
    """
    TYPE_TAG: ClassVar[str] = ""
    DISPLAY_NAME: ClassVar[str] = ""
    HAS_REFERENCES: ClassVar[bool] = False

    def clone(self) -> "ToolItem":
        """Return an independent copy carrying the current field values."""
        return dataclasses.replace(self)

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the item with its type tag.

        Returns:
            Dictionary with a "type" key followed by the variant's fields
        """
        result: Dict[str, Any] = {"type": self.TYPE_TAG}
        for name in self.field_names():
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            result[name] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolItem":
        """
        Create a variant instance from stored data, ignoring unknown keys.

        Missing fields fall back to the variant defaults; fields of the wrong
        type are replaced by defaults with a warning.
        """
        kwargs = {}
        for f in dataclasses.fields(cls):
            if f.name not in data:
                continue
            value = _coerce_field(cls, f, data[f.name])
            if value is not _INVALID:
                kwargs[f.name] = value
        return cls(**kwargs)

    def update(self, **fields: Any) -> None:
        """
        Edit fields in place.

        Raises:
            ValueError: If a field name is unknown or a value has the wrong type
        """
        known = {f.name: f for f in dataclasses.fields(self)}
        for name in fields:
            if name not in known:
                raise ValueError(f"'{self.TYPE_TAG}' items have no field '{name}'")
        coerced = {}
        for name, value in fields.items():
            converted = _coerce_field(type(self), known[name], value)
            if converted is _INVALID:
                raise ValueError(f"Invalid value for '{name}': {value!r}")
            coerced[name] = converted
        for name, value in coerced.items():
            setattr(self, name, value)

    def render(self) -> RenderModel:
        """Describe the item for the UI. Variants override this with their own controls."""
        return RenderModel(kind=self.TYPE_TAG)

    # Reference validator capability. Only variants with HAS_REFERENCES override these.

    def is_valid(self, resolver: Optional[HandleResolver] = None) -> bool:
        return True

    def describe_problem(self, resolver: Optional[HandleResolver] = None) -> str:
        return ""


_INVALID = object()


def _coerce_field(cls: Type[ToolItem], f: dataclasses.Field, value: Any) -> Any:
    """Coerce a raw value for a dataclass field, returning _INVALID when impossible."""
    default = f.default
    if isinstance(default, Enum):
        try:
            return type(default)(value)
        except ValueError:
            logger.warning(f"Invalid {f.name} '{value}' for {cls.TYPE_TAG} item, using default")
            return _INVALID
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        logger.warning(f"{f.name} for {cls.TYPE_TAG} item is not a boolean, using default")
        return _INVALID
    if default is None:
        # Handle field
        if value is None or isinstance(value, str):
            return value or None
        logger.warning(f"{f.name} for {cls.TYPE_TAG} item is not a path, using None")
        return _INVALID
    if value is None:
        return _INVALID
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    logger.warning(f"{f.name} for {cls.TYPE_TAG} item is not a string, using default")
    return _INVALID


@dataclass
class CommandItem(ToolItem):
    """Runs an editor menu command given by its menu path."""
    TYPE_TAG: ClassVar[str] = "command"
    DISPLAY_NAME: ClassVar[str] = "Run Command"

    label: str = ""
    menu_path: str = ""
    button_label: str = ""

    def render(self) -> RenderModel:
        return RenderModel(
            kind=self.TYPE_TAG,
            heading=self.label,
            button_text=self.button_label or self.menu_path,
            tooltip=f"Run menu command: {self.menu_path}" if self.menu_path else "",
        )


@dataclass
class AssetLocatorItem(ToolItem):
    """Highlights a project asset."""
    TYPE_TAG: ClassVar[str] = "asset_locator"
    DISPLAY_NAME: ClassVar[str] = "Locate Asset"
    HAS_REFERENCES: ClassVar[bool] = True

    label: str = ""
    button_label: str = ""
    asset: Handle = None

    def is_valid(self, resolver: Optional[HandleResolver] = None) -> bool:
        return _handle_resolves(self.asset, resolver)

    def describe_problem(self, resolver: Optional[HandleResolver] = None) -> str:
        name = self.button_label or self.label or "Unnamed"
        return f"Asset '{name}' reference is missing or unassigned."

    def render(self) -> RenderModel:
        if not self.is_valid():
            return RenderModel(kind=self.TYPE_TAG, heading=self.label, warning=self.describe_problem())
        return RenderModel(
            kind=self.TYPE_TAG,
            heading=self.label,
            button_text=self.button_label or _handle_stem(self.asset),
            tooltip=f"Locate asset: {self.asset}",
            extra={"path": self.asset},
        )


@dataclass
class SceneObjectLocatorItem(ToolItem):
    """Finds and selects a named object inside a scene."""
    TYPE_TAG: ClassVar[str] = "scene_object_locator"
    DISPLAY_NAME: ClassVar[str] = "Locate Scene Object"
    HAS_REFERENCES: ClassVar[bool] = True

    label: str = ""
    button_label: str = ""
    object_name: str = ""
    scene: Handle = None

    def is_valid(self, resolver: Optional[HandleResolver] = None) -> bool:
        return _handle_resolves(self.scene, resolver) and bool(self.object_name)

    def describe_problem(self, resolver: Optional[HandleResolver] = None) -> str:
        if not _handle_resolves(self.scene, resolver):
            return "Scene reference is missing or unassigned."
        if not self.object_name:
            return "Target object name cannot be empty."
        return ""

    def render(self) -> RenderModel:
        if not self.is_valid():
            return RenderModel(kind=self.TYPE_TAG, heading=self.label, warning=self.describe_problem())
        return RenderModel(
            kind=self.TYPE_TAG,
            heading=self.label,
            button_text=self.button_label or self.object_name,
            tooltip=f"Locate scene object: {self.object_name}",
            extra={"scene": self.scene},
        )


@dataclass
class TextNoteItem(ToolItem):
    """A multi-line note; locked notes are read-only in the UI."""
    TYPE_TAG: ClassVar[str] = "text_note"
    DISPLAY_NAME: ClassVar[str] = "Text Note"

    text: str = ""
    locked: bool = True

    def render(self) -> RenderModel:
        return RenderModel(kind=self.TYPE_TAG, extra={"text": self.text, "locked": self.locked})


@dataclass
class PathOpenerItem(ToolItem):
    """Opens a file system path in the platform file browser."""
    TYPE_TAG: ClassVar[str] = "path_opener"
    DISPLAY_NAME: ClassVar[str] = "Open Path"

    path: str = ""

    def render(self) -> RenderModel:
        return RenderModel(
            kind=self.TYPE_TAG,
            button_text=self.path or "Choose a path...",
            tooltip=f"Open path: {self.path}",
        )


@dataclass
class SceneOpenerItem(ToolItem):
    """Opens a scene in the editor."""
    TYPE_TAG: ClassVar[str] = "scene_opener"
    DISPLAY_NAME: ClassVar[str] = "Open Scene"
    HAS_REFERENCES: ClassVar[bool] = True

    label: str = ""
    button_label: str = ""
    scene: Handle = None

    def is_valid(self, resolver: Optional[HandleResolver] = None) -> bool:
        return _handle_resolves(self.scene, resolver)

    def describe_problem(self, resolver: Optional[HandleResolver] = None) -> str:
        if not self.is_valid(resolver):
            return "Scene reference is missing: reassign the scene file."
        return ""

    def render(self) -> RenderModel:
        if not self.is_valid():
            return RenderModel(kind=self.TYPE_TAG, heading=self.label, warning=self.describe_problem())
        return RenderModel(
            kind=self.TYPE_TAG,
            heading=self.label,
            button_text=self.button_label or _handle_stem(self.scene),
            tooltip=f"Open scene: {_handle_stem(self.scene)}",
            extra={"path": self.scene},
        )


@dataclass
class LinkOpenerItem(ToolItem):
    """Opens a web page, optionally in the editor's internal browser."""
    TYPE_TAG: ClassVar[str] = "link_opener"
    DISPLAY_NAME: ClassVar[str] = "Open Link"

    label: str = ""
    button_label: str = "Open Link"
    url: str = "https://"
    use_internal_browser: bool = False

    def has_valid_url(self) -> bool:
        """Format check only: http(s) scheme and a host. Reachability is never tested."""
        if not self.url or not self.url.strip():
            return False
        try:
            parsed = urlparse(self.url.strip())
        except ValueError:
            return False
        return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)

    def render(self) -> RenderModel:
        if not self.has_valid_url():
            return RenderModel(
                kind=self.TYPE_TAG,
                heading=self.label,
                warning="Set a valid web address (http:// or https://).",
            )
        return RenderModel(
            kind=self.TYPE_TAG,
            heading=self.label,
            button_text=self.button_label or "Open Link",
            tooltip=f"Open link: {self.url}",
            extra={"url": self.url, "use_internal_browser": self.use_internal_browser},
        )


@dataclass
class SeparatorItem(ToolItem):
    """Visual divider, either a plain line or a titled box."""
    TYPE_TAG: ClassVar[str] = "separator"
    DISPLAY_NAME: ClassVar[str] = "Separator"

    title: str = "Group Title"
    style: SeparatorStyle = SeparatorStyle.TITLED_BOX

    def render(self) -> RenderModel:
        return RenderModel(kind=self.TYPE_TAG, heading=self.title, extra={"style": self.style.value})


ITEM_TYPES: Dict[str, Type[ToolItem]] = {
    cls.TYPE_TAG: cls
    for cls in (
        CommandItem,
        AssetLocatorItem,
        SceneObjectLocatorItem,
        TextNoteItem,
        PathOpenerItem,
        SceneOpenerItem,
        LinkOpenerItem,
        SeparatorItem,
    )
}


def create_item(type_tag: str, **fields: Any) -> ToolItem:
    """
    Build a template item of the given variant.

    Args:
        type_tag: One of the keys of ITEM_TYPES
        **fields: Initial field values

    Returns:
        New item instance

    Raises:
        ItemError: If the tag is unknown or a field is invalid
    """
    cls = ITEM_TYPES.get(type_tag) if isinstance(type_tag, str) else None
    if cls is None:
        raise ItemError(f"Unknown item type: {type_tag!r}")
    item = cls()
    try:
        item.update(**fields)
    except ValueError as e:
        raise ItemError(str(e))
    return item


def item_from_dict(data: Dict[str, Any]) -> ToolItem:
    """
    Deserialize an item by dispatching on its "type" tag.

    Raises:
        ItemError: If data is not a dictionary or the tag is unknown
    """
    if not isinstance(data, dict):
        raise ItemError("Item data must be a dictionary")
    type_tag = data.get("type")
    cls = ITEM_TYPES.get(type_tag) if isinstance(type_tag, str) else None
    if cls is None:
        raise ItemError(f"Unknown item type: {type_tag!r}")
    return cls.from_dict(data)
