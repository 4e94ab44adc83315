"""
Configuration Store for toolshelf

This module discovers, loads, saves and creates shelf snapshots on disk and
owns the active ToolShelf of a session.

Key Features:
- Discovery of every *.shelf.json snapshot under the project root
- Load pipeline: JSON decode, schema check, deserialize, structural and
  reference validation, activation
- Last-used pointer kept in the user preferences and cleared when it no
  longer loads
- Dirty tracking driven by the mutation messages of the active shelf
- Save-location fallback chain for new snapshots
- Atomic file writes to prevent partially written snapshots

Failures are returned as result objects and announced on the notification
channel; none of the public operations raise for I/O problems.
"""

import json
import logging
import os
import posixpath
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .events import (
    AvailableConfigurationsUpdated,
    CollectionMutated,
    ConfigurationDirty,
    ConfigurationLoaded,
    ConfigurationSaved,
    LoadFailed,
    NotificationChannel,
    SaveFailed,
)
from .group import DEFAULT_GROUP_NAME, Group, ToolShelf
from .items import ItemError, ToolShelfError
from .preferences import LAST_CONFIGURATION_KEY, PreferenceStore
from .validation import (
    ReferenceReport,
    ValidationResult,
    collect_reference_problems,
    validate_collection,
    validate_snapshot_data,
)

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".shelf.json"
DEFAULT_SAVE_FOLDER = "shelves"
STORAGE_VERSION = "1.0"


class StorageError(ToolShelfError):
    """Raised inside the storage layer when a snapshot cannot be read or written"""
    pass


@dataclass
class LoadResult:
    success: bool
    identifier: Optional[str] = None
    message: str = ""
    reference_report: Optional[ReferenceReport] = None
    validation: Optional[ValidationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "identifier": self.identifier,
            "message": self.message,
            "reference_report": self.reference_report.to_dict() if self.reference_report else None,
            "validation": self.validation.to_dict() if self.validation else None,
        }


@dataclass
class SaveResult:
    success: bool
    identifier: Optional[str] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "identifier": self.identifier, "message": self.message}


@dataclass
class CreateResult:
    success: bool
    identifier: Optional[str] = None
    message: str = ""
    load_result: Optional[LoadResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "identifier": self.identifier,
            "message": self.message,
            "load_result": self.load_result.to_dict() if self.load_result else None,
        }


def display_name_for(identifier: str) -> str:
    """
    Human-readable name of a snapshot: its file name without the suffix.

    Example:
        >>> display_name_for("tools/shelves/Level Art.shelf.json")
        'Level Art'
    """
    file_name = posixpath.basename(identifier)
    if file_name.endswith(SNAPSHOT_SUFFIX):
        return file_name[: -len(SNAPSHOT_SUFFIX)]
    return file_name


class ConfigurationStore:
    """
    Persistence and discovery of shelf snapshots for one project.

    The store subscribes to CollectionMutated on construction so that every
    edit of the active shelf marks it dirty; call close() to detach it.

    Args:
        project_root: Directory searched for snapshots; identifiers are relative to it
        channel: Notification channel for lifecycle announcements
        preferences: Preference store holding the last-used pointer
        check_files: When True, asset and scene handles must name existing files
                     under the project root to count as valid references
    """

    def __init__(self, project_root: str, channel: NotificationChannel, preferences: PreferenceStore,
                 check_files: bool = True):
        self._project_root = os.path.abspath(project_root)
        self._channel = channel
        self._preferences = preferences
        self._check_files = check_files

        self._active: Optional[ToolShelf] = None
        self._active_identifier: Optional[str] = None
        self._created: Optional[str] = None
        self._dirty = False
        self._identifiers: List[str] = []
        self._names: List[str] = []

        self._subscription = channel.subscribe(CollectionMutated, self._on_collection_mutated)

    # State

    @property
    def project_root(self) -> str:
        return self._project_root

    @property
    def active(self) -> Optional[ToolShelf]:
        return self._active

    @property
    def active_identifier(self) -> Optional[str]:
        return self._active_identifier

    @property
    def selected_index(self) -> int:
        if self._active_identifier in self._identifiers:
            return self._identifiers.index(self._active_identifier)
        return -1

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def available_identifiers(self) -> List[str]:
        return list(self._identifiers)

    @property
    def available_names(self) -> List[str]:
        return list(self._names)

    # Lifecycle

    def initialize(self) -> Optional[LoadResult]:
        """
        Discover snapshots, then reopen the last-used one if there is one.

        Returns:
            LoadResult of the reopen attempt, or None when there was no pointer
        """
        self.discover()
        last_identifier = self._preferences.get_str(LAST_CONFIGURATION_KEY)
        if not last_identifier:
            return None
        result = self.load_by_identifier(last_identifier)
        if not result.success:
            logger.warning(f"Last used configuration can no longer be loaded: {last_identifier}; pointer cleared")
        return result

    def close(self) -> None:
        """Detach from the channel and from the active shelf."""
        self._subscription.unsubscribe()
        if self._active is not None:
            self._active.bind(None)

    # Discovery

    def discover(self) -> Tuple[List[str], List[str]]:
        """
        Enumerate snapshots under the project root without loading them.

        Hidden directories are skipped. Ordering is stable: directories and
        files are walked in sorted order.

        Returns:
            Parallel lists (identifiers, display_names)
        """
        identifiers = []
        if os.path.isdir(self._project_root):
            for dirpath, dirnames, filenames in os.walk(self._project_root):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for filename in sorted(filenames):
                    if filename.endswith(SNAPSHOT_SUFFIX):
                        identifiers.append(self._identifier_for(os.path.join(dirpath, filename)))
        else:
            logger.warning(f"Project root does not exist: {self._project_root}")

        self._identifiers = identifiers
        self._names = [display_name_for(identifier) for identifier in identifiers]
        logger.debug(f"Discovered {len(identifiers)} configuration(s) under {self._project_root}")

        self._channel.publish(AvailableConfigurationsUpdated(
            identifiers=tuple(self._identifiers),
            display_names=tuple(self._names),
        ))
        return self.available_identifiers, self.available_names

    # Loading

    def load_by_index(self, index: int) -> LoadResult:
        """
        Load the snapshot at a position of the last discovery.

        An out-of-range index is a failure that leaves the active shelf in place.
        """
        if not 0 <= index < len(self._identifiers):
            message = f"Configuration index {index} out of range [0, {len(self._identifiers)})"
            logger.warning(message)
            self._channel.publish(LoadFailed(identifier=None, message=message))
            return LoadResult(success=False, message=message)
        return self.load_by_identifier(self._identifiers[index])

    def load_by_identifier(self, identifier: str) -> LoadResult:
        """
        Load a snapshot and make it the active shelf.

        Structural problems and unresolved references are reported in the
        result but do not prevent activation. On failure the previously
        active shelf stays active and, if the identifier was the last-used
        pointer, the pointer is cleared.

        Args:
            identifier: Project-relative POSIX path of the snapshot

        Returns:
            LoadResult with the reference report and structural validation
        """
        if not identifier:
            message = "Configuration identifier is empty"
            logger.warning(message)
            return LoadResult(success=False, message=message)

        try:
            data = self._read_snapshot(identifier)
            schema_result = validate_snapshot_data(data)
            if not schema_result.is_valid:
                raise StorageError(f"Snapshot {identifier} does not match the snapshot schema: {schema_result.message}")
            shelf = ToolShelf.from_dict(data)
        except (StorageError, ItemError) as e:
            return self._load_failed(identifier, str(e))

        structural = validate_collection(shelf)
        if not structural.is_valid:
            logger.warning(f"Configuration {identifier} has structural problems: {structural.message}")
        report = collect_reference_problems(shelf, self._resolver())

        self._activate(identifier, shelf, data.get("created"))
        self._preferences.set_str(LAST_CONFIGURATION_KEY, identifier)
        logger.info(f"Loaded configuration: {display_name_for(identifier)}")

        self._channel.publish(ConfigurationLoaded(identifier=identifier, shelf=shelf, reference_report=report))
        return LoadResult(
            success=True,
            identifier=identifier,
            message=f"Loaded configuration '{display_name_for(identifier)}'",
            reference_report=report,
            validation=structural,
        )

    def _load_failed(self, identifier: str, message: str) -> LoadResult:
        logger.error(f"Failed to load configuration {identifier}: {message}")
        if self._preferences.get_str(LAST_CONFIGURATION_KEY) == identifier:
            self._preferences.delete_key(LAST_CONFIGURATION_KEY)
        self._channel.publish(LoadFailed(identifier=identifier, message=message))
        return LoadResult(success=False, identifier=identifier, message=message)

    def _activate(self, identifier: str, shelf: ToolShelf, created: Optional[str]) -> None:
        if self._active is not None:
            self._active.bind(None)
        self._active = shelf
        self._active_identifier = identifier
        self._created = created if isinstance(created, str) else None
        self._dirty = False
        shelf.bind(self._channel)

    # Saving

    def save(self, enforce_validation: bool = False) -> SaveResult:
        """
        Persist the active shelf to its snapshot file.

        Args:
            enforce_validation: Refuse to save a structurally invalid shelf

        Returns:
            SaveResult; on failure the dirty flag is left as it was
        """
        if self._active is None:
            return self._save_failed(None, "No active configuration to save")

        if enforce_validation:
            ok, message = self.validate(self._active)
            if not ok:
                return self._save_failed(self._active_identifier, f"Configuration is invalid: {message}")

        identifier = self._active_identifier
        try:
            path = self._path_for(identifier)
            self._atomic_write(path, self._create_snapshot_structure(self._active, self._created))
        except StorageError as e:
            return self._save_failed(identifier, str(e))

        self._dirty = False
        logger.info(f"Saved configuration: {display_name_for(identifier)}")
        self._channel.publish(ConfigurationSaved(identifier=identifier))
        return SaveResult(success=True, identifier=identifier, message=f"Saved configuration '{display_name_for(identifier)}'")

    def _save_failed(self, identifier: Optional[str], message: str) -> SaveResult:
        logger.error(f"Failed to save configuration: {message}")
        self._channel.publish(SaveFailed(identifier=identifier, message=message))
        return SaveResult(success=False, identifier=identifier, message=message)

    def mark_dirty(self) -> bool:
        """
        Flag unsaved changes and announce them.

        Returns:
            False (and does nothing) when no shelf is active
        """
        if self._active is None:
            return False
        self._dirty = True
        self._channel.publish(ConfigurationDirty())
        return True

    def _on_collection_mutated(self, message: CollectionMutated) -> None:
        self.mark_dirty()

    def validate(self, shelf: Optional[ToolShelf]) -> Tuple[bool, str]:
        """Structural validation as an (ok, message) pair."""
        result = validate_collection(shelf)
        return result.is_valid, result.message

    def check_references(self) -> ReferenceReport:
        """Re-run reference validation on the active shelf on demand."""
        return collect_reference_problems(self._active, self._resolver())

    # Creating

    def derive_save_folder(self) -> str:
        """
        Folder for a new snapshot: the active snapshot's folder, else the
        folder of the first discovered snapshot, else DEFAULT_SAVE_FOLDER.
        """
        if self._active is not None and self._active_identifier is not None:
            return posixpath.dirname(self._active_identifier)
        if self._identifiers:
            return posixpath.dirname(self._identifiers[0])
        return DEFAULT_SAVE_FOLDER

    def create_new(self, name: str, location: Optional[str] = None) -> CreateResult:
        """
        Create a snapshot holding one empty default group, then load it.

        Args:
            name: File name of the snapshot, without the suffix
            location: Project-relative folder; derived with derive_save_folder() if omitted

        Returns:
            CreateResult; an existing file at the target is never overwritten
        """
        name = (name or "").strip()
        if name.endswith(SNAPSHOT_SUFFIX):
            name = name[: -len(SNAPSHOT_SUFFIX)]
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            message = f"Invalid configuration name: '{name}'"
            logger.warning(message)
            return CreateResult(success=False, message=message)

        folder = location if location is not None else self.derive_save_folder()
        folder = folder.replace("\\", "/").strip("/")
        identifier = posixpath.join(folder, name + SNAPSHOT_SUFFIX) if folder else name + SNAPSHOT_SUFFIX

        try:
            path = self._path_for(identifier)
            if os.path.exists(path):
                raise StorageError(f"Configuration already exists: {identifier}")
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to create folder for {identifier}: {e}")
            shelf = ToolShelf([Group(DEFAULT_GROUP_NAME)])
            self._atomic_write(path, self._create_snapshot_structure(shelf))
        except StorageError as e:
            logger.error(f"Failed to create configuration: {e}")
            return CreateResult(success=False, identifier=identifier, message=str(e))

        logger.info(f"Created configuration: {identifier}")
        self.discover()
        load_result = self.load_by_identifier(identifier)
        return CreateResult(
            success=load_result.success,
            identifier=identifier,
            message=f"Created configuration '{name}'" if load_result.success else load_result.message,
            load_result=load_result,
        )

    # File handling

    def _identifier_for(self, path: str) -> str:
        return os.path.relpath(path, self._project_root).replace(os.sep, "/")

    def _path_for(self, identifier: str) -> str:
        """
        Raises:
            StorageError: If the identifier points outside the project root
        """
        path = os.path.normpath(os.path.join(self._project_root, *identifier.split("/")))
        if os.path.commonpath([path, self._project_root]) != self._project_root:
            raise StorageError(f"Identifier points outside the project root: {identifier}")
        return path

    def _read_snapshot(self, identifier: str) -> Dict[str, Any]:
        path = self._path_for(identifier)
        if not os.path.isfile(path):
            raise StorageError(f"Snapshot not found: {identifier}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in snapshot {identifier}: {e}")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read snapshot {identifier}: {e}")

    def _create_snapshot_structure(self, shelf: ToolShelf, created: Optional[str] = None) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        data = {"version": STORAGE_VERSION, "created": created or now, "updated": now}
        data.update(shelf.to_dict())
        return data

    def _atomic_write(self, filepath: str, data: Dict[str, Any]) -> None:
        """
        Write data to filepath through a temporary file in the same directory.

        Raises:
            StorageError: If the write fails
        """
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=os.path.dirname(filepath),
                delete=False,
                suffix=".tmp",
            ) as temp_file:
                temp_path = temp_file.name
                json.dump(data, temp_file, indent=2, ensure_ascii=False)
            shutil.move(temp_path, filepath)
        except (OSError, TypeError, ValueError) as e:
            if temp_path is not None and os.path.exists(temp_path):
                os.remove(temp_path)
            raise StorageError(f"Atomic write failed for {filepath}: {e}")

    def _resolver(self):
        if not self._check_files:
            return None

        def handle_exists(handle: str) -> bool:
            return os.path.exists(os.path.join(self._project_root, *handle.split("/")))

        return handle_exists
