"""
User Preference Store for toolshelf

Small JSON-file-backed key/value store living in the user directory. The
configuration store keeps its last-used pointer here so that the next session
can reopen the same snapshot.
"""

import json
import logging
import os
import shutil
import tempfile
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

USER_DIR_ENV = "TOOLSHELF_USER_DIR"
DEFAULT_USER_DIR = os.path.join("~", ".toolshelf")
PREFERENCES_FILENAME = "preferences.json"

LAST_CONFIGURATION_KEY = "toolshelf.last_configuration"


def resolve_user_directory(custom_path: Optional[str] = None) -> str:
    """
    Resolve the directory holding per-user state.

    Order: explicit path, then $TOOLSHELF_USER_DIR, then ~/.toolshelf.
    """
    if custom_path:
        return os.path.abspath(custom_path)
    env_path = os.environ.get(USER_DIR_ENV)
    if env_path:
        return os.path.abspath(env_path)
    return os.path.abspath(os.path.expanduser(DEFAULT_USER_DIR))


class PreferenceStore:
    """
    Persistent string preferences.

    Values are read once on construction and written through on every change.
    A missing or unreadable file starts the store out empty.

    Example:
        >>> prefs = PreferenceStore("/tmp/toolshelf-user")
        >>> prefs.set_str(LAST_CONFIGURATION_KEY, "shelves/Main.shelf.json")
        >>> prefs.get_str(LAST_CONFIGURATION_KEY)
        'shelves/Main.shelf.json'
    """

    def __init__(self, user_dir: Optional[str] = None):
        self._user_dir = resolve_user_directory(user_dir)
        self._path = os.path.join(self._user_dir, PREFERENCES_FILENAME)
        self._values: Dict[str, Any] = self._read()

    @property
    def path(self) -> str:
        return self._path

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self._path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring preferences file {self._path}: expected a JSON object")
            return {}
        return data

    def _write(self) -> None:
        try:
            os.makedirs(self._user_dir, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w", encoding="utf-8", dir=self._user_dir, delete=False, suffix=".tmp"
            ) as temp_file:
                json.dump(self._values, temp_file, indent=2, sort_keys=True)
                temp_path = temp_file.name
            shutil.move(temp_path, self._path)
        except OSError as e:
            logger.error(f"Failed to write preferences to {self._path}: {e}")

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self._values.get(key)
        return value if isinstance(value, str) else default

    def set_str(self, key: str, value: str) -> None:
        if self._values.get(key) == value:
            return
        self._values[key] = value
        self._write()

    def delete_key(self, key: str) -> bool:
        if key not in self._values:
            return False
        del self._values[key]
        self._write()
        return True

    def has_key(self, key: str) -> bool:
        return key in self._values
