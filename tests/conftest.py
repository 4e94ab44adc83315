"""
Test configuration and fixtures for toolshelf tests.
"""
import json

import pytest

from toolshelf.core.events import Message, NotificationChannel
from toolshelf.core.group import Group, ToolShelf
from toolshelf.core.items import (
    AssetLocatorItem,
    CommandItem,
    LinkOpenerItem,
    PathOpenerItem,
    SceneObjectLocatorItem,
    SceneOpenerItem,
    SeparatorItem,
    SeparatorStyle,
    TextNoteItem,
)
from toolshelf.core.preferences import PreferenceStore
from toolshelf.core.storage import ConfigurationStore
from toolshelf.session import ToolShelfSession


class MessageRecorder:
    """Collects every message published on a channel."""

    def __init__(self, channel):
        self.messages = []
        self.subscription = channel.subscribe(Message, self.messages.append)

    def of_type(self, message_type):
        return [m for m in self.messages if isinstance(m, message_type)]

    def clear(self):
        self.messages.clear()


@pytest.fixture
def channel():
    """Fixture providing a fresh notification channel."""
    return NotificationChannel()


@pytest.fixture
def recorder(channel):
    """Fixture recording everything published on `channel`."""
    return MessageRecorder(channel)


@pytest.fixture
def make_recorder():
    """Fixture returning a factory for recorders on other channels."""
    return MessageRecorder


@pytest.fixture
def sample_shelf():
    """Fixture providing a shelf with two populated groups."""
    return ToolShelf([
        Group("Scenes", [
            SceneOpenerItem(label="Main", scene="scenes/main.scene"),
            LinkOpenerItem(label="Wiki", url="https://wiki.example.com"),
        ]),
        Group("Notes", [
            TextNoteItem(text="Remember to bake lighting"),
            SeparatorItem(title="Build"),
            CommandItem(label="Build", menu_path="File/Build"),
        ]),
    ])


@pytest.fixture
def every_variant():
    """Fixture providing one item of each variant with non-default values."""
    return [
        CommandItem(label="Build", menu_path="File/Build", button_label="Go"),
        AssetLocatorItem(label="Hero", button_label="Select", asset="assets/hero.prefab"),
        SceneObjectLocatorItem(label="Spawn", button_label="Find", object_name="SpawnPoint", scene="scenes/main.scene"),
        TextNoteItem(text="Bake lighting first", locked=False),
        PathOpenerItem(path="Builds/"),
        SceneOpenerItem(label="Main", button_label="Open", scene="scenes/main.scene"),
        LinkOpenerItem(label="Docs", button_label="Read", url="https://docs.example.com", use_internal_browser=True),
        SeparatorItem(title="Tools", style=SeparatorStyle.LINE),
    ]


@pytest.fixture
def project_root(tmp_path):
    """Fixture providing an empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def user_dir(tmp_path):
    """Fixture providing the directory for user preferences."""
    return tmp_path / "user"


@pytest.fixture
def preferences(user_dir):
    return PreferenceStore(str(user_dir))


@pytest.fixture
def store(project_root, channel, preferences):
    """Fixture providing a configuration store over `project_root`."""
    configuration_store = ConfigurationStore(str(project_root), channel, preferences)
    yield configuration_store
    configuration_store.close()


@pytest.fixture
def write_snapshot(project_root):
    """Fixture returning a helper that writes raw snapshot data under the project root."""

    def _write(identifier, data):
        path = project_root.joinpath(*identifier.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def snapshot_data():
    """Fixture providing valid snapshot data with one referencing item."""
    return {
        "version": "1.0",
        "created": "2024-01-01T00:00:00+00:00",
        "updated": "2024-01-01T00:00:00+00:00",
        "settings": {"log_limit": 50, "screenshot_directory": "Shots/", "online_start_scene": None},
        "groups": [
            {"name": "Scenes", "items": [
                {"type": "scene_opener", "label": "Main", "button_label": "", "scene": "scenes/main.scene"},
            ]},
            {"name": "Links", "items": [
                {"type": "link_opener", "label": "Docs", "url": "https://docs.example.com"},
            ]},
        ],
    }


@pytest.fixture
def session(project_root, user_dir):
    """Fixture providing a session over an empty project."""
    tool_shelf_session = ToolShelfSession(str(project_root), str(user_dir))
    yield tool_shelf_session
    tool_shelf_session.close()
