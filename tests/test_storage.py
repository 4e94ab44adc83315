"""
Unit tests for the configuration store.
"""

import json
from unittest.mock import patch

import pytest

from toolshelf.core.events import (
    AvailableConfigurationsUpdated,
    ConfigurationDirty,
    ConfigurationLoaded,
    ConfigurationSaved,
    LoadFailed,
    SaveFailed,
)
from toolshelf.core.group import DEFAULT_GROUP_NAME
from toolshelf.core.items import CommandItem, SceneOpenerItem
from toolshelf.core.preferences import LAST_CONFIGURATION_KEY, PreferenceStore
from toolshelf.core.storage import (
    DEFAULT_SAVE_FOLDER,
    ConfigurationStore,
    display_name_for,
)


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestDiscovery:
    """Test snapshot discovery."""

    def test_empty_project(self, store, recorder):
        assert store.discover() == ([], [])
        assert recorder.of_type(AvailableConfigurationsUpdated) == [
            AvailableConfigurationsUpdated(identifiers=(), display_names=())
        ]

    def test_finds_nested_snapshots_in_stable_order(self, store, write_snapshot, snapshot_data):
        write_snapshot("tools/b/Second.shelf.json", snapshot_data)
        write_snapshot("tools/a/First.shelf.json", snapshot_data)
        write_snapshot("Root.shelf.json", snapshot_data)
        write_snapshot("tools/a/notes.json", snapshot_data)
        write_snapshot(".cache/Hidden.shelf.json", snapshot_data)

        identifiers, names = store.discover()

        assert identifiers == ["Root.shelf.json", "tools/a/First.shelf.json", "tools/b/Second.shelf.json"]
        assert names == ["Root", "First", "Second"]

    def test_discovery_does_not_load(self, store, write_snapshot, snapshot_data):
        write_snapshot("A.shelf.json", snapshot_data)

        store.discover()

        assert store.active is None
        assert store.selected_index == -1

    def test_missing_project_root(self, tmp_path, channel, preferences):
        missing = ConfigurationStore(str(tmp_path / "nowhere"), channel, preferences)

        assert missing.discover() == ([], [])

    def test_display_name(self):
        assert display_name_for("a/b/Level Art.shelf.json") == "Level Art"


class TestLoading:
    """Test load_by_identifier / load_by_index."""

    def test_load_activates_snapshot(self, store, write_snapshot, snapshot_data, preferences, recorder):
        write_snapshot("shelves/Main.shelf.json", snapshot_data)
        store.discover()

        result = store.load_by_identifier("shelves/Main.shelf.json")

        assert result.success is True
        assert store.active.group_names() == ["Scenes", "Links"]
        assert store.active.settings.log_limit == 50
        assert store.active_identifier == "shelves/Main.shelf.json"
        assert store.selected_index == 0
        assert store.is_dirty is False
        assert preferences.get_str(LAST_CONFIGURATION_KEY) == "shelves/Main.shelf.json"
        loaded = recorder.of_type(ConfigurationLoaded)
        assert len(loaded) == 1
        assert loaded[0].shelf is store.active

    def test_unknown_item_type_is_skipped(self, store, write_snapshot, snapshot_data):
        snapshot_data["groups"][0]["items"].append({"type": "teleport", "label": "Away"})
        write_snapshot("Main.shelf.json", snapshot_data)

        result = store.load_by_identifier("Main.shelf.json")

        assert result.success is True
        assert store.active.item_count(0) == 1
        assert store.active.groups[0].items[0].label == "Main"

    def test_reference_report_checks_files(self, store, write_snapshot, snapshot_data, project_root):
        write_snapshot("Main.shelf.json", snapshot_data)

        result = store.load_by_identifier("Main.shelf.json")
        assert result.reference_report.invalid_count == 1
        assert result.reference_report.details[0].group_name == "Scenes"

        scene = project_root / "scenes" / "main.scene"
        scene.parent.mkdir()
        scene.write_text("scene", encoding="utf-8")
        result = store.load_by_identifier("Main.shelf.json")
        assert result.reference_report.invalid_count == 0

    def test_invalid_references_do_not_block_load(self, store, write_snapshot, snapshot_data):
        write_snapshot("Main.shelf.json", snapshot_data)

        result = store.load_by_identifier("Main.shelf.json")

        assert result.success is True
        assert isinstance(store.active.groups[0].items[0], SceneOpenerItem)

    def test_structural_problems_are_advisory(self, store, write_snapshot, snapshot_data):
        snapshot_data["groups"][1]["name"] = "Scenes"
        write_snapshot("Dup.shelf.json", snapshot_data)

        result = store.load_by_identifier("Dup.shelf.json")

        assert result.success is True
        assert result.validation.is_valid is False
        assert result.validation.message == "Duplicate group names: Scenes"

    def test_load_by_index(self, store, write_snapshot, snapshot_data):
        write_snapshot("A.shelf.json", snapshot_data)
        write_snapshot("B.shelf.json", snapshot_data)
        store.discover()

        assert store.load_by_index(1).success is True
        assert store.active_identifier == "B.shelf.json"
        assert store.selected_index == 1

    def test_load_by_index_out_of_range_keeps_active(self, store, write_snapshot, snapshot_data, recorder):
        write_snapshot("A.shelf.json", snapshot_data)
        store.discover()
        store.load_by_index(0)
        active = store.active

        result = store.load_by_index(5)

        assert result.success is False
        assert store.active is active
        assert len(recorder.of_type(LoadFailed)) == 1

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps({"version": "1.0"}),
        json.dumps({"groups": [{"name": "A", "items": [{"type": "teleport"}]}]}),
        json.dumps(["not", "an", "object"]),
    ])
    def test_broken_snapshot_fails_and_keeps_active(self, store, write_snapshot, snapshot_data, content):
        write_snapshot("Good.shelf.json", snapshot_data)
        write_snapshot("Broken.shelf.json", content)
        store.load_by_identifier("Good.shelf.json")
        active = store.active

        result = store.load_by_identifier("Broken.shelf.json")

        assert result.success is False
        assert store.active is active
        assert store.active_identifier == "Good.shelf.json"

    def test_failed_load_clears_matching_pointer(self, store, preferences, recorder):
        preferences.set_str(LAST_CONFIGURATION_KEY, "Gone.shelf.json")

        result = store.load_by_identifier("Gone.shelf.json")

        assert result.success is False
        assert "not found" in result.message
        assert preferences.has_key(LAST_CONFIGURATION_KEY) is False
        assert recorder.of_type(LoadFailed) == [LoadFailed(identifier="Gone.shelf.json", message=result.message)]

    def test_failed_load_keeps_other_pointer(self, store, preferences):
        preferences.set_str(LAST_CONFIGURATION_KEY, "Other.shelf.json")

        store.load_by_identifier("Gone.shelf.json")

        assert preferences.get_str(LAST_CONFIGURATION_KEY) == "Other.shelf.json"

    def test_identifier_outside_project_root(self, store, tmp_path, snapshot_data):
        (tmp_path / "Outside.shelf.json").write_text(json.dumps(snapshot_data), encoding="utf-8")

        result = store.load_by_identifier("../Outside.shelf.json")

        assert result.success is False
        assert store.active is None

    def test_empty_identifier(self, store):
        assert store.load_by_identifier("").success is False


class TestDirtyTracking:
    """Test mark_dirty and mutation-driven dirtiness."""

    def test_mark_dirty_without_active_is_noop(self, store, recorder):
        assert store.mark_dirty() is False
        assert store.is_dirty is False
        assert recorder.of_type(ConfigurationDirty) == []

    def test_mutation_marks_dirty(self, store, write_snapshot, snapshot_data, recorder):
        write_snapshot("A.shelf.json", snapshot_data)
        store.load_by_identifier("A.shelf.json")

        store.active.add_group("New")

        assert store.is_dirty is True
        assert len(recorder.of_type(ConfigurationDirty)) == 1

    def test_mark_dirty_is_idempotent(self, store, write_snapshot, snapshot_data):
        write_snapshot("A.shelf.json", snapshot_data)
        store.load_by_identifier("A.shelf.json")

        assert store.mark_dirty() is True
        assert store.mark_dirty() is True
        assert store.is_dirty is True

    def test_replaced_shelf_no_longer_marks_dirty(self, store, write_snapshot, snapshot_data):
        write_snapshot("A.shelf.json", snapshot_data)
        write_snapshot("B.shelf.json", snapshot_data)
        store.load_by_identifier("A.shelf.json")
        old = store.active
        store.load_by_identifier("B.shelf.json")

        old.add_group("Stale")

        assert store.is_dirty is False

    def test_close_detaches(self, store, write_snapshot, snapshot_data, channel):
        write_snapshot("A.shelf.json", snapshot_data)
        store.load_by_identifier("A.shelf.json")

        store.close()
        store.active.add_group("After close")

        assert store.is_dirty is False
        assert channel.subscription_counts().get("CollectionMutated") is None


class TestSaving:
    """Test save()."""

    def test_save_without_active(self, store, recorder):
        result = store.save()

        assert result.success is False
        assert result.message == "No active configuration to save"
        assert len(recorder.of_type(SaveFailed)) == 1

    def test_round_trip(self, store, write_snapshot, snapshot_data, channel, preferences, project_root):
        write_snapshot("shelves/Main.shelf.json", snapshot_data)
        store.load_by_identifier("shelves/Main.shelf.json")
        store.active.add_item(1, CommandItem(label="Build", menu_path="File/Build"))
        store.active.move_group(1, 0)
        expected = store.active.to_dict()

        result = store.save()

        assert result.success is True
        assert store.is_dirty is False

        other = ConfigurationStore(str(project_root), channel, preferences)
        other.load_by_identifier("shelves/Main.shelf.json")
        assert other.active.to_dict() == expected
        other.close()

    def test_round_trip_of_every_variant(self, store, every_variant, channel, preferences, project_root):
        store.create_new("Main")
        for item in every_variant:
            store.active.add_item(0, item)

        assert store.save().success is True

        other = ConfigurationStore(str(project_root), channel, preferences)
        result = other.load_by_identifier(store.active_identifier)

        assert result.success is True
        assert other.active.groups[0].items == every_variant
        other.close()

    def test_save_publishes_and_keeps_created(self, store, write_snapshot, snapshot_data, project_root, recorder):
        path = write_snapshot("Main.shelf.json", snapshot_data)
        store.load_by_identifier("Main.shelf.json")

        store.save()

        saved = read_json(path)
        assert saved["version"] == "1.0"
        assert saved["created"] == snapshot_data["created"]
        assert saved["updated"] != snapshot_data["updated"]
        assert recorder.of_type(ConfigurationSaved) == [ConfigurationSaved(identifier="Main.shelf.json")]
        assert list(project_root.glob("*.tmp")) == []

    def test_write_failure_keeps_dirty(self, store, write_snapshot, snapshot_data, recorder):
        path = write_snapshot("Main.shelf.json", snapshot_data)
        store.load_by_identifier("Main.shelf.json")
        store.active.add_group("Unsaved")

        with patch("toolshelf.core.storage.tempfile.NamedTemporaryFile", side_effect=OSError("disk full")):
            result = store.save()

        assert result.success is False
        assert "disk full" in result.message
        assert store.is_dirty is True
        assert len(recorder.of_type(SaveFailed)) == 1
        assert read_json(path)["groups"] == snapshot_data["groups"]

    def test_enforce_validation_blocks_invalid_shelf(self, store, write_snapshot, snapshot_data):
        write_snapshot("Main.shelf.json", snapshot_data)
        store.load_by_identifier("Main.shelf.json")
        store.active.add_group("Scenes")

        result = store.save(enforce_validation=True)

        assert result.success is False
        assert "Duplicate group names: Scenes" in result.message
        assert store.is_dirty is True

    def test_invalid_shelf_saves_without_enforcement(self, store, write_snapshot, snapshot_data):
        write_snapshot("Main.shelf.json", snapshot_data)
        store.load_by_identifier("Main.shelf.json")
        store.active.add_group("Scenes")

        assert store.save().success is True

    def test_validate(self, store, sample_shelf):
        assert store.validate(sample_shelf) == (True, "")
        assert store.validate(None) == (False, "Configuration data is empty")


class TestCreateNew:
    """Test create_new() and the save-location fallback chain."""

    def test_default_folder_without_anything(self, store, project_root):
        result = store.create_new("First")

        assert result.success is True
        assert result.identifier == f"{DEFAULT_SAVE_FOLDER}/First.shelf.json"
        assert (project_root / DEFAULT_SAVE_FOLDER / "First.shelf.json").is_file()
        assert store.active_identifier == result.identifier
        assert store.active.group_names() == [DEFAULT_GROUP_NAME]
        assert store.active.groups[0].items == []
        assert store.available_identifiers == [result.identifier]

    def test_folder_of_active_snapshot(self, store, write_snapshot, snapshot_data):
        write_snapshot("aaa/First.shelf.json", snapshot_data)
        write_snapshot("tools/shelves/Active.shelf.json", snapshot_data)
        store.discover()
        store.load_by_identifier("tools/shelves/Active.shelf.json")

        result = store.create_new("X")

        assert result.identifier == "tools/shelves/X.shelf.json"

    def test_folder_of_first_discovered_snapshot(self, store, write_snapshot, snapshot_data):
        write_snapshot("aaa/First.shelf.json", snapshot_data)
        write_snapshot("zzz/Last.shelf.json", snapshot_data)
        store.discover()

        result = store.create_new("X")

        assert result.identifier == "aaa/X.shelf.json"

    def test_active_snapshot_at_project_root(self, store, write_snapshot, snapshot_data):
        write_snapshot("Root.shelf.json", snapshot_data)
        store.load_by_identifier("Root.shelf.json")

        assert store.create_new("X").identifier == "X.shelf.json"

    def test_explicit_location(self, store):
        result = store.create_new("X", "custom\\place")

        assert result.identifier == "custom/place/X.shelf.json"
        assert result.success is True

    def test_suffix_in_name_is_not_doubled(self, store):
        assert store.create_new("X.shelf.json").identifier == "shelves/X.shelf.json"

    def test_existing_file_is_not_overwritten(self, store, write_snapshot, snapshot_data):
        path = write_snapshot("shelves/X.shelf.json", snapshot_data)

        result = store.create_new("X")

        assert result.success is False
        assert "already exists" in result.message
        assert read_json(path) == snapshot_data

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "..", "a\\b"])
    def test_invalid_names(self, store, name):
        assert store.create_new(name).success is False


class TestInitialize:
    """Test reopening the last-used configuration."""

    def test_reopens_last_used(self, store, write_snapshot, snapshot_data, preferences):
        write_snapshot("Main.shelf.json", snapshot_data)
        preferences.set_str(LAST_CONFIGURATION_KEY, "Main.shelf.json")

        result = store.initialize()

        assert result.success is True
        assert store.active_identifier == "Main.shelf.json"
        assert store.available_identifiers == ["Main.shelf.json"]

    def test_no_pointer(self, store):
        assert store.initialize() is None
        assert store.active is None

    def test_stale_pointer_is_cleared(self, store, preferences, user_dir):
        preferences.set_str(LAST_CONFIGURATION_KEY, "Deleted.shelf.json")

        result = store.initialize()

        assert result.success is False
        assert store.active is None
        assert PreferenceStore(str(user_dir)).has_key(LAST_CONFIGURATION_KEY) is False
