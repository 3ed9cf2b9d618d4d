import sqlite3

import pytest

from promptqueue.engine.preset_store import ACTIVE_PRESET_KEY, PRESETS_KEY, PresetStore
from promptqueue.engine.slots import default_entries
from promptqueue.errors import ErrorCode, PromptQueueError
from promptqueue.models import PromptEntry
from promptqueue.storage import MemoryStorage, SqliteStorage


class FailingStorage:
    """Persistence that fails on every call."""

    def load(self, key):
        raise PromptQueueError.persistence_failure("disk gone")

    def save(self, key, value):
        raise PromptQueueError.persistence_failure("disk gone")


def _corrupt(db_path, key):
    conn = sqlite3.connect(str(db_path))
    conn.execute("UPDATE documents SET value = '{oops' WHERE key = ?", (key,))
    conn.commit()
    conn.close()


def _raw_value(db_path, key):
    conn = sqlite3.connect(str(db_path))
    row = conn.execute("SELECT value FROM documents WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row[0]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return PresetStore(storage)


class TestDefaultPreset:
    def test_created_when_empty(self, store):
        assert len(store) == 1
        default = store.active
        assert default.name == "Default Preset"
        assert default.prompts_list == [e.id for e in default_entries()]

    def test_chinese_default(self):
        store = PresetStore(MemoryStorage(), locale="zh")
        assert store.active.name == "默认预设"

    def test_not_recreated_on_reload(self, storage, store):
        reloaded = PresetStore(storage)
        assert len(reloaded) == 1
        assert reloaded.active_id == store.active_id


class TestCrud:
    def test_create_and_get(self, store):
        preset = store.create("Mine", "desc", "me")
        assert store.get(preset.id).author == "me"

    def test_get_missing_raises(self, store):
        with pytest.raises(PromptQueueError) as exc_info:
            store.get("nope")
        assert exc_info.value.code == ErrorCode.PRESET_NOT_FOUND

    def test_update(self, store):
        preset = store.create("Mine")
        prompts = [PromptEntry(id="a", name="A")]
        updated = store.update(preset.id, name="Renamed", prompts=prompts, prompts_list=["a"])
        assert updated.name == "Renamed"
        assert updated.prompts_list == ["a"]

    def test_update_rejects_unknown_list_ids(self, store):
        preset = store.create("Mine")
        with pytest.raises(PromptQueueError) as exc_info:
            store.update(preset.id, prompts_list=["ghost"])
        assert exc_info.value.code == ErrorCode.MALFORMED_PRESET
        assert store.get(preset.id).prompts_list == []

    def test_delete_active_clears_active_id(self, store):
        active_id = store.active_id
        store.delete(active_id)
        assert store.active_id == ""
        assert store.active is None

    def test_set_active_missing_raises(self, store):
        with pytest.raises(PromptQueueError):
            store.set_active("nope")


class TestSaveCurrent:
    def test_snapshots_and_activates(self, store):
        entries = default_entries()
        entries[0].content = ["live text"]
        preset = store.save_current(entries, "Snapshot")
        assert store.active_id == preset.id
        assert preset.prompts[0].text == ""

    def test_blank_name_rejected(self, store):
        with pytest.raises(PromptQueueError) as exc_info:
            store.save_current(default_entries(), "  ")
        assert exc_info.value.code == ErrorCode.MALFORMED_PRESET


class TestImport:
    def test_import_does_not_activate(self, store):
        active_id = store.active_id
        preset = store.import_document({"name": "New", "prompts": [], "promptsList": []})
        assert store.find(preset.id) is not None
        assert store.active_id == active_id

    def test_rejected_import_leaves_store_unchanged(self, store):
        before = [p.id for p in store.list_presets()]
        with pytest.raises(PromptQueueError) as exc_info:
            store.import_document({"name": "Broken", "prompts": []})
        assert exc_info.value.code == ErrorCode.MALFORMED_PRESET
        assert [p.id for p in store.list_presets()] == before


class TestPersistence:
    def test_persists_presets_and_active_id(self, storage, store):
        preset = store.create("Mine")
        store.set_active(preset.id)
        assert storage.load(ACTIVE_PRESET_KEY) == preset.id
        assert any(p["id"] == preset.id for p in storage.load(PRESETS_KEY))

    def test_failing_storage_is_not_fatal(self):
        store = PresetStore(FailingStorage())
        preset = store.create("Still works")
        assert store.get(preset.id).name == "Still works"

    def test_skips_unreadable_presets(self, storage):
        storage.save(PRESETS_KEY, [{"name": "ok", "prompts": []}, {"prompts": [{"kind": "bad"}]}])
        store = PresetStore(storage)
        assert [p.name for p in store.list_presets()] == ["ok"]


class TestPartialLoadFailure:
    def test_unreadable_active_id_keeps_stored_presets(self, tmp_path):
        db_path = tmp_path / "test.db"
        store = PresetStore(SqliteStorage(db_path))
        mine = store.create("Mine")
        store.set_active(mine.id)
        _corrupt(db_path, ACTIVE_PRESET_KEY)

        reopened = PresetStore(SqliteStorage(db_path))
        assert reopened.find(mine.id) is not None
        assert reopened.active_id == ""
        reopened.create("Later")

        assert _raw_value(db_path, ACTIVE_PRESET_KEY) == "{oops"
        names = [p["name"] for p in SqliteStorage(db_path).load(PRESETS_KEY)]
        assert "Mine" in names
        assert "Later" in names

    def test_unreadable_presets_are_not_overwritten(self, tmp_path):
        db_path = tmp_path / "test.db"
        store = PresetStore(SqliteStorage(db_path))
        mine = store.create("Mine")
        store.set_active(mine.id)
        _corrupt(db_path, PRESETS_KEY)

        reopened = PresetStore(SqliteStorage(db_path))
        assert len(reopened) == 1
        assert reopened.active.name == "Default Preset"
        assert _raw_value(db_path, PRESETS_KEY) == "{oops"
        assert SqliteStorage(db_path).load(ACTIVE_PRESET_KEY) == reopened.active_id
