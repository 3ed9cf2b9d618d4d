import json
import sqlite3

import pytest

from promptqueue.config import Settings
from promptqueue.engine.slots import (
    HISTORY_ID,
    MAIN_PROMPT_ID,
    MODEL_ROLE_PROMPT_ID,
    SYSTEM_PROMPT_ID,
    USER_INPUT_PROMPT_ID,
)
from promptqueue.errors import ErrorCode, PromptQueueError
from promptqueue.models import Persona, PromptEntry, Turn
from promptqueue.storage import MemoryStorage, SqliteStorage
from promptqueue.workspace import ImportState, Workspace


@pytest.fixture
def settings(tmp_path):
    return Settings.from_env({"PROMPTQUEUE_HOME": str(tmp_path)})


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def ws(storage, settings):
    return Workspace(storage, settings)


class TestStartup:
    def test_fresh_workspace_has_all_slots(self, ws):
        assert ws.collection.ids() == [
            SYSTEM_PROMPT_ID,
            MODEL_ROLE_PROMPT_ID,
            "user-role-prompt",
            MAIN_PROMPT_ID,
            HISTORY_ID,
            USER_INPUT_PROMPT_ID,
        ]
        assert ws.presets.active is not None
        assert ws.import_state is ImportState.IDLE

    def test_state_survives_reload(self, storage, settings, ws):
        ws.sync.set_system_instruction("sys")
        ws.sync.set_model_persona(Persona("Alice", "cat"))
        ws.collection.add(PromptEntry(id="custom", name="Custom", content=["hi"]))
        ws.save()

        reloaded = Workspace(storage, settings)
        assert reloaded.collection.get("custom").text == "hi"
        assert reloaded.sync.system_instruction == "sys"
        assert reloaded.collection.get(MODEL_ROLE_PROMPT_ID).text == "Alice:cat"

    def test_memory_only(self, settings):
        ws = Workspace(None, settings)
        ws.sync.set_draft_input("x")
        ws.save()
        assert ws.collection.get(USER_INPUT_PROMPT_ID).text == "x"

    def test_open_uses_sqlite(self, settings):
        ws = Workspace.open(settings)
        assert isinstance(ws.storage, SqliteStorage)
        assert settings.db_path.exists()

    def test_unreadable_stored_prompt_skipped(self, storage, settings):
        storage.save("prompt-collection", [{"id": "ok", "name": "ok"}, {"name": "no id"}])
        ws = Workspace(storage, settings)
        assert "ok" in ws.collection

    def test_unreadable_collection_is_not_overwritten(self, tmp_path, settings):
        db_path = tmp_path / "state.db"
        ws = Workspace(SqliteStorage(db_path), settings)
        ws.collection.add(PromptEntry(id="custom", name="Custom", content=["hi"]))
        ws.save()
        conn = sqlite3.connect(str(db_path))
        conn.execute("UPDATE documents SET value = '{oops' WHERE key = 'prompt-collection'")
        conn.commit()
        conn.close()

        reopened = Workspace(SqliteStorage(db_path), settings)
        assert "custom" not in reopened.collection
        reopened.sync.set_system_instruction("sys")
        reopened.save()

        conn = sqlite3.connect(str(db_path))
        row = conn.execute(
            "SELECT value FROM documents WHERE key = 'prompt-collection'"
        ).fetchone()
        conn.close()
        assert row[0] == "{oops"
        assert SqliteStorage(db_path).load("live-state")["systemInstruction"] == "sys"


class TestFormat:
    def test_full_turn(self, ws):
        ws.sync.set_system_instruction("Be helpful")
        ws.sync.set_conversation(
            [Turn("user", "hi"), Turn("model", "hello"), Turn("user", "bye")]
        )
        ws.sync.set_draft_input("bye")
        for slot_id in (MODEL_ROLE_PROMPT_ID, "user-role-prompt", MAIN_PROMPT_ID):
            ws.collection.set_queued(slot_id, False)

        result = ws.format()
        assert [m.content for m in result.history] == [
            "hi",
            "hello",
            "<command_input>bye</command_input>",
        ]

    def test_uses_configured_fallbacks(self, storage, tmp_path):
        settings = Settings.from_env(
            {"PROMPTQUEUE_HOME": str(tmp_path), "PROMPTQUEUE_CHAR_FALLBACK": "Bot"}
        )
        ws = Workspace(storage, settings)
        ws.collection.add(PromptEntry(id="p", name="p", content=["{{char}}"]))
        contents = [m.content for m in ws.format().history]
        assert "Bot" in contents


class TestPresets:
    def test_disabled_queued_entry_kept_in_preset(self, ws):
        ws.collection.add(PromptEntry(id="x", name="X", content=["hidden"]))
        ws.collection.set_enabled("x", False)

        assert "hidden" not in [m.content for m in ws.format().history]
        preset = ws.save_preset("Mine")
        assert "x" in preset.prompts_list

    def test_apply_keeps_live_sources(self, ws):
        ws.sync.set_system_instruction("sys")
        ws.sync.set_draft_input("typing")
        ws.sync.set_model_persona(Persona("Alice", "cat"))
        preset = ws.save_preset("Mine")

        ws.collection.set_queued(MAIN_PROMPT_ID, False)
        ws.apply_preset(preset.id)

        assert ws.collection.get(SYSTEM_PROMPT_ID).text == "sys"
        assert ws.collection.get(USER_INPUT_PROMPT_ID).text == "typing"
        assert ws.collection.get(MODEL_ROLE_PROMPT_ID).text == "Alice:cat"
        assert ws.collection.get(MAIN_PROMPT_ID).queued is True
        assert ws.presets.active_id == preset.id

    def test_saved_preset_carries_no_live_labels(self, ws, tmp_path):
        ws.sync.set_model_persona(Persona("Alice", "cat"))
        ws.sync.set_user_persona(Persona("Bob", "human"))
        ws.sync.set_conversation(
            [Turn("user", "hi"), Turn("model", "hello"), Turn("user", "bye")]
        )
        assert ws.collection.get(MODEL_ROLE_PROMPT_ID).name == "Model Persona: Alice"

        preset = ws.save_preset("Mine")
        names = {p.id: p.name for p in preset.prompts}
        assert names[MODEL_ROLE_PROMPT_ID] == "Model Persona"
        assert names["user-role-prompt"] == "User Persona"
        assert names[HISTORY_ID] == "Conversation History (0 turns)"

        exported = ws.export_preset(preset.id, tmp_path / "exports").read_text(encoding="utf-8")
        for live_text in ("Alice", "Bob", "3 turns", "hello"):
            assert live_text not in exported

    def test_apply_restores_missing_slots(self, ws):
        preset = ws.presets.create("Empty")
        ws.apply_preset(preset.id)
        assert SYSTEM_PROMPT_ID in ws.collection
        assert USER_INPUT_PROMPT_ID in ws.collection

    def test_apply_unknown_preset(self, ws):
        with pytest.raises(PromptQueueError) as exc_info:
            ws.apply_preset("nope")
        assert exc_info.value.code == ErrorCode.PRESET_NOT_FOUND

    def test_export_and_import_file(self, ws, tmp_path):
        ws.collection.add(PromptEntry(id="x", name="X", content=["custom"]))
        preset = ws.save_preset("Round Trip")
        path = ws.export_preset(preset.id, tmp_path / "exports")

        imported = ws.import_preset_file(path)
        assert imported.id != preset.id
        assert imported.prompts_list == preset.prompts_list
        assert ws.import_state is ImportState.MERGED


class TestImport:
    def test_import_and_apply(self, ws):
        doc = {
            "name": "Imported",
            "prompts": [{"id": "a", "name": "A", "content": [{"text": "from file"}]}],
            "promptsList": ["a"],
        }
        preset = ws.import_preset(json.dumps(doc), apply=True)
        assert ws.import_state is ImportState.ACTIVE
        assert ws.collection.get("a").text == "from file"
        assert ws.collection.get("a").queued is True
        # Slots absent from the preset come back at their default positions
        assert ws.collection.ids()[0] == SYSTEM_PROMPT_ID
        assert ws.presets.active_id == preset.id

    def test_rejected_import_leaves_everything_unchanged(self, ws):
        presets_before = [p.id for p in ws.presets.list_presets()]
        order_before = ws.collection.ids()

        with pytest.raises(PromptQueueError) as exc_info:
            ws.import_preset({"name": "Broken", "prompts": []})
        assert exc_info.value.code == ErrorCode.MALFORMED_PRESET
        assert ws.import_state is ImportState.IDLE
        assert [p.id for p in ws.presets.list_presets()] == presets_before
        assert ws.collection.ids() == order_before

    def test_missing_file(self, ws, tmp_path):
        with pytest.raises(PromptQueueError) as exc_info:
            ws.import_preset_file(tmp_path / "missing.json")
        assert exc_info.value.code == ErrorCode.MALFORMED_PRESET
        assert ws.import_state is ImportState.IDLE
