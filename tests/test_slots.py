import pytest

from promptqueue.engine.slots import (
    HISTORY_ID,
    MODEL_ROLE_PROMPT_ID,
    SLOT_IDS,
    SLOT_ORDER,
    SYSTEM_PROMPT_ID,
    USER_INPUT_PROMPT_ID,
    blank_label,
    default_entries,
    default_entry,
    history_label,
    is_reserved,
    persona_label,
    persona_name_from_label,
    slot_label,
)
from promptqueue.models import PromptKind, Role


class TestSlotIds:
    def test_one_id_per_special_kind(self):
        special = [kind for kind in PromptKind if kind.is_special]
        assert sorted(SLOT_IDS, key=lambda k: k.value) == sorted(special, key=lambda k: k.value)
        assert len(set(SLOT_IDS.values())) == len(SLOT_IDS)

    def test_is_reserved(self):
        assert is_reserved(SYSTEM_PROMPT_ID)
        assert is_reserved(HISTORY_ID)
        assert not is_reserved("my-custom-prompt")


class TestLabels:
    def test_english_labels(self):
        assert slot_label(PromptKind.SYSTEM) == "System Prompt"
        assert slot_label(PromptKind.USER_INPUT, "en") == "User Input"

    def test_chinese_labels(self):
        assert slot_label(PromptKind.MODEL_ROLE, "zh") == "模型人设"

    def test_unknown_locale_falls_back_to_english(self):
        assert slot_label(PromptKind.MAIN, "fr") == "Main Prompt"

    def test_persona_label(self):
        assert persona_label(PromptKind.MODEL_ROLE, "Alice") == "Model Persona: Alice"
        assert persona_label(PromptKind.USER_ROLE, "小明", "zh") == "用户人设: 小明"

    def test_persona_label_without_name(self):
        assert persona_label(PromptKind.MODEL_ROLE, None) == "Model Persona"

    def test_history_label(self):
        assert history_label(3) == "Conversation History (3 turns)"
        assert history_label(2, "zh") == "历史对话记录 (2条)"


class TestPersonaNameFromLabel:
    def test_strips_english_prefix(self):
        assert persona_name_from_label(PromptKind.MODEL_ROLE, "Model Persona: Alice") == "Alice"

    def test_strips_chinese_prefix(self):
        assert persona_name_from_label(PromptKind.USER_ROLE, "用户人设: 小明") == "小明"

    def test_generic_label_has_no_name(self):
        assert persona_name_from_label(PromptKind.MODEL_ROLE, "Model Persona") == ""

    def test_empty_label(self):
        assert persona_name_from_label(PromptKind.USER_ROLE, "") == ""

    def test_name_containing_separator(self):
        label = persona_label(PromptKind.MODEL_ROLE, "Dr: Who")
        assert persona_name_from_label(PromptKind.MODEL_ROLE, label) == "Dr: Who"


class TestDefaultEntries:
    def test_default_entry(self):
        entry = default_entry(PromptKind.SYSTEM)
        assert entry.id == SYSTEM_PROMPT_ID
        assert entry.kind is PromptKind.SYSTEM
        assert entry.role is Role.MODEL
        assert entry.text == ""
        assert entry.queued and entry.enabled

    def test_history_default_label(self):
        assert default_entry(PromptKind.HISTORY).name == "Conversation History (0 turns)"

    def test_blank_label(self):
        assert blank_label(PromptKind.MODEL_ROLE) == "Model Persona"
        assert blank_label(PromptKind.HISTORY, "zh") == "历史对话记录 (0条)"

    def test_plain_has_no_slot(self):
        with pytest.raises(ValueError):
            default_entry(PromptKind.PLAIN)

    def test_default_order(self):
        entries = default_entries()
        assert [e.kind for e in entries] == SLOT_ORDER
        assert entries[1].id == MODEL_ROLE_PROMPT_ID
        assert entries[-1].id == USER_INPUT_PROMPT_ID
