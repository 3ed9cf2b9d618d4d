"""Reserved prompt slots: ids, kinds, default roles, labels and default positions."""

from __future__ import annotations

from ..models import PromptEntry, PromptKind, Role

SYSTEM_PROMPT_ID = "system-prompt"
MODEL_ROLE_PROMPT_ID = "model-role-prompt"
USER_ROLE_PROMPT_ID = "user-role-prompt"
MAIN_PROMPT_ID = "main-prompt"
HISTORY_ID = "history"
USER_INPUT_PROMPT_ID = "user-input-prompt"

SLOT_IDS = {
    PromptKind.SYSTEM: SYSTEM_PROMPT_ID,
    PromptKind.MODEL_ROLE: MODEL_ROLE_PROMPT_ID,
    PromptKind.USER_ROLE: USER_ROLE_PROMPT_ID,
    PromptKind.MAIN: MAIN_PROMPT_ID,
    PromptKind.HISTORY: HISTORY_ID,
    PromptKind.USER_INPUT: USER_INPUT_PROMPT_ID,
}
SLOT_KINDS = {slot_id: kind for kind, slot_id in SLOT_IDS.items()}

# Default collection order
SLOT_ORDER = [
    PromptKind.SYSTEM,
    PromptKind.MODEL_ROLE,
    PromptKind.USER_ROLE,
    PromptKind.MAIN,
    PromptKind.HISTORY,
    PromptKind.USER_INPUT,
]

DEFAULT_ROLES = {
    PromptKind.SYSTEM: Role.MODEL,
    PromptKind.MODEL_ROLE: Role.MODEL,
    PromptKind.USER_ROLE: Role.USER,
    PromptKind.MAIN: Role.USER,
    PromptKind.HISTORY: Role.USER,
    PromptKind.USER_INPUT: Role.USER,
    PromptKind.PLAIN: Role.USER,
}

# A new slot goes right after the first of these that is present, else at the start.
# Kinds not listed are appended at the end.
INSERT_AFTER = {
    PromptKind.SYSTEM: (),
    PromptKind.MODEL_ROLE: (PromptKind.SYSTEM,),
    PromptKind.USER_ROLE: (PromptKind.MODEL_ROLE, PromptKind.SYSTEM),
    PromptKind.MAIN: (PromptKind.USER_ROLE, PromptKind.MODEL_ROLE, PromptKind.SYSTEM),
}

LABELS = {
    "en": {
        PromptKind.SYSTEM: "System Prompt",
        PromptKind.MODEL_ROLE: "Model Persona",
        PromptKind.USER_ROLE: "User Persona",
        PromptKind.MAIN: "Main Prompt",
        PromptKind.HISTORY: "Conversation History",
        PromptKind.USER_INPUT: "User Input",
    },
    "zh": {
        PromptKind.SYSTEM: "系统提示词",
        PromptKind.MODEL_ROLE: "模型人设",
        PromptKind.USER_ROLE: "用户人设",
        PromptKind.MAIN: "主提示词",
        PromptKind.HISTORY: "历史对话记录",
        PromptKind.USER_INPUT: "用户输入",
    },
}

HISTORY_LABELS = {
    "en": "Conversation History ({count} turns)",
    "zh": "历史对话记录 ({count}条)",
}

PERSONA_SEPARATOR = ": "


def _labels(locale: str) -> dict:
    return LABELS.get(locale, LABELS["en"])


def is_reserved(prompt_id: str) -> bool:
    return prompt_id in SLOT_KINDS


def slot_label(kind: PromptKind, locale: str = "en") -> str:
    return _labels(locale)[kind]


def persona_label(kind: PromptKind, name: str | None, locale: str = "en") -> str:
    """Label for a persona slot, e.g. "Model Persona: Alice"."""
    label = slot_label(kind, locale)
    if not name:
        return label
    return f"{label}{PERSONA_SEPARATOR}{name}"


def persona_name_from_label(kind: PromptKind, label: str) -> str:
    """Strip the fixed persona prefix (in any locale) from a slot label."""
    if not label:
        return ""
    for labels in LABELS.values():
        prefix = labels[kind] + PERSONA_SEPARATOR
        if label.startswith(prefix):
            return label[len(prefix):]
    return ""


def history_label(count: int, locale: str = "en") -> str:
    return HISTORY_LABELS.get(locale, HISTORY_LABELS["en"]).format(count=count)


def blank_label(kind: PromptKind, locale: str = "en") -> str:
    """The generic label an empty slot carries, with no persona name or turn count."""
    return history_label(0, locale) if kind is PromptKind.HISTORY else slot_label(kind, locale)


def default_entry(kind: PromptKind, locale: str = "en") -> PromptEntry:
    """A blank, queued and enabled slot of the given kind."""
    if kind is PromptKind.PLAIN:
        raise ValueError("plain prompts have no reserved slot")
    return PromptEntry(
        id=SLOT_IDS[kind],
        name=blank_label(kind, locale),
        kind=kind,
        role=DEFAULT_ROLES[kind],
        content=[""],
        enabled=True,
        queued=True,
    )


def default_entries(locale: str = "en") -> list[PromptEntry]:
    return [default_entry(kind, locale) for kind in SLOT_ORDER]
