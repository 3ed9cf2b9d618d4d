"""Keep the reserved slots' content in step with the live external state."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable

from ..models import Persona, PromptKind, Turn
from .collection import PromptCollection
from .slots import (
    SLOT_IDS,
    SLOT_ORDER,
    default_entry,
    history_label,
    persona_label,
    slot_label,
)

logger = logging.getLogger(__name__)


def model_persona_text(persona: Persona | None) -> str:
    if persona is None:
        return ""
    return f"{persona.name}:{persona.description}"


def user_persona_text(persona: Persona | None) -> str:
    if persona is None:
        return ""
    return f"[{persona.description}]"


def serialize_turns(turns: list[Turn]) -> str:
    if not turns:
        return ""
    return json.dumps([turn.to_dict() for turn in turns], ensure_ascii=False)


class SlotSynchronizer:
    """Projects the live sources onto the reserved slots of a collection.

    Only name and content are written; position, ``queued`` and ``enabled``
    stay as the user left them. Setting the same value twice is a no-op.
    """

    def __init__(self, collection: PromptCollection, locale: str = "en"):
        self.collection = collection
        self.locale = locale
        self.system_instruction = ""
        self.model_persona: Persona | None = None
        self.user_persona: Persona | None = None
        self.turns: list[Turn] = []
        self.draft_input = ""

    def _write(self, kind: PromptKind, name: str, text: str) -> bool:
        entry = default_entry(kind, self.locale)
        entry.name = name
        entry.content = [text]
        return self.collection.upsert(entry)

    def set_system_instruction(self, text: str) -> bool:
        self.system_instruction = text or ""
        return self._write(
            PromptKind.SYSTEM,
            slot_label(PromptKind.SYSTEM, self.locale),
            self.system_instruction,
        )

    def set_model_persona(self, persona: Persona | None) -> bool:
        self.model_persona = persona
        name = persona_label(PromptKind.MODEL_ROLE, persona.name if persona else None, self.locale)
        return self._write(PromptKind.MODEL_ROLE, name, model_persona_text(persona))

    def set_user_persona(self, persona: Persona | None) -> bool:
        self.user_persona = persona
        name = persona_label(PromptKind.USER_ROLE, persona.name if persona else None, self.locale)
        return self._write(PromptKind.USER_ROLE, name, user_persona_text(persona))

    def set_conversation(self, turns: Iterable[Turn | dict]) -> bool:
        self.turns = [t if isinstance(t, Turn) else Turn.from_dict(t) for t in turns]
        return self._write(
            PromptKind.HISTORY,
            history_label(len(self.turns), self.locale),
            serialize_turns(self.turns),
        )

    def set_draft_input(self, text: str) -> bool:
        # Called on every keystroke: a single indexed upsert, no scans
        self.draft_input = text or ""
        return self._write(
            PromptKind.USER_INPUT,
            slot_label(PromptKind.USER_INPUT, self.locale),
            self.draft_input,
        )

    def ensure_slots(self) -> bool:
        """Insert any reserved slot missing from the collection."""
        changed = False
        for kind in SLOT_ORDER:
            if SLOT_IDS[kind] not in self.collection:
                self.collection.upsert(default_entry(kind, self.locale))
                logger.debug(f"Restored missing slot {SLOT_IDS[kind]}")
                changed = True
        return changed

    def refresh(self) -> bool:
        """Re-apply every last known source value."""
        changed = self.ensure_slots()
        changed |= self.set_system_instruction(self.system_instruction)
        changed |= self.set_model_persona(self.model_persona)
        changed |= self.set_user_persona(self.user_persona)
        changed |= self.set_conversation(self.turns)
        changed |= self.set_draft_input(self.draft_input)
        return changed

    def to_dict(self) -> dict:
        return {
            "systemInstruction": self.system_instruction,
            "modelPersona": self.model_persona.to_dict() if self.model_persona else None,
            "userPersona": self.user_persona.to_dict() if self.user_persona else None,
            "turns": [turn.to_dict() for turn in self.turns],
            "draftInput": self.draft_input,
        }

    def load(self, data: dict) -> None:
        """Restore source values without touching the collection."""
        self.system_instruction = data.get("systemInstruction", "")
        self.model_persona = Persona.from_dict(data.get("modelPersona"))
        self.user_persona = Persona.from_dict(data.get("userPersona"))
        self.turns = [Turn.from_dict(t) for t in data.get("turns", [])]
        self.draft_input = data.get("draftInput", "")

