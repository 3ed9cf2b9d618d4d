"""Format the prompt collection into the ordered message sequence sent to the model."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..errors import PromptQueueError
from ..models import Message, PromptEntry, PromptKind, Role, Turn
from ..template import substitute_personas
from .slots import persona_name_from_label

logger = logging.getLogger(__name__)

COMMAND_INPUT_TEMPLATE = "<command_input>{text}</command_input>"

CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")
WORD_SEPARATORS = re.compile(r"\s+|[.,!?;:'\"()\[\]{}]")


def estimate_tokens(text: str) -> int:
    """Rough token count: one per CJK character plus one per other word."""
    if not text:
        return 0
    cjk_count = len(CJK_PATTERN.findall(text))
    rest = CJK_PATTERN.sub("", text)
    words = [token for token in WORD_SEPARATORS.split(rest) if token]
    return cjk_count + len(words)


@dataclass
class FormatStats:
    """Counters from one formatting pass."""

    queued_count: int = 0
    skipped_system: int = 0
    history_turns: int = 0
    dropped_turns: int = 0
    malformed_history: int = 0


@dataclass
class FormattedQueue:
    history: list[Message] = field(default_factory=list)
    user_input: Message = field(
        default_factory=lambda: Message(role=Role.USER.value, content="")
    )
    stats: FormatStats = field(default_factory=FormatStats)

    @property
    def token_count(self) -> int:
        return sum(estimate_tokens(message.content) for message in self.history)

    def to_dict(self) -> dict:
        return {
            "history": [message.to_dict() for message in self.history],
            "userInput": self.user_input.to_dict(),
        }


def persona_names(entries: Iterable[PromptEntry]) -> tuple[str, str]:
    """Model and user persona names, taken from the persona slot labels."""
    model_name = ""
    user_name = ""
    for entry in entries:
        if entry.kind is PromptKind.MODEL_ROLE:
            model_name = persona_name_from_label(entry.kind, entry.name)
        elif entry.kind is PromptKind.USER_ROLE:
            user_name = persona_name_from_label(entry.kind, entry.name)
    return model_name, user_name


def parse_history(text: str) -> list[Turn]:
    """Parse the JSON turn array stored in a history slot.

    Empty content means no conversation yet. Raises MALFORMED_HISTORY for
    anything that is not a JSON array of objects.
    """
    if not text or not text.strip():
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PromptQueueError.malformed_history(str(e)) from e
    if not isinstance(data, list):
        raise PromptQueueError.malformed_history("expected a JSON array of turns")
    if not all(isinstance(item, dict) for item in data):
        raise PromptQueueError.malformed_history("every turn must be a JSON object")
    return [Turn.from_dict(item) for item in data]


def wrap_command_input(text: str) -> str:
    if not text:
        return text
    return COMMAND_INPUT_TEMPLATE.format(text=text)


def _expand_history(
    entry: PromptEntry,
    char_name: str,
    user_name: str,
    stats: FormatStats,
) -> list[Message]:
    try:
        turns = parse_history(entry.text)
    except PromptQueueError as e:
        stats.malformed_history += 1
        logger.warning(f"Skipping history entry {entry.id}: {e.message}")
        return []

    # The last turn is the message being sent, which the user-input slot carries
    kept = turns[:-1]
    stats.history_turns += len(kept)
    stats.dropped_turns += len(turns) - len(kept)
    return [
        Message(role=turn.role, content=substitute_personas(turn.text, char_name, user_name))
        for turn in kept
    ]


def format_queue(
    entries: Iterable[PromptEntry],
    char_fallback: str = "AI",
    user_fallback: str = "User",
) -> FormattedQueue:
    """Build the outbound message sequence from queued, enabled entries.

    Collection order is the only ordering. The system slot contributes no
    message, history expands in place, and the live input is wrapped in
    <command_input> tags. Everything travels in ``history``; ``user_input``
    is an empty placeholder and must not be appended again by callers.
    """
    entries = list(entries)
    model_name, user_name = persona_names(entries)
    char_name = model_name or char_fallback
    user_name = user_name or user_fallback

    queued = [entry for entry in entries if entry.queued and entry.enabled]
    result = FormattedQueue(stats=FormatStats(queued_count=len(queued)))

    for entry in queued:
        if entry.kind is PromptKind.SYSTEM:
            result.stats.skipped_system += 1
            continue

        if entry.kind is PromptKind.HISTORY:
            result.history.extend(_expand_history(entry, char_name, user_name, result.stats))
            continue

        text = substitute_personas(entry.text, char_name, user_name)
        if entry.kind is PromptKind.USER_INPUT:
            text = wrap_command_input(text)
        result.history.append(Message(role=entry.role.value, content=text))

    logger.debug(
        f"Formatted {result.stats.queued_count} queued entries into "
        f"{len(result.history)} messages"
    )
    return result
