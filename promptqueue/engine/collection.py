"""The ordered collection of prompt entries (reserved slots and custom prompts)."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from uuid import uuid4

from ..errors import PromptQueueError
from ..models import PromptEntry, PromptKind, Role, utc_now
from .formatter import estimate_tokens
from .slots import INSERT_AFTER, SLOT_IDS, is_reserved

logger = logging.getLogger(__name__)


def dedupe_entries(entries: Iterable[PromptEntry]) -> list[PromptEntry]:
    """Keep one entry per id. When an id repeats, the later entry wins."""
    entries = list(entries)
    last_index = {entry.id: i for i, entry in enumerate(entries)}
    return [entry for i, entry in enumerate(entries) if last_index[entry.id] == i]


def reorder_entries(
    entries: list[PromptEntry],
    ordered_ids: list[str],
) -> list[PromptEntry]:
    """Return entries with ``ordered_ids`` first, in that order.

    Entries not named keep their relative order after the named ones.
    Raises INVALID_OPERATION for duplicate or unknown ids.
    """
    by_id = {entry.id: entry for entry in entries}
    seen: set[str] = set()
    for prompt_id in ordered_ids:
        if prompt_id in seen:
            raise PromptQueueError.invalid_operation(f"duplicate id in reorder: {prompt_id}")
        if prompt_id not in by_id:
            raise PromptQueueError.invalid_operation(f"unknown id in reorder: {prompt_id}")
        seen.add(prompt_id)

    head = [by_id[prompt_id] for prompt_id in ordered_ids]
    tail = [entry for entry in entries if entry.id not in seen]
    return head + tail


class PromptCollection:
    """Authoritative ordered list of prompt entries.

    Entries handed in or out are copies; the collection is only changed
    through its methods.
    """

    def __init__(self, entries: Iterable[PromptEntry] | None = None):
        self._entries = dedupe_entries(e.copy() for e in entries or [])
        self._reindex()

    def _reindex(self) -> None:
        self._index = {entry.id: i for i, entry in enumerate(self._entries)}

    def _insert_position(self, kind: PromptKind) -> int:
        anchors = INSERT_AFTER.get(kind)
        if anchors is None:
            return len(self._entries)
        for anchor in anchors:
            index = self._index.get(SLOT_IDS[anchor])
            if index is not None:
                return index + 1
        return 0

    # Queries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PromptEntry]:
        return iter(self.entries())

    def __contains__(self, prompt_id: str) -> bool:
        return prompt_id in self._index

    def get(self, prompt_id: str) -> PromptEntry | None:
        index = self._index.get(prompt_id)
        if index is None:
            return None
        return self._entries[index].copy()

    def entries(self) -> list[PromptEntry]:
        return [entry.copy() for entry in self._entries]

    def ids(self) -> list[str]:
        return [entry.id for entry in self._entries]

    def queued_ids(self) -> list[str]:
        return [entry.id for entry in self._entries if entry.queued]

    def token_count(self) -> int:
        """Approximate token total of the entries that would be sent."""
        return sum(
            estimate_tokens(entry.text)
            for entry in self._entries
            if entry.queued and entry.enabled
        )

    # Mutations

    def upsert(
        self,
        entry: PromptEntry,
        queued: bool | None = None,
        enabled: bool | None = None,
    ) -> bool:
        """Insert or update an entry by id. Returns True if anything changed.

        An existing entry keeps its position and flags (unless overridden);
        only its name and content are replaced. A new entry is placed at the
        default position for its kind.
        """
        index = self._index.get(entry.id)
        if index is None:
            new_entry = entry.copy()
            if queued is not None:
                new_entry.queued = queued
            if enabled is not None:
                new_entry.enabled = enabled
            self._entries.insert(self._insert_position(entry.kind), new_entry)
            self._reindex()
            logger.debug(f"Inserted {entry.id} ({entry.kind.value})")
            return True

        current = self._entries[index]
        new_queued = current.queued if queued is None else queued
        new_enabled = current.enabled if enabled is None else enabled
        if (
            current.name == entry.name
            and current.content == entry.content
            and current.queued == new_queued
            and current.enabled == new_enabled
        ):
            return False

        self._entries[index] = current.copy(
            name=entry.name,
            content=list(entry.content),
            queued=new_queued,
            enabled=new_enabled,
            updated_at=utc_now(),
        )
        return True

    def add(self, entry: PromptEntry) -> PromptEntry:
        """Append a custom prompt at the end of the collection."""
        if entry.kind.is_special:
            raise PromptQueueError.invalid_operation(
                f"{entry.kind.value} slots are managed by the synchronizer"
            )
        if is_reserved(entry.id):
            raise PromptQueueError.invalid_operation(f"{entry.id!r} is a reserved slot id")
        entry = entry.copy(id=entry.id or str(uuid4()))
        self._entries.append(entry)
        self._entries = dedupe_entries(self._entries)
        self._reindex()
        logger.debug(f"Added custom prompt {entry.id}")
        return entry.copy()

    def edit(
        self,
        prompt_id: str,
        name: str | None = None,
        text: str | None = None,
        role: Role | None = None,
    ) -> PromptEntry:
        index = self._index.get(prompt_id)
        if index is None:
            raise PromptQueueError.prompt_not_found(prompt_id)

        current = self._entries[index]
        changes = {}
        if name is not None and name != current.name:
            changes["name"] = name
        if text is not None and text != current.text:
            changes["content"] = [text]
        if role is not None and role is not current.role:
            changes["role"] = role
        if changes:
            self._entries[index] = current.copy(updated_at=utc_now(), **changes)
        return self._entries[index].copy()

    def _set_flag(self, prompt_id: str, flag: str, value: bool) -> bool:
        index = self._index.get(prompt_id)
        if index is None:
            logger.debug(f"Ignoring {flag} change for missing prompt {prompt_id}")
            return False
        current = self._entries[index]
        if getattr(current, flag) == value:
            return False
        self._entries[index] = current.copy(**{flag: value})
        return True

    def set_queued(self, prompt_id: str, queued: bool) -> bool:
        return self._set_flag(prompt_id, "queued", queued)

    def set_enabled(self, prompt_id: str, enabled: bool) -> bool:
        return self._set_flag(prompt_id, "enabled", enabled)

    def toggle_queued(self, prompt_id: str) -> bool:
        index = self._index.get(prompt_id)
        if index is None:
            return False
        return self.set_queued(prompt_id, not self._entries[index].queued)

    def toggle_enabled(self, prompt_id: str) -> bool:
        index = self._index.get(prompt_id)
        if index is None:
            return False
        return self.set_enabled(prompt_id, not self._entries[index].enabled)

    def remove(self, prompt_id: str) -> PromptEntry | None:
        """Delete a custom prompt. Reserved slots can only be unqueued."""
        index = self._index.get(prompt_id)
        if index is None:
            return None
        entry = self._entries[index]
        if entry.kind.is_special:
            raise PromptQueueError.reserved_slot(prompt_id)
        del self._entries[index]
        self._reindex()
        logger.debug(f"Removed custom prompt {prompt_id}")
        return entry

    def reorder(self, ordered_ids: list[str]) -> None:
        self._entries = reorder_entries(self._entries, ordered_ids)
        self._reindex()

    def replace_all(self, entries: Iterable[PromptEntry]) -> None:
        self._entries = dedupe_entries(e.copy() for e in entries)
        self._reindex()

    # Serialization

    def to_list(self) -> list[dict]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, data: list[dict]) -> PromptCollection:
        return cls(PromptEntry.from_dict(item) for item in data)
