"""Prompt queue engine: slots, collection, synchronizer, formatter and presets."""

from .collection import PromptCollection, dedupe_entries, reorder_entries
from .formatter import FormattedQueue, FormatStats, estimate_tokens, format_queue
from .preset_store import PresetStore
from .synchronizer import SlotSynchronizer

__all__ = [
    "PromptCollection",
    "dedupe_entries",
    "reorder_entries",
    "FormattedQueue",
    "FormatStats",
    "estimate_tokens",
    "format_queue",
    "PresetStore",
    "SlotSynchronizer",
]
