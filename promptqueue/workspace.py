"""Wires persistence, the prompt collection, the slot synchronizer and the preset store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from .config import Settings
from .engine import codec
from .engine.collection import PromptCollection
from .engine.formatter import FormattedQueue, format_queue
from .engine.preset_store import PresetStore
from .engine.synchronizer import SlotSynchronizer
from .errors import PromptQueueError
from .models import PromptEntry, PromptPreset
from .storage import Persistence, SqliteStorage

logger = logging.getLogger(__name__)

COLLECTION_KEY = "prompt-collection"
LIVE_STATE_KEY = "live-state"


class ImportState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    VALIDATED = "validated"
    REJECTED = "rejected"
    MERGED = "merged"
    ACTIVE = "active"


class Workspace:
    """One user's live prompt queue plus their presets.

    Storage errors never stop the workspace: it logs them and keeps
    working from memory.
    """

    def __init__(
        self,
        storage: Persistence | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or Settings.from_env()
        self.storage = storage
        self.import_state = ImportState.IDLE
        # Keys whose stored value could not be read; never overwritten this session.
        self._unreadable: set[str] = set()

        self.collection = PromptCollection(self._load_collection())
        self.sync = SlotSynchronizer(self.collection, locale=self.settings.locale)
        live_state = self._load(LIVE_STATE_KEY)
        if isinstance(live_state, dict):
            self.sync.load(live_state)
        self.sync.refresh()

        self.presets = PresetStore(storage, locale=self.settings.locale)

    @classmethod
    def open(cls, settings: Settings | None = None) -> Workspace:
        """Open the workspace backed by the configured SQLite database."""
        settings = settings or Settings.from_env()
        try:
            storage = SqliteStorage(settings.db_path)
        except PromptQueueError as e:
            logger.warning(f"Storage unavailable, using memory only: {e.message}")
            storage = None
        return cls(storage, settings)

    def _load(self, key: str):
        if self.storage is None:
            return None
        try:
            return self.storage.load(key)
        except PromptQueueError as e:
            logger.warning(f"Could not load {key}, leaving it untouched: {e.message}")
            self._unreadable.add(key)
            return None

    def _load_collection(self) -> list[PromptEntry]:
        data = self._load(COLLECTION_KEY)
        if not isinstance(data, list):
            return []
        entries = []
        for item in data:
            try:
                entries.append(PromptEntry.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable stored prompt: {e}")
        return entries

    def save(self) -> None:
        if self.storage is None:
            return
        values = {
            COLLECTION_KEY: self.collection.to_list,
            LIVE_STATE_KEY: self.sync.to_dict,
        }
        for key, value in values.items():
            if key in self._unreadable:
                continue
            try:
                self.storage.save(key, value())
            except PromptQueueError as e:
                logger.warning(f"Could not save {key}, keeping it in memory: {e.message}")

    def format(self) -> FormattedQueue:
        return format_queue(
            self.collection,
            char_fallback=self.settings.char_fallback,
            user_fallback=self.settings.user_fallback,
        )

    def save_preset(self, name: str, description: str = "", author: str = "") -> PromptPreset:
        return self.presets.save_current(self.collection.entries(), name, description, author)

    def apply_preset(self, preset_id: str) -> PromptPreset:
        """Replace the collection with the preset's composition, keeping live slot content."""
        preset = self.presets.get(preset_id)
        entries = codec.apply(preset, self.collection.entries(), locale=self.settings.locale)
        self.collection.replace_all(entries)
        self.sync.refresh()
        self.presets.set_active(preset.id)
        self.save()
        logger.info(f"Applied preset {preset.name!r}")
        return preset

    def export_preset(self, preset_id: str, out_dir: Path) -> Path:
        return codec.write_preset_file(self.presets.get(preset_id), out_dir)

    def _transition(self, state: ImportState) -> None:
        logger.debug(f"Preset import: {self.import_state.value} -> {state.value}")
        self.import_state = state

    def import_preset(self, document: str | dict, apply: bool = False) -> PromptPreset:
        """Validate a preset document, store it and optionally apply it.

        A rejected document leaves the store and collection untouched and
        returns the import state to IDLE before re-raising.
        """
        return self._import(lambda: codec.import_document(document), apply)

    def import_preset_file(self, path: Path, apply: bool = False) -> PromptPreset:
        return self._import(lambda: codec.read_preset_file(path), apply)

    def _import(self, load: Callable[[], PromptPreset], apply: bool) -> PromptPreset:
        self._transition(ImportState.LOADING)
        try:
            preset = load()
        except PromptQueueError as e:
            self._transition(ImportState.REJECTED)
            logger.warning(f"Preset import rejected: {e.message}")
            self._transition(ImportState.IDLE)
            raise
        self._transition(ImportState.VALIDATED)

        self.presets.add_imported(preset)
        self._transition(ImportState.MERGED)

        if apply:
            self.apply_preset(preset.id)
            self._transition(ImportState.ACTIVE)
        return preset
