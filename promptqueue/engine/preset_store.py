"""Named presets plus the active preset id, backed by an injected persistence provider."""

from __future__ import annotations

import logging

from ..errors import PromptQueueError
from ..models import PromptEntry, PromptPreset, utc_now
from ..storage import Persistence
from . import codec
from .slots import default_entries

logger = logging.getLogger(__name__)

PRESETS_KEY = "prompt-presets"
ACTIVE_PRESET_KEY = "active-preset-id"

DEFAULT_PRESET = {
    "en": ("Default Preset", "Automatically created empty preset", "System"),
    "zh": ("默认预设", "系统自动创建的默认空预设", "系统"),
}


class PresetStore:
    """Holds presets and the active preset id.

    Persistence failures are logged and the store carries on in memory.
    """

    def __init__(self, persistence: Persistence | None = None, locale: str = "en"):
        self._persistence = persistence
        self.locale = locale
        self._presets: list[PromptPreset] = []
        self._active_id = ""
        # Keys whose stored value could not be read; never overwritten this session.
        self._unreadable: set[str] = set()
        self._load()
        if not self._presets:
            default = self.create_default()
            self.set_active(default.id)

    def _load_key(self, key: str):
        try:
            return self._persistence.load(key)
        except PromptQueueError as e:
            logger.warning(f"Could not load {key}, leaving it untouched: {e.message}")
            self._unreadable.add(key)
            return None

    def _load(self) -> None:
        if self._persistence is None:
            return
        data = self._load_key(PRESETS_KEY)
        active_id = self._load_key(ACTIVE_PRESET_KEY)

        presets = []
        for item in data or []:
            try:
                presets.append(PromptPreset.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable stored preset: {e}")
        self._presets = presets
        self._active_id = active_id if isinstance(active_id, str) else ""

    def _persist(self) -> None:
        if self._persistence is None:
            return
        values = {
            PRESETS_KEY: lambda: [p.to_dict() for p in self._presets],
            ACTIVE_PRESET_KEY: lambda: self._active_id,
        }
        for key, value in values.items():
            if key in self._unreadable:
                continue
            try:
                self._persistence.save(key, value())
            except PromptQueueError as e:
                logger.warning(f"Could not save {key}, keeping it in memory: {e.message}")

    def __len__(self) -> int:
        return len(self._presets)

    def list_presets(self) -> list[PromptPreset]:
        return list(self._presets)

    def find(self, preset_id: str) -> PromptPreset | None:
        return next((p for p in self._presets if p.id == preset_id), None)

    def get(self, preset_id: str) -> PromptPreset:
        preset = self.find(preset_id)
        if preset is None:
            raise PromptQueueError.preset_not_found(preset_id)
        return preset

    @property
    def active_id(self) -> str:
        return self._active_id

    @property
    def active(self) -> PromptPreset | None:
        return self.find(self._active_id) if self._active_id else None

    def set_active(self, preset_id: str) -> PromptPreset:
        preset = self.get(preset_id)
        self._active_id = preset.id
        self._persist()
        return preset

    def create(
        self,
        name: str,
        description: str = "",
        author: str = "",
        prompts: list[PromptEntry] | None = None,
        prompts_list: list[str] | None = None,
    ) -> PromptPreset:
        preset = PromptPreset(
            name=name,
            description=description,
            author=author,
            prompts=[p.copy() for p in prompts or []],
            prompts_list=list(prompts_list or []),
        )
        self._presets.append(preset)
        self._persist()
        logger.info(f"Created preset {preset.name!r} ({preset.id})")
        return preset

    def create_default(self) -> PromptPreset:
        name, description, author = DEFAULT_PRESET.get(self.locale, DEFAULT_PRESET["en"])
        slots = default_entries(self.locale)
        return self.create(name, description, author, slots, [s.id for s in slots])

    def update(
        self,
        preset_id: str,
        name: str | None = None,
        description: str | None = None,
        author: str | None = None,
        prompts: list[PromptEntry] | None = None,
        prompts_list: list[str] | None = None,
    ) -> PromptPreset:
        preset = self.get(preset_id)
        new_prompts = preset.prompts if prompts is None else [p.copy() for p in prompts]
        new_list = preset.prompts_list if prompts_list is None else list(prompts_list)

        known = {p.id for p in new_prompts}
        missing = [i for i in new_list if i not in known]
        if missing:
            raise PromptQueueError.malformed_preset(
                f"promptsList ids not in prompts: {', '.join(missing)}"
            )

        if name is not None:
            if not name.strip():
                raise PromptQueueError.malformed_preset("name must be a non-empty string")
            preset.name = name
        if description is not None:
            preset.description = description
        if author is not None:
            preset.author = author
        preset.prompts = new_prompts
        preset.prompts_list = new_list
        preset.updated_at = utc_now()
        self._persist()
        return preset

    def delete(self, preset_id: str) -> PromptPreset:
        preset = self.get(preset_id)
        self._presets = [p for p in self._presets if p.id != preset_id]
        if self._active_id == preset_id:
            self._active_id = ""
        self._persist()
        logger.info(f"Deleted preset {preset.name!r}")
        return preset

    def save_current(
        self,
        entries: list[PromptEntry],
        name: str,
        description: str = "",
        author: str = "",
    ) -> PromptPreset:
        """Snapshot the live collection as a new preset and make it active."""
        if not name or not name.strip():
            raise PromptQueueError.malformed_preset("name must be a non-empty string")
        preset = codec.snapshot(entries, name, description, author, locale=self.locale)
        self._presets.append(preset)
        self._active_id = preset.id
        self._persist()
        logger.info(f"Saved preset {preset.name!r} with {len(preset.prompts_list)} queued prompts")
        return preset

    def add_imported(self, preset: PromptPreset) -> PromptPreset:
        """Store an already validated preset without applying it."""
        self._presets.append(preset)
        self._persist()
        logger.info(f"Imported preset {preset.name!r} as {preset.id}")
        return preset

    def import_document(self, document: str | dict) -> PromptPreset:
        preset = codec.import_document(document)
        return self.add_imported(preset)
