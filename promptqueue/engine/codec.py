"""Snapshot the queue into presets, re-apply them, and move them in and out of JSON files."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from ..errors import PromptQueueError
from ..models import SCHEMA_VERSION, PromptEntry, PromptKind, PromptPreset, utc_now
from .slots import blank_label, slot_label

logger = logging.getLogger(__name__)

# Slots whose live content survives applying a preset
LIVE_KINDS = (PromptKind.MODEL_ROLE, PromptKind.USER_ROLE, PromptKind.MAIN)


def snapshot(
    entries: list[PromptEntry],
    name: str,
    description: str = "",
    author: str = "",
    locale: str = "en",
) -> PromptPreset:
    """Capture the collection's structure as a new preset.

    Reserved slots are stored blank, under their generic label, so no live
    persona name or turn count ends up in the preset. Custom prompts keep
    their content.

    ``prompts_list`` records queued ids in collection order, whatever their
    enabled state.
    """
    prompts = [
        entry.copy(name=blank_label(entry.kind, locale), content=[""])
        if entry.kind.is_special
        else entry.copy()
        for entry in entries
    ]
    return PromptPreset(
        name=name,
        description=description,
        author=author,
        prompts=prompts,
        prompts_list=[entry.id for entry in entries if entry.queued],
    )


def _with_live_content(
    prompt: PromptEntry,
    live: dict[str, PromptEntry],
    locale: str,
) -> PromptEntry:
    if prompt.kind not in LIVE_KINDS:
        return prompt.copy()
    current = live.get(prompt.id)
    if current is not None and current.text:
        return prompt.copy(name=current.name, content=list(current.content))
    return prompt.copy(name=slot_label(prompt.kind, locale), content=[""])


def apply(
    preset: PromptPreset,
    live_entries: list[PromptEntry],
    locale: str = "en",
) -> list[PromptEntry]:
    """Build the collection that results from applying a preset.

    Order and queue membership come only from ``prompts_list``. Persona and
    main prompt slots keep the live collection's content.
    """
    live = {entry.id: entry for entry in live_entries}
    listed = set(preset.prompts_list)
    result: list[PromptEntry] = []
    seen: set[str] = set()

    for prompt_id in preset.prompts_list:
        prompt = preset.prompt(prompt_id)
        if prompt is None or prompt_id in seen:
            continue
        entry = _with_live_content(prompt, live, locale)
        entry.queued = True
        result.append(entry)
        seen.add(prompt_id)

    for prompt in preset.prompts:
        if prompt.id in listed or prompt.id in seen:
            continue
        entry = _with_live_content(prompt, live, locale)
        entry.queued = False
        result.append(entry)
        seen.add(prompt.id)

    logger.debug(f"Applied preset {preset.name!r}: {len(listed)} queued of {len(result)}")
    return result


def export_document(preset: PromptPreset) -> dict:
    return preset.to_dict()


def dumps(preset: PromptPreset) -> str:
    return json.dumps(export_document(preset), indent=2, ensure_ascii=False)


def export_filename(preset: PromptPreset) -> str:
    stem = re.sub(r"\s+", "_", preset.name.strip()) or "preset"
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return f"{stem}_{date}.json"


def write_preset_file(preset: PromptPreset, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(preset)
    path.write_text(dumps(preset), encoding="utf-8")
    logger.info(f"Exported preset {preset.name!r} to {path}")
    return path


def _validate(data) -> None:
    if not isinstance(data, dict):
        raise PromptQueueError.malformed_preset("document must be a JSON object")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PromptQueueError.malformed_preset("name must be a non-empty string")

    prompts = data.get("prompts")
    prompts_list = data.get("promptsList")
    if not isinstance(prompts, list):
        raise PromptQueueError.malformed_preset("prompts must be an array")
    if not isinstance(prompts_list, list):
        raise PromptQueueError.malformed_preset("promptsList must be an array")

    version = data.get("schemaVersion", SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise PromptQueueError.malformed_preset(
            f"unsupported schemaVersion {version!r} (supported: {SCHEMA_VERSION})"
        )

    ids = set()
    for prompt in prompts:
        if not isinstance(prompt, dict) or not prompt.get("id"):
            raise PromptQueueError.malformed_preset("every prompt must be an object with an id")
        ids.add(str(prompt["id"]))

    seen = set()
    for prompt_id in prompts_list:
        if not isinstance(prompt_id, str):
            raise PromptQueueError.malformed_preset("promptsList must contain string ids")
        if prompt_id in seen:
            raise PromptQueueError.malformed_preset(f"duplicate id in promptsList: {prompt_id}")
        if prompt_id not in ids:
            raise PromptQueueError.malformed_preset(f"promptsList id not in prompts: {prompt_id}")
        seen.add(prompt_id)


def import_document(document: str | dict) -> PromptPreset:
    """Parse and validate a preset document into a fresh preset.

    The imported preset gets a new id and timestamps. Each prompt's queued
    flag is recomputed from ``promptsList`` and prompts are ordered with the
    listed ones first. Raises MALFORMED_PRESET on any validation failure.
    """
    if isinstance(document, str):
        try:
            data = json.loads(document)
        except json.JSONDecodeError as e:
            raise PromptQueueError.malformed_preset(f"invalid JSON: {e}") from e
    else:
        data = document

    _validate(data)

    try:
        parsed = PromptPreset.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise PromptQueueError.malformed_preset(str(e)) from e

    listed = set(parsed.prompts_list)
    by_id = {prompt.id: prompt for prompt in parsed.prompts}
    ordered = [by_id[prompt_id] for prompt_id in parsed.prompts_list]
    ordered += [prompt for prompt in by_id.values() if prompt.id not in listed]
    for prompt in ordered:
        prompt.queued = prompt.id in listed

    now = utc_now()
    return PromptPreset(
        id=str(uuid4()),
        name=parsed.name,
        description=parsed.description,
        author=parsed.author,
        prompts=ordered,
        prompts_list=list(parsed.prompts_list),
        created_at=now,
        updated_at=now,
    )


def read_preset_file(path: Path) -> PromptPreset:
    try:
        document = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise PromptQueueError.malformed_preset(f"cannot read {path}: {e}") from e
    return import_document(document)
