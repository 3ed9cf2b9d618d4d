import json

from ..errors import PromptQueueError
from ..models import Persona, PromptEntry, Role
from ..workspace import Workspace

SLOT_SOURCES = ("system", "model-persona", "user-persona", "history", "input")


def _entry_summary(entry: PromptEntry) -> dict:
    return {
        "id": entry.id,
        "name": entry.name,
        "kind": entry.kind.value,
        "role": entry.role.value,
        "queued": entry.queued,
        "enabled": entry.enabled,
        "text": entry.text,
    }


def _role(value: str) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise PromptQueueError.invalid_operation(f"unknown role: {value}") from None


def register_tools(mcp, workspace: Workspace) -> None:
    @mcp.tool()
    def queue_show() -> str:
        """List every prompt in the collection in queue order."""
        collection = workspace.collection
        result = {
            "prompts": [_entry_summary(entry) for entry in collection],
            "queued": collection.queued_ids(),
            "tokens": collection.token_count(),
        }
        return json.dumps(result, ensure_ascii=False)

    @mcp.tool()
    def queue_format() -> str:
        """Build the message sequence the queue would send to the model."""
        formatted = workspace.format()
        result = formatted.to_dict()
        result["tokens"] = formatted.token_count
        return json.dumps(result, ensure_ascii=False)

    @mcp.tool()
    def queue_add(name: str, text: str, role: str = "user") -> str:
        """Append a custom prompt to the queue."""
        entry = workspace.collection.add(PromptEntry.custom(name, text, _role(role)))
        workspace.save()
        return json.dumps({"status": "added", "id": entry.id, "name": entry.name})

    @mcp.tool()
    def queue_set_queued(prompt_id: str, queued: bool) -> str:
        """Put a prompt in the queue or take it out."""
        if prompt_id not in workspace.collection:
            raise PromptQueueError.prompt_not_found(prompt_id)
        changed = workspace.collection.set_queued(prompt_id, queued)
        workspace.save()
        return json.dumps({"id": prompt_id, "queued": queued, "changed": changed})

    @mcp.tool()
    def queue_set_enabled(prompt_id: str, enabled: bool) -> str:
        """Enable or disable a prompt without changing its queue membership."""
        if prompt_id not in workspace.collection:
            raise PromptQueueError.prompt_not_found(prompt_id)
        changed = workspace.collection.set_enabled(prompt_id, enabled)
        workspace.save()
        return json.dumps({"id": prompt_id, "enabled": enabled, "changed": changed})

    @mcp.tool()
    def queue_remove(prompt_id: str) -> str:
        """Delete a custom prompt. Reserved slots cannot be removed."""
        removed = workspace.collection.remove(prompt_id)
        workspace.save()
        return json.dumps({"status": "removed" if removed else "absent", "id": prompt_id})

    @mcp.tool()
    def queue_reorder(prompt_ids: list[str]) -> str:
        """Move the given prompts to the front, in this order. Others keep their relative order."""
        workspace.collection.reorder(prompt_ids)
        workspace.save()
        return json.dumps({"order": workspace.collection.ids()})

    @mcp.tool()
    def slot_sync(
        source: str,
        text: str = "",
        name: str | None = None,
        turns: list[dict] | None = None,
    ) -> str:
        """Update a reserved slot from live state.

        source is one of: system, model-persona, user-persona, history, input.
        Personas take name + text (description); omit name to clear. History
        takes turns as [{"role": ..., "text": ...}].
        """
        sync = workspace.sync
        if source == "system":
            changed = sync.set_system_instruction(text)
        elif source == "model-persona":
            changed = sync.set_model_persona(Persona(name, text) if name else None)
        elif source == "user-persona":
            changed = sync.set_user_persona(Persona(name, text) if name else None)
        elif source == "history":
            changed = sync.set_conversation(turns or [])
        elif source == "input":
            changed = sync.set_draft_input(text)
        else:
            raise PromptQueueError.invalid_operation(
                f"unknown slot source {source!r} (expected one of: {', '.join(SLOT_SOURCES)})"
            )
        workspace.save()
        return json.dumps({"source": source, "changed": changed})
