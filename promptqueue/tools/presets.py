import json
from pathlib import Path

from ..engine import codec
from ..workspace import Workspace


def register_tools(mcp, workspace: Workspace) -> None:
    @mcp.tool()
    def preset_list() -> str:
        """List saved presets. The active one is flagged."""
        active_id = workspace.presets.active_id
        result = [
            {
                "id": p.id,
                "name": p.name,
                "description": p.description,
                "author": p.author,
                "queued": len(p.prompts_list),
                "active": p.id == active_id,
                "updatedAt": p.updated_at,
            }
            for p in workspace.presets.list_presets()
        ]
        return json.dumps(result, ensure_ascii=False)

    @mcp.tool()
    def preset_save(name: str, description: str = "", author: str = "") -> str:
        """Save the current queue as a new preset and make it active."""
        preset = workspace.save_preset(name, description, author)
        return json.dumps({"status": "saved", "id": preset.id, "name": preset.name})

    @mcp.tool()
    def preset_apply(preset_id: str) -> str:
        """Apply a preset: its order and queue membership replace the live queue."""
        preset = workspace.apply_preset(preset_id)
        return json.dumps(
            {"status": "applied", "id": preset.id, "order": workspace.collection.ids()}
        )

    @mcp.tool()
    def preset_delete(preset_id: str) -> str:
        """Delete a preset."""
        preset = workspace.presets.delete(preset_id)
        return json.dumps({"status": "deleted", "id": preset.id})

    @mcp.tool()
    def preset_export(preset_id: str, out_dir: str | None = None) -> str:
        """Export a preset. Writes a file when out_dir is given, otherwise returns the document."""
        if out_dir:
            path = workspace.export_preset(preset_id, Path(out_dir))
            return json.dumps({"status": "exported", "path": str(path)})
        return codec.dumps(workspace.presets.get(preset_id))

    @mcp.tool()
    def preset_import(document: str, apply: bool = False) -> str:
        """Import a preset from its JSON document, optionally applying it."""
        preset = workspace.import_preset(document, apply=apply)
        return json.dumps(
            {
                "status": "imported",
                "id": preset.id,
                "name": preset.name,
                "state": workspace.import_state.value,
            },
            ensure_ascii=False,
        )
