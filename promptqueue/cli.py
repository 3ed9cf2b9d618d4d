"""promptqueue CLI — compose the prompt queue and manage presets."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .engine.formatter import estimate_tokens
from .errors import PromptQueueError
from .models import Persona, PromptEntry, Role
from .workspace import Workspace

console = Console()

ROLE_CHOICES = [role.value for role in Role]


def _setup_logging(verbose: bool) -> None:
    """Send promptqueue logs to stderr."""
    logger = logging.getLogger("promptqueue")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(handler)


def _workspace() -> Workspace:
    return Workspace.open()


def _fail(error: PromptQueueError) -> None:
    console.print(f"[red]Error:[/red] {escape(error.message)}")
    sys.exit(1)


def _resolve_prompt(ws: Workspace, ref: str) -> str:
    """Accept a full prompt id or an unambiguous prefix of one."""
    ids = ws.collection.ids()
    if ref in ids:
        return ref
    matches = [i for i in ids if i.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    raise PromptQueueError.prompt_not_found(ref)


def _resolve_preset(ws: Workspace, ref: str) -> str:
    presets = ws.presets.list_presets()
    if any(p.id == ref for p in presets):
        return ref
    matches = [p.id for p in presets if p.id.startswith(ref) or p.name == ref]
    if len(matches) == 1:
        return matches[0]
    raise PromptQueueError.preset_not_found(ref)


def _preview(text: str, width: int = 40) -> str:
    text = " ".join(text.split())
    text = text if len(text) <= width else text[: width - 3] + "..."
    return escape(text)


@click.group()
@click.version_option(package_name="promptqueue")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def cli(verbose: bool):
    """promptqueue - compose prompt queues and manage presets."""
    _setup_logging(verbose)


@cli.command()
def show():
    """Show the prompt collection in queue order."""
    ws = _workspace()

    table = Table(title="Prompt Queue")
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Role")
    table.add_column("Queued", justify="center")
    table.add_column("Enabled", justify="center")
    table.add_column("Tokens", justify="right")
    table.add_column("Content", style="dim")

    for i, entry in enumerate(ws.collection, 1):
        table.add_row(
            str(i),
            entry.id,
            escape(entry.name),
            entry.kind.value,
            entry.role.value,
            "✓" if entry.queued else "",
            "✓" if entry.enabled else "✗",
            str(estimate_tokens(entry.text)),
            _preview(entry.text),
        )

    console.print(table)
    active = ws.presets.active
    console.print(
        f"[dim]Active preset: {active.name if active else 'none'} | "
        f"~{ws.collection.token_count()} tokens queued[/dim]"
    )


@cli.command("format")
@click.option(
    "--output",
    "-o",
    type=click.Choice(["json", "text"]),
    default="text",
    help="Output format",
)
def format_cmd(output: str):
    """Print the message sequence that would be sent to the model."""
    ws = _workspace()
    formatted = ws.format()

    if output == "json":
        click.echo(json.dumps(formatted.to_dict(), indent=2, ensure_ascii=False))
        return

    if not formatted.history:
        console.print("[yellow]Queue produces no messages.[/yellow]")
        return

    for i, message in enumerate(formatted.history, 1):
        body = escape(message.content) if message.content else "[dim](empty)[/dim]"
        console.print(Panel(body, title=f"{i}. {message.role}"))

    stats = formatted.stats
    console.print(
        f"[dim]{len(formatted.history)} messages from {stats.queued_count} queued prompts | "
        f"{stats.history_turns} history turns | ~{formatted.token_count} tokens[/dim]"
    )
    if stats.malformed_history:
        console.print(
            f"[yellow]Warning:[/yellow] {stats.malformed_history} history entry could not be parsed"
        )


@cli.command()
def tokens():
    """Show the approximate token count of the queued prompts."""
    ws = _workspace()
    click.echo(str(ws.collection.token_count()))


@cli.command()
@click.argument("name")
@click.argument("text")
@click.option("--role", type=click.Choice(ROLE_CHOICES), default="user", help="Message role")
def add(name: str, text: str, role: str):
    """Add a custom prompt to the end of the queue."""
    ws = _workspace()
    entry = ws.collection.add(PromptEntry.custom(name, text, Role(role)))
    ws.save()
    console.print(f"[green]Added[/green] {entry.name} ({entry.id})")


@cli.command()
@click.argument("prompt_id")
@click.option("--name", default=None, help="New display name")
@click.option("--text", default=None, help="New content")
@click.option("--role", type=click.Choice(ROLE_CHOICES), default=None, help="New role")
def edit(prompt_id: str, name: str | None, text: str | None, role: str | None):
    """Edit a prompt's name, content or role."""
    ws = _workspace()
    try:
        entry = ws.collection.edit(
            _resolve_prompt(ws, prompt_id),
            name=name,
            text=text,
            role=Role(role) if role else None,
        )
    except PromptQueueError as e:
        _fail(e)
    ws.save()
    console.print(f"[green]Updated[/green] {entry.name}")


@cli.command()
@click.argument("prompt_id")
def remove(prompt_id: str):
    """Delete a custom prompt (reserved slots can only be unqueued)."""
    ws = _workspace()
    try:
        removed = ws.collection.remove(_resolve_prompt(ws, prompt_id))
    except PromptQueueError as e:
        _fail(e)
    ws.save()
    console.print(f"[green]Removed[/green] {removed.name}")


def _flag_command(name: str, flag: str, value: bool, help_text: str):
    @cli.command(name=name, help=help_text)
    @click.argument("prompt_id")
    def command(prompt_id: str):
        ws = _workspace()
        try:
            resolved = _resolve_prompt(ws, prompt_id)
        except PromptQueueError as e:
            _fail(e)
        setter = ws.collection.set_queued if flag == "queued" else ws.collection.set_enabled
        changed = setter(resolved, value)
        ws.save()
        state = "unchanged" if not changed else name + "d"
        console.print(f"{resolved}: {state}")

    return command


_flag_command("queue", "queued", True, "Put a prompt back in the queue.")
_flag_command("unqueue", "queued", False, "Take a prompt out of the queue (kept for later).")
_flag_command("enable", "enabled", True, "Enable a prompt.")
_flag_command("disable", "enabled", False, "Disable a prompt without unqueueing it.")


@cli.command()
@click.argument("prompt_ids", nargs=-1, required=True)
def reorder(prompt_ids: tuple[str, ...]):
    """Move the given prompts to the front, in this order."""
    ws = _workspace()
    try:
        ws.collection.reorder([_resolve_prompt(ws, ref) for ref in prompt_ids])
    except PromptQueueError as e:
        _fail(e)
    ws.save()
    console.print("[green]Reordered:[/green] " + ", ".join(ws.collection.ids()))


@cli.group()
def sync():
    """Update the reserved slots from live state."""


@sync.command("system")
@click.argument("text")
def sync_system(text: str):
    """Set the system instruction."""
    ws = _workspace()
    ws.sync.set_system_instruction(text)
    ws.save()
    console.print("[green]System instruction updated[/green]")


def _persona_from_args(name: str | None, description: str | None, clear: bool) -> Persona | None:
    if clear:
        return None
    if not name:
        raise click.UsageError("NAME is required unless --clear is given")
    return Persona(name=name, description=description or "")


@sync.command("model-persona")
@click.argument("name", required=False)
@click.argument("description", required=False)
@click.option("--clear", is_flag=True, help="Deselect the model persona")
def sync_model_persona(name: str | None, description: str | None, clear: bool):
    """Select (or clear) the model persona."""
    persona = _persona_from_args(name, description, clear)
    ws = _workspace()
    ws.sync.set_model_persona(persona)
    ws.save()
    console.print(f"Model persona: {persona.name if persona else 'cleared'}")


@sync.command("user-persona")
@click.argument("name", required=False)
@click.argument("description", required=False)
@click.option("--clear", is_flag=True, help="Deselect the user persona")
def sync_user_persona(name: str | None, description: str | None, clear: bool):
    """Select (or clear) the user persona."""
    persona = _persona_from_args(name, description, clear)
    ws = _workspace()
    ws.sync.set_user_persona(persona)
    ws.save()
    console.print(f"User persona: {persona.name if persona else 'cleared'}")


@sync.command("history")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def sync_history(path: Path):
    """Load the conversation from a JSON array of {role, text} turns."""
    try:
        turns = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Error:[/red] cannot read conversation: {e}")
        sys.exit(1)
    if not isinstance(turns, list) or not all(isinstance(t, dict) for t in turns):
        console.print("[red]Error:[/red] conversation must be a JSON array of objects")
        sys.exit(1)

    ws = _workspace()
    ws.sync.set_conversation(turns)
    ws.save()
    console.print(f"Conversation: {len(turns)} turns")


@sync.command("input")
@click.argument("text")
def sync_input(text: str):
    """Set the draft user input."""
    ws = _workspace()
    ws.sync.set_draft_input(text)
    ws.save()
    console.print("[green]Draft input updated[/green]")


@cli.group()
def preset():
    """Save, apply, export and import presets."""


@preset.command("list")
def preset_list():
    """List saved presets."""
    ws = _workspace()
    presets = ws.presets.list_presets()
    if not presets:
        console.print("[yellow]No presets saved.[/yellow]")
        return

    table = Table(title="Presets")
    table.add_column("", style="green")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Author")
    table.add_column("Queued", justify="right")
    table.add_column("Updated")

    for p in presets:
        table.add_row(
            "●" if p.id == ws.presets.active_id else "",
            p.id,
            escape(p.name),
            p.author,
            str(len(p.prompts_list)),
            p.updated_at[:10],
        )
    console.print(table)
    console.print("\n[dim]Use: promptqueue preset apply <preset-id>[/dim]")


@preset.command("save")
@click.argument("name")
@click.option("--description", "-d", default="", help="Preset description")
@click.option("--author", "-a", default="", help="Preset author")
def preset_save(name: str, description: str, author: str):
    """Save the current queue as a new preset and make it active."""
    ws = _workspace()
    try:
        saved = ws.save_preset(name, description, author)
    except PromptQueueError as e:
        _fail(e)
    console.print(f"[green]Saved preset[/green] {saved.name} ({saved.id})")


@preset.command("apply")
@click.argument("preset_id")
def preset_apply(preset_id: str):
    """Apply a preset to the live queue."""
    ws = _workspace()
    try:
        applied = ws.apply_preset(_resolve_preset(ws, preset_id))
    except PromptQueueError as e:
        _fail(e)
    console.print(f"[green]Applied preset[/green] {applied.name}")


@preset.command("delete")
@click.argument("preset_id")
def preset_delete(preset_id: str):
    """Delete a preset."""
    ws = _workspace()
    try:
        deleted = ws.presets.delete(_resolve_preset(ws, preset_id))
    except PromptQueueError as e:
        _fail(e)
    console.print(f"[green]Deleted preset[/green] {deleted.name}")


@preset.command("export")
@click.argument("preset_id")
@click.option(
    "--out",
    "-o",
    "out_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory to write the preset file to",
)
def preset_export(preset_id: str, out_dir: Path):
    """Export a preset to a JSON file."""
    ws = _workspace()
    try:
        path = ws.export_preset(_resolve_preset(ws, preset_id), out_dir)
    except PromptQueueError as e:
        _fail(e)
    click.echo(str(path))


@preset.command("import")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--apply", "apply_now", is_flag=True, help="Apply the preset after importing")
def preset_import(path: Path, apply_now: bool):
    """Import a preset from a JSON file."""
    ws = _workspace()
    try:
        imported = ws.import_preset_file(path, apply=apply_now)
    except PromptQueueError as e:
        _fail(e)
    verb = "Imported and applied" if apply_now else "Imported"
    console.print(f"[green]{verb}[/green] {imported.name} ({imported.id})")


def main():
    cli()


if __name__ == "__main__":
    main()
