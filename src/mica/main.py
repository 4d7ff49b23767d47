import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich import print
from rich.table import Table

from mica.config import Settings, get_settings
from mica.models import EdgeVisibility, Environment, InteractionMode, MarkdownBlock
from mica.services import (
    GraphStore,
    GraphStoreError,
    ImportPayloadError,
    MigrationError,
    list_templates,
)

logger = logging.getLogger(__name__)

APP_HELP = """
mica: a personal, offline graph of notes.

Thoughts are NODES connected by directed EDGES inside named SPACES. Each
space remembers its own view (camera, environment, edge visibility, mode).

CORE WORKFLOW:
1. START:   `mica init` seeds the built-in spaces on first run.
2. CAPTURE: `mica node add "<title>" --parent <id>` grows the graph.
3. CONNECT: `mica node link <from> <to> --relation related`.
4. FIND:    `mica search "<text>"` over titles and markdown.
5. SHARE:   `mica export -o brain.json` / `mica import brain.json`.
"""

app = typer.Typer(name="mica", help=APP_HELP, no_args_is_help=True)
space_app = typer.Typer(name="space", help="Create, rename, delete and switch spaces.")
node_app = typer.Typer(name="node", help="Create, edit, delete and link nodes.")
view_app = typer.Typer(name="view", help="Change or reset the active space's view.")
app.add_typer(space_app, name="space")
app.add_typer(node_app, name="node")
app.add_typer(view_app, name="view")


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite file (default: MICA_DATABASE_PATH)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
):
    settings = get_settings()
    if db is not None:
        settings = settings.model_copy(update={"database_path": db.expanduser()})
    logging.basicConfig(
        level=logging.INFO if verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = settings


@contextmanager
def _store(ctx: typer.Context) -> Iterator[GraphStore]:
    settings: Settings = ctx.obj or get_settings()
    store = GraphStore(settings=settings)
    try:
        store.initialize()
        yield store
    except (GraphStoreError, MigrationError, ImportPayloadError) as e:
        print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)
    finally:
        store.close()


def _print_spaces(store: GraphStore) -> None:
    table = Table(title="Spaces")
    table.add_column("", width=2)
    table.add_column("ID", style="cyan")
    table.add_column("Icon")
    table.add_column("Name", style="bold")
    for space in store.spaces:
        marker = "*" if space.id == store.active_space_id else ""
        table.add_row(marker, space.id, space.icon, space.name)
    print(table)


@app.command()
def init(ctx: typer.Context):
    """
    Prepare the store: migrate, seed built-in spaces on first run, and
    restore the last opened space.
    """
    with _store(ctx) as store:
        _print_spaces(store)


@app.command()
def templates():
    """List built-in space templates."""
    table = Table(title="Templates")
    table.add_column("Key", style="cyan")
    table.add_column("Icon")
    table.add_column("Name", style="bold")
    for template in list_templates():
        table.add_row(template.key, template.icon, template.name)
    print(table)


@app.command()
def spaces(ctx: typer.Context):
    """List spaces; the active one is marked with *."""
    with _store(ctx) as store:
        _print_spaces(store)


@space_app.command("create")
def space_create(
    ctx: typer.Context,
    template: str = typer.Argument("blank", help="Template key or name"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Override the template name"),
    icon: Optional[str] = typer.Option(None, "--icon", help="Override the template icon"),
):
    """Create a space from a template and switch to it."""
    with _store(ctx) as store:
        space = store.create_space(template, name=name, icon=icon)
        print(f"[green]Created space[/green] {space.icon} {space.name} [dim]({space.id})[/dim]")


@space_app.command("rename")
def space_rename(ctx: typer.Context, space_id: str, name: str):
    """Rename a space."""
    with _store(ctx) as store:
        if not store.rename_space(space_id, name):
            print(f"[yellow]No space renamed ({space_id})[/yellow]")
            raise typer.Exit(code=1)
        print(f"[green]Renamed space to[/green] {name}")


@space_app.command("delete")
def space_delete(
    ctx: typer.Context,
    space_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a space with all of its nodes, edges and view state."""
    if not yes:
        typer.confirm(f"Delete space {space_id} and everything in it?", abort=True)
    with _store(ctx) as store:
        if not store.delete_space(space_id):
            print(f"[yellow]No space deleted ({space_id})[/yellow]")
            raise typer.Exit(code=1)
        print(f"[green]Deleted space[/green] {space_id}")


@space_app.command("use")
def space_use(ctx: typer.Context, space_id: str):
    """Switch the active space."""
    with _store(ctx) as store:
        if not store.set_active_space(space_id):
            print(f"[red]Unknown space:[/red] {space_id}")
            raise typer.Exit(code=1)
        _print_spaces(store)


@app.command()
def nodes(
    ctx: typer.Context,
    space: Optional[str] = typer.Option(None, "--space", "-s", help="Space id (default: active)"),
):
    """List the nodes of a space."""
    with _store(ctx) as store:
        if space and not store.set_active_space(space):
            print(f"[red]Unknown space:[/red] {space}")
            raise typer.Exit(code=1)
        table = Table(title="Nodes")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Tags")
        table.add_column("Importance", justify="right")
        table.add_column("Blocks", justify="right")
        for node in store.nodes:
            table.add_row(node.id, node.title, ", ".join(node.tags), str(node.importance), str(len(node.blocks)))
        print(table)
        print(f"[dim]{len(store.edges)} edge(s)[/dim]")


@node_app.command("add")
def node_add(
    ctx: typer.Context,
    title: str,
    parent: Optional[str] = typer.Option(None, "--parent", "-p", help="Parent node id"),
    space: Optional[str] = typer.Option(None, "--space", "-s", help="Space id (default: active)"),
):
    """Create a node, optionally as a child of another node."""
    with _store(ctx) as store:
        node = store.create_node(space_id=space, title=title, parent_id=parent)
        print(f"[green]Created node[/green] {node.title} [dim]({node.id})[/dim]")


@node_app.command("edit")
def node_edit(
    ctx: typer.Context,
    node_id: str,
    title: Optional[str] = typer.Option(None, "--title"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Replace tags (repeatable)"),
    importance: Optional[int] = typer.Option(None, "--importance", min=1, max=5),
    text: Optional[str] = typer.Option(None, "--text", help="Append a markdown block"),
):
    """Edit a node's title, tags, importance or append markdown."""
    updates = {}
    if title is not None:
        updates["title"] = title
    if tags:
        updates["tags"] = tags
    if importance is not None:
        updates["importance"] = importance
    with _store(ctx) as store:
        node = store.update_node(node_id, updates) if updates else store.get_node(node_id)
        if node is not None and text:
            node = store.add_block(node_id, MarkdownBlock(text=text))
        if node is None:
            print(f"[yellow]Node not found:[/yellow] {node_id}")
            raise typer.Exit(code=1)
        print(f"[green]Updated node[/green] {node.title}")


@node_app.command("rm")
def node_rm(ctx: typer.Context, node_id: str):
    """Delete a node and every edge touching it."""
    with _store(ctx) as store:
        if not store.delete_node(node_id):
            print(f"[yellow]Node not found:[/yellow] {node_id}")
            raise typer.Exit(code=1)
        print(f"[green]Deleted node[/green] {node_id}")


@node_app.command("link")
def node_link(
    ctx: typer.Context,
    from_id: str,
    to_id: str,
    relation: Optional[str] = typer.Option(None, "--relation", "-r"),
):
    """Link two nodes of the same space (self-loops and duplicates are ignored)."""
    with _store(ctx) as store:
        edge = store.link_nodes(from_id, to_id, relation)
        if edge is None:
            print("[dim]No edge created[/dim]")
        else:
            print(f"[green]Linked[/green] {from_id} -> {to_id} [dim]({edge.id})[/dim]")


@app.command()
def search(
    ctx: typer.Context,
    query: str,
    space: Optional[str] = typer.Option(None, "--space", "-s", help="Space id (default: active)"),
):
    """Search node titles and markdown text."""
    with _store(ctx) as store:
        results = store.search(query, space_id=space)
        if not results:
            print("[dim]No matches[/dim]")
            return
        table = Table(title=f"Results for '{query}'")
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="bold")
        table.add_column("Snippet")
        for result in results:
            table.add_row(result.id, result.title, result.snippet)
        print(table)


@view_app.command("set")
def view_set(
    ctx: typer.Context,
    environment: Optional[Environment] = typer.Option(None, "--environment", "-e"),
    edges: Optional[EdgeVisibility] = typer.Option(None, "--edges"),
    mode: Optional[InteractionMode] = typer.Option(None, "--mode", "-m"),
):
    """Change the active space's environment, edge visibility or mode."""
    updates = {}
    if environment is not None:
        updates["environment"] = environment
    if edges is not None:
        updates["edge_visibility"] = edges
    if mode is not None:
        updates["mode"] = mode
    with _store(ctx) as store:
        view = store.update_view(updates)
        print(view.model_dump(mode="json", by_alias=True))


@view_app.command("reset")
def view_reset(ctx: typer.Context):
    """Restore the active space's default view."""
    with _store(ctx) as store:
        view = store.reset_view()
        print(view.model_dump(mode="json", by_alias=True))


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    space: Optional[str] = typer.Option(None, "--space", "-s", help="Export only this space"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout"),
):
    """Export the whole store (or one space) as JSON."""
    with _store(ctx) as store:
        payload = store.export_space(space) if space else store.export_all()
    if output:
        output.write_text(payload, encoding="utf-8")
        print(f"[green]Exported to[/green] {output}")
    else:
        typer.echo(payload)


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export file"),
    restore_session: bool = typer.Option(
        False, "--restore-session", help="Reopen the space that was last open in the export"
    ),
):
    """Import an export file as new spaces (ids are regenerated)."""
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"[red]Error reading {source}:[/red] {e}")
        raise typer.Exit(code=1)
    with _store(ctx) as store:
        result = store.import_data(payload, restore_session=restore_session)
    if result is None:
        print("[yellow]No data imported[/yellow]")
        return
    print(
        f"[green]Imported[/green] {result.added_spaces} space(s), "
        f"{result.added_nodes} node(s), {result.added_edges} edge(s)"
    )


if __name__ == "__main__":
    app()
