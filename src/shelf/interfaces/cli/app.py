"""CLI application for Shelf using Rich and Typer."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shelf.core.config import DEBUG, setup_logging
from shelf.core.errors import CollectionError
from shelf.core.factory import build_collection_service
from shelf.core.service import CollectionService
from shelf.core.types import Collection

app = typer.Typer(
    name="shelf",
    help="Shelf CLI - Organize notes into collections",
    no_args_is_help=True,
)

console = Console()


def _location_option():
    return typer.Option(
        None,
        "--location",
        "-l",
        help="Save location directory (default: $SHELF_SAVE_LOCATION or ~/.shelf)",
    )


def _debug_option():
    return typer.Option(
        DEBUG,
        "--debug",
        "-d",
        help="Enable debug logging",
    )


@contextmanager
def _service(location: Optional[str], debug: bool = False) -> Iterator[CollectionService]:
    """Build a service for one command and turn collection errors into exit 1."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        console.print("[dim]Debug logging enabled[/dim]")
    else:
        setup_logging()

    with build_collection_service(save_location=location) as service:
        try:
            yield service
        except CollectionError as e:
            console.print(f"[red]Error: {e.user_message}[/red]")
            raise typer.Exit(1)

        if service.last_error is not None:
            console.print(f"[yellow]Warning: {service.last_error.user_message}[/yellow]")


def _print_collection(collection: Collection, title: str) -> None:
    lines = [f"[bold]{collection.name}[/bold]", f"[dim]{collection.id}[/dim]"]
    if collection.description:
        lines.append(collection.description)
    if collection.icon or collection.color:
        lines.append(f"icon: {collection.icon or '-'}  color: {collection.color or '-'}")
    lines.append(f"notes: {len(collection.note_ids)}")
    console.print(Panel.fit("\n".join(lines), title=title, border_style="green"))


@app.command("list")
def list_collections(
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """List all collections."""
    with _service(location, debug) as service:
        collections = service.get_all_collections()

        table = Table(title="Collections", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim")
        table.add_column("ID")
        table.add_column("Name", style="green")
        table.add_column("Icon")
        table.add_column("Color")
        table.add_column("Notes", justify="right")

        for collection in collections:
            table.add_row(
                str(collection.sort_order),
                collection.id,
                collection.name,
                collection.icon or "",
                collection.color or "",
                "all" if collection.is_default else str(len(collection.note_ids)),
            )

        console.print(table)


@app.command()
def create(
    name: str = typer.Argument(..., help="Collection name"),
    icon: Optional[str] = typer.Option(None, "--icon", help="Icon identifier"),
    color: Optional[str] = typer.Option(None, "--color", help="Hex color, e.g. #059669"),
    description: Optional[str] = typer.Option(
        None, "--description", help="Short description"
    ),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Create a new collection."""
    with _service(location, debug) as service:
        collection = service.create(
            {"name": name, "icon": icon, "color": color, "description": description}
        )
        _print_collection(collection, "Created")


@app.command()
def update(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    name: Optional[str] = typer.Option(None, "--name", help="New name"),
    icon: Optional[str] = typer.Option(None, "--icon", help="New icon"),
    color: Optional[str] = typer.Option(None, "--color", help="New color"),
    description: Optional[str] = typer.Option(
        None, "--description", help="New description"
    ),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Update a collection."""
    patch = {
        key: value
        for key, value in {
            "name": name,
            "icon": icon,
            "color": color,
            "description": description,
        }.items()
        if value is not None
    }
    with _service(location, debug) as service:
        collection = service.update(collection_id, patch)
        if collection is None:
            console.print(f"[red]Collection not found: {collection_id}[/red]")
            raise typer.Exit(1)
        _print_collection(collection, "Updated")


@app.command()
def delete(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Delete a collection. Notes in it are kept."""
    with _service(location, debug) as service:
        if not service.delete(collection_id):
            console.print(f"[red]Collection not found: {collection_id}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Deleted collection: {collection_id}[/green]")


@app.command()
def add(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    note_id: str = typer.Argument(..., help="Note ID"),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Add a note to a collection."""
    with _service(location, debug) as service:
        collection = service.add_note_to_collection(collection_id, note_id, ())
        console.print(
            f"[green]Note {note_id} is in {collection.name} "
            f"({len(collection.note_ids)} notes)[/green]"
        )


@app.command()
def remove(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    note_id: str = typer.Argument(..., help="Note ID"),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Remove a note from a collection."""
    with _service(location, debug) as service:
        collection = service.remove_note_from_collection(collection_id, note_id, ())
        console.print(
            f"[green]Note {note_id} is not in {collection.name} "
            f"({len(collection.note_ids)} notes)[/green]"
        )


@app.command()
def reorder(
    collection_ids: list[str] = typer.Argument(..., help="Collection IDs in order"),
    location: Optional[str] = _location_option(),
    debug: bool = _debug_option(),
):
    """Reorder collections."""
    with _service(location, debug) as service:
        collections = service.reorder(collection_ids)
        names = [c.name for c in collections if not c.is_default]
        console.print(f"[green]New order: {', '.join(names)}[/green]")


@app.command()
def health(
    location: Optional[str] = _location_option(),
):
    """Check collection data health."""
    with _service(location) as service:
        health_status = service.health_check()

    table = Table(title="Health Check", show_header=True)
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Message")

    all_healthy = True
    for component, (healthy, message) in health_status.items():
        status = "[green]OK[/green]" if healthy else "[red]FAILED[/red]"
        table.add_row(component.title(), status, message)
        if not healthy:
            all_healthy = False

    console.print(table)
    raise typer.Exit(0 if all_healthy else 1)


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
