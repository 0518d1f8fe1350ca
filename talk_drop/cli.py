"""CLI for the talk index engine."""

import asyncio
import json
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from talk_drop.config import Settings, load_settings
from talk_drop.engine import TalkDrop
from talk_drop.models.talk import Talk
from talk_drop.views import talk_view

app = typer.Typer(
    name="talk-drop",
    help="Index of conference talks and their uploaded files",
    add_completion=False,
)
console = Console()
# Log records go to stderr so command output stays parseable
log_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=log_console, show_path=False)],
    )


def get_settings() -> Settings:
    try:
        return load_settings()
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Set SCHEDULE_URLS in .env or environment[/dim]")
        raise typer.Exit(1)


async def _find(engine: TalkDrop, id_or_slug: str) -> Talk | None:
    return await engine.find_by_id(id_or_slug) or await engine.find_by_slug(id_or_slug)


@app.command()
def talks(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """List all talks by title with their file and comment counts."""
    setup_logging(verbose)
    settings = get_settings()

    async def run() -> tuple[list[Talk], str | None]:
        async with TalkDrop.from_settings(settings) as engine:
            return await engine.all_sorted(), engine.schedule_version()

    sorted_talks, version = asyncio.run(run())

    table = Table(title=f"{settings.event_name}: {len(sorted_talks)} talks")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=50)
    table.add_column("Room", style="green")
    table.add_column("Day", justify="right")
    table.add_column("Files", style="magenta", justify="right")
    table.add_column("Comments", style="yellow", justify="right")
    for talk in sorted_talks:
        table.add_row(
            talk.id,
            talk.title,
            talk.room,
            str(talk.day) if talk.day is not None else "-",
            str(len(talk.files)),
            str(len(talk.comment_files)),
        )
    console.print(table)
    console.print(f"[dim]Schedule version: {version or 'unknown'}[/dim]")


@app.command()
def show(
    id_or_slug: str = typer.Argument(..., help="Talk id or slug"),
    authorized: bool = typer.Option(True, "--authorized/--public", help="Include names and comments"),
):
    """Print one talk with its files and comments as JSON."""
    setup_logging()
    settings = get_settings()

    async def run() -> dict | None:
        async with TalkDrop.from_settings(settings) as engine:
            talk = await _find(engine, id_or_slug)
            if talk is None:
                return None
            return await talk_view(talk, is_authorized=authorized)

    view = asyncio.run(run())
    if view is None:
        console.print(f"[red]No talk with id or slug '{id_or_slug}'[/red]")
        raise typer.Exit(1)
    console.print_json(json.dumps(view))


@app.command()
def comment(
    id_or_slug: str = typer.Argument(..., help="Talk id or slug"),
    text: str = typer.Argument(..., help="Comment text"),
):
    """Attach a comment to a talk."""
    setup_logging()
    settings = get_settings()

    async def run() -> int | None:
        async with TalkDrop.from_settings(settings) as engine:
            talk = await _find(engine, id_or_slug)
            if talk is None:
                return None
            await talk.add_comment(text)
            return len(talk.comment_files)

    count = asyncio.run(run())
    if count is None:
        console.print(f"[red]No talk with id or slug '{id_or_slug}'[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Comment added ({count} total)[/green]")


@app.command()
def orphans():
    """List directories under the files root that belong to no talk."""
    setup_logging()
    settings = get_settings()

    async def run() -> tuple[int, list[str]]:
        async with TalkDrop.from_settings(settings) as engine:
            return len(await engine.all()), await engine.orphaned_directories()

    talk_count, paths = asyncio.run(run())
    console.print(f"[dim]Talks: {talk_count}[/dim]")
    if not paths:
        console.print("[green]No orphaned directories[/green]")
        return
    for path in paths:
        console.print(f"  [yellow]{path}[/yellow]", soft_wrap=True)


@app.command()
def watch(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Keep the index running and log every change until interrupted."""
    setup_logging(verbose)
    settings = get_settings()

    async def run() -> None:
        async with TalkDrop.from_settings(settings) as engine:
            talks = await engine.all()
            console.print(
                f"[green]Watching {engine.root}: {len(talks)} talks, "
                f"schedule {engine.schedule_version() or 'unknown'}[/green]"
            )
            await asyncio.Event().wait()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("[dim]Stopped[/dim]")


if __name__ == "__main__":
    app()
