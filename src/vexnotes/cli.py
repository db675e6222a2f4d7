"""Command line interface for VexNotes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from vexnotes.config import AppConfig, load_config, load_environment
from vexnotes.context import AppContext, build_context
from vexnotes.errors import ConfigError, VexError
from vexnotes.utils.text import preview
from vexnotes.web.app import create_app

console = Console()
app = typer.Typer(help="VexNotes - ask questions about your git-hosted notes")

EnvFileOption = typer.Option(Path(".env"), "--env-file", help="Optional .env file")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load_config(env_file: Optional[Path]) -> AppConfig:
    try:
        return load_config(load_environment(env_file))
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc


def _open_context(env_file: Optional[Path], verbose: bool) -> AppContext:
    _setup_logging(verbose)
    return build_context(_load_config(env_file))


@app.command()
def sync(
    full: bool = typer.Option(False, "--full", help="Re-index every tracked file"),
    env_file: Path = EnvFileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Pull the notes repository and re-index changed notes."""
    context = _open_context(env_file, verbose)
    try:
        result = context.orchestrator.run(full=full)
    except VexError as exc:
        console.print(f"[red]Sync failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        context.close()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Outcome")
    table.add_column("Path")
    for path in result.processed:
        table.add_row("processed", path)
    for path in result.skipped:
        table.add_row("skipped", path)
    if result.processed or result.skipped:
        console.print(table)
    console.print(
        f"Processed: {result.processed_count}, skipped: {result.skipped_count} "
        f"({result.duration_ms} ms)"
    )


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer from your notes"),
    env_file: Path = EnvFileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Answer a question grounded in the indexed notes."""
    context = _open_context(env_file, verbose)
    try:
        answer = context.pipeline.answer(question)
    except VexError as exc:
        console.print(f"[red]Could not answer:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        context.close()

    console.print(answer.answer)
    if answer.sources:
        console.print("\n[bold]Sources:[/bold] " + ", ".join(answer.sources))


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(4, help="Number of results to display"),
    env_file: Path = EnvFileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Show the note chunks closest to a query."""
    context = _open_context(env_file, verbose)
    try:
        results = context.pipeline.retrieve(query, top_k)
    except VexError as exc:
        console.print(f"[red]Search failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        context.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Note")
    table.add_column("Chunk")
    table.add_column("Snippet")
    for result in results:
        table.add_row(
            f"{result.score:.4f}",
            str(result.metadata.get("source_path", "")),
            str(result.metadata.get("chunk_index", "")),
            preview(result.text, 180),
        )
    console.print(table)


@app.command()
def stats(env_file: Path = EnvFileOption, verbose: bool = VerboseOption) -> None:
    """Print the approximate number of indexed chunks."""
    context = _open_context(env_file, verbose)
    try:
        console.print(f"Indexed chunks (approx): {context.index.approximate_count()}")
    finally:
        context.close()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host interface"),
    port: Optional[int] = typer.Option(None, help="Server port"),
    env_file: Path = EnvFileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install it with \"python -m pip install uvicorn\""
        ) from exc

    context = _open_context(env_file, verbose)
    bind_host = host or context.config.server_host
    bind_port = port or context.config.server_port
    console.print(f"Starting VexNotes on http://{bind_host}:{bind_port}")
    try:
        uvicorn.run(
            create_app(context),
            host=bind_host,
            port=bind_port,
            reload=False,
            log_level="debug" if verbose else "info",
        )
    finally:
        context.close()


if __name__ == "__main__":  # pragma: no cover
    app()
