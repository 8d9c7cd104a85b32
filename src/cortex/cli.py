"""Command line interface for Cortex."""

from __future__ import annotations

import logging
import shlex
import stat
import subprocess
import time
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cortex.config import AppConfig, load_config
from cortex.embedding.encoder import EmbeddingClient, EmbeddingConfig
from cortex.errors import CortexError
from cortex.index.indexer import Indexer
from cortex.index.search import Searcher
from cortex.index.storage import SQLiteVectorStore
from cortex.ingestion.chunker import Chunker
from cortex.utils.files import format_size
from cortex.workspace import (
    collect_files,
    git_hooks_dir,
    load_ignore_patterns,
    resolve_inputs,
    staged_files,
    write_default_ignore,
)

console = Console()
app = typer.Typer(help="Cortex - incremental semantic index of a workspace")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load(root: Path, db: Optional[Path]) -> tuple[Path, AppConfig, Path]:
    root = root.resolve()
    try:
        config = load_config(root)
    except (TypeError, ValueError) as exc:
        raise typer.BadParameter(f"Invalid configuration: {exc}") from exc
    if db is not None:
        config.db_path = db
    return root, config, config.resolve_db_path(root)


def _embedder(config: AppConfig) -> EmbeddingClient:
    return EmbeddingClient(
        EmbeddingConfig(
            base_url=config.ollama_url,
            model_name=config.model_name,
            dimension=config.dimension,
        )
    )


def _format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    mins, secs = divmod(round(seconds), 60)
    if mins < 60:
        return f"{mins}m {secs}s"
    hours, mins = divmod(mins, 60)
    return f"{hours}h {mins}m {secs}s"


RootOption = typer.Option(Path("."), "--root", help="Workspace root", resolve_path=True)
DbOption = typer.Option(None, "--db", help="SQLite database path")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def init(
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create the index database and check the embedding service."""
    _setup_logging(verbose)
    root, config, resolved_db = _load(root, db)
    write_default_ignore(root)
    _ensure_db_parent(resolved_db)

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        db_ok = store.ping()
        stats = store.get_stats()
    finally:
        store.close()
    status = "[green]ok[/green]" if db_ok else "[red]unavailable[/red]"
    console.print(f"Database: [bold]{resolved_db}[/bold] {status}")

    with _embedder(config) as embedder:
        embed_ok = embedder.health()
    if not embed_ok:
        console.print(
            f"[yellow]Embedding service not available at {config.ollama_url}. "
            "Existing data can be queried but files cannot be synced.[/yellow]"
        )
        raise typer.Exit(code=1)

    console.print(f"Embedding service: [green]ok[/green] ({config.model_name})")
    console.print(f"Indexed files: {stats.total_files}, chunks: {stats.total_chunks}")


def _stop_sync(message: str, *, lenient: bool) -> NoReturn:
    """Abort a sync; staged syncs run from the pre-commit hook never fail the commit."""
    if lenient:
        console.print(f"[yellow]{escape(message)}. Skipping sync.[/yellow]")
        raise typer.Exit(code=0)
    console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=1)


@app.command()
def sync(
    files: Optional[List[Path]] = typer.Argument(None, help="Specific files to sync"),
    force: bool = typer.Option(False, "--force", help="Re-embed even if files are unchanged"),
    staged: bool = typer.Option(
        False, "--staged", help="Sync files staged in git; never exits with an error"
    ),
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
    verbose: bool = VerboseOption,
) -> None:
    """Sync workspace files into the index."""
    _setup_logging(verbose)
    root, config, resolved_db = _load(root, db)
    patterns = load_ignore_patterns(root)
    lenient = staged and not files

    if files:
        paths = resolve_inputs(root, files)
    elif staged:
        try:
            paths = staged_files(root, patterns)
        except (OSError, subprocess.CalledProcessError) as exc:
            _stop_sync(f"Cannot list staged files: {exc}", lenient=True)
    else:
        scan = collect_files(root, patterns, config.max_file_size)
        paths = scan.files
        if scan.skipped_large:
            console.print(
                f"Skipped {scan.skipped_large} large files (>{format_size(config.max_file_size)})"
            )

    if not paths:
        console.print("[yellow]No files found to sync.[/yellow]")
        return

    _ensure_db_parent(resolved_db)
    try:
        store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    except CortexError as exc:
        _stop_sync(str(exc), lenient=lenient)
    embedder = _embedder(config)
    try:
        if not embedder.health():
            _stop_sync(
                f"Embedding service not available at {config.ollama_url}", lenient=lenient
            )

        indexer = Indexer(
            embedder,
            store,
            chunker=Chunker(max_chars=config.chunk_chars, overlap=config.overlap),
            max_chunk_chars=config.max_chunk_chars,
            root=root,
        )
        console.print(f"Syncing {len(paths)} files into [bold]{resolved_db}[/bold]...")
        started = time.monotonic()
        outcome = indexer.sync(paths, force=force)
    finally:
        store.close()
        embedder.close()

    console.print(f"Sync completed in {_format_duration(time.monotonic() - started)}")
    console.print(
        f"Files processed: {outcome.files_processed}, chunks created: {outcome.chunks_created}, "
        f"unchanged: {outcome.files_skipped}, errors: {len(outcome.errors)}"
    )
    if outcome.chunks_oversized:
        console.print(f"Oversized chunks skipped: {outcome.chunks_oversized}")
    for error in outcome.errors:
        console.print(f"[red]- {error}[/red]")
    if not outcome.ok:
        if lenient:
            console.print("[yellow]Staged sync finished with errors; not failing.[/yellow]")
            return
        raise typer.Exit(code=1)


HOOK_MARKER = "# cortex pre-commit hook"


def _hook_script(root: Path) -> str:
    return (
        "#!/bin/sh\n"
        f"{HOOK_MARKER}\n"
        "# Syncs staged files into the Cortex index; never blocks the commit.\n"
        f"cortex sync --staged --root {shlex.quote(str(root))} || true\n"
    )


@app.command("install-hook")
def install_hook(
    overwrite: bool = typer.Option(
        False, "--force", help="Replace an existing pre-commit hook not written by Cortex"
    ),
    root: Path = RootOption,
) -> None:
    """Install a git pre-commit hook that runs `cortex sync --staged`."""
    root = root.resolve()
    try:
        hooks_dir = git_hooks_dir(root)
    except (OSError, subprocess.CalledProcessError) as exc:
        console.print(f"[red]Not a git repository ({root}): {exc}[/red]")
        raise typer.Exit(code=1)

    hook = hooks_dir / "pre-commit"
    if hook.exists() and HOOK_MARKER not in hook.read_text(encoding="utf-8", errors="replace"):
        if not overwrite:
            console.print(
                f"[yellow]{hook} already exists. Re-run with --force to replace it.[/yellow]"
            )
            raise typer.Exit(code=1)

    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook.write_text(_hook_script(root), encoding="utf-8")
    hook.chmod(hook.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    console.print(f"[green]Installed pre-commit hook:[/green] {hook}")


@app.command()
def query(
    text: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(10, "--top-k", help="Number of results to display"),
    file_type: Optional[List[str]] = typer.Option(None, "--type", help="Restrict to file types"),
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
    verbose: bool = VerboseOption,
) -> None:
    """Execute a semantic search."""
    _setup_logging(verbose)
    root, config, resolved_db = _load(root, db)

    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        with _embedder(config) as embedder:
            results = Searcher(embedder, store).search(text, top_k=top_k, file_types=file_type)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("File")
    table.add_column("Section")
    table.add_column("Chunk")
    table.add_column("Snippet")

    for result in results:
        snippet = result.content.replace("\n", " ")
        table.add_row(
            f"{result.similarity:.4f}",
            result.file_path,
            result.section or "",
            str(result.chunk_index),
            snippet[:180],
        )

    console.print(table)


@app.command()
def stats(
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
) -> None:
    """Show index statistics."""
    root, config, resolved_db = _load(root, db)
    if not resolved_db.exists():
        console.print("[yellow]Database not found. Run `cortex sync` first.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        index_stats = store.get_stats()
    finally:
        store.close()

    console.print(f"Chunks: {index_stats.total_chunks}")
    console.print(f"Files: {index_stats.total_files}")
    console.print(f"Tokens: {index_stats.total_tokens}")
    console.print(f"Database size: {format_size(index_stats.db_size_bytes)}")
    console.print(f"Last sync: {index_stats.last_sync or 'Never'}")
    if index_stats.total_chunks == 0:
        console.print("[yellow]Index is empty. Run `cortex sync` to populate it.[/yellow]")


@app.command("list-files")
def list_files(
    limit: int = typer.Option(50, help="Maximum number of files to list"),
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
) -> None:
    """List indexed files, most recently updated first."""
    root, config, resolved_db = _load(root, db)
    if not resolved_db.exists():
        console.print("[yellow]No files in database. Run `cortex sync` first.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        summaries = store.list_files(limit)
    finally:
        store.close()

    if not summaries:
        console.print("[yellow]No files in database. Run `cortex sync` first.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("File")
    table.add_column("Chunks")
    table.add_column("Tokens")
    table.add_column("Updated")
    for summary in summaries:
        table.add_row(
            summary.file_path,
            str(summary.chunk_count),
            str(summary.total_tokens),
            summary.last_updated or "",
        )
    console.print(table)


@app.command()
def delete(
    files: Optional[List[str]] = typer.Argument(None, help="Indexed paths to delete (all if omitted)"),
    yes: bool = typer.Option(False, "--yes", help="Confirm deletion"),
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
) -> None:
    """Delete indexed chunks for some files, or everything."""
    root, config, resolved_db = _load(root, db)
    if not yes:
        target = f"{len(files)} file(s)" if files else "ALL indexed data"
        console.print(f"[yellow]Deletion requires --yes. This would delete {target}.[/yellow]")
        raise typer.Exit(code=1)
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to delete.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        if files:
            deleted = store.delete_files(files)
            for file_path, chunks in deleted:
                console.print(f"- {file_path} ({chunks} chunks)")
            console.print(f"Deleted embeddings for {len(deleted)} file(s).")
        else:
            removed = store.delete_all()
            console.print(f"Deleted all {removed} chunks.")
    finally:
        store.close()


@app.command()
def prune(
    root: Path = RootOption,
    db: Optional[Path] = DbOption,
) -> None:
    """Remove indexed files that no longer exist on disk."""
    root, config, resolved_db = _load(root, db)
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return

    store = SQLiteVectorStore(resolved_db, dimension=config.dimension)
    try:
        removed = store.remove_missing_files(root)
    finally:
        store.close()
    console.print(f"Removed {removed} orphaned files.")
