"""Command line interface for docretrieval."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from docretrieval.config import AppConfig
from docretrieval.index.storage import SQLiteVectorStore
from docretrieval.runtime import RetrievalRuntime

console = Console()
app = typer.Typer(help="docretrieval - hybrid keyword and semantic document retrieval")

DB_OPTION = typer.Option(None, "--db", help="SQLite database path")
PROVIDER_OPTION = typer.Option(
    None, "--provider", help="Embedding provider: sentence-transformers, openai, ollama, anthropic"
)
MODEL_OPTION = typer.Option(None, "--model", help="Embedding model name")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(
    db: Optional[Path],
    provider: Optional[str],
    model: Optional[str],
    **overrides,
) -> AppConfig:
    """Environment configuration with command line options applied on top."""
    try:
        config = AppConfig.from_env()
        if provider is not None:
            config = replace(
                config, embedding_provider=provider, model_name=model, embedding_dimensions=None
            )
        elif model is not None:
            config = replace(config, model_name=model)
        if db is not None:
            overrides["db_path"] = db
        overrides = {key: value for key, value in overrides.items() if value is not None}
        return replace(config, **overrides) if overrides else config
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _open_runtime(config: AppConfig, *, require_db: bool = True) -> RetrievalRuntime:
    resolved_db = config.resolve_db_path(Path.cwd())
    if require_db and not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    _ensure_db_parent(resolved_db)
    return RetrievalRuntime.from_config(config, base_dir=Path.cwd())


@contextmanager
def _open_store(config: AppConfig) -> Iterator[SQLiteVectorStore]:
    """Open the database alone, for commands that never embed."""
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    store = SQLiteVectorStore(resolved_db)
    try:
        yield store
    finally:
        store.close()


def _snippet(text: str, width: int = 180) -> str:
    return text.replace("\n", " ")[:width]


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Files or directories to index.", resolve_path=True
    ),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    chunk_chars: Optional[int] = typer.Option(
        None, help="Chunk size in characters (default: DOCUMENT_CHUNK_SIZE or 1200)"
    ),
    overlap: Optional[int] = typer.Option(
        None, help="Chunk overlap (default: DOCUMENT_CHUNK_OVERLAP or 150)"
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Index one or more files or directories."""
    _setup_logging(verbose)
    config = _load_config(db, provider, model, chunk_chars=chunk_chars, overlap=overlap)

    with _open_runtime(config, require_db=False) as runtime:
        console.print(f"Indexing into [bold]{runtime.store.db_path}[/bold]...")
        stats = runtime.indexer.index(inputs)
        if not stats.total:
            console.print("[yellow]No supported documents found.[/yellow]")
            return
        console.print(
            f"New: {stats.new}, changed: {stats.changed}, "
            f"unchanged: {stats.unchanged}, failed: {stats.failed}"
        )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    limit: int = typer.Option(10, help="Number of results to display"),
    threshold: float = typer.Option(0.1, help="Minimum cosine similarity for semantic hits"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run a hybrid keyword and semantic search."""
    _setup_logging(verbose)
    config = _load_config(db, provider, model)

    with _open_runtime(config) as runtime:
        response = runtime.searcher.search(query, limit=limit, threshold=threshold)

    if response.degraded:
        console.print(
            f"[yellow]Semantic search unavailable, keyword results only: "
            f"{response.vector_error}[/yellow]"
        )
    if not response.results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Via")
    table.add_column("Document")
    table.add_column("Chunk")
    table.add_column("Snippet")
    for result in response.results:
        table.add_row(
            f"{result.score:.4f}",
            result.channel,
            str(result.path),
            str(result.chunk_index),
            _snippet(result.text),
        )
    console.print(table)


@app.command()
def context(
    query: str = typer.Argument(..., help="Question or query text"),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    max_chunks: int = typer.Option(5, help="Maximum number of chunks in the context"),
    threshold: float = typer.Option(0.7, help="Minimum cosine similarity for semantic hits"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Print the numbered context blocks a question would be answered from."""
    _setup_logging(verbose)
    config = _load_config(db, provider, model)

    with _open_runtime(config) as runtime:
        relevant = runtime.searcher.get_relevant_context(
            query, max_chunks=max_chunks, threshold=threshold
        )

    if relevant.degraded:
        console.print("[yellow]Semantic search unavailable, keyword results only.[/yellow]")
    if not relevant.sources:
        console.print("[yellow]No relevant context found.[/yellow]")
        return
    console.print(relevant.context, markup=False)
    console.print()
    for position, source in enumerate(relevant.sources, start=1):
        console.print(
            f"[{position}] {source['document_title']} ({source['document_path']}, "
            f"chunk {source['chunk_index']}, score {source['score']:.4f})",
            markup=False,
        )


@app.command()
def similar(
    chunk_id: int = typer.Argument(..., help="Id of the chunk to compare against"),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    limit: int = typer.Option(5, help="Number of results to display"),
    threshold: float = typer.Option(0.5, help="Minimum cosine similarity"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """List chunks semantically close to an indexed chunk."""
    _setup_logging(verbose)
    config = _load_config(db, provider, model)

    with _open_runtime(config) as runtime:
        results = runtime.searcher.find_similar_chunks(chunk_id, limit=limit, threshold=threshold)

    if not results:
        console.print("[yellow]No similar chunks found.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Chunk id")
    table.add_column("Document")
    table.add_column("Snippet")
    for result in results:
        table.add_row(
            f"{result.score:.4f}", str(result.chunk_id), str(result.path), _snippet(result.text)
        )
    console.print(table)


@app.command()
def documents(
    db: Path = DB_OPTION,
    limit: int = typer.Option(50, help="Number of documents to list"),
    offset: int = typer.Option(0, help="Number of documents to skip"),
) -> None:
    """List indexed documents, most recently updated first."""
    config = _load_config(db, None, None)

    with _open_store(config) as store:
        records = store.list_documents(limit=limit, offset=offset)

    if not records:
        console.print("[yellow]No documents indexed.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold magenta")
    for column in ("Id", "Title", "Type", "Category", "Importance", "Chunks", "Path"):
        table.add_column(column)
    for record in records:
        table.add_row(
            str(record.id),
            record.title,
            record.document_type,
            record.category,
            f"{record.importance:.2f}",
            str(record.chunk_count),
            str(record.path),
        )
    console.print(table)


@app.command()
def stats(db: Path = DB_OPTION) -> None:
    """Show index, search and classification statistics."""
    config = _load_config(db, None, None)

    with _open_store(config) as store:
        index_stats = store.stats()
        search_stats = store.search_stats()
        classification = store.classification_stats()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value")
    for key, value in {**index_stats, **search_stats}.items():
        table.add_row(key.replace("_", " "), str(value))
    for key in ("by_type", "by_category", "by_language"):
        breakdown = ", ".join(f"{name}: {count}" for name, count in classification[key].items())
        table.add_row(key.replace("_", " "), breakdown or "-")
    console.print(table)


@app.command()
def watch(
    path: Optional[Path] = typer.Argument(None, help="Directory to watch", resolve_path=True),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    depth: Optional[int] = typer.Option(None, help="Maximum directory depth (default: 10)"),
    scan: bool = typer.Option(True, help="Index existing files before watching"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Watch a directory and keep the index in sync until interrupted."""
    _setup_logging(verbose)
    overrides = {"watch_depth": depth}
    if path is not None:
        overrides["watch_path"] = path
    config = _load_config(db, provider, model, **overrides)

    with _open_runtime(config, require_db=False) as runtime:
        runtime.watcher.initial_scan = scan
        if not runtime.start():
            console.print(f"[red]Could not watch {config.watch_path}.[/red]")
            raise typer.Exit(code=1)
        console.print(f"Watching [bold]{runtime.watcher.root}[/bold] (Ctrl+C to stop)")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("Stopping watcher...")


@app.command()
def reindex(
    path: Optional[Path] = typer.Argument(None, help="Directory to rebuild from", resolve_path=True),
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Delete everything and rebuild the index from the watched directory."""
    _setup_logging(verbose)
    config = _load_config(
        db, provider, model, **({"watch_path": path} if path is not None else {})
    )
    if not yes:
        typer.confirm(f"Delete the index and rebuild it from {config.watch_path}?", abort=True)

    with _open_runtime(config, require_db=False) as runtime:
        result = runtime.indexer.reindex_all()
    console.print(f"Reindexed {result.new} documents, failed: {result.failed}")


@app.command()
def clear(
    db: Path = DB_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete every indexed document and chunk."""
    config = _load_config(db, None, None)
    if not yes:
        typer.confirm("Delete all indexed documents?", abort=True)

    with _open_store(config) as store:
        documents_removed, chunks_removed = store.clear()
    console.print(f"Deleted {documents_removed} documents and {chunks_removed} chunks.")


@app.command()
def prune(db: Path = DB_OPTION) -> None:
    """Remove documents that no longer exist on disk."""
    config = _load_config(db, None, None)
    resolved_db = config.resolve_db_path(Path.cwd())

    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing to prune.[/yellow]")
        return

    with _open_store(config) as store:
        removed = store.remove_missing_files()
    console.print(f"Removed {removed} orphaned documents.")


@app.command()
def health(
    db: Path = DB_OPTION,
    provider: Optional[str] = PROVIDER_OPTION,
    model: Optional[str] = MODEL_OPTION,
) -> None:
    """Check that the configured embedding provider responds."""
    config = _load_config(db, provider, model)

    with _open_runtime(config, require_db=False) as runtime:
        healthy = runtime.embedder.health_check()

    if not healthy:
        console.print(f"[red]Embedding provider {config.embedding_provider} is not healthy.[/red]")
        raise typer.Exit(code=1)
    console.print(
        f"[green]Embedding provider {config.embedding_provider} OK[/green] "
        f"({config.model_name}, {runtime.embedder.dimension} dimensions)"
    )
