import json
from pathlib import Path
from typing import Annotated

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import RankingConfig, resolve_db_path, resolve_timeout
from .content import ContentItem, descriptor_from_dict
from .embeddings import EmbedderRegistry, ProviderKind
from .indexing import IndexingPipeline
from .log_config import configure_logging
from .recommend import RecommendationEngine
from .search import SearchEngine
from .storage import DuckDBStorage

app = Typer(help="Semantic search and recommendations over analyzed content.")

console = Console()

DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file (defaults to CONTENT_EXPLORER_DB_PATH)."),
]
ProviderOption = Annotated[
    str,
    Option("--provider", "-p", help="Embedding provider: ondevice or remote."),
]
ModelOption = Annotated[
    str | None,
    Option("--model", "-m", help="Embedding model identifier for the provider."),
]


@app.callback()
def _setup(
    log_level: Annotated[
        str | None,
        Option("--log-level", help="Logging level (defaults to LOG_LEVEL or INFO)."),
    ] = None,
) -> None:
    configure_logging(log_level)


def _registry_for(provider: str) -> EmbedderRegistry:
    try:
        ProviderKind.parse(provider)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=2)
    return EmbedderRegistry()


@app.command()
def search(
    query: Annotated[str, Argument(help="Text to search for.")],
    limit: Annotated[int, Option("--limit", "-n", min=1, help="Maximum results.")] = 10,
    provider: ProviderOption = "ondevice",
    model: ModelOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Search stored items with hybrid vector + keyword ranking."""
    if not query.strip():
        console.print("[bold red]Query must not be empty[/]")
        raise Exit(code=2)

    registry = _registry_for(provider)
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        engine = SearchEngine(
            storage,
            registry.get(provider, model),
            config=RankingConfig.from_env(),
            timeout=resolve_timeout(),
        )
        with console.status("Searching..."):
            response = engine.search(query, limit=limit)
    finally:
        storage.close()

    if not response.results:
        console.print(
            Panel(
                Markdown(f"No items matched `{response.query}`."),
                title="Search",
                title_align="left",
                border_style="bold yellow",
            )
        )
        return

    mode = "vector + keyword" if response.vector_search else "keyword only"
    table = Table(title=f"Results for '{response.query}' ({mode})")
    table.add_column("#", justify="right")
    table.add_column("Key", style="cyan")
    table.add_column("Kind")
    table.add_column("Score", justify="right")
    table.add_column("Match")
    table.add_column("Summary", overflow="fold")
    for rank, result in enumerate(response.results, start=1):
        table.add_row(
            str(rank),
            result.key,
            result.item.kind.value,
            f"{result.score:.3f}",
            result.match_type,
            result.item.descriptor.summary or "",
        )
    console.print(table)


@app.command()
def recommend(
    key: Annotated[str, Argument(help="Key of the item to find related items for.")],
    no_vector: Annotated[
        bool, Option("--no-vector", help="Use heuristic scoring only.")
    ] = False,
    provider: ProviderOption = "ondevice",
    model: ModelOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Show up to five items related to KEY."""
    registry = _registry_for(provider)
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        engine = RecommendationEngine(
            config=RankingConfig.from_env(),
            timeout=resolve_timeout(),
        )
        results = engine.recommend_by_key(
            storage,
            key,
            use_vector_search=not no_vector,
            embedder=None if no_vector else registry.get(provider, model),
        )
    finally:
        storage.close()

    if not results:
        console.print(
            Panel(
                Markdown(f"No related items found for `{key}`."),
                title="Recommendations",
                title_align="left",
                border_style="bold yellow",
            )
        )
        return

    table = Table(title=f"Related to '{key}'")
    table.add_column("Key", style="cyan")
    table.add_column("Kind")
    table.add_column("Score", justify="right")
    table.add_column("Method")
    for result in results:
        table.add_row(result.key, result.item.kind.value, f"{result.score:.3f}", result.method)
    console.print(table)


@app.command()
def reindex(
    provider: ProviderOption = "ondevice",
    model: ModelOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Regenerate embeddings for every stored item."""
    registry = _registry_for(provider)
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        pipeline = IndexingPipeline(storage, timeout=resolve_timeout())
        with console.status("Regenerating embeddings..."):
            report = pipeline.reindex(registry.get(provider, model))
    finally:
        storage.close()

    summary = report.summary
    not_updated = [o for o in report.outcomes if o.status != "updated"]
    lines = [
        f"- Total: **{summary['total']}**",
        f"- Updated: **{summary['updated']}**",
        f"- Skipped: **{summary['skipped']}**",
        f"- Failed: **{summary['failed']}**",
    ]
    for outcome in not_updated:
        lines.append(f"- `{outcome.key}` {outcome.status} (`{outcome.reason}`)")
    console.print(
        Panel(
            Markdown("\n".join(lines)),
            title="Reindex",
            title_align="left",
            border_style="bold red" if summary["failed"] else "bold green",
        )
    )


@app.command()
def ingest(
    file: Annotated[
        Path,
        Argument(exists=True, dir_okay=False, help="JSON file with one item or a list of items."),
    ],
    no_embed: Annotated[
        bool, Option("--no-embed", help="Store descriptors without embeddings.")
    ] = False,
    provider: ProviderOption = "ondevice",
    model: ModelOption = None,
    db_path: DbPathOption = None,
) -> None:
    """
    Store analyzed items from FILE.

    Each entry needs a ``key`` and a ``descriptor`` object.
    """
    try:
        payload = json.loads(file.read_text())
    except json.JSONDecodeError as exc:
        console.print(f"[bold red]Invalid JSON in {file}: {exc}[/]")
        raise Exit(code=1)

    entries = payload if isinstance(payload, list) else [payload]
    items: list[ContentItem] = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("key"), str):
            console.print(f"[bold red]Skipping entry without a key: {escape(repr(entry))}[/]")
            continue
        descriptor = entry.get("descriptor")
        items.append(
            ContentItem(
                key=entry["key"],
                descriptor=descriptor_from_dict(descriptor if isinstance(descriptor, dict) else {}),
            )
        )

    registry = _registry_for(provider)
    embedder = None if no_embed else registry.get(provider, model)
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        pipeline = IndexingPipeline(storage, timeout=resolve_timeout())
        results = [pipeline.ingest(item, embedder) for item in items]
    finally:
        storage.close()

    table = Table(title=f"Ingested {len(results)} item(s)")
    table.add_column("Key", style="cyan")
    table.add_column("Embedded")
    table.add_column("Dim", justify="right")
    table.add_column("Reason")
    for result in results:
        table.add_row(
            result.key,
            "yes" if result.embedded else "no",
            str(result.dim or ""),
            result.reason or "",
        )
    console.print(table)


@app.command()
def items(
    limit: Annotated[int | None, Option("--limit", "-n", min=1, help="Maximum rows.")] = None,
    db_path: DbPathOption = None,
) -> None:
    """List stored items, newest first."""
    storage = DuckDBStorage(resolve_db_path(db_path))
    try:
        stored = storage.list_items(limit=limit)
    finally:
        storage.close()

    table = Table(title=f"{len(stored)} item(s)")
    table.add_column("Key", style="cyan")
    table.add_column("Kind")
    table.add_column("Embedding")
    table.add_column("Summary", overflow="fold")
    for item in stored:
        embedding = (
            f"{len(item.embedding)}d {item.embedding_model or ''}".strip()
            if item.embedding is not None
            else "-"
        )
        table.add_row(item.key, item.kind.value, embedding, item.descriptor.summary or "")
    console.print(table)


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Bind port.")] = 8000,
    db_path: DbPathOption = None,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port, db_path=db_path)
