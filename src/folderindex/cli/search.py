"""folderindex search: embed a query and print the closest snippets."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from folderindex.cli.context import console, load_config_or_exit, open_db, resolve_db_path
from folderindex.cli.errors import err_config, err_no_api_key, err_no_db, err_no_embeddings
from folderindex.db.embeddings import EmbeddingStore
from folderindex.errors import ConfigurationError, ProviderCallError
from folderindex.llm_client import LiteLLMClientFactory, api_key_env
from folderindex.search.hnsw import HNSWSearch, SearchResult

_SNIPPET_WIDTH = 80


def search_cmd(
    query: Annotated[str, typer.Argument(help="Natural-language query.")],
    folder: Annotated[
        list[str] | None,
        typer.Option("--folder", "-f", help="Restrict to this folder (repeatable)."),
    ] = None,
    k: Annotated[
        int | None,
        typer.Option("-k", "--top-k", min=1, help="Maximum results (default from config)."),
    ] = None,
    threshold: Annotated[
        float | None,
        typer.Option("--threshold", min=0.0, max=1.0, help="Minimum cosine score."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (default from config)."),
    ] = None,
) -> None:
    """Search embedded folders for QUERY."""
    cfg = load_config_or_exit()
    db_path = resolve_db_path(cfg, db)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    model = cfg.preferences.default_embedding_model
    try:
        client = LiteLLMClientFactory(num_retries=cfg.embedding.num_retries).embedding_client(model)
    except ConfigurationError as exc:
        provider = (model or "").split("/")[0]
        env_var = api_key_env(provider) if provider else None
        if env_var and "API key" in str(exc):
            console.print(err_no_api_key(provider, env_var))
        else:
            console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    conn = open_db(db_path)
    try:
        store = EmbeddingStore(conn)
        names = folder or sorted(store.count_by_folder())
        engine = HNSWSearch.from_config(cfg.search, store)
        engine.add_folders(names)
        if not engine.is_ready():
            console.print(err_no_embeddings())
            raise typer.Exit(1)

        try:
            vector = asyncio.run(client.embed_query(query))
        except ProviderCallError as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1) from exc

        results = engine.search_with_threshold(vector, k or cfg.search.top_k, threshold)
    finally:
        conn.close()

    if not results:
        console.print("[yellow]No matching content.[/]")
        return
    console.print(_results_table(query, results))


def _results_table(query: str, results: list[SearchResult]) -> Table:
    table = Table(title=f"Results for '{query}'", show_lines=False)
    table.add_column("Score", justify="right", style="cyan")
    table.add_column("Folder")
    table.add_column("Path")
    table.add_column("Snippet", overflow="fold")
    for r in results:
        label = r.metadata.get("symbol_name") or r.metadata.get("label") or ""
        snippet = str(r.metadata.get("original_content") or r.content or "")
        snippet = " ".join(snippet.split())[:_SNIPPET_WIDTH]
        path = f"{r.relative_path} [dim]{label}[/]" if label else r.relative_path
        table.add_row(f"{r.score:.3f}", r.folder_name, path, snippet)
    return table
