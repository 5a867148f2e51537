"""folderindex status: registered folders with snapshot and embedding counts."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from folderindex.cli.context import console, load_config_or_exit, open_db, resolve_db_path
from folderindex.config import FolderIndexConfig
from folderindex.db.embeddings import EmbeddingStore
from folderindex.db.snapshots import SnapshotStore


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (default from config)."),
    ] = None,
) -> None:
    """Show registered folders and what has been indexed."""
    cfg = load_config_or_exit()
    db_path = resolve_db_path(cfg, db)

    _show_settings_panel(cfg, db_path)

    if not db_path.exists():
        console.print(
            Panel(
                "[yellow]No database found.[/]\n"
                "  Run:  folderindex index",
                title="[bold]Index[/]",
                expand=False,
            )
        )
        return

    conn = open_db(db_path)
    try:
        snapshots = SnapshotStore(conn)
        text_counts = snapshots.count_by_folder("text")
        symbol_counts = snapshots.count_by_folder("symbol")
        embedding_counts = EmbeddingStore(conn).count_by_folder()
    finally:
        conn.close()

    strategies = {f.name: f.strategy or cfg.chunking.strategy for f in cfg.folders}
    names = sorted(set(strategies) | set(text_counts) | set(symbol_counts) | set(embedding_counts))
    if not names:
        console.print("[dim]No folders registered or indexed yet.[/]")
        return

    table = Table(title="Folders")
    table.add_column("Folder", style="bold")
    table.add_column("Strategy")
    table.add_column("Snapshots", justify="right")
    table.add_column("Embeddings", justify="right")
    for name in names:
        strategy = strategies.get(name)
        if strategy is None:
            strategy_label = "[dim](unregistered)[/]"
            units = text_counts.get(name, 0) + symbol_counts.get(name, 0)
        else:
            strategy_label = strategy
            units = (symbol_counts if strategy == "symbol" else text_counts).get(name, 0)
        table.add_row(name, strategy_label, f"{units:,}", f"{embedding_counts.get(name, 0):,}")
    console.print(table)


def _show_settings_panel(cfg: FolderIndexConfig, db_path: Path) -> None:
    db_info = str(db_path)
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"
    prefs = cfg.preferences
    lines = [
        f"Database:         {db_info}",
        f"Embedding model:  {prefs.default_embedding_model or '[yellow](not set)[/]'}",
        f"Chat model:       {prefs.default_chat_model or '[dim](not set)[/]'}",
        f"Embed summaries:  {'yes' if prefs.embed_summaries else 'no'}",
        f"Search backend:   {cfg.search.backend} (threshold {cfg.search.score_threshold})",
    ]
    console.print(Panel("\n".join(lines), title="[bold]folderindex[/]", expand=False))
