"""folderindex index: snapshot and embed registered folders.

Jobs for all selected folders run concurrently; a rich progress bar per
folder follows the progress broadcaster until every job has finished.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TaskProgressColumn, TextColumn

from folderindex.cli.context import console, load_config_or_exit, open_runtime, resolve_db_path
from folderindex.cli.errors import err_job_failed, err_no_folders, err_unknown_folder
from folderindex.embed.progress import UPDATE, ProgressState, broadcaster
from folderindex.embed.scheduler import EmbeddingScheduler
from folderindex.folders import FolderRegistration


def index_cmd(
    folder: Annotated[
        list[str] | None,
        typer.Option("--folder", "-f", help="Folder name to index (repeatable). Default: all."),
    ] = None,
    summaries: Annotated[
        bool | None,
        typer.Option(
            "--summaries/--no-summaries",
            help="Summarize each snippet with the chat model before embedding.",
        ),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the index database (default from config)."),
    ] = None,
) -> None:
    """Chunk and embed registered folders."""
    cfg = load_config_or_exit()
    if summaries is not None:
        cfg.preferences.embed_summaries = summaries

    runtime = open_runtime(cfg, resolve_db_path(cfg, db))
    try:
        selected = _select_folders(runtime.registry.get_folders(), folder or [])
        scheduler = EmbeddingScheduler(
            runtime.snapshotter,
            runtime.embeddings,
            cfg.preferences,
            cfg.embedding,
        )
        states = asyncio.run(_run_jobs(scheduler, selected))
    finally:
        runtime.close()

    failed = False
    for state in states:
        if state is None:
            continue
        if state.phase == "error":
            console.print(err_job_failed(state.folder_name, state.error))
            failed = True
        else:
            console.print(f"[green]✓[/] {state.folder_name}: {state.message} ({state.processed_files} documents)")
    if failed:
        raise typer.Exit(1)


def _select_folders(
    registered: list[FolderRegistration], names: list[str]
) -> list[FolderRegistration]:
    if not registered:
        console.print(err_no_folders())
        raise typer.Exit(1)
    if not names:
        return registered
    by_name = {f.name: f for f in registered}
    for name in names:
        if name not in by_name:
            console.print(err_unknown_folder(name, sorted(by_name)))
            raise typer.Exit(1)
    return [by_name[n] for n in dict.fromkeys(names)]


async def _run_jobs(
    scheduler: EmbeddingScheduler, folders: list[FolderRegistration]
) -> list[ProgressState | None]:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as bar:
        tasks: dict[str, TaskID] = {
            f.name: bar.add_task(f"{f.name}: queued", total=None) for f in folders
        }

        def on_update(state: ProgressState) -> None:
            task_id = tasks.get(state.folder_name)
            if task_id is None:
                return
            bar.update(
                task_id,
                description=f"{state.folder_name}: {state.message or state.phase}",
                total=state.total_files or None,
                completed=state.processed_files,
            )

        unsubscribe = broadcaster.subscribe(UPDATE, on_update)
        try:
            jobs = [scheduler.schedule_embedding(f) for f in folders]
            await asyncio.gather(*(job.task for job in jobs if job.task), return_exceptions=True)
        finally:
            unsubscribe()
            await scheduler.shutdown()

    return [broadcaster.get_progress(f.name) for f in folders]
