"""folderindex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from folderindex.cli.index import index_cmd
from folderindex.cli.search import search_cmd
from folderindex.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("folderindex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"folderindex {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # LiteLLM logs every request at INFO.
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


app = typer.Typer(
    name="folderindex",
    help=(
        "folderindex: embed folders and search them.\n\n"
        "  folderindex index   Chunk and embed registered folders.\n"
        "  folderindex search  Semantic search over the embeddings."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """folderindex: embed folders and search them."""
    _configure_logging(verbose)


app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed folderindex version."""
    typer.echo(f"folderindex {_installed_version()}")


if __name__ == "__main__":
    app()
