"""folderindex rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from folderindex.cli.errors import err_no_db
    console.print(err_no_db(".folderindex.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str, env_var: str | None = None) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env = env_var or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env}=sk-..."
    )


def err_config(message: str) -> str:
    """Config could not be loaded or a model is not usable."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Check folderindex.yaml and ~/.folderindex/config.yaml."
    )


def err_no_folders() -> str:
    """No folders registered in folderindex.yaml."""
    return (
        "[red]Error:[/] No folders registered.\n\n"
        "  Add one to folderindex.yaml:\n"
        "    folders:\n"
        "      - name: docs\n"
        "        path: ./docs"
    )


def err_unknown_folder(name: str, known: list[str]) -> str:
    """--folder names a folder that is not registered."""
    known_list = ", ".join(known) if known else "(none)"
    return (
        f"[red]Error:[/] Folder '{name}' is not registered.\n"
        f"  Registered folders: {known_list}\n"
        "  Run:  folderindex status"
    )


def err_no_db(db_path: str = ".folderindex.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  folderindex index"
    )


def err_no_embeddings() -> str:
    """Search attempted before anything was embedded."""
    return (
        "[yellow]No embeddings found.[/]\n"
        "  Run:  folderindex index  to embed your folders first."
    )


def err_job_failed(folder: str, error: str | None) -> str:
    """An embedding job ended in the error phase."""
    return (
        f"[red]Error:[/] Embedding '{folder}' failed: {error or 'unknown error'}\n"
        "  Fix the cause above and re-run:  folderindex index --folder " + folder
    )
