"""Entry point for `python -m querygguf` and the `query-gguf` CLI command."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from querygguf.config import CONFIG_ENV_VAR, default_config_path
from querygguf.errors import QueryGGUFError

app = typer.Typer(add_completion=False)
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def main(
    target: str | None = typer.Argument(
        None,
        help="Mode name or number, or one of: manual, dir, config-edit, init",
        show_default=False,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        envvar=CONFIG_ENV_VAR,
        help="Configuration file [default: ~/query_gguf/query_gguf_config.toml]",
    ),
    new_terminal: bool | None = typer.Option(
        None,
        "--new-terminal/--foreground",
        help="Run llama-cli in a new terminal window (overrides new_terminal in the config)",
        show_default=False,
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Print the command instead of running it"
    ),
    list_modes: bool = typer.Option(False, "--list", help="List configured modes and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug details to stderr"),
) -> None:
    """Start a local llama.cpp chat from a configured mode."""
    from querygguf.app import QueryApp

    _setup_logging(verbose)
    query = QueryApp(config or default_config_path())
    try:
        code = query.run(target, new_terminal=new_terminal, dry_run=dry_run, list_modes=list_modes)
    except QueryGGUFError as exc:
        err_console.print(f"[bold red]Error:[/] {escape(str(exc))}")
        raise typer.Exit(exc.exit_code) from None
    raise typer.Exit(code)


if __name__ == "__main__":
    app()
