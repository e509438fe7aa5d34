"""Mode selection: by identifier, or from a one-shot interactive menu."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from rich.console import Console, RenderableType
from rich.markup import escape
from rich.table import Table

from querygguf.config import Configuration, Mode
from querygguf.errors import ConfigError, ModeNotFound

logger = logging.getLogger(__name__)

QUIT_WORDS = frozenset({"q", "quit", "exit"})


@runtime_checkable
class PromptLike(Protocol):
    """Console I/O used by interactive selection (production and test doubles)."""

    def show(self, renderable: RenderableType) -> None: ...

    def ask(self, message: str) -> str: ...


class ConsolePrompt:
    """Reads answers from standard input through a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def show(self, renderable: RenderableType) -> None:
        self.console.print(renderable)

    def ask(self, message: str) -> str:
        """Single blocking read. End of input counts as an empty answer."""
        try:
            return self.console.input(escape(message))
        except EOFError:
            return ""


def render_menu(config: Configuration) -> Table:
    """Numbered mode table with the default marked."""
    default = config.default
    table = Table(title="query-gguf modes", title_justify="left", box=None)
    table.add_column("#", justify="right")
    table.add_column("Mode")
    table.add_column("Description", style="dim")
    for number, mode in enumerate(config.modes, start=1):
        is_default = default is not None and mode.id == default.id
        label = escape(mode.id) + (" (default)" if is_default else "")
        style = "bold green" if is_default else None
        table.add_row(str(number), label, escape(mode.description), style=style)
    return table


def select_mode(
    config: Configuration,
    identifier: str | None = None,
    prompt: PromptLike | None = None,
) -> Mode | None:
    """Resolve the mode to launch. Returns None if the user quits the menu."""
    if identifier is not None:
        mode = config.get(identifier)
        if mode is None:
            raise ModeNotFound(identifier, config.ids)
        logger.debug("Mode %r selected from the command line", mode.id)
        return mode

    default = config.default
    if default is None:
        where = config.source or "the configuration"
        raise ConfigError(f"No modes configured in {where}; add a [modes.<id>] table")

    prompt = prompt or ConsolePrompt()
    prompt.show(render_menu(config))

    answer = ""
    for attempt in range(2):
        answer = prompt.ask(f"Select a mode, 'q' to quit [{default.id}]: ").strip()
        if not answer:
            logger.debug("Empty answer, using default mode %r", default.id)
            return default
        if answer.lower() in QUIT_WORDS:
            return None
        mode = config.get(answer)
        if mode is not None:
            return mode
        if attempt == 0:
            prompt.show(
                f"[yellow]No mode '{escape(answer)}'. "
                f"Enter 1-{len(config.modes)}, a mode name, or press Enter for the default.[/]"
            )
    raise ModeNotFound(answer, config.ids)
