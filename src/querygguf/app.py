"""Wires together config loading, mode selection, command building and launch."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from querygguf.command import build_launch_plan
from querygguf.config import load_config, write_starter_config
from querygguf.directory import directory_session
from querygguf.launcher import LauncherLike, SubprocessLauncher, open_in_editor
from querygguf.manual import build_manual_mode
from querygguf.probe import probe_threads
from querygguf.selector import ConsolePrompt, PromptLike, render_menu, select_mode

logger = logging.getLogger(__name__)

MANUAL_COMMANDS = frozenset({"manual", "make"})
EDIT_COMMANDS = frozenset({"config-edit", "config"})
DIR_COMMANDS = frozenset({"dir", "directory"})
INIT_COMMAND = "init"


class QueryApp:
    """query-gguf: pick a mode and start llama-cli with it."""

    def __init__(
        self,
        config_path: Path,
        launcher: LauncherLike | None = None,
        prompt: PromptLike | None = None,
        console: Console | None = None,
    ) -> None:
        self.config_path = config_path
        self.console = console or Console()
        self.prompt = prompt or ConsolePrompt(self.console)
        self._launcher = launcher

    def run(
        self,
        target: str | None = None,
        new_terminal: bool | None = None,
        dry_run: bool = False,
        list_modes: bool = False,
    ) -> int:
        """Handle one invocation and return the process exit code."""
        command = (target or "").strip().lower()
        logger.debug("Using configuration %s", self.config_path)

        if command == INIT_COMMAND:
            return self.init()
        if command in EDIT_COMMANDS:
            open_in_editor(self.config_path)
            self.console.print("Configuration saved.")
            return 0

        config = load_config(self.config_path)
        if list_modes:
            self.prompt.show(render_menu(config))
            return 0

        combined: Path | None = None
        if command in MANUAL_COMMANDS:
            mode = build_manual_mode(config, self.prompt)
        else:
            if command in DIR_COMMANDS:
                session = directory_session(config, self.prompt)
                mode, combined = session if session is not None else (None, None)
            else:
                mode = select_mode(config, target, self.prompt)
            if mode is None:
                self.console.print("Goodbye!")
                return 0

        keep_prompt = False
        try:
            override = mode.threads if mode.threads is not None else config.threads
            plan = build_launch_plan(
                config, mode, probe_threads(override), new_terminal, prompt_path=combined
            )
            # A new terminal or a printed command still needs the combined prompt
            keep_prompt = dry_run or plan.new_terminal

            if dry_run:
                self.console.print(
                    plan.command_line(), markup=False, highlight=False, soft_wrap=True
                )
                return 0

            self.console.print(f"Launching mode [bold]{escape(mode.id)}[/]")
            launcher = self._launcher or SubprocessLauncher(terminal=config.terminal)
            code = launcher.launch(plan)
            if plan.new_terminal:
                self.console.print("llama-cli started in a new terminal window.")
            return code
        finally:
            if combined is not None and not keep_prompt:
                combined.unlink(missing_ok=True)

    def init(self) -> int:
        if write_starter_config(self.config_path):
            self.console.print(f"Wrote starter configuration to {escape(str(self.config_path))}")
        else:
            self.console.print(
                f"{escape(str(self.config_path))} already exists; "
                "use `query-gguf config-edit` to change it."
            )
        return 0
