"""Process spawning: foreground, new terminal window, and the config editor."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from querygguf.command import LaunchPlan
from querygguf.errors import ConfigError, LaunchFailure

logger = logging.getLogger(__name__)

# Tried in order when no terminal is configured
LINUX_TERMINALS = ("x-terminal-emulator", "gnome-terminal", "konsole", "xfce4-terminal", "xterm")

_HOLD = "; read -p 'Press Enter to close...'"

Which = Callable[[str], str | None]


@runtime_checkable
class LauncherLike(Protocol):
    """Protocol for process launchers (production and test doubles)."""

    def launch(self, plan: LaunchPlan) -> int: ...


def _linux_terminal_argv(terminal: str, script: str) -> list[str]:
    name = Path(terminal).name
    if name == "gnome-terminal":
        return [terminal, "--", "bash", "-c", script]
    if name == "xfce4-terminal":
        return [terminal, "-x", "bash", "-c", script]
    return [terminal, "-e", "bash", "-c", script]


def terminal_command(
    plan: LaunchPlan,
    platform: str = sys.platform,
    terminal: str | None = None,
    which: Which = shutil.which,
) -> list[str]:
    """Wrap the plan's command so it runs in a new terminal window."""
    if platform == "win32":
        return ["cmd", "/c", "start", "", "cmd", "/k", subprocess.list2cmdline(plan.argv)]

    if platform == "darwin":
        script = f"cd {shlex.quote(str(plan.cwd))} && {plan.command_line()}"
        script = script.replace("\\", "\\\\").replace('"', '\\"')
        return ["osascript", "-e", f'tell application "Terminal" to do script "{script}"']

    script = plan.command_line() + _HOLD
    candidates = (terminal,) if terminal else LINUX_TERMINALS
    for candidate in candidates:
        found = which(candidate)
        if found:
            return _linux_terminal_argv(found, script)
    raise LaunchFailure(f"No terminal emulator found (tried: {', '.join(candidates)})")


def resolve_executable(executable: str, which: Which = shutil.which) -> str:
    """Locate the executable on PATH or on disk, or raise LaunchFailure."""
    found = which(executable)
    if found:
        return found
    path = Path(executable)
    if path.is_file() and os.access(path, os.X_OK):
        return str(path)
    raise LaunchFailure(f"Inference executable not found or not executable: {executable}")


class SubprocessLauncher:
    """Spawns llama-cli through :mod:`subprocess`."""

    def __init__(
        self,
        terminal: str | None = None,
        platform: str = sys.platform,
        which: Which = shutil.which,
    ) -> None:
        self.terminal = terminal
        self.platform = platform
        self.which = which

    def launch(self, plan: LaunchPlan) -> int:
        """Run in the foreground and return the exit code, or detach and return 0."""
        executable = resolve_executable(plan.executable, self.which)
        argv = [executable, *plan.argv[1:]]

        if plan.new_terminal:
            resolved = LaunchPlan(argv=tuple(argv), cwd=plan.cwd, new_terminal=True)
            wrapper = terminal_command(resolved, self.platform, self.terminal, self.which)
            logger.debug("Opening terminal: %s", shlex.join(wrapper))
            try:
                subprocess.Popen(wrapper, cwd=plan.cwd, start_new_session=True)
            except OSError as exc:
                raise LaunchFailure(f"Failed to open a terminal with {wrapper[0]}: {exc}") from exc
            return 0

        logger.debug("Running: %s", shlex.join(argv))
        try:
            process = subprocess.Popen(argv, cwd=plan.cwd)
        except OSError as exc:
            raise LaunchFailure(f"Failed to launch {executable}: {exc}") from exc
        return wait_through_interrupts(process)


def wait_through_interrupts(process: subprocess.Popen) -> int:
    """Wait for ``process`` to exit, ignoring Ctrl-C in this process.

    The terminal delivers SIGINT to the whole foreground group; llama-cli
    uses it to stop generation and hand the turn back, so the child decides
    what Ctrl-C means.
    """
    while True:
        try:
            return process.wait()
        except KeyboardInterrupt:
            logger.debug("Interrupt passed through to pid %s", process.pid)


def resolve_editor(env: Mapping[str, str] = os.environ, platform: str = sys.platform) -> list[str]:
    """Editor command from $VISUAL or $EDITOR, else notepad / nano."""
    for var in ("VISUAL", "EDITOR"):
        value = env.get(var, "").strip()
        if value:
            return shlex.split(value, posix=platform != "win32")
    return ["notepad"] if platform == "win32" else ["nano"]


def open_in_editor(
    path: Path,
    env: Mapping[str, str] = os.environ,
    platform: str = sys.platform,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> None:
    """Open ``path`` in the user's editor and wait for it to close."""
    if not path.exists():
        raise ConfigError(
            f"Configuration file not found: {path} (run `query-gguf init` to create one)"
        )
    editor = resolve_editor(env, platform)
    logger.debug("Editing %s with %s", path, shlex.join(editor))
    try:
        completed = run([*editor, str(path)], check=False)
    except OSError as exc:
        raise LaunchFailure(f"Failed to launch editor {editor[0]!r}: {exc}") from exc
    if completed.returncode != 0:
        raise LaunchFailure(f"Editor {editor[0]!r} exited with status {completed.returncode}")
