"""Builds the llama-cli argument list for a mode."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from pathlib import Path

from querygguf.config import Configuration, Mode, resolve_path
from querygguf.errors import InvalidModeConfig

logger = logging.getLogger(__name__)

GPU_LAYERS_FLAG = "--n-gpu-layers"


@dataclass(frozen=True)
class LaunchPlan:
    """Ready-to-run command: argv (executable first), working dir, terminal flag."""

    argv: tuple[str, ...]
    cwd: Path
    new_terminal: bool = False

    @property
    def executable(self) -> str:
        return self.argv[0]

    def command_line(self) -> str:
        return shlex.join(self.argv)


def build_arguments(
    mode: Mode,
    executable: str,
    threads: int,
    model_path: Path,
    prompt_path: Path | None = None,
) -> list[str]:
    """Ordered llama-cli argv. Same inputs always give the same list."""
    argv = [executable, "-m", str(model_path), "--threads", str(threads)]
    if prompt_path is not None:
        argv += ["--file", str(prompt_path)]
    if mode.system_prompt:
        argv += ["--system-prompt", mode.system_prompt]
    argv += [
        "--temp", str(mode.temp),
        "--top-k", str(mode.top_k),
        "--top-p", str(mode.top_p),
        "--ctx-size", str(mode.ctx_size),
    ]
    if mode.gpu and mode.gpu_layers is not None:
        argv += [GPU_LAYERS_FLAG, str(mode.gpu_layers)]
    if mode.interactive_first:
        argv.append("--interactive-first")
    argv.append("--no-display-prompt")
    argv.extend(mode.extra_args)
    return argv


def build_launch_plan(
    config: Configuration,
    mode: Mode,
    threads: int,
    new_terminal: bool | None = None,
    prompt_path: Path | None = None,
) -> LaunchPlan:
    """Validate the mode's files and assemble its LaunchPlan.

    ``prompt_path`` replaces the mode's own prompt file when given.
    """
    model_path = config.resolve_model(mode)
    if model_path is None:
        raise InvalidModeConfig(f"Mode {mode.id!r} has no model path")
    if not model_path.is_file():
        raise InvalidModeConfig(f"Mode {mode.id!r}: model file not found: {model_path}")

    if prompt_path is None:
        prompt_path = config.resolve_prompt(mode)
    if prompt_path is not None and not prompt_path.is_file():
        raise InvalidModeConfig(f"Mode {mode.id!r}: prompt file not found: {prompt_path}")

    if mode.gpu and mode.gpu_layers is None:
        logger.warning("Mode %r enables GPU but sets no gpu_layers; not offloading", mode.id)

    executable = mode.executable or config.llama_cli_path
    if "/" in executable or "\\" in executable or executable.startswith("~"):
        executable = str(resolve_path(executable, config.base_dir))

    if config.working_directory:
        cwd = resolve_path(config.working_directory, config.base_dir)
    else:
        cwd = Path.cwd()

    argv = build_arguments(mode, executable, threads, model_path, prompt_path)
    plan = LaunchPlan(
        argv=tuple(argv),
        cwd=cwd,
        new_terminal=config.new_terminal if new_terminal is None else new_terminal,
    )
    logger.debug("Launch plan for %r: %s", mode.id, plan.command_line())
    return plan
