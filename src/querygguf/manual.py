"""Free-form parameter entry for ``query-gguf manual``."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from pydantic import ValidationError
from rich.markup import escape
from rich.table import Table

from querygguf.config import Configuration, Mode
from querygguf.errors import InvalidModeConfig
from querygguf.selector import PromptLike

logger = logging.getLogger(__name__)

MANUAL_ID = "manual"

T = TypeVar("T")


def find_models(directories: list[Path]) -> list[Path]:
    """All ``*.gguf`` files below the given directories, sorted."""
    found: set[Path] = set()
    for directory in directories:
        if not directory.is_dir():
            logger.warning("Model directory not found: %s", directory)
            continue
        found.update(path for path in directory.rglob("*.gguf") if path.is_file())
    return sorted(found)


def _ask_value(
    prompt: PromptLike,
    label: str,
    default: T,
    convert: Callable[[str], T],
    shown: str | None = None,
) -> T:
    answer = prompt.ask(f"{label} [{shown or default}]: ").strip()
    if not answer:
        return default
    try:
        return convert(answer)
    except ValueError:
        raise InvalidModeConfig(f"Invalid {label.lower()}: {answer!r}") from None


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered in ("y", "yes", "true", "1"):
        return True
    if lowered in ("n", "no", "false", "0"):
        return False
    raise ValueError(text)


def _choose_model(models: list[Path], prompt: PromptLike) -> str:
    if models:
        table = Table(title="GGUF models", title_justify="left", box=None)
        table.add_column("#", justify="right")
        table.add_column("Path")
        for number, path in enumerate(models, start=1):
            table.add_row(str(number), escape(str(path)))
        prompt.show(table)
        answer = prompt.ask("Model number or path: ").strip()
    else:
        prompt.show("[yellow]No .gguf files found in model_directories.[/]")
        answer = prompt.ask("Model path: ").strip()

    if not answer:
        raise InvalidModeConfig("No model selected")
    if answer.isdigit() and models:
        number = int(answer)
        if not 1 <= number <= len(models):
            raise InvalidModeConfig(f"No model number {number}; choose 1-{len(models)}")
        return str(models[number - 1])
    return str(Path(answer).expanduser().resolve())


def build_manual_mode(config: Configuration, prompt: PromptLike) -> Mode:
    """Ask for a model and each llama-cli parameter, returning a one-off mode."""
    model = _choose_model(find_models(config.model_dirs), prompt)
    prompt_file = prompt.ask("Prompt file, relative to the prompt directory (Enter for none): ")

    defaults = Mode(id=MANUAL_ID)
    temp = _ask_value(prompt, "Temperature", defaults.temp, float)
    top_k = _ask_value(prompt, "Top-k", defaults.top_k, int)
    top_p = _ask_value(prompt, "Top-p", defaults.top_p, float)
    ctx_size = _ask_value(prompt, "Context size", defaults.ctx_size, int)
    threads = _ask_value(
        prompt, "Threads", config.threads, int, shown=str(config.threads or "auto")
    )
    gpu_layers = _ask_value(prompt, "GPU layers (0 for CPU only)", 0, int)
    interactive_first = _ask_value(
        prompt, "Interactive first", defaults.interactive_first, _parse_bool, shown="yes"
    )

    try:
        mode = Mode(
            id=MANUAL_ID,
            model=model,
            description="entered manually",
            prompt_file=prompt_file.strip() or None,
            temp=temp,
            top_k=top_k,
            top_p=top_p,
            ctx_size=ctx_size,
            threads=threads,
            gpu=gpu_layers > 0,
            gpu_layers=gpu_layers or None,
            interactive_first=interactive_first,
        )
    except ValidationError as exc:
        problems = "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors())
        raise InvalidModeConfig(f"Invalid manual parameters: {problems}") from None

    logger.debug("Manual mode: %s", mode.to_table())
    return mode
