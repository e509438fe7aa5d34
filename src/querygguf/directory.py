"""Directory mode: prefix a mode's prompt with a tree and the text files of a folder."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from querygguf.config import Configuration, Mode, resolve_path
from querygguf.errors import InvalidModeConfig
from querygguf.selector import PromptLike, select_mode

logger = logging.getLogger(__name__)

# Files with these extensions have their contents copied into the prompt
TEXT_EXTENSIONS = frozenset(
    {
        "txt", "md", "rs", "py", "js", "json", "toml", "yaml", "yml",
        "css", "html", "htm", "xml", "csv", "log", "sh", "bash",
        "c", "cpp", "h", "hpp", "java", "go", "rb", "pl", "php",
    }
)


def is_text_file(path: Path) -> bool:
    return path.suffix[1:].lower() in TEXT_EXTENSIONS


def scan_directory(root: Path, prefix: str = "") -> tuple[str, str]:
    """Return ``(tree, contents)`` for everything below ``root``.

    ``tree`` is one ``├──``/``└──`` line per entry, sorted by name.
    ``contents`` holds a ``=== name ===`` block for each readable text file.
    Symlinked directories are listed but not entered.
    """
    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        raise InvalidModeConfig(f"Cannot read directory {root}: {exc}") from exc

    tree: list[str] = []
    contents: list[str] = []
    for index, entry in enumerate(entries):
        last = index == len(entries) - 1
        tree.append(f"{prefix}{'└──' if last else '├──'} {entry.name}\n")
        if entry.is_dir():
            if entry.is_symlink():
                continue
            sub_tree, sub_contents = scan_directory(entry, prefix + ("    " if last else "│   "))
            tree.append(sub_tree)
            contents.append(sub_contents)
        elif is_text_file(entry):
            try:
                text = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.debug("Skipping %s: %s", entry, exc)
                continue
            contents.append(f"\n=== {entry.name} ===\n{text}\n")
    return "".join(tree), "".join(contents)


def combine_prompt(prompt_text: str, root: Path) -> str:
    if not root.is_dir():
        raise InvalidModeConfig(f"Directory not found: {root}")
    tree, contents = scan_directory(root)
    return f"{prompt_text}\n\nDirectory Structure:\n{tree}\n\nFile Contents:{contents}\n"


def write_combined_prompt(config: Configuration, mode: Mode, root: Path) -> Path:
    """Write the mode's prompt plus the scan of ``root`` to a new temporary file."""
    prompt_text = ""
    prompt_path = config.resolve_prompt(mode)
    if prompt_path is not None:
        try:
            prompt_text = prompt_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidModeConfig(
                f"Mode {mode.id!r}: cannot read prompt file {prompt_path}: {exc}"
            ) from None

    combined = combine_prompt(prompt_text, root)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", prefix="combined_prompt_", suffix=".txt", delete=False
    ) as handle:
        handle.write(combined)
    logger.debug("Wrote combined prompt for %s to %s", root, handle.name)
    return Path(handle.name)


def directory_session(config: Configuration, prompt: PromptLike) -> tuple[Mode, Path] | None:
    """Ask for a directory and a mode; return the mode and its combined prompt file.

    Returns None when the user quits at the mode menu.
    """
    answer = prompt.ask("Directory to include: ").strip()
    if not answer:
        raise InvalidModeConfig("No directory given")
    root = resolve_path(answer, Path.cwd())
    if not root.is_dir():
        raise InvalidModeConfig(f"Directory not found: {root}")

    mode = select_mode(config, prompt=prompt)
    if mode is None:
        return None
    return mode, write_combined_prompt(config, mode, root)
