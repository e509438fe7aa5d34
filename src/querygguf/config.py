"""Configuration file loading: modes, global defaults, and path resolution.

The configuration is a TOML file with global keys and one ``[modes.<id>]``
table per mode. Files written by the older pipe-delimited format
(``mode_N = "model|prompt|temp=0.8|...|name|description"``) load as well.
"""

from __future__ import annotations

import logging
import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from querygguf.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "QUERY_GGUF_CONFIG"
DEFAULT_EXECUTABLE = "llama-cli"

# Command words that cannot double as mode identifiers
RESERVED_IDS = frozenset(
    {"manual", "make", "config", "config-edit", "init", "dir", "directory"}
)

_LEGACY_MODE_KEY = re.compile(r"^mode_\d+$")
_LEGACY_MODEL_DIR_KEY = re.compile(r"^gguf_model_directory_\d+$")
_LEGACY_IGNORED_KEY = re.compile(
    r"^(logging_enabled|log_directory_path|prompt_directory_\d+|prompt_file_directory_\d+)$"
)
_LEGACY_PARAMS = frozenset(
    {"temp", "top_k", "top_p", "ctx_size", "threads", "gpu_layers", "interactive_first"}
)

STARTER_CONFIG = """\
# query-gguf configuration

# Path to the llama.cpp llama-cli executable
llama_cli_path = "~/llama.cpp/build/bin/llama-cli"

# Mode used when you just press Enter at the menu
default_mode = "quick"

# Open llama-cli in a new terminal window instead of the current one
new_terminal = false

# Relative prompt_file values are looked up here
prompt_directory = "prompts"

# Searched for *.gguf files by `query-gguf manual`
model_directories = ["~/models"]

[modes.quick]
description = "small model, CPU only"
model = "~/models/Llama-3.2-1B-Instruct-Q6_K_L.gguf"
# prompt_file = "shortcode.txt"
# threads = 4
temp = 0.8
top_k = 40
top_p = 0.9
ctx_size = 2000

# [modes.big]
# description = "large model with GPU offload"
# model = "~/models/Meta-Llama-3.1-70B-Instruct-Q4_K_M.gguf"
# gpu = true
# gpu_layers = 20
"""


def default_config_path() -> Path:
    """Return the fixed config location, ``~/query_gguf/query_gguf_config.toml``."""
    return Path.home() / "query_gguf" / "query_gguf_config.toml"


def resolve_path(raw: str, base: Path) -> Path:
    """Expand ``~`` and anchor relative paths at ``base``."""
    path = Path(raw).expanduser()
    return path if path.is_absolute() else base / path


class Mode(BaseModel):
    """Named bundle of llama-cli launch parameters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    model: str | None = None
    description: str = ""
    prompt_file: str | None = None
    system_prompt: str | None = None
    temp: float = 0.8
    top_k: int = 40
    top_p: float = 0.9
    ctx_size: int = Field(default=2000, ge=0)
    interactive_first: bool = True
    threads: int | None = Field(default=None, ge=1)
    gpu: bool = False
    gpu_layers: int | None = Field(default=None, ge=0)
    executable: str | None = None
    extra_args: tuple[str, ...] = ()

    def to_table(self) -> dict[str, Any]:
        """Return the ``[modes.<id>]`` table that rebuilds this mode."""
        table = self.model_dump(exclude={"id"}, exclude_defaults=True)
        if "extra_args" in table:
            table["extra_args"] = list(table["extra_args"])
        return table


class Configuration(BaseModel):
    """Everything read from the configuration file."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    llama_cli_path: str = DEFAULT_EXECUTABLE
    default_mode: str | None = None
    new_terminal: bool = False
    threads: int | None = Field(default=None, ge=1)
    terminal: str | None = None
    working_directory: str | None = None
    prompt_directory: str = "prompts"
    model_directories: tuple[str, ...] = ()
    modes: tuple[Mode, ...] = ()
    source: Path | None = None

    @model_validator(mode="after")
    def _check_modes(self) -> Configuration:
        seen: set[str] = set()
        for mode in self.modes:
            if mode.id in seen:
                raise ValueError(f"duplicate mode identifier {mode.id!r}")
            if mode.id.lower() in RESERVED_IDS:
                raise ValueError(f"mode identifier {mode.id!r} is reserved for a command")
            seen.add(mode.id)
        if self.default_mode is not None and self.default_mode not in seen:
            raise ValueError(f"default_mode {self.default_mode!r} does not name a mode")
        return self

    @property
    def ids(self) -> list[str]:
        return [mode.id for mode in self.modes]

    @property
    def default(self) -> Mode | None:
        """The configured default mode, else the first mode."""
        if self.default_mode is not None:
            return self.get(self.default_mode)
        return self.modes[0] if self.modes else None

    @property
    def base_dir(self) -> Path:
        return self.source.parent if self.source is not None else Path.cwd()

    def get(self, identifier: str) -> Mode | None:
        """Look a mode up by identifier, then by 1-based position."""
        for mode in self.modes:
            if mode.id == identifier:
                return mode
        if identifier.isdigit() and 1 <= int(identifier) <= len(self.modes):
            return self.modes[int(identifier) - 1]
        return None

    def resolve_model(self, mode: Mode) -> Path | None:
        if not mode.model:
            return None
        return resolve_path(mode.model, self.base_dir)

    def resolve_prompt(self, mode: Mode) -> Path | None:
        if not mode.prompt_file:
            return None
        return resolve_path(mode.prompt_file, self.prompt_dir)

    @property
    def prompt_dir(self) -> Path:
        return resolve_path(self.prompt_directory, self.base_dir)

    @property
    def model_dirs(self) -> list[Path]:
        return [resolve_path(d, self.base_dir) for d in self.model_directories]


def _describe(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``field: message`` pairs."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_legacy_mode(key: str, value: str) -> dict[str, Any]:
    """Split a ``mode_N`` pipe string into a mode table.

    Layout: ``model|prompt|name=value...|name|description``. The prompt
    slot may be omitted; ``gpu`` is implied by ``gpu_layers > 0``. Relative
    model paths are taken from the home directory.
    """
    parts = [part.strip() for part in value.split("|")]
    if len(parts) < 2 or not parts[0]:
        raise ConfigError(
            f"{key}: expected 'model|prompt|key=value...|name|description', got {value!r}"
        )

    model = Path(parts[0]).expanduser()
    if not model.is_absolute():
        model = Path.home() / model
    table: dict[str, Any] = {"model": str(model)}
    labels: list[str] = []
    for index, part in enumerate(parts[1:], start=1):
        name, sep, setting = part.partition("=")
        if sep:
            if name in _LEGACY_PARAMS:
                table[name] = setting
            else:
                logger.warning("%s: ignoring unknown parameter %r", key, name)
        elif index == 1:
            if part:
                table["prompt_file"] = part.removeprefix("prompts/")
        elif part:
            labels.append(part)

    if len(labels) >= 2:
        table["id"], table["description"] = labels[-2], labels[-1]
    elif labels:
        table["id"] = labels[0]
    else:
        table["id"] = key

    layers = table.get("gpu_layers", "")
    table["gpu"] = layers.isdigit() and int(layers) > 0
    return table


def _build_mode(table: dict[str, Any], label: str, where: str) -> Mode:
    try:
        return Mode.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"{where}: invalid mode {label}: {_describe(exc)}") from None


def parse_config(data: dict[str, Any], source: Path | None = None) -> Configuration:
    """Build a Configuration from decoded TOML data."""
    where = str(source) if source is not None else "<config>"
    fields: dict[str, Any] = {}
    modes: list[Mode] = []
    legacy_dirs: list[str] = []

    for key, value in data.items():
        if key == "modes":
            if not isinstance(value, dict):
                raise ConfigError(f"{where}: 'modes' must be a table of [modes.<id>] tables")
            for mode_id, table in value.items():
                if not isinstance(table, dict):
                    raise ConfigError(f"{where}: modes.{mode_id} must be a table")
                modes.append(_build_mode({**table, "id": mode_id}, f"modes.{mode_id}", where))
        elif _LEGACY_MODE_KEY.match(key):
            if not isinstance(value, str):
                raise ConfigError(f"{where}: {key} must be a string")
            modes.append(_build_mode(parse_legacy_mode(key, value), key, where))
        elif _LEGACY_MODEL_DIR_KEY.match(key):
            legacy_dirs.append(value)
        elif _LEGACY_IGNORED_KEY.match(key):
            logger.debug("Ignoring legacy key %s", key)
        elif key == "source":
            raise ConfigError(f"{where}: unknown key 'source'")
        else:
            fields[key] = value

    if legacy_dirs:
        existing = fields.get("model_directories", [])
        if isinstance(existing, list):
            fields["model_directories"] = [*existing, *legacy_dirs]

    default = fields.get("default_mode")
    if isinstance(default, int) and not isinstance(default, bool):
        # Older files store the default as a 1-based mode number
        if not 1 <= default <= len(modes):
            raise ConfigError(f"{where}: default_mode {default} is out of range")
        fields["default_mode"] = modes[default - 1].id

    try:
        config = Configuration.model_validate({**fields, "modes": modes, "source": source})
    except ValidationError as exc:
        raise ConfigError(f"{where}: {_describe(exc)}") from None

    logger.debug("Loaded %d mode(s) from %s", len(config.modes), where)
    return config


def load_config(path: Path) -> Configuration:
    """Read and validate the configuration file at ``path``."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(
            f"Configuration file not found: {path} (run `query-gguf init` to create one)"
        ) from None
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path} is not valid UTF-8: {exc.reason} at byte {exc.start}") from None

    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from None
    return parse_config(data, source=path)


def write_starter_config(path: Path) -> bool:
    """Write the commented template to ``path``. Returns False if it already exists."""
    if path.exists():
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        (path.parent / "prompts").mkdir(exist_ok=True)
        path.write_text(STARTER_CONFIG, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot write configuration file {path}: {exc}") from exc
    return True
