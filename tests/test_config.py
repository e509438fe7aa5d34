"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from querygguf.config import (
    Configuration,
    Mode,
    load_config,
    parse_config,
    parse_legacy_mode,
    write_starter_config,
)
from querygguf.errors import ConfigError

LEGACY_LINE = (
    "/models/Llama-3.2-1B-Instruct-Q6_K_L.gguf|prompts/shortcode.txt|temp=0.8|top_k=40"
    "|top_p=0.9|ctx_size=2000|threads=11|gpu_layers=0|interactive_first=true"
    "|llama3.2|small quantized version"
)


@pytest.fixture
def basic_config(write_config):
    return write_config(
        """
        llama_cli_path = "/opt/llama.cpp/llama-cli"
        default_mode = "big"
        new_terminal = true

        [modes.fast]
        model = "models/tiny.gguf"
        description = "quick answers"
        threads = 4

        [modes.big]
        model = "/models/huge.gguf"
        prompt_file = "system.txt"
        gpu = true
        gpu_layers = 20
        temp = 0.3
        """
    )


# --- Loading ---


def test_load_modes_in_file_order(basic_config):
    config = load_config(basic_config)
    assert config.ids == ["fast", "big"]
    assert config.llama_cli_path == "/opt/llama.cpp/llama-cli"
    assert config.new_terminal is True
    assert config.source == basic_config


def test_mode_fields(basic_config):
    config = load_config(basic_config)
    fast = config.get("fast")
    assert fast.threads == 4
    assert fast.gpu is False
    assert fast.description == "quick answers"
    big = config.get("big")
    assert big.gpu is True
    assert big.gpu_layers == 20
    assert big.temp == 0.3
    assert big.top_k == 40  # default


def test_default_mode(basic_config):
    assert load_config(basic_config).default.id == "big"


def test_default_falls_back_to_first_mode(write_config):
    path = write_config(
        """
        [modes.one]
        model = "a.gguf"
        [modes.two]
        model = "b.gguf"
        """
    )
    assert load_config(path).default.id == "one"


def test_get_by_number(basic_config):
    config = load_config(basic_config)
    assert config.get("1").id == "fast"
    assert config.get("2").id == "big"
    assert config.get("3") is None
    assert config.get("0") is None
    assert config.get("nope") is None


def test_relative_paths_resolve_against_config_dir(basic_config, tmp_path):
    config = load_config(basic_config)
    assert config.resolve_model(config.get("fast")) == tmp_path / "models" / "tiny.gguf"
    assert config.resolve_prompt(config.get("big")) == tmp_path / "prompts" / "system.txt"
    assert config.resolve_prompt(config.get("fast")) is None


# --- Errors ---


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.toml")


def test_malformed_toml_reports_line(write_config):
    path = write_config('llama_cli_path = "x"\nthis is not toml\n')
    with pytest.raises(ConfigError, match="line 2"):
        load_config(path)


def test_non_utf8_file(write_config):
    path = write_config("")
    path.write_bytes(b'default_mode = "\xff\xfe"\n')
    with pytest.raises(ConfigError, match="not valid UTF-8"):
        load_config(path)


def test_duplicate_mode_tables(write_config):
    path = write_config(
        """
        [modes.fast]
        model = "a.gguf"

        [modes.fast]
        model = "b.gguf"
        """
    )
    with pytest.raises(ConfigError):
        load_config(path)


def test_duplicate_between_legacy_and_table(write_config):
    path = write_config(
        """
        mode_1 = "a.gguf|p.txt|fast|legacy fast"

        [modes.fast]
        model = "b.gguf"
        """
    )
    with pytest.raises(ConfigError, match="duplicate mode identifier 'fast'"):
        load_config(path)


@pytest.mark.parametrize("mode_id", ["manual", "dir", "Directory"])
def test_reserved_identifier_rejected(write_config, mode_id):
    path = write_config(
        f"""
        [modes.{mode_id}]
        model = "a.gguf"
        """
    )
    with pytest.raises(ConfigError, match="reserved"):
        load_config(path)


def test_unknown_default_mode(write_config):
    path = write_config(
        """
        default_mode = "ghost"
        [modes.fast]
        model = "a.gguf"
        """
    )
    with pytest.raises(ConfigError, match="ghost"):
        load_config(path)


def test_invalid_field_names_mode_and_field(write_config):
    path = write_config(
        """
        [modes.fast]
        model = "a.gguf"
        threads = 0
        """
    )
    with pytest.raises(ConfigError, match=r"modes\.fast.*threads"):
        load_config(path)


def test_unknown_mode_key(write_config):
    path = write_config(
        """
        [modes.fast]
        model = "a.gguf"
        tempo = 0.5
        """
    )
    with pytest.raises(ConfigError, match="tempo"):
        load_config(path)


def test_unknown_global_key(write_config):
    path = write_config('llama_path = "x"\n')
    with pytest.raises(ConfigError, match="llama_path"):
        load_config(path)


def test_modes_must_be_tables():
    with pytest.raises(ConfigError, match="must be a table"):
        parse_config({"modes": {"fast": "a.gguf"}})


# --- Legacy pipe-delimited modes ---


def test_parse_legacy_mode():
    table = parse_legacy_mode("mode_1", LEGACY_LINE)
    assert table["id"] == "llama3.2"
    assert table["description"] == "small quantized version"
    assert table["prompt_file"] == "shortcode.txt"
    assert table["threads"] == "11"
    assert table["gpu"] is False


def test_legacy_gpu_layers_enable_gpu():
    table = parse_legacy_mode("mode_2", "m.gguf|p.txt|gpu_layers=2|v2|gpu try")
    assert table["gpu"] is True
    assert table["gpu_layers"] == "2"


def test_legacy_without_name_uses_key():
    table = parse_legacy_mode("mode_3", "m.gguf|temp=0.5")
    assert table["id"] == "mode_3"
    assert "prompt_file" not in table


def test_legacy_relative_model_is_under_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    config = parse_config(
        {"mode_1": "models/a.gguf|temp=0.8|m|d"},
        source=tmp_path / "query_gguf" / "query_gguf_config.toml",
    )
    assert config.resolve_model(config.get("m")) == tmp_path / "models" / "a.gguf"


def test_legacy_absolute_model_unchanged():
    table = parse_legacy_mode("mode_1", "/models/a.gguf|p.txt|m|d")
    assert table["model"] == "/models/a.gguf"


def test_legacy_too_short():
    with pytest.raises(ConfigError, match="mode_1"):
        parse_legacy_mode("mode_1", "m.gguf")


def test_legacy_file_with_numeric_default():
    config = parse_config(
        {
            "llama_cli_path": "/bin/llama-cli",
            "logging_enabled": True,
            "log_directory_path": "query_gguf/chatlogs",
            "gguf_model_directory_1": "/models",
            "mode_1": LEGACY_LINE,
            "mode_2": "m.gguf|p.txt|gpu_layers=2|v2|gpu try",
            "default_mode": 2,
        }
    )
    assert config.ids == ["llama3.2", "v2"]
    assert config.default.id == "v2"
    assert config.model_directories == ("/models",)
    first = config.get("llama3.2")
    assert first.threads == 11
    assert first.temp == 0.8
    assert first.interactive_first is True


def test_legacy_default_out_of_range():
    with pytest.raises(ConfigError, match="out of range"):
        parse_config({"mode_1": "m.gguf|p.txt|a|b", "default_mode": 3})


# --- Round trip ---


@pytest.mark.parametrize(
    "mode",
    [
        Mode(id="plain", model="a.gguf"),
        Mode(id="fast", model="a.gguf", threads=4, description="quick"),
        Mode(
            id="big",
            model="/m/big.gguf",
            prompt_file="p.txt",
            system_prompt="Be terse.",
            temp=0.2,
            top_k=10,
            top_p=0.5,
            ctx_size=8192,
            gpu=True,
            gpu_layers=20,
            interactive_first=False,
            executable="/opt/llama-cli",
            extra_args=("--mlock", "--color"),
        ),
    ],
)
def test_mode_table_round_trip(mode):
    config = parse_config({"modes": {mode.id: mode.to_table()}})
    assert config.modes == (mode,)


def test_to_table_omits_defaults():
    assert Mode(id="x", model="a.gguf").to_table() == {"model": "a.gguf"}


def test_configuration_is_immutable(basic_config):
    config = load_config(basic_config)
    with pytest.raises(ValidationError):
        config.default_mode = "fast"
    assert isinstance(config, Configuration)


# --- Starter config ---


def test_write_starter_config(tmp_path):
    path = tmp_path / "query_gguf" / "query_gguf_config.toml"
    assert write_starter_config(path) is True
    assert (path.parent / "prompts").is_dir()
    config = load_config(path)
    assert config.default.id == "quick"


def test_write_starter_config_keeps_existing(write_config):
    path = write_config('llama_cli_path = "mine"\n')
    assert write_starter_config(path) is False
    assert 'llama_cli_path = "mine"' in path.read_text()
