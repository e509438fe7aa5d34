"""Shared test doubles and config fixtures."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest


class ScriptedPrompt:
    """Test double for ConsolePrompt that answers from a fixed script.

    Running out of answers behaves like end of input (empty answer).
    """

    def __init__(self, answers: list[str] | None = None) -> None:
        self.answers = list(answers or [])
        self.asked: list[str] = []
        self.shown: list[object] = []

    def show(self, renderable) -> None:
        self.shown.append(renderable)

    def ask(self, message: str) -> str:
        self.asked.append(message)
        return self.answers.pop(0) if self.answers else ""


class FakeLauncher:
    """Records launch plans instead of spawning processes."""

    def __init__(self, code: int = 0) -> None:
        self.code = code
        self.plans: list = []

    def launch(self, plan) -> int:
        self.plans.append(plan)
        return self.code


@pytest.fixture
def scripted():
    return ScriptedPrompt


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    path = tmp_path / "models" / "tiny.gguf"
    path.parent.mkdir()
    path.write_bytes(b"GGUF")
    return path


@pytest.fixture
def write_config(tmp_path: Path):
    """Write dedented TOML to ``tmp_path/query_gguf_config.toml`` and return the path."""

    def _write(text: str) -> Path:
        path = tmp_path / "query_gguf_config.toml"
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return path

    return _write
