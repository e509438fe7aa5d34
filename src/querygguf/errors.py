"""Error kinds surfaced to the user, each with its own exit code."""

from __future__ import annotations


class QueryGGUFError(Exception):
    """Base class for errors that end the run with a message on stderr."""

    exit_code = 1


class ConfigError(QueryGGUFError):
    """Configuration file missing, unreadable, malformed or inconsistent."""

    exit_code = 3


class ModeNotFound(QueryGGUFError):
    """Requested mode identifier does not exist."""

    exit_code = 4

    def __init__(self, identifier: str, available: list[str]) -> None:
        self.identifier = identifier
        self.available = available
        choices = ", ".join(available) if available else "none configured"
        super().__init__(f"Unknown mode {identifier!r}. Available modes: {choices}")


class InvalidModeConfig(QueryGGUFError):
    """Mode lacks a required field or points at a file that does not exist."""

    exit_code = 5


class LaunchFailure(QueryGGUFError):
    """External executable could not be found or spawned."""

    exit_code = 6
