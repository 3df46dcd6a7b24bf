"""Configuration for the Funge interpreter."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from dotenv import load_dotenv

if TYPE_CHECKING:
    from .machine import TraceRecord


class FileView(Enum):
    """What ``i`` and ``o`` may touch."""
    REAL = "real"
    DENY = "deny"


class ExecAction(Enum):
    """What ``=`` may run."""
    REAL = "real"
    DENY = "deny"


_TRUE = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """A ``FUNGE_*`` variable holds a value that cannot be used."""


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_choice(name: str, kind: type[Enum], default: Enum) -> Enum:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError:
        choices = ", ".join(c.value for c in kind)
        raise ConfigError(f"{name} must be one of {choices}, got {raw!r}") from None


@dataclass
class Config:
    """Interpreter settings."""

    # Host access
    file_view: FileView = FileView.REAL
    exec_action: ExecAction = ExecAction.REAL

    # Tracing
    trace: bool = False
    trace_hook: Callable[[TraceRecord], None] | None = None

    # Scheduling
    sleep: float = 0.0                # seconds after every executed instruction
    max_ticks: int | None = None      # None = run until the program ends
    seed: int | None = None           # seed for ``?``

    # Strings reported by ``y``; the first is the program's name
    args: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, **overrides) -> Config:
        """Defaults taken from ``FUNGE_*`` variables (and a ``.env`` file)."""
        load_dotenv()
        values = {
            "file_view": _env_choice("FUNGE_FILE_VIEW", FileView, FileView.REAL),
            "exec_action": _env_choice("FUNGE_EXEC", ExecAction, ExecAction.REAL),
            "trace": os.environ.get("FUNGE_TRACE", "").lower() in _TRUE,
            "sleep": (_env_int("FUNGE_SLEEP_MS") or 0) / 1000.0,
            "max_ticks": _env_int("FUNGE_MAX_TICKS"),
            "seed": _env_int("FUNGE_SEED"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
