"""
Loader — source files into program space.

The source is read as UTF-8 (a leading byte-order mark is dropped); a file
that is not valid UTF-8 is read one character per byte instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .space import ProgramSpace

logger = logging.getLogger(__name__)


class FungeError(Exception):
    """Base class for interpreter errors."""


class ProgramLoadError(FungeError):
    """The program source could not be read."""


def decode_source(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("source is not valid UTF-8, reading it as Latin-1")
        return data.decode("latin-1")


def load(source: str | bytes) -> ProgramSpace:
    """Program space holding ``source`` with its first character at the origin."""
    text = decode_source(source) if isinstance(source, bytes) else source
    space = ProgramSpace.from_text(text)
    logger.debug("loaded %d cells, bounds %s", len(space), space.bounds)
    return space


def read_source(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ProgramLoadError(f"cannot read {path}: {e.strerror or e}") from e


def load_file(path: str | Path) -> ProgramSpace:
    return load(read_source(path))
