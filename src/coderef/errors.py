"""Exception hierarchy shared by all coderef domains."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class CodeRefError(Exception):
    """Base class for errors raised by coderef."""


class ConfigError(CodeRefError):
    """Raised when configuration values are missing or invalid."""


class DocumentReadError(CodeRefError):
    """Raised when a markdown document cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class FixApplicationError(CodeRefError):
    """Raised when planned edits cannot be applied to a document."""
