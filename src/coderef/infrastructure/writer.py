"""Document writes: atomic replacement and numbered backups."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from coderef.errors import FixApplicationError

logger = logging.getLogger(__name__)


def write_atomic(path: Path, text: str) -> None:
    """Replace *path* with *text* so readers see either old or new content.

    Raises
    ------
    FixApplicationError
        When the temporary file cannot be written or moved into place; the
        original document is left untouched.
    """
    path = Path(path)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        msg = f"Failed to write {path}: {exc}"
        raise FixApplicationError(msg) from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        msg = f"Failed to write {path}: {exc}"
        raise FixApplicationError(msg) from exc


def create_backup(path: Path) -> Path:
    """Copy *path* to ``<name>.backup`` (or ``.backup.N`` if taken) and return it.

    Raises
    ------
    FixApplicationError
        When the copy cannot be made.
    """
    path = Path(path)
    backup = path.with_name(f"{path.name}.backup")
    counter = 1
    while backup.exists():
        backup = path.with_name(f"{path.name}.backup.{counter}")
        counter += 1
    try:
        shutil.copy2(path, backup)
    except OSError as exc:
        msg = f"Failed to back up {path}: {exc}"
        raise FixApplicationError(msg) from exc
    logger.info("Backup created: %s", backup)
    return backup


def list_backups(path: Path) -> list[Path]:
    """Return existing backups of *path*, oldest name first."""
    path = Path(path)
    found = [
        p
        for p in path.parent.glob(f"{path.name}.backup*")
        if p.name == f"{path.name}.backup"
        or p.name.removeprefix(f"{path.name}.backup.").isdigit()
    ]
    return sorted(found, key=lambda p: (len(p.name), p.name))


def restore_backup(backup: Path, original: Path) -> None:
    """Copy a backup over the original document."""
    if not backup.is_file():
        msg = f"Backup file not found: {backup}"
        raise FixApplicationError(msg)
    shutil.copy2(backup, original)
