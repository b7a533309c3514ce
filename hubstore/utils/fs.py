"""Filesystem helpers for library folders and scratch directories."""

from __future__ import annotations

import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from hubstore.errors import UpdateInProgressError


def remove_directory(path: str | Path) -> None:
    """Remove a directory tree. Missing directories are ignored."""
    path = Path(path)
    if path.is_symlink():
        path.unlink()
        return
    if not path.exists():
        return
    shutil.rmtree(path)


def clear_directory(path: str | Path) -> None:
    """Remove everything inside a directory but keep the directory itself."""
    path = Path(path)
    if not path.is_dir():
        return

    for item in path.iterdir():
        if item.is_dir() and not item.is_symlink():
            shutil.rmtree(item)
        else:
            item.unlink()


@contextmanager
def update_lock(lock_path: str | Path) -> Iterator[Path]:
    """Hold an exclusive lock file while the libraries directory is mutated.

    Raises UpdateInProgressError if the lock file already exists.
    """
    lock_path = Path(lock_path)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as e:
        raise UpdateInProgressError(f"Update already in progress ({lock_path} exists)") from e

    with os.fdopen(fd, "w") as f:
        f.write("updating")

    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)
