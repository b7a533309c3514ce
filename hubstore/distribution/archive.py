"""Zip handling for library uploads and exports.

Uploads are untrusted: every entry is checked before anything is written,
and the extracted tree is checked again for symbolic links.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import stat
import zipfile
from pathlib import Path

from hubstore.errors import UnsafeArchiveError

logger = logging.getLogger(__name__)

DIRECTORY_MODE = 0o755
FILE_MODE = 0o644

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def safe_extract_zip(archive_path: str | Path, dest: str | Path) -> list[Path]:
    """Extract a zip archive into ``dest``.

    All entries are validated first; a single entry that would land outside
    ``dest`` or that is stored as a symbolic link aborts the extraction
    before any file is written. Returns the written file paths.
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    base = dest.resolve()

    with zipfile.ZipFile(archive_path, "r") as zf:
        targets = [(info, _entry_target(info, base)) for info in zf.infolist()]

        written = []
        for info, target in targets:
            if target is None:
                continue

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue

            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info, "r") as src, target.open("wb") as out:
                shutil.copyfileobj(src, out)
            written.append(target)

    return written


def reject_symlinks(root: str | Path) -> None:
    """Raise UnsafeArchiveError if anything below ``root`` is a symbolic link."""
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = os.path.join(dirpath, name)
            if os.path.islink(path):
                raise UnsafeArchiveError(f"Symbolic link in archive: {os.path.relpath(path, root)}")


def normalize_permissions(root: str | Path) -> None:
    """Directories become rwxr-xr-x, files rw-r--r--."""
    os.chmod(root, DIRECTORY_MODE)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            os.chmod(os.path.join(dirpath, name), DIRECTORY_MODE)
        for name in filenames:
            os.chmod(os.path.join(dirpath, name), FILE_MODE)


def zip_folder(folder: str | Path, zip_path: str | Path) -> Path:
    """Write every file below ``folder`` into a zip, paths relative to ``folder``."""
    folder = Path(folder)
    zip_path = Path(zip_path)
    zip_path.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for dirpath, dirnames, filenames in os.walk(folder):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path.is_symlink():
                    logger.warning("Not packing symbolic link %s", path)
                    continue
                zf.write(path, path.relative_to(folder).as_posix())

    return zip_path


def _entry_target(info: zipfile.ZipInfo, base: Path) -> Path | None:
    name = info.filename.replace("\\", "/")
    if not name or name in ("/", "./"):
        return None

    if name.startswith("/") or _DRIVE_RE.match(name):
        raise UnsafeArchiveError(f"Archive contains an absolute path entry: {info.filename!r}")

    mode = info.external_attr >> 16
    if stat.S_ISLNK(mode):
        raise UnsafeArchiveError(f"Archive contains a symbolic link: {info.filename!r}")

    target = (base / name).resolve()
    if target == base:
        return None
    if not target.is_relative_to(base):
        raise UnsafeArchiveError(f"Archive entry escapes the extraction directory: {info.filename!r}")

    return target
