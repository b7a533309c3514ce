"""Importer — install libraries from an uploaded or local .h5p/.zip archive.

Each import works in its own scratch directory below the temp path:

    temp-<uuid>/source/upload.h5p    the archive as received
    temp-<uuid>/extracted/...        validated extraction

Every top-level folder of the extraction that holds a library.json is then
moved into the libraries directory according to the replacement policy in
``Importer.merge``. The scratch directory is removed whatever happens.
Libraries moved before a later failure stay installed.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import uuid
import zipfile
from pathlib import Path
from typing import BinaryIO, Union

from hubstore.distribution.archive import normalize_permissions, reject_symlinks, safe_extract_zip
from hubstore.errors import HubStoreError, UnsafeSourceError
from hubstore.library.identity import compare_versions, is_newer_patch
from hubstore.library.models import LIBRARY_FILE, LibraryManifest
from hubstore.library.store import LibraryStore, read_library_folder
from hubstore.utils.fs import remove_directory

logger = logging.getLogger(__name__)

ImportSource = Union[bytes, bytearray, memoryview, BinaryIO, str, os.PathLike]


class Importer:
    """Installs libraries from archives into a LibraryStore."""

    SCRATCH_PREFIX = "temp-"
    UPLOAD_NAME = "upload.h5p"

    def __init__(
        self,
        store: LibraryStore,
        temp_path: str | Path,
        allowed_dir: str | Path | None = None,
    ):
        self.store = store
        self.temp_path = Path(temp_path)
        self.temp_path.mkdir(parents=True, exist_ok=True)
        self.allowed_dir = Path(allowed_dir) if allowed_dir else self.temp_path

    def import_archive(self, source: ImportSource) -> bool:
        """Install every library contained in an archive.

        ``source`` is either the archive content (bytes or a binary file
        object) or the path of an archive file inside ``allowed_dir``.
        Returns True only if every step succeeded.
        """
        if not _is_supported_source(source):
            logger.error("Unsupported import source: %s", type(source).__name__)
            return False

        scratch = None
        try:
            scratch = self._create_scratch()
            archive_path = self._materialize(source, scratch / "source")

            extracted = scratch / "extracted"
            safe_extract_zip(archive_path, extracted)
            archive_path.unlink()

            reject_symlinks(extracted)
            normalize_permissions(extracted)

            new_libraries = identity_mapping(extracted)
            if not new_libraries:
                logger.warning("Archive contains no libraries")

            self.store.reload()
            self.merge(extracted, new_libraries, list(self.store.manifests))
            return True
        except (HubStoreError, OSError, zipfile.BadZipFile) as e:
            logger.error("Import failed: %s", e)
            return False
        finally:
            if scratch is not None:
                self._cleanup(scratch)
            self.store.reload()

    def merge(
        self,
        extracted: Path,
        new_libraries: list[LibraryManifest],
        installed: list[LibraryManifest],
    ) -> None:
        """Move extracted library folders into the libraries directory.

        Per library:
        - same version installed: skipped;
        - older patch of the same minor line installed: that folder is removed;
        - an equal or newer version is left in place, but the extracted folder
          is still installed under its own folder name;
        - whatever occupies the destination folder name is replaced.
        """
        for library in new_libraries:
            local = _find_minor_line(installed, library)
            if local is not None:
                if compare_versions(library.version, local.version) == 0:
                    logger.info("%s is already installed, skipping", library.uber_name)
                    continue

                if is_newer_patch(local.version, library.version):
                    logger.info("Replacing %s with %s", local.uber_name, library.uber_name)
                    remove_directory(self.store.folder_path_of(local))

            destination = self.store.base_path / library.folder_name
            if destination.exists() or destination.is_symlink():
                remove_directory(destination)

            os.replace(extracted / library.folder_name, destination)
            logger.info("Installed %s", library.uber_name)

    def _create_scratch(self) -> Path:
        scratch = self.temp_path / f"{self.SCRATCH_PREFIX}{uuid.uuid4()}"
        scratch.mkdir()
        return scratch

    def _materialize(self, source: ImportSource, target_dir: Path) -> Path:
        """Put the archive into the scratch directory and return its path."""
        target_dir.mkdir()
        archive_path = target_dir / self.UPLOAD_NAME

        if isinstance(source, (bytes, bytearray, memoryview)):
            archive_path.write_bytes(bytes(source))
        elif hasattr(source, "read"):
            with archive_path.open("wb") as out:
                shutil.copyfileobj(source, out)
        else:
            self._copy_source_file(Path(source), archive_path)

        return archive_path

    def _copy_source_file(self, path: Path, archive_path: Path) -> None:
        """Copy a local archive after checking where it lives and what it is.

        The file is opened without following links and checked on the open
        descriptor, so it cannot be swapped between check and copy.
        """
        if path.is_symlink():
            raise UnsafeSourceError(f"Refusing to import a symbolic link: {path}")

        resolved = path.resolve(strict=True)
        if not resolved.is_relative_to(self.allowed_dir.resolve()):
            raise UnsafeSourceError(f"Refusing to import from outside {self.allowed_dir}: {path}")

        fd = os.open(resolved, os.O_RDONLY | getattr(os, "O_NOFOLLOW", 0))
        with os.fdopen(fd, "rb") as src:
            if not stat.S_ISREG(os.fstat(src.fileno()).st_mode):
                raise UnsafeSourceError(f"Not a regular file: {path}")
            with archive_path.open("wb") as out:
                shutil.copyfileobj(src, out)

    def _cleanup(self, scratch: Path) -> None:
        try:
            remove_directory(scratch)
        except OSError as e:
            logger.warning("Could not remove scratch directory %s: %s", scratch, e)


def identity_mapping(folder: str | Path) -> list[LibraryManifest]:
    """Manifests of all top-level library folders in ``folder``.

    Unlike LibraryStore.reload, an unreadable library aborts the mapping.
    """
    folder = Path(folder)
    return [
        read_library_folder(item)
        for item in sorted(folder.iterdir())
        if item.is_dir() and (item / LIBRARY_FILE).is_file()
    ]


def _find_minor_line(
    installed: list[LibraryManifest], library: LibraryManifest
) -> LibraryManifest | None:
    for manifest in installed:
        if (
            manifest.machine_name == library.machine_name
            and manifest.major_version == library.major_version
            and manifest.minor_version == library.minor_version
        ):
            return manifest
    return None


def _is_supported_source(source: object) -> bool:
    return isinstance(source, (bytes, bytearray, memoryview, str, os.PathLike)) or hasattr(
        source, "read"
    )
