"""Exporter — package a library and everything it needs into one .h5p archive."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path

from hubstore.distribution.archive import zip_folder
from hubstore.errors import LibraryNotFoundError
from hubstore.library.identity import parse_identity
from hubstore.library.store import LibraryStore
from hubstore.resolver.dependency_resolver import DependencyResolver
from hubstore.utils.fs import clear_directory

logger = logging.getLogger(__name__)


class Exporter:
    """Builds distributable archives from a LibraryStore."""

    ARCHIVE_SUFFIX = ".h5p"

    def __init__(
        self,
        store: LibraryStore,
        temp_path: str | Path,
        exports_path: str | Path,
        resolver: DependencyResolver | None = None,
    ):
        self.store = store
        self.resolver = resolver or DependencyResolver(store)
        self.temp_path = Path(temp_path)
        self.exports_path = Path(exports_path)
        self.temp_path.mkdir(parents=True, exist_ok=True)
        self.exports_path.mkdir(parents=True, exist_ok=True)

    def export(self, uber_name: str) -> Path:
        """Write ``<machineName>-<major>.<minor>.<patch>.h5p`` for a library.

        The archive holds the folder of the library and of every installed
        library in its dependency closure, each under its own folder name.
        Dependencies that are not installed are left out. Earlier exports of
        the same minor line are deleted.
        """
        target = self.store.get(uber_name)
        if target is None:
            raise LibraryNotFoundError(f"Library not installed: {uber_name}")

        manifests = self.resolver.installed_closure(target.minor_line)

        scratch = self.temp_path / uuid.uuid4().hex
        scratch.mkdir()
        archive_path = self.exports_path / f"{target.machine_name}-{target.version}{self.ARCHIVE_SUFFIX}"

        try:
            for manifest in manifests:
                shutil.copytree(
                    self.store.folder_path_of(manifest),
                    scratch / manifest.folder_name,
                    symlinks=True,
                )

            self.remove(target.minor_line)

            try:
                zip_folder(scratch, archive_path)
            except Exception:
                archive_path.unlink(missing_ok=True)
                raise
        finally:
            clear_directory(scratch)

        logger.info(
            "Exported %s with %d libraries to %s", target.uber_name, len(manifests), archive_path
        )
        return archive_path

    def export_all(self, uber_names: list[str] | None = None) -> list[Path]:
        """Rebuild export files and clean up scratch space afterwards.

        Without ``uber_names`` the exports directory is emptied and every
        installed content type is exported. Otherwise only the latest version
        of each named machine name is re-exported and other exports stay.
        """
        if uber_names:
            machine_names = []
            for uber_name in uber_names:
                machine_name = parse_identity(uber_name).machine_name
                if machine_name not in machine_names:
                    machine_names.append(machine_name)
        else:
            self.clear_exports()
            machine_names = self.store.machine_names_of_content_types()

        try:
            paths = [self.export(machine_name) for machine_name in machine_names]
        finally:
            clear_directory(self.temp_path)

        logger.info("Updated %d export files", len(paths))
        return paths

    def remove(self, uber_name: str) -> list[Path]:
        """Delete all export files of the minor line an uber name refers to."""
        minor_line = self.store.minor_line_for(uber_name)
        if minor_line is None:
            return []

        identity = parse_identity(minor_line)
        prefix = f"{identity.machine_name}-{identity.version}."

        removed = []
        for path in self.exports_path.iterdir():
            if path.is_file() and path.name.startswith(prefix):
                path.unlink()
                removed.append(path)
        return removed

    def export_path_for(self, uber_name: str) -> Path | None:
        """Current export file of a library, if one has been written."""
        manifest = self.store.get(uber_name)
        if manifest is None:
            return None

        path = self.exports_path / f"{manifest.machine_name}-{manifest.version}{self.ARCHIVE_SUFFIX}"
        return path if path.is_file() else None

    def clear_exports(self) -> None:
        clear_directory(self.exports_path)
