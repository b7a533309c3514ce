"""Library store — file-based index of installed libraries.

Every subdirectory of the libraries directory that holds a library.json is an
installed library. The store keeps an in-memory snapshot of those manifests
which is only as fresh as the last ``reload()``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from hubstore.errors import MalformedIdentityError, UnreadableLibraryError
from hubstore.library.identity import (
    Identity,
    compare_versions,
    parse_folder_name,
    parse_identity,
)
from hubstore.library.models import ICON_FILE, LIBRARY_FILE, SEMANTICS_FILE, LibraryManifest
from hubstore.utils.fs import remove_directory

logger = logging.getLogger(__name__)


class LibraryStore:
    """Authoritative, refreshable view of all installed libraries."""

    def __init__(self, base_path: str | Path, public_url: str | None = None):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url = public_url.rstrip("/") if public_url else None
        self._manifests: list[LibraryManifest] = []
        self.reload()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Rescan the libraries directory and replace the snapshot.

        Unreadable libraries are skipped with a warning so one broken folder
        does not hide the rest of the store.
        """
        manifests = []
        for folder_name in self.library_folder_names():
            try:
                manifests.append(self.read_manifest(folder_name))
            except UnreadableLibraryError as e:
                logger.warning("Skipping library folder %s: %s", folder_name, e)

        self._manifests = manifests
        logger.debug("Indexed %d libraries in %s", len(manifests), self.base_path)

    def update(self) -> None:
        self.reload()

    @property
    def manifests(self) -> tuple[LibraryManifest, ...]:
        return tuple(self._manifests)

    def library_folder_names(self) -> list[str]:
        """Names of all subdirectories that contain a library.json."""
        return sorted(
            item.name
            for item in self.base_path.iterdir()
            if item.is_dir() and (item / LIBRARY_FILE).is_file()
        )

    def read_manifest(self, folder_name: str) -> LibraryManifest:
        """Read and check the library.json of one folder.

        Raises UnreadableLibraryError if the file is corrupt or the folder
        name does not encode the identity the manifest declares.
        """
        return read_library_folder(self.base_path / folder_name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_exact(
        self, machine_name: str, major: int | str, minor: int | str
    ) -> LibraryManifest | None:
        """Installed library of exactly this minor line, if any."""
        try:
            major, minor = int(major), int(minor)
        except (TypeError, ValueError):
            return None

        for manifest in self._manifests:
            if (
                manifest.machine_name == machine_name
                and manifest.major_version == major
                and manifest.minor_version == minor
            ):
                return manifest
        return None

    def find_latest(self, machine_name: str) -> LibraryManifest | None:
        """Installed library with the highest version for a machine name."""
        latest = None
        for manifest in self._manifests:
            if manifest.machine_name != machine_name:
                continue
            if latest is None or compare_versions(manifest.version, latest.version) > 0:
                latest = manifest
        return latest

    def get(self, uber_name: str, exact: bool = False) -> LibraryManifest | None:
        """Manifest for an uber name, falling back to the latest version.

        With ``exact`` only a matching minor line is returned.
        """
        identity = _parse_or_none(uber_name)
        if identity is None:
            return None

        if identity.has_minor_line:
            manifest = self.find_exact(
                identity.machine_name, identity.major_version, identity.minor_version
            )
            if manifest:
                return manifest

        if exact:
            return None

        return self.find_latest(identity.machine_name)

    def minor_line_for(self, uber_name: str) -> str | None:
        """Normalize an uber name to ``"name major.minor"``.

        Partial identities resolve against the latest installed version.
        """
        identity = _parse_or_none(uber_name)
        if identity is None:
            return None
        if identity.has_minor_line:
            return identity.minor_line

        latest = self.find_latest(identity.machine_name)
        return latest.minor_line if latest else None

    def list_identities(
        self, runnable_only: bool = False, machine_name: str | None = None
    ) -> list[str]:
        """Formatted ``"name major.minor.patch"`` strings in scan order."""
        manifests = self._manifests
        if runnable_only:
            manifests = [m for m in manifests if m.runnable]
        if machine_name:
            manifests = [m for m in manifests if m.machine_name == machine_name]
        return [m.uber_name for m in manifests]

    def machine_names_of_content_types(self) -> list[str]:
        names: list[str] = []
        for manifest in self._manifests:
            if manifest.runnable and manifest.machine_name not in names:
                names.append(manifest.machine_name)
        return names

    def latest_version(self, machine_name: str) -> str | None:
        latest = self.find_latest(machine_name)
        return latest.version if latest else None

    # ------------------------------------------------------------------
    # Paths and files
    # ------------------------------------------------------------------

    def folder_path_for(self, uber_name: str, strict: bool = False) -> Path | None:
        """Folder of the latest installed version of the uber name's machine name.

        The requested major.minor is ignored unless ``strict`` is set, in
        which case a request for any other minor line than the latest one
        resolves to None.
        """
        identity = _parse_or_none(uber_name)
        if identity is None:
            return None

        latest = self.find_latest(identity.machine_name)
        if latest is None:
            return None

        if strict and identity.has_minor_line and (
            identity.major_version != latest.major_version
            or identity.minor_version != latest.minor_version
        ):
            return None

        folder_path = self.folder_path_of(latest)
        return folder_path if folder_path.is_dir() else None

    def folder_path_of(self, manifest: LibraryManifest) -> Path:
        return self.base_path / manifest.folder_name

    def semantics_for(self, uber_name: str) -> Any:
        """Parsed semantics.json of a library, or None if it has none.

        A corrupt semantics.json is logged and treated as absent.
        """
        manifest = self.get(uber_name)
        if manifest is None:
            return None

        path = self.folder_path_of(manifest) / SEMANTICS_FILE
        if not path.is_file():
            return None

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring invalid %s of %s: %s", SEMANTICS_FILE, manifest.folder_name, e)
            return None

    def is_editor_library(self, uber_name: str) -> bool:
        """Editor widgets are non-runnable H5PEditor.* libraries without semantics."""
        if not uber_name.startswith("H5PEditor."):
            return False

        manifest = self.get(uber_name)
        if manifest is None or manifest.runnable:
            return False

        return self.semantics_for(uber_name) is None

    def icon_available(self, machine_name: str) -> bool:
        latest = self.find_latest(machine_name)
        if latest is None:
            return False
        return (self.folder_path_of(latest) / ICON_FILE).is_file()

    def icon_url_for(self, machine_name: str) -> str | None:
        if not self.public_url or not self.icon_available(machine_name):
            return None
        latest = self.find_latest(machine_name)
        return f"{self.public_url}/libraries/{latest.folder_name}/{ICON_FILE}"

    def file_modification_date(self, machine_name: str) -> datetime | None:
        latest = self.find_latest(machine_name)
        if latest is None:
            return None

        folder_path = self.folder_path_of(latest)
        if not folder_path.is_dir():
            return None
        return datetime.fromtimestamp(folder_path.stat().st_mtime, tz=timezone.utc)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def remove(self, folder_name: str) -> bool:
        """Delete the installed folder of the minor line a folder name encodes.

        Returns False if that minor line is not installed.
        """
        identity = parse_folder_name(folder_name)
        manifest = self.find_exact(
            identity.machine_name, identity.major_version, identity.minor_version
        )
        if manifest is None:
            return False

        remove_directory(self.folder_path_of(manifest))
        logger.info("Removed library %s", manifest.uber_name)

        self.reload()
        return True


def read_library_folder(folder_path: str | Path) -> LibraryManifest:
    """Read library.json of a folder and check it against the folder name.

    Used for installed folders as well as freshly extracted ones.
    """
    folder_path = Path(folder_path)
    folder_name = folder_path.name
    path = folder_path / LIBRARY_FILE

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise UnreadableLibraryError(f"{folder_name}: invalid {LIBRARY_FILE}: {e}") from e

    manifest = LibraryManifest.from_dict(data, folder_name)

    try:
        folder_identity = parse_folder_name(folder_name)
    except MalformedIdentityError as e:
        raise UnreadableLibraryError(f"{folder_name}: {e}") from e

    if not _folder_matches(folder_identity, manifest):
        raise UnreadableLibraryError(
            f"{folder_name}: folder name does not match {manifest.uber_name}"
        )

    return manifest


def _folder_matches(folder_identity: Identity, manifest: LibraryManifest) -> bool:
    if folder_identity.machine_name != manifest.machine_name:
        return False
    if (folder_identity.major_version, folder_identity.minor_version) != (
        manifest.major_version,
        manifest.minor_version,
    ):
        return False
    return folder_identity.patch_version in (None, manifest.patch_version)


def _parse_or_none(uber_name: str) -> Identity | None:
    try:
        return parse_identity(uber_name)
    except MalformedIdentityError:
        return None
