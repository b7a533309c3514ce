"""Library data models — installed package manifests and dependency references."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hubstore.errors import UnreadableLibraryError
from hubstore.library.identity import MACHINE_NAME_RE, Identity, format_minor_line

LIBRARY_FILE = "library.json"
SEMANTICS_FILE = "semantics.json"
ICON_FILE = "icon.svg"


@dataclass(frozen=True)
class DependencyRef:
    """A dependency as declared in library.json (machine name + major.minor)."""

    machine_name: str
    major_version: int
    minor_version: int

    @property
    def minor_line(self) -> str:
        return format_minor_line(self.machine_name, self.major_version, self.minor_version)


@dataclass
class LibraryManifest:
    """Parsed library.json of one installed (or extracted) library folder."""

    # Identity
    machine_name: str
    major_version: int
    minor_version: int
    patch_version: int
    runnable: bool = False

    # Metadata, not used by dependency logic
    title: str = ""
    author: str = ""
    license: str = ""

    # Dependencies
    preloaded_dependencies: list[DependencyRef] = field(default_factory=list)
    editor_dependencies: list[DependencyRef] = field(default_factory=list)

    # Source
    folder_name: str = ""
    data: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def identity(self) -> Identity:
        return Identity(
            self.machine_name, self.major_version, self.minor_version, self.patch_version
        )

    @property
    def version(self) -> str:
        return f"{self.major_version}.{self.minor_version}.{self.patch_version}"

    @property
    def minor_line(self) -> str:
        return format_minor_line(self.machine_name, self.major_version, self.minor_version)

    @property
    def uber_name(self) -> str:
        return f"{self.machine_name} {self.version}"

    @property
    def dependencies(self) -> list[DependencyRef]:
        return [*self.preloaded_dependencies, *self.editor_dependencies]

    @classmethod
    def from_dict(cls, data: Any, folder_name: str = "") -> LibraryManifest:
        """Build a manifest from parsed library.json content.

        Only the fields needed to establish identity and dependencies are
        checked; full schema validation is left to external tooling.
        """
        if not isinstance(data, dict):
            raise UnreadableLibraryError(f"{folder_name}: library.json is not an object")

        machine_name = data.get("machineName")
        if not isinstance(machine_name, str) or not MACHINE_NAME_RE.match(machine_name):
            raise UnreadableLibraryError(f"{folder_name}: library.json has no valid machineName")

        return cls(
            machine_name=machine_name,
            major_version=_version_field(data, "majorVersion", folder_name),
            minor_version=_version_field(data, "minorVersion", folder_name),
            patch_version=_version_field(data, "patchVersion", folder_name),
            runnable=data.get("runnable") in (1, True),
            title=data.get("title") or "",
            author=data.get("author") or "",
            license=data.get("license") or "",
            preloaded_dependencies=_dependency_list(data, "preloadedDependencies", folder_name),
            editor_dependencies=_dependency_list(data, "editorDependencies", folder_name),
            folder_name=folder_name,
            data=data,
        )


def _version_field(data: dict, key: str, folder_name: str) -> int:
    value = data.get(key)
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise UnreadableLibraryError(f"{folder_name}: library.json has invalid {key}: {value!r}")
    return value


def _dependency_list(data: dict, key: str, folder_name: str) -> list[DependencyRef]:
    entries = data.get(key) or []
    if not isinstance(entries, list):
        raise UnreadableLibraryError(f"{folder_name}: library.json {key} is not a list")

    refs = []
    for entry in entries:
        if not isinstance(entry, dict) or not isinstance(entry.get("machineName"), str):
            raise UnreadableLibraryError(f"{folder_name}: invalid entry in {key}: {entry!r}")
        if not MACHINE_NAME_RE.match(entry["machineName"]):
            raise UnreadableLibraryError(f"{folder_name}: invalid entry in {key}: {entry!r}")
        refs.append(
            DependencyRef(
                machine_name=entry["machineName"],
                major_version=_version_field(entry, "majorVersion", folder_name),
                minor_version=_version_field(entry, "minorVersion", folder_name),
            )
        )
    return refs
