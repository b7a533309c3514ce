"""Identity codec — parse and format library identities, compare versions.

An identity is a machine name plus up to three version components. Uber names
look like ``"H5P.Example 1.2"`` or ``"H5P.Example 1.2.3"``; folder names look
like ``"H5P.Example-1.2"`` or ``"H5P.Example-1.2.3"``. Missing version parts
stay ``None`` so callers can tell a partial identity from ``0``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from hubstore.errors import MalformedIdentityError

MACHINE_NAME_RE = re.compile(r"^[\w.-]{1,255}\Z")
VERSION_PART_RE = re.compile(r"^[0-9]+\Z")


@dataclass(frozen=True)
class Identity:
    """A (possibly partial) library identity."""

    machine_name: str
    major_version: int | None = None
    minor_version: int | None = None
    patch_version: int | None = None

    @property
    def has_minor_line(self) -> bool:
        return self.major_version is not None and self.minor_version is not None

    @property
    def version(self) -> str:
        parts = [self.major_version, self.minor_version, self.patch_version]
        present = []
        for part in parts:
            if part is None:
                break
            present.append(str(part))
        return ".".join(present)

    @property
    def minor_line(self) -> str | None:
        if not self.has_minor_line:
            return None
        return format_minor_line(self.machine_name, self.major_version, self.minor_version)

    @property
    def uber_name(self) -> str:
        if not self.version:
            return self.machine_name
        return f"{self.machine_name} {self.version}"

    def folder_name(self, with_patch: bool = False) -> str | None:
        if not self.has_minor_line:
            return None
        name = f"{self.machine_name}-{self.major_version}.{self.minor_version}"
        if with_patch and self.patch_version is not None:
            name = f"{name}.{self.patch_version}"
        return name

    def __str__(self) -> str:
        return self.uber_name


def parse_identity(text: str) -> Identity:
    """Parse an uber name such as ``"H5P.Example 1.2.3"``.

    Splits on the first space. The version part may be absent or carry one to
    three numeric components.
    """
    if not text or not text.strip():
        raise MalformedIdentityError("Empty identity")

    machine_name, _, version = text.strip().partition(" ")
    return _build_identity(machine_name, version.strip(), text)


def parse_folder_name(name: str) -> Identity:
    """Parse a library folder name such as ``"H5P.Example-1.2"``.

    Splits on the last dash, so machine names may themselves contain dashes.
    """
    machine_name, sep, version = (name or "").rpartition("-")
    if not sep:
        raise MalformedIdentityError(f"Folder name carries no version: {name!r}")
    return _build_identity(machine_name, version, name)


def format_minor_line(machine_name: str, major: int | str, minor: int | str) -> str:
    return f"{machine_name} {major}.{minor}"


def compare_versions(a: str, b: str) -> int:
    """Compare dotted versions numerically; missing components count as 0.

    Returns 1 if ``a`` is newer, -1 if ``b`` is newer, 0 if equal.
    """
    a_parts = _version_parts(a)
    b_parts = _version_parts(b)

    for i in range(max(len(a_parts), len(b_parts))):
        part_a = a_parts[i] if i < len(a_parts) else 0
        part_b = b_parts[i] if i < len(b_parts) else 0
        if part_a > part_b:
            return 1
        if part_a < part_b:
            return -1

    return 0


def is_newer_patch(old: str, candidate: str) -> bool:
    """True if ``candidate`` is a later patch of the same major.minor as ``old``."""
    old_parts = _version_parts(old) + [0, 0, 0]
    candidate_parts = _version_parts(candidate) + [0, 0, 0]

    if candidate_parts[:2] != old_parts[:2]:
        return False

    return candidate_parts[2] > old_parts[2]


def _version_parts(version: str) -> list[int]:
    if not version:
        return []
    try:
        return [int(part) for part in str(version).split(".")]
    except ValueError as e:
        raise MalformedIdentityError(f"Invalid version: {version!r}") from e


def _build_identity(machine_name: str, version: str, original: str) -> Identity:
    if not MACHINE_NAME_RE.match(machine_name):
        raise MalformedIdentityError(f"Invalid machine name in {original!r}")

    if not version:
        return Identity(machine_name)

    parts = version.split(".")
    if len(parts) > 3 or not all(VERSION_PART_RE.match(part) for part in parts):
        raise MalformedIdentityError(f"Invalid version in {original!r}")

    numbers = [int(part) for part in parts] + [None, None, None]
    return Identity(machine_name, numbers[0], numbers[1], numbers[2])
