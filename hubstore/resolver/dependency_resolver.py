"""Dependency resolver — direct and transitive dependencies of installed libraries.

Dependencies always resolve at minor-line granularity (``"name major.minor"``);
the patch version only matters when a library is replaced on import. All
queries run against the LibraryStore snapshot, so callers reload the store
after mutating the libraries directory.
"""

from __future__ import annotations

import logging
from functools import cmp_to_key

from hubstore.library.identity import compare_versions, parse_identity
from hubstore.library.models import LibraryManifest
from hubstore.library.semantics import find_dependencies_in_semantics
from hubstore.library.store import LibraryStore
from hubstore.resolver.models import (
    DependencyCheckResult,
    DependencyConflict,
    DependencyKind,
    Finding,
    MissingDependencies,
    OutdatedDependency,
    Severity,
)

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Computes dependency sets and findings for libraries in a store."""

    def __init__(self, store: LibraryStore):
        self.store = store

    def direct_dependencies(
        self, uber_name: str, kind: DependencyKind = DependencyKind.ALL
    ) -> set[str]:
        """Declared dependencies of one library as minor-line uber names.

        Mandatory dependencies include the library's own minor line plus its
        preloaded and editor dependencies. Optional dependencies are the
        uber names offered as options in its semantics.json. A library that
        is not installed has no dependencies.
        """
        minor_line = self.store.minor_line_for(uber_name)
        if minor_line is None:
            return set()

        manifest = self.store.get(minor_line, exact=True)
        if manifest is None:
            return set()

        dependencies: set[str] = set()
        if kind in (DependencyKind.MANDATORY, DependencyKind.ALL):
            dependencies.add(minor_line)
            dependencies.update(ref.minor_line for ref in manifest.dependencies)

        if kind in (DependencyKind.OPTIONAL, DependencyKind.ALL):
            semantics = self.store.semantics_for(minor_line)
            if semantics is not None:
                dependencies.update(find_dependencies_in_semantics(semantics))

        return dependencies

    def transitive_closure(self, uber_name: str) -> set[str]:
        """Every minor line reachable from a library, the library included.

        Worklist traversal over all dependency kinds; each minor line is
        expanded at most once, so dependency cycles terminate.
        """
        root = self.store.minor_line_for(uber_name)
        if root is None:
            return set()

        closure: set[str] = set()
        visited: set[str] = set()
        worklist = [root]

        while worklist:
            current = worklist.pop()
            if current in visited:
                continue
            visited.add(current)

            dependencies = self.direct_dependencies(current, DependencyKind.ALL)
            closure.update(dependencies)
            worklist.extend(d for d in dependencies if d not in visited)

        return closure

    def installed_closure(self, uber_name: str) -> list[LibraryManifest]:
        """Installed libraries needed to ship a library.

        Each closure entry resolves to its exact minor line, or to the latest
        installed version of its machine name. Entries with no installed
        version at all are left out.
        """
        manifests: list[LibraryManifest] = []
        seen: set[str] = set()

        for dependency in sorted(self.transitive_closure(uber_name)):
            manifest = self.store.get(dependency)
            if manifest is None:
                logger.debug("Dependency %s of %s is not installed", dependency, uber_name)
                continue
            if manifest.folder_name in seen:
                continue
            seen.add(manifest.folder_name)
            manifests.append(manifest)

        return manifests

    def detect_conflicts(self, uber_name: str) -> list[DependencyConflict]:
        """Machine names that appear with more than one major.minor in the closure."""
        versions_by_name: dict[str, set[str]] = {}
        for dependency in self.transitive_closure(uber_name):
            identity = parse_identity(dependency)
            versions_by_name.setdefault(identity.machine_name, set()).add(identity.version)

        return [
            DependencyConflict(
                machine_name=machine_name,
                versions=sorted(versions, key=cmp_to_key(compare_versions)),
            )
            for machine_name, versions in sorted(versions_by_name.items())
            if len(versions) > 1
        ]

    def missing_dependencies(self, uber_name: str) -> MissingDependencies:
        """Direct dependencies with no exactly matching installed minor line.

        A dependency declared both in library.json and in semantics.json is
        reported as mandatory only.
        """
        own = self.store.minor_line_for(uber_name)
        mandatory = self.direct_dependencies(uber_name, DependencyKind.MANDATORY) - {own}
        optional = self.direct_dependencies(uber_name, DependencyKind.OPTIONAL) - mandatory - {own}

        return MissingDependencies(
            mandatory_missing=sorted(d for d in mandatory if not self._is_installed(d)),
            optional_missing=sorted(d for d in optional if not self._is_installed(d)),
            uber_name=own or uber_name,
        )

    def outdated_dependency_use(self, uber_name: str) -> list[OutdatedDependency]:
        """Direct dependencies pinned below the latest installed minor line."""
        own = self.store.minor_line_for(uber_name)
        outdated = []

        for dependency in sorted(self.direct_dependencies(uber_name) - {own}):
            identity = parse_identity(dependency)
            latest = self.store.find_latest(identity.machine_name)
            if latest is None:
                continue

            latest_minor = f"{latest.major_version}.{latest.minor_version}"
            if compare_versions(identity.version, latest_minor) < 0:
                outdated.append(
                    OutdatedDependency(
                        dependency=dependency,
                        used_minor=identity.version,
                        latest_minor=latest_minor,
                    )
                )

        return outdated

    def check(self, uber_name: str) -> DependencyCheckResult:
        """Collect conflict, missing and outdated findings for one library."""
        own = self.store.minor_line_for(uber_name) or uber_name
        result = DependencyCheckResult(uber_name=own)

        for conflict in self.detect_conflicts(uber_name):
            result.findings.append(
                Finding(
                    severity=Severity.ERROR,
                    code="DEPENDENCY_CONFLICT",
                    message=(
                        f"{conflict.machine_name} is required in several versions: "
                        f"{', '.join(conflict.versions)}"
                    ),
                    uber_name=own,
                )
            )

        result.findings.extend(self.missing_dependencies(uber_name).findings)

        for item in self.outdated_dependency_use(uber_name):
            result.findings.append(
                Finding(
                    severity=Severity.WARNING,
                    code="OUTDATED_DEPENDENCY",
                    message=(
                        f"Uses {item.dependency}, but version {item.latest_minor} "
                        f"is installed"
                    ),
                    uber_name=own,
                )
            )

        return result

    def _is_installed(self, minor_line: str) -> bool:
        identity = parse_identity(minor_line)
        manifest = self.store.find_exact(
            identity.machine_name, identity.major_version, identity.minor_version
        )
        return manifest is not None
