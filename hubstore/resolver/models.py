"""Resolver result models — dependency kinds, findings and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class DependencyKind(Enum):
    """Which dependency edges to follow."""

    MANDATORY = "mandatory"  # Declared in library.json
    OPTIONAL = "optional"  # Discovered in semantics.json
    ALL = "all"


class Severity(Enum):
    ERROR = "error"  # A package cannot run as installed
    WARNING = "warning"  # Works, but should be looked at


@dataclass
class Finding:
    """A single dependency policy finding. Never raised, only reported."""

    severity: Severity
    code: str  # Machine-readable finding code
    message: str
    uber_name: str = ""  # Library the finding is about


@dataclass
class DependencyConflict:
    """A machine name reachable in more than one minor version."""

    machine_name: str
    versions: list[str] = field(default_factory=list)  # "major.minor", ascending


@dataclass
class MissingDependencies:
    """Direct dependencies without an exactly matching installed minor line."""

    mandatory_missing: list[str] = field(default_factory=list)
    optional_missing: list[str] = field(default_factory=list)
    uber_name: str = ""

    @property
    def findings(self) -> list[Finding]:
        findings = [
            Finding(
                severity=Severity.ERROR,
                code="MISSING_MANDATORY_DEPENDENCY",
                message=f"Mandatory dependency {dependency} is not installed",
                uber_name=self.uber_name,
            )
            for dependency in self.mandatory_missing
        ]
        findings.extend(
            Finding(
                severity=Severity.WARNING,
                code="MISSING_OPTIONAL_DEPENDENCY",
                message=f"Optional dependency {dependency} is not installed",
                uber_name=self.uber_name,
            )
            for dependency in self.optional_missing
        )
        return findings


@dataclass
class OutdatedDependency:
    """A dependency pinned to an older minor line than the latest installed."""

    dependency: str
    used_minor: str
    latest_minor: str


@dataclass
class DependencyCheckResult:
    """All dependency findings for one library."""

    uber_name: str
    findings: list[Finding] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not any(f.severity == Severity.ERROR for f in self.findings)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    def summary(self) -> str:
        e = len(self.errors)
        w = len(self.warnings)
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {self.uber_name}: {e} error(s), {w} warning(s)"
