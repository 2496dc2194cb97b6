# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.errors",
#   "purpose": "Exception hierarchy and aggregated diagnostic taxonomy for the feature graph",
#   "sections": [
#     {"id": "exceptions", "name": "Exceptions", "anchor": "EXC", "kind": "api"},
#     {"id": "severity", "name": "Severity", "anchor": "SEV", "kind": "api"},
#     {"id": "errors", "name": "Error Diagnostics", "anchor": "ERR", "kind": "api"},
#     {"id": "warnings", "name": "Warning Diagnostics", "anchor": "WRN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy and diagnostic taxonomy shared by every graph stage.

Two kinds of failure exist. Exceptions are raised only when an operation is
structurally undefined: an unreadable graph file, a version string naming no
standard, or a resolve query whose ``REQUIRES`` closure runs through a cycle.
Everything else found while extracting, building, or validating is a
*diagnostic*: an immutable record collected into a
:class:`~LangRefKG.FeatureGraph.report.DiagnosticReport` so that a single run
surfaces every problem instead of stopping at the first one.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Sequence, Tuple

__all__ = [
    "FeatureGraphError",
    "VersionParseError",
    "MarkdownSyntaxError",
    "GraphFormatError",
    "CyclicRequirementError",
    "BackendUnavailable",
    "Severity",
    "Diagnostic",
    "ParseError",
    "DuplicateFeatureError",
    "DanglingReferenceError",
    "CyclicRequirement",
    "MissingEndpointError",
    "ExampleSyntaxError",
    "VersionOrderViolation",
    "UnknownDialectWarning",
    "OrphanFeatureWarning",
    "SupersedesOrderWarning",
    "TimeoutDiagnostic",
    "BackendUnavailableWarning",
]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FeatureGraphError(RuntimeError):
    """Base exception for feature graph failures."""


class VersionParseError(FeatureGraphError, ValueError):
    """Raised when text does not name a known family or standard version."""


class MarkdownSyntaxError(FeatureGraphError):
    """Raised when a document cannot be tokenized at all."""

    def __init__(self, reason: str, *, line: Optional[int] = None) -> None:
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"{reason}{location}")
        self.reason = reason
        self.line = line


class GraphFormatError(FeatureGraphError):
    """Raised when a persisted graph is unreadable or uses an unsupported schema."""


class CyclicRequirementError(FeatureGraphError):
    """Raised when a resolve query reaches a ``REQUIRES`` cycle."""

    def __init__(self, cycles: Sequence["CyclicRequirement"]) -> None:
        self.cycles: Tuple[CyclicRequirement, ...] = tuple(cycles)
        rendered = "; ".join(cycle.message for cycle in self.cycles)
        super().__init__(rendered or "cyclic requirement")


class BackendUnavailable(FeatureGraphError):
    """Raised by a syntax-check backend whose toolchain cannot be launched."""

    def __init__(self, dialect: str, reason: str) -> None:
        super().__init__(f"{dialect}: {reason}")
        self.dialect = dialect
        self.reason = reason


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """Diagnostic severities, most severe first."""

    ERROR = "error"
    WARNING = "warning"

    @property
    def rank(self) -> int:
        return 0 if self is Severity.ERROR else 1


@dataclass(frozen=True)
class Diagnostic:
    """Base class for aggregated, non-raising findings."""

    code: ClassVar[str] = "DIAGNOSTIC"
    severity: ClassVar[Severity] = Severity.ERROR

    @property
    def message(self) -> str:  # pragma: no cover - overridden by subclasses
        return self.code

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly mapping including ``code`` and ``severity``."""

        payload: Dict[str, Any] = {
            "code": self.code,
            "severity": self.severity.value,
            "message": self.message,
        }
        for field_def in fields(self):
            value = getattr(self, field_def.name)
            payload[field_def.name] = list(value) if isinstance(value, tuple) else value
        return payload


@dataclass(frozen=True)
class ParseError(Diagnostic):
    """A document (or one heading of it) that could not be parsed."""

    code: ClassVar[str] = "PARSE_ERROR"

    path: str
    reason: str
    line: Optional[int] = None

    @property
    def message(self) -> str:
        where = f"{self.path}:{self.line}" if self.line is not None else self.path
        return f"{where}: {self.reason}"


@dataclass(frozen=True)
class DuplicateFeatureError(Diagnostic):
    """Several drafts produced the same feature id; all of them were excluded."""

    code: ClassVar[str] = "DUPLICATE_FEATURE"

    feature_id: str
    locations: Tuple[str, ...]

    @property
    def message(self) -> str:
        return f"duplicate feature id {self.feature_id!r} defined at {', '.join(self.locations)}"


@dataclass(frozen=True)
class DanglingReferenceError(Diagnostic):
    """A link whose target does not resolve to a feature in the frozen node set."""

    code: ClassVar[str] = "DANGLING_REFERENCE"

    source_id: str
    path: str
    anchor: str
    reason: str = "unresolved"
    location: Optional[str] = None

    @property
    def target(self) -> str:
        return f"{self.path}#{self.anchor}" if self.anchor else self.path

    @property
    def message(self) -> str:
        where = f" ({self.location})" if self.location else ""
        if self.reason == "duplicate":
            return f"{self.source_id} links to {self.target}, which names an excluded duplicate{where}"
        if self.reason == "duplicate-source":
            return f"link to {self.target} dropped: source {self.source_id} is an excluded duplicate{where}"
        if self.reason == "ambiguous":
            return f"{self.source_id} links to {self.target}, which names several features{where}"
        return f"{self.source_id} links to unknown target {self.target}{where}"


@dataclass(frozen=True)
class CyclicRequirement(Diagnostic):
    """A ``REQUIRES`` cycle reachable from a resolve query's candidates."""

    code: ClassVar[str] = "CYCLIC_REQUIREMENT"

    cycle: Tuple[str, ...]

    @property
    def message(self) -> str:
        if not self.cycle:
            return "cyclic requirement"
        return "cyclic requirement: " + " -> ".join(self.cycle + self.cycle[:1])


@dataclass(frozen=True)
class MissingEndpointError(Diagnostic):
    """An edge of a frozen graph whose source or target is absent."""

    code: ClassVar[str] = "MISSING_ENDPOINT"

    edge_type: str
    source: str
    target: str
    missing: Tuple[str, ...]

    @property
    def message(self) -> str:
        return (
            f"{self.edge_type} edge {self.source} -> {self.target} references "
            f"missing node(s): {', '.join(self.missing)}"
        )


@dataclass(frozen=True)
class ExampleSyntaxError(Diagnostic):
    """A code example rejected by its dialect's syntax checker."""

    code: ClassVar[str] = "EXAMPLE_SYNTAX"

    feature_id: str
    dialect: str
    location: str
    detail: str

    @property
    def message(self) -> str:
        return f"{self.location} [{self.dialect}] example of {self.feature_id}: {self.detail}"


@dataclass(frozen=True)
class VersionOrderViolation(Diagnostic):
    """A ``REQUIRES`` edge pulled in a feature its version filter excluded."""

    code: ClassVar[str] = "VERSION_ORDER"
    severity: ClassVar[Severity] = Severity.WARNING

    source: str
    target: str
    version: str
    target_introduced: str
    target_deprecated: Optional[str] = None

    @property
    def message(self) -> str:
        span = self.target_introduced
        if self.target_deprecated:
            span += f", deprecated {self.target_deprecated}"
        return (
            f"{self.source} requires {self.target} ({span}), "
            f"which is not available at {self.version}"
        )


@dataclass(frozen=True)
class UnknownDialectWarning(Diagnostic):
    """A code example tagged with a dialect its record's family does not know."""

    code: ClassVar[str] = "UNKNOWN_DIALECT"
    severity: ClassVar[Severity] = Severity.WARNING

    feature_id: str
    dialect: str
    family: str
    location: str

    @property
    def message(self) -> str:
        return (
            f"{self.location}: example of {self.feature_id} uses dialect "
            f"{self.dialect!r}, unknown for family {self.family}"
        )


@dataclass(frozen=True)
class OrphanFeatureWarning(Diagnostic):
    """A feature with neither inbound nor outbound edges."""

    code: ClassVar[str] = "ORPHAN_FEATURE"
    severity: ClassVar[Severity] = Severity.WARNING

    feature_id: str
    location: Optional[str] = None

    @property
    def message(self) -> str:
        where = f" ({self.location})" if self.location else ""
        return f"{self.feature_id} has no inbound or outbound links{where}"


@dataclass(frozen=True)
class SupersedesOrderWarning(Diagnostic):
    """A ``SUPERSEDES`` edge whose source is not newer than its target."""

    code: ClassVar[str] = "SUPERSEDES_ORDER"
    severity: ClassVar[Severity] = Severity.WARNING

    source: str
    target: str
    source_introduced: str
    target_introduced: str

    @property
    def message(self) -> str:
        return (
            f"{self.source} ({self.source_introduced}) supersedes {self.target} "
            f"({self.target_introduced}) but is not newer"
        )


@dataclass(frozen=True)
class TimeoutDiagnostic(Diagnostic):
    """A syntax check that exceeded its time limit."""

    code: ClassVar[str] = "EXAMPLE_TIMEOUT"
    severity: ClassVar[Severity] = Severity.WARNING

    feature_id: str
    dialect: str
    location: str
    timeout_s: float

    @property
    def message(self) -> str:
        return (
            f"{self.location} [{self.dialect}] example of {self.feature_id} "
            f"timed out after {self.timeout_s:g}s"
        )


@dataclass(frozen=True)
class BackendUnavailableWarning(Diagnostic):
    """A dialect whose syntax-check toolchain could not be launched."""

    code: ClassVar[str] = "BACKEND_UNAVAILABLE"
    severity: ClassVar[Severity] = Severity.WARNING

    dialect: str
    reason: str
    skipped: int = 0

    @property
    def message(self) -> str:
        return f"no syntax checker for {self.dialect}: {self.reason} ({self.skipped} example(s) skipped)"
