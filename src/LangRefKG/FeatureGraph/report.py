"""Aggregated diagnostic report shared by extraction, building, and validation.

Every stage appends findings to a :class:`DiagnosticReport` instead of raising,
and the CLI renders the merged report grouped by severity before choosing an
exit code. Reports are plain containers: merging two reports never drops or
reorders diagnostics.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Type, TypeVar

from .errors import Diagnostic, Severity

__all__ = ["DiagnosticReport"]

D = TypeVar("D", bound=Diagnostic)


@dataclass
class DiagnosticReport:
    """Ordered collection of diagnostics with severity helpers."""

    diagnostics: List[Diagnostic] = field(default_factory=list)

    def add(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.diagnostics.extend(diagnostics)

    def merge(self, other: "DiagnosticReport") -> "DiagnosticReport":
        """Append ``other``'s diagnostics and return ``self``."""

        self.diagnostics.extend(other.diagnostics)
        return self

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self.diagnostics)

    def of_type(self, kind: Type[D]) -> List[D]:
        """Return diagnostics that are instances of ``kind``."""

        return [d for d in self.diagnostics if isinstance(d, kind)]

    def by_severity(self) -> Dict[Severity, List[Diagnostic]]:
        """Group diagnostics by severity, errors first, preserving insertion order."""

        grouped: Dict[Severity, List[Diagnostic]] = {}
        for severity in sorted(Severity, key=lambda s: s.rank):
            bucket = [d for d in self.diagnostics if d.severity is severity]
            if bucket:
                grouped[severity] = bucket
        return grouped

    def counts(self) -> Dict[str, int]:
        """Return the number of diagnostics per code."""

        return dict(Counter(d.code for d in self.diagnostics))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "counts": self.counts(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def render_text(self) -> str:
        """Render a human-readable report grouped by severity."""

        lines: List[str] = []
        for severity, bucket in self.by_severity().items():
            lines.append(f"{severity.value.upper()}S ({len(bucket)}):")
            for diagnostic in bucket:
                lines.append(f"  [{diagnostic.code}] {diagnostic.message}")
        lines.append(f"{len(self.errors)} error(s), {len(self.warnings)} warning(s)")
        return "\n".join(lines)

    def render_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)
