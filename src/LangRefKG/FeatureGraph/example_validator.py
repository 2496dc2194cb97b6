# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.example_validator",
#   "purpose": "Dispatch code examples of a frozen graph to per-dialect syntax-check pools.",
#   "sections": [
#     {"id": "examplestatus", "name": "ExampleStatus", "anchor": "class-examplestatus", "kind": "class"},
#     {"id": "exampleoutcome", "name": "ExampleOutcome", "anchor": "class-exampleoutcome", "kind": "class"},
#     {"id": "examplevalidationresult", "name": "ExampleValidationResult", "anchor": "class-examplevalidationresult", "kind": "class"},
#     {"id": "validate-examples", "name": "validate_examples", "anchor": "function-validate-examples", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Syntax-check every code example of a frozen graph.

Examples are grouped by dialect and each dialect gets its own bounded worker
pool, so a slow or missing toolchain for one dialect never holds up another.
Every example receives exactly one :class:`ExampleOutcome`. Failures become
:class:`~LangRefKG.FeatureGraph.errors.ExampleSyntaxError` diagnostics with the
compiler's line mapped back into the source document, timeouts become
:class:`~LangRefKG.FeatureGraph.errors.TimeoutDiagnostic`, and a toolchain that
cannot be launched is reported once per dialect.
"""

from __future__ import annotations

import threading
from collections import Counter
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from LangRefKG.concurrency import create_executor

from .backends import SyntaxBackend, SyntaxCheckCancelled, SyntaxCheckTimeout
from .builder import FeatureGraph
from .cancellation import CancellationToken
from .errors import (
    BackendUnavailable,
    BackendUnavailableWarning,
    Diagnostic,
    ExampleSyntaxError,
    TimeoutDiagnostic,
)
from .formats import CodeExample, FeatureRecord
from .logging import get_logger, log_event
from .report import DiagnosticReport
from .versions import dialect_family, normalize_dialect

__all__ = [
    "ExampleStatus",
    "ExampleOutcome",
    "ExampleValidationResult",
    "validate_examples",
]

_LOGGER = get_logger(__name__, stage="examples")


class ExampleStatus(str, Enum):
    """Final state of one example's syntax check."""

    PASSED = "passed"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExampleOutcome:
    """Per-example pass/fail record."""

    feature_id: str
    dialect: str
    location: str
    status: ExampleStatus
    detail: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "featureId": self.feature_id,
            "dialect": self.dialect,
            "location": self.location,
            "status": self.status.value,
            "detail": self.detail,
        }


@dataclass
class ExampleValidationResult:
    outcomes: List[ExampleOutcome] = field(default_factory=list)
    report: DiagnosticReport = field(default_factory=DiagnosticReport)

    def counts(self) -> Dict[str, int]:
        tally = Counter(outcome.status.value for outcome in self.outcomes)
        return {status.value: tally.get(status.value, 0) for status in ExampleStatus}


@dataclass
class _DialectState:
    """Per-dialect bookkeeping shared by that dialect's workers."""

    dialect: str
    lock: threading.Lock = field(default_factory=threading.Lock)
    unavailable: Optional[str] = None
    skipped: int = 0

    def mark_unavailable(self, reason: str) -> None:
        with self.lock:
            if self.unavailable is None:
                self.unavailable = reason
            self.skipped += 1

    def skip_if_unavailable(self) -> Optional[str]:
        with self.lock:
            if self.unavailable is not None:
                self.skipped += 1
            return self.unavailable


_Task = Tuple[FeatureRecord, CodeExample]


def _check_one(
    record: FeatureRecord,
    example: CodeExample,
    backend: SyntaxBackend,
    state: _DialectState,
    *,
    timeout_s: float,
    token: CancellationToken,
) -> Tuple[ExampleOutcome, Optional[Diagnostic]]:
    """Run one check and return its outcome plus an optional diagnostic."""

    location = str(example.source_location)

    def outcome(status: ExampleStatus, detail: str = "") -> ExampleOutcome:
        return ExampleOutcome(
            feature_id=record.id,
            dialect=example.dialect,
            location=location,
            status=status,
            detail=detail,
        )

    if token.is_cancelled():
        return outcome(ExampleStatus.CANCELLED, "cancelled before start"), None
    reason = state.skip_if_unavailable()
    if reason is not None:
        return outcome(ExampleStatus.SKIPPED, reason), None

    try:
        result = backend.check_syntax(example.dialect, example.source, timeout=timeout_s, token=token)
    except BackendUnavailable as exc:
        state.mark_unavailable(exc.reason)
        return outcome(ExampleStatus.SKIPPED, exc.reason), None
    except SyntaxCheckTimeout:
        diagnostic = TimeoutDiagnostic(
            feature_id=record.id,
            dialect=example.dialect,
            location=location,
            timeout_s=timeout_s,
        )
        return outcome(ExampleStatus.TIMEOUT, f"timed out after {timeout_s:g}s"), diagnostic
    except SyntaxCheckCancelled:
        return outcome(ExampleStatus.CANCELLED, "cancelled"), None

    if result.ok:
        return outcome(ExampleStatus.PASSED), None

    error = result.first_error
    error_location = location
    if error is not None and error.line is not None:
        document_line = example.source_location.line_start + error.line - 1
        error_location = f"{example.source_location.path}:{document_line}"
    detail = result.detail or (error.text if error is not None else "syntax check failed")
    diagnostic = ExampleSyntaxError(
        feature_id=record.id,
        dialect=example.dialect,
        location=error_location,
        detail=detail,
    )
    return outcome(ExampleStatus.FAILED, detail), diagnostic


def validate_examples(
    graph: FeatureGraph,
    backend: SyntaxBackend,
    *,
    dialects: Optional[Iterable[str]] = None,
    timeout_s: float = 10.0,
    workers: int = 2,
    token: Optional[CancellationToken] = None,
    on_outcome: Optional[Callable[[ExampleOutcome], None]] = None,
) -> ExampleValidationResult:
    """Syntax-check the examples of ``graph`` through ``backend``.

    Args:
        graph: Frozen graph whose examples are checked.
        backend: Syntax-check capability, usually a
            :class:`~LangRefKG.FeatureGraph.backends.CompilerBackend`.
        dialects: Only check examples of these dialects (normalised first).
        timeout_s: Per-example deadline handed to the backend.
        workers: Pool size for each dialect.
        token: Shared cancellation token; a fresh one is used when omitted.
        on_outcome: Called with each outcome as it is collected.

    Returns:
        ExampleValidationResult: Outcomes in graph order plus the diagnostics.
    """

    token = token or CancellationToken()
    wanted = {normalize_dialect(d) for d in dialects} if dialects is not None else None

    grouped: Dict[str, List[Tuple[int, _Task]]] = {}
    unknown: List[Tuple[int, _Task]] = []
    total = 0
    for index, (record, example) in enumerate(graph.iter_examples()):
        if wanted is not None and example.dialect not in wanted:
            continue
        total += 1
        if dialect_family(example.dialect) is None:
            unknown.append((index, (record, example)))
            continue
        grouped.setdefault(example.dialect, []).append((index, (record, example)))

    collected: Dict[int, Tuple[ExampleOutcome, Optional[Diagnostic]]] = {}
    for index, (record, example) in unknown:
        collected[index] = (
            ExampleOutcome(
                feature_id=record.id,
                dialect=example.dialect,
                location=str(example.source_location),
                status=ExampleStatus.SKIPPED,
                detail="unknown dialect",
            ),
            None,
        )

    states = {dialect: _DialectState(dialect) for dialect in grouped}
    pools = []
    pending: List[Tuple[int, Future]] = []
    try:
        for dialect in sorted(grouped):
            executor, needs_shutdown = create_executor(
                "io", min(workers, len(grouped[dialect])), thread_name_prefix=f"langrefkg-{dialect}"
            )
            for index, (record, example) in grouped[dialect]:
                kwargs = dict(timeout_s=timeout_s, token=token)
                if executor is None:
                    collected[index] = _check_one(record, example, backend, states[dialect], **kwargs)
                else:
                    pending.append(
                        (index, executor.submit(_check_one, record, example, backend, states[dialect], **kwargs))
                    )
            if needs_shutdown:
                pools.append(executor)
        for index, future in pending:
            collected[index] = future.result()
    except KeyboardInterrupt:
        # Running checks kill their compilers; queued ones finish as cancelled.
        token.cancel()
        raise
    finally:
        for executor in pools:
            executor.shutdown(wait=True)

    result = ExampleValidationResult()
    for index in sorted(collected):
        outcome, diagnostic = collected[index]
        result.outcomes.append(outcome)
        if diagnostic is not None:
            result.report.add(diagnostic)
        if on_outcome is not None:
            on_outcome(outcome)

    for dialect in sorted(states):
        state = states[dialect]
        if state.unavailable is None:
            continue
        result.report.add(
            BackendUnavailableWarning(dialect=dialect, reason=state.unavailable, skipped=state.skipped)
        )
        log_event(
            _LOGGER,
            "warning",
            "Syntax checker unavailable",
            dialect=dialect,
            reason=state.unavailable,
            skipped=state.skipped,
        )

    log_event(_LOGGER, "info", "Example validation complete", examples=total, **result.counts())
    return result
