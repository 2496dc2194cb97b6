"""Graph-wide invariant checks over a frozen feature graph.

Every check is read-only and non-fatal: findings are aggregated into a single
:class:`~LangRefKG.FeatureGraph.report.DiagnosticReport`. Endpoint presence is
guaranteed for graphs produced by the builder, but graphs loaded from disk may
have been edited by hand, so it is verified again here.
"""

from __future__ import annotations

from typing import List

from .builder import FeatureGraph
from .errors import (
    MissingEndpointError,
    OrphanFeatureWarning,
    SupersedesOrderWarning,
    UnknownDialectWarning,
)
from .formats import EdgeType
from .logging import get_logger, log_event
from .report import DiagnosticReport
from .versions import is_known_dialect

__all__ = [
    "check_endpoints",
    "check_dialects",
    "check_orphans",
    "check_supersedes_order",
    "validate_references",
]

_LOGGER = get_logger(__name__, stage="validate")


def check_endpoints(graph: FeatureGraph) -> List[MissingEndpointError]:
    findings: List[MissingEndpointError] = []
    for edge in graph.edges:
        missing = tuple(
            endpoint for endpoint in dict.fromkeys((edge.source, edge.target)) if endpoint not in graph
        )
        if missing:
            findings.append(
                MissingEndpointError(
                    edge_type=edge.type.value,
                    source=edge.source,
                    target=edge.target,
                    missing=missing,
                )
            )
    return findings


def check_dialects(graph: FeatureGraph) -> List[UnknownDialectWarning]:
    findings: List[UnknownDialectWarning] = []
    for record, example in graph.iter_examples():
        if is_known_dialect(example.dialect, record.language_family):
            continue
        findings.append(
            UnknownDialectWarning(
                feature_id=record.id,
                dialect=example.dialect,
                family=record.language_family.label,
                location=str(example.source_location),
            )
        )
    return findings


def check_orphans(graph: FeatureGraph) -> List[OrphanFeatureWarning]:
    """Return a warning for every node with no inbound and no outbound edges."""

    return [
        OrphanFeatureWarning(feature_id=node.id, location=str(node.source_location))
        for node in graph.nodes
        if not graph.out_edges(node.id) and not graph.in_edges(node.id)
    ]


def check_supersedes_order(graph: FeatureGraph) -> List[SupersedesOrderWarning]:
    """Flag ``SUPERSEDES`` edges whose source is not newer than its target.

    Only edges within one family are compared; versions of different families
    have no order.
    """

    findings: List[SupersedesOrderWarning] = []
    for edge in graph.edges_of_type(EdgeType.SUPERSEDES):
        source = graph.get(edge.source)
        target = graph.get(edge.target)
        if source is None or target is None:
            continue
        if source.language_family is not target.language_family:
            continue
        if source.introduced > target.introduced:
            continue
        findings.append(
            SupersedesOrderWarning(
                source=source.id,
                target=target.id,
                source_introduced=source.introduced_version,
                target_introduced=target.introduced_version,
            )
        )
    return findings


def validate_references(graph: FeatureGraph) -> DiagnosticReport:
    """Run every reference check against ``graph`` and aggregate the findings."""

    report = DiagnosticReport()
    report.extend(check_endpoints(graph))
    report.extend(check_dialects(graph))
    report.extend(check_orphans(graph))
    report.extend(check_supersedes_order(graph))
    log_event(
        _LOGGER,
        "info",
        "Reference validation complete",
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        errors=len(report.errors),
        warnings=len(report.warnings),
    )
    return report
