# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.builder",
#   "purpose": "Resolve extracted link references into typed edges and freeze the feature graph.",
#   "sections": [
#     {"id": "featuregraph", "name": "FeatureGraph", "anchor": "class-featuregraph", "kind": "class"},
#     {"id": "anchortable", "name": "AnchorTable", "anchor": "class-anchortable", "kind": "class"},
#     {"id": "buildresult", "name": "BuildResult", "anchor": "class-buildresult", "kind": "class"},
#     {"id": "compute-generation", "name": "compute_generation", "anchor": "function-compute-generation", "kind": "function"},
#     {"id": "resolve-links", "name": "resolve_links", "anchor": "function-resolve-links", "kind": "function"},
#     {"id": "build-graph", "name": "build_graph", "anchor": "function-build-graph", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Resolve extracted link references into edges and freeze the feature graph.

The builder is the synchronisation point of a run: it needs every draft from
every document before any ``(path, anchor)`` key can be resolved. It runs
single-threaded and produces a :class:`FeatureGraph` that is never mutated
afterwards. Problems found on the way (duplicate ids, links to nothing) are
recorded in the returned report; the graph is always produced, and every edge
it holds has both endpoints in its node set.
"""

from __future__ import annotations

import hashlib
import json
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import DanglingReferenceError, DuplicateFeatureError
from .formats import SCHEMA_VERSION, CodeExample, Edge, EdgeType, FeatureRecord, LinkReference
from .logging import get_logger, log_event
from .report import DiagnosticReport

__all__ = [
    "FeatureGraph",
    "AnchorTable",
    "BuildResult",
    "compute_generation",
    "resolve_links",
    "build_graph",
]

_LOGGER = get_logger(__name__, stage="build")

AnchorKey = Tuple[str, str]


def compute_generation(nodes: Sequence[FeatureRecord], edges: Sequence[Edge]) -> str:
    """Return the content hash identifying a graph built from ``nodes`` and ``edges``.

    The hash covers the canonical JSON form (sorted keys, camelCase aliases), so
    two builds from byte-identical input share a generation.
    """

    payload = {
        "schemaVersion": SCHEMA_VERSION,
        "nodes": [node.model_dump(mode="json", by_alias=True) for node in nodes],
        "edges": [edge.model_dump(mode="json", by_alias=True) for edge in edges],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FeatureGraph:
    """Immutable node arena plus typed edge list addressed by feature id.

    Build one with :meth:`from_parts`, which orders nodes by id and edges by
    ``(source, type, target)`` and computes the generation hash.
    """

    nodes: Tuple[FeatureRecord, ...]
    edges: Tuple[Edge, ...]
    generation: str
    _by_id: Mapping[str, FeatureRecord] = field(init=False, repr=False, compare=False)
    _outgoing: Mapping[str, Tuple[Edge, ...]] = field(init=False, repr=False, compare=False)
    _incoming: Mapping[str, Tuple[Edge, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        outgoing: Dict[str, List[Edge]] = defaultdict(list)
        incoming: Dict[str, List[Edge]] = defaultdict(list)
        for edge in self.edges:
            outgoing[edge.source].append(edge)
            incoming[edge.target].append(edge)
        object.__setattr__(
            self, "_by_id", MappingProxyType({node.id: node for node in self.nodes})
        )
        object.__setattr__(
            self, "_outgoing", MappingProxyType({k: tuple(v) for k, v in outgoing.items()})
        )
        object.__setattr__(
            self, "_incoming", MappingProxyType({k: tuple(v) for k, v in incoming.items()})
        )

    @classmethod
    def from_parts(
        cls,
        nodes: Iterable[FeatureRecord],
        edges: Iterable[Edge],
        generation: Optional[str] = None,
    ) -> "FeatureGraph":
        ordered_nodes = tuple(sorted(nodes, key=lambda node: node.id))
        ordered_edges = tuple(sorted(set(edges), key=lambda edge: edge.sort_key))
        if generation is None:
            generation = compute_generation(ordered_nodes, ordered_edges)
        return cls(nodes=ordered_nodes, edges=ordered_edges, generation=generation)

    @classmethod
    def empty(cls) -> "FeatureGraph":
        return cls.from_parts((), ())

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._by_id

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(node.id for node in self.nodes)

    def node(self, feature_id: str) -> FeatureRecord:
        """Return the record for ``feature_id``; raise ``KeyError`` if absent."""
        return self._by_id[feature_id]

    def get(self, feature_id: str) -> Optional[FeatureRecord]:
        return self._by_id.get(feature_id)

    def out_edges(self, feature_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        edges = self._outgoing.get(feature_id, ())
        if edge_type is None:
            return edges
        return tuple(edge for edge in edges if edge.type is edge_type)

    def in_edges(self, feature_id: str, edge_type: Optional[EdgeType] = None) -> Tuple[Edge, ...]:
        edges = self._incoming.get(feature_id, ())
        if edge_type is None:
            return edges
        return tuple(edge for edge in edges if edge.type is edge_type)

    def edges_of_type(self, edge_type: EdgeType) -> Tuple[Edge, ...]:
        return tuple(edge for edge in self.edges if edge.type is edge_type)

    def iter_examples(self) -> Iterator[Tuple[FeatureRecord, CodeExample]]:
        """Yield ``(record, example)`` pairs in node order."""

        for node in self.nodes:
            for example in node.examples:
                yield node, example


@dataclass
class AnchorTable:
    """Lookup of ``(path, anchor)`` keys to the feature ids registered under them.

    Built once per run from the complete draft set and handed to
    :func:`resolve_links`; nothing about it outlives the build.
    """

    entries: Dict[AnchorKey, List[str]] = field(default_factory=dict)

    @classmethod
    def from_drafts(cls, drafts: Sequence[FeatureRecord]) -> "AnchorTable":
        table = cls()
        first_in_document: Dict[str, FeatureRecord] = {}
        for draft in drafts:
            location = draft.source_location
            table.register((location.path, draft.anchor), draft.id)
            current = first_in_document.get(location.path)
            if current is None or location.line_start < current.source_location.line_start:
                first_in_document[location.path] = draft
        for path, draft in first_in_document.items():
            table.register((path, ""), draft.id)
        return table

    def register(self, key: AnchorKey, feature_id: str) -> None:
        ids = self.entries.setdefault(key, [])
        if feature_id not in ids:
            ids.append(feature_id)

    def lookup(self, key: AnchorKey) -> Tuple[str, ...]:
        return tuple(self.entries.get(key, ()))

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class BuildResult:
    """Frozen graph plus the diagnostics recorded while building it."""

    graph: FeatureGraph
    report: DiagnosticReport


def _find_duplicates(
    drafts: Sequence[FeatureRecord],
) -> Tuple[List[FeatureRecord], Set[str], List[DuplicateFeatureError]]:
    by_id: Dict[str, List[FeatureRecord]] = defaultdict(list)
    for draft in drafts:
        by_id[draft.id].append(draft)
    kept: List[FeatureRecord] = []
    excluded: Set[str] = set()
    diagnostics: List[DuplicateFeatureError] = []
    for feature_id in sorted(by_id):
        group = by_id[feature_id]
        if len(group) == 1:
            kept.append(group[0])
            continue
        excluded.add(feature_id)
        locations = tuple(sorted(str(draft.source_location) for draft in group))
        diagnostics.append(DuplicateFeatureError(feature_id=feature_id, locations=locations))
    return kept, excluded, diagnostics


def resolve_links(
    links: Iterable[LinkReference],
    table: AnchorTable,
    node_ids: Set[str],
    excluded: Set[str],
) -> Tuple[Set[Edge], List[DanglingReferenceError]]:
    """Resolve ``links`` against ``table`` into edges and dangling diagnostics.

    ``node_ids`` is the frozen node set; ``excluded`` holds ids dropped as
    duplicates. Every returned edge has both endpoints in ``node_ids``.
    """

    edges: Set[Edge] = set()
    dangling: List[DanglingReferenceError] = []

    def record(link: LinkReference, reason: str) -> None:
        dangling.append(
            DanglingReferenceError(
                source_id=link.from_id,
                path=link.target_path,
                anchor=link.target_anchor,
                reason=reason,
                location=str(link.source_location),
            )
        )

    for link in links:
        if link.from_id in excluded:
            record(link, "duplicate-source")
            continue
        candidates = table.lookup(link.key)
        if not candidates:
            record(link, "unresolved")
            continue
        if len(candidates) > 1:
            record(link, "ambiguous")
            continue
        target = candidates[0]
        if target in excluded:
            record(link, "duplicate")
            continue
        if link.from_id not in node_ids or target not in node_ids:
            record(link, "unresolved")
            continue
        edges.add(Edge(type=link.edge_type_hint, source=link.from_id, target=target))
    return edges, dangling


def build_graph(
    drafts: Iterable[FeatureRecord],
    links: Iterable[LinkReference],
) -> BuildResult:
    """Assemble and freeze the feature graph from every extracted draft and link.

    Args:
        drafts: Feature record drafts from all documents.
        links: Unresolved link references from all documents.

    Returns:
        BuildResult: The frozen graph and a report holding one
        :class:`DuplicateFeatureError` per duplicated id and one
        :class:`DanglingReferenceError` per link that produced no edge.
    """

    all_drafts = list(drafts)
    all_links = list(links)
    report = DiagnosticReport()

    kept, excluded, duplicates = _find_duplicates(all_drafts)
    report.extend(duplicates)
    for duplicate in duplicates:
        log_event(
            _LOGGER,
            "warning",
            "Duplicate feature id excluded",
            feature_id=duplicate.feature_id,
            locations=list(duplicate.locations),
        )

    table = AnchorTable.from_drafts(all_drafts)
    node_ids = {draft.id for draft in kept}
    edges, dangling = resolve_links(all_links, table, node_ids, excluded)
    report.extend(dangling)

    graph = FeatureGraph.from_parts(kept, edges)
    log_event(
        _LOGGER,
        "info",
        "Graph frozen",
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        anchors=len(table),
        duplicates=len(duplicates),
        dangling=len(dangling),
        generation=graph.generation[:12],
    )
    return BuildResult(graph=graph, report=report)
