# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.resolver",
#   "purpose": "Version closure queries over the REQUIRES subgraph of a frozen feature graph.",
#   "sections": [
#     {"id": "resolution", "name": "Resolution", "anchor": "class-resolution", "kind": "class"},
#     {"id": "resolutiondiff", "name": "ResolutionDiff", "anchor": "class-resolutiondiff", "kind": "class"},
#     {"id": "versionresolver", "name": "VersionResolver", "anchor": "class-versionresolver", "kind": "class"},
#     {"id": "resolve", "name": "resolve", "anchor": "function-resolve", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Answer "what is available at version V" for one language family.

A query starts from every feature of the family that is introduced at or
before ``V`` and not deprecated by ``V``, then follows ``REQUIRES`` edges until
nothing new is reached. A prerequisite that the version filter would have
excluded is still included, and the edge that pulled it in is reported as a
:class:`~LangRefKG.FeatureGraph.errors.VersionOrderViolation` warning.

The closure is undefined when it runs through a ``REQUIRES`` cycle. Cyclic
strongly connected components are computed once per graph with networkx; a
query that reaches one fails with
:class:`~LangRefKG.FeatureGraph.errors.CyclicRequirementError`.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Deque, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import networkx as nx

from .builder import FeatureGraph
from .errors import CyclicRequirement, CyclicRequirementError, VersionOrderViolation, VersionParseError
from .formats import EdgeType
from .logging import get_logger, log_event
from .versions import Family, Version, parse_family, parse_version

__all__ = ["Resolution", "ResolutionDiff", "VersionResolver", "resolve"]

_LOGGER = get_logger(__name__, stage="resolve")

FamilyLike = Union[Family, str]
VersionLike = Union[Version, str]


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolve query."""

    family: Family
    version: Version
    features: FrozenSet[str] = frozenset()
    warnings: Tuple[VersionOrderViolation, ...] = ()
    errors: Tuple[CyclicRequirement, ...] = ()
    required_by: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def ok(self) -> bool:
        return not self.errors

    def sorted_features(self) -> List[str]:
        return sorted(self.features)

    def to_dict(self, *, explain: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "family": self.family.value,
            "version": self.version.label,
            "features": self.sorted_features(),
        }
        if explain:
            payload["requiredBy"] = dict(sorted(self.required_by.items()))
        return payload


@dataclass(frozen=True)
class ResolutionDiff:
    """Features gained and lost between two versions of one family."""

    family: Family
    base: Version
    target: Version
    added: FrozenSet[str]
    removed: FrozenSet[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "family": self.family.value,
            "from": self.base.label,
            "to": self.target.label,
            "added": sorted(self.added),
            "removed": sorted(self.removed),
        }


def _ordered_cycle(component: nx.DiGraph) -> Tuple[str, ...]:
    """Return one cycle of ``component`` starting at its smallest id.

    The cycle is the shortest one through that id, with ties broken by
    successor order, so the same component always reports the same cycle.
    """

    start = min(component.nodes)
    if component.has_edge(start, start):
        return (start,)
    best: Optional[List[str]] = None
    for successor in sorted(component.successors(start)):
        if successor == start:
            continue
        path = nx.shortest_path(component, successor, start)
        if best is None or len(path) < len(best):
            best = path
    if best is None:
        return (start,)
    return (start,) + tuple(best[:-1])


class VersionResolver:
    """Resolve queries against one frozen graph.

    The ``REQUIRES`` digraph and its cyclic components are computed once in the
    constructor; :meth:`resolve` only reads them, so one resolver may serve
    several threads.
    """

    def __init__(self, graph: FeatureGraph) -> None:
        self.graph = graph
        requires = nx.DiGraph()
        requires.add_nodes_from(graph.ids)
        requires.add_edges_from(
            (edge.source, edge.target)
            for edge in graph.edges_of_type(EdgeType.REQUIRES)
            if edge.source in graph and edge.target in graph
        )
        self._requires = requires
        cycle_of: Dict[str, CyclicRequirement] = {}
        for component in nx.strongly_connected_components(requires):
            members = sorted(component)
            if len(members) == 1 and not requires.has_edge(members[0], members[0]):
                continue
            cycle = CyclicRequirement(cycle=_ordered_cycle(requires.subgraph(members)))
            for member in members:
                cycle_of[member] = cycle
        self._cycle_of: Mapping[str, CyclicRequirement] = MappingProxyType(cycle_of)

    @property
    def cycles(self) -> Tuple[CyclicRequirement, ...]:
        """Every distinct ``REQUIRES`` cycle in the graph, ordered by first id."""

        unique = {cycle.cycle: cycle for cycle in self._cycle_of.values()}
        return tuple(unique[key] for key in sorted(unique))

    def candidates(self, family: Family, version: Version) -> FrozenSet[str]:
        """Return ids of ``family`` available at ``version`` before closure."""

        return frozenset(
            node.id
            for node in self.graph.nodes
            if node.language_family is family and node.available_at(version)
        )

    def resolve(
        self,
        family: FamilyLike,
        version: VersionLike,
        *,
        strict: bool = True,
    ) -> Resolution:
        """Return the features available at ``version`` for ``family``.

        Args:
            family: Language family (``Family`` or a spelling such as ``"cpp"``).
            version: Target version (``Version``, ``"C++17"`` or ``"17"``).
            strict: Raise on cycles (default) instead of returning them in
                ``Resolution.errors`` with an empty feature set.

        Raises:
            VersionParseError: If ``family`` or ``version`` cannot be parsed, or
                ``version`` belongs to another family.
            CyclicRequirementError: If ``strict`` and the closure reaches a
                ``REQUIRES`` cycle.
        """

        family, version = self._coerce(family, version)
        seeds = self.candidates(family, version)

        included = set(seeds)
        required_by: Dict[str, str] = {}
        queue: Deque[str] = deque(sorted(seeds))
        while queue:
            current = queue.popleft()
            for target in sorted(self._requires.successors(current)):
                if target in included:
                    continue
                included.add(target)
                required_by[target] = current
                queue.append(target)

        cycles = self._reachable_cycles(included)
        if cycles:
            log_event(
                _LOGGER,
                "warning",
                "Resolve query reaches a requirement cycle",
                family=family.value,
                version=version.label,
                cycles=[list(cycle.cycle) for cycle in cycles],
            )
            if strict:
                raise CyclicRequirementError(cycles)
            return Resolution(family=family, version=version, errors=cycles)

        late_edges = sorted(
            (target, source)
            for source in included
            for target in self._requires.successors(source)
            if target in required_by
        )
        warnings: List[VersionOrderViolation] = []
        for target, source in late_edges:
            record = self.graph.node(target)
            if record.language_family is not family or record.available_at(version):
                continue
            warnings.append(
                VersionOrderViolation(
                    source=source,
                    target=target,
                    version=version.label,
                    target_introduced=record.introduced_version,
                    target_deprecated=record.deprecated_version,
                )
            )

        log_event(
            _LOGGER,
            "debug",
            "Resolved features",
            family=family.value,
            version=version.label,
            candidates=len(seeds),
            features=len(included),
            pulled_in=len(required_by),
        )
        return Resolution(
            family=family,
            version=version,
            features=frozenset(included),
            warnings=tuple(warnings),
            required_by=MappingProxyType(required_by),
        )

    def diff(
        self,
        family: FamilyLike,
        base: VersionLike,
        target: VersionLike,
        *,
        strict: bool = True,
    ) -> ResolutionDiff:
        """Return the features added and removed going from ``base`` to ``target``."""

        before = self.resolve(family, base, strict=strict)
        after = self.resolve(family, target, strict=strict)
        return ResolutionDiff(
            family=before.family,
            base=before.version,
            target=after.version,
            added=after.features - before.features,
            removed=before.features - after.features,
        )

    def _reachable_cycles(self, reached: set) -> Tuple[CyclicRequirement, ...]:
        found = {
            self._cycle_of[node].cycle: self._cycle_of[node]
            for node in reached
            if node in self._cycle_of
        }
        return tuple(found[key] for key in sorted(found))

    @staticmethod
    def _coerce(family: FamilyLike, version: VersionLike) -> Tuple[Family, Version]:
        resolved_family = family if isinstance(family, Family) else parse_family(family)
        if isinstance(version, Version):
            resolved_version = version
        else:
            resolved_version = parse_version(version, resolved_family)
        if resolved_version.family is not resolved_family:
            raise VersionParseError(
                f"{resolved_version.label} is not a {resolved_family.label} version"
            )
        return resolved_family, resolved_version


def resolve(
    graph: FeatureGraph,
    family: FamilyLike,
    version: VersionLike,
    *,
    strict: bool = True,
) -> Resolution:
    """Convenience wrapper building a :class:`VersionResolver` for one query."""

    return VersionResolver(graph).resolve(family, version, strict=strict)
