"""Version closure queries, cycle detection, and version diffs."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import assume, given, strategies as st

from LangRefKG.FeatureGraph.errors import CyclicRequirement, CyclicRequirementError, VersionParseError
from LangRefKG.FeatureGraph.resolver import VersionResolver, resolve
from LangRefKG.FeatureGraph.versions import FAMILY_VERSIONS, Family, parse_version

from tests.conftest import make_graph, make_record


@pytest.fixture
def cpp_graph():
    return make_graph(
        [
            make_record("cpp:auto-ptr", "C++98", deprecated="C++17"),
            make_record("cpp:lambdas", "C++11"),
            make_record("cpp:generic-lambdas", "C++14"),
            make_record("cpp:fold-expressions", "C++17"),
            make_record("cpp:concepts", "C++20"),
            make_record("cpp:deducing-this", "C++23"),
            make_record("c:restrict", "C99"),
        ],
        [
            ("REQUIRES", "cpp:generic-lambdas", "cpp:lambdas"),
            ("RELATES_TO", "cpp:concepts", "cpp:lambdas"),
        ],
    )


@pytest.mark.unit
def test_cpp17_includes_earlier_standards_only(cpp_graph) -> None:
    resolution = resolve(cpp_graph, Family.CPP, parse_version("C++17"))

    assert resolution.ok
    assert resolution.sorted_features() == [
        "cpp:fold-expressions",
        "cpp:generic-lambdas",
        "cpp:lambdas",
    ]
    assert resolution.warnings == ()
    assert dict(resolution.required_by) == {}


@pytest.mark.unit
def test_deprecated_feature_drops_out(cpp_graph) -> None:
    resolver = VersionResolver(cpp_graph)
    assert "cpp:auto-ptr" in resolver.resolve("cpp", "14").features
    assert "cpp:auto-ptr" not in resolver.resolve("cpp", "17").features

    diff = resolver.diff("c++", "C++14", "C++17")
    assert diff.added == frozenset({"cpp:fold-expressions"})
    assert diff.removed == frozenset({"cpp:auto-ptr"})
    assert diff.to_dict() == {
        "family": "cpp",
        "from": "C++14",
        "to": "C++17",
        "added": ["cpp:fold-expressions"],
        "removed": ["cpp:auto-ptr"],
    }


@pytest.mark.unit
def test_future_prerequisite_is_pulled_in_with_warning() -> None:
    graph = make_graph(
        [
            make_record("cpp:ranges", "C++17"),
            make_record("cpp:concepts", "C++20"),
            make_record("cpp:constraints", "C++23"),
            make_record("c:bool", "C99"),
        ],
        [
            ("REQUIRES", "cpp:ranges", "cpp:concepts"),
            ("REQUIRES", "cpp:concepts", "cpp:constraints"),
            ("REQUIRES", "cpp:ranges", "c:bool"),
        ],
    )

    resolution = resolve(graph, "cpp", "C++17")

    assert resolution.features == frozenset({"cpp:ranges", "cpp:concepts", "cpp:constraints", "c:bool"})
    assert dict(resolution.required_by) == {
        "cpp:concepts": "cpp:ranges",
        "cpp:constraints": "cpp:concepts",
        "c:bool": "cpp:ranges",
    }
    assert [(w.source, w.target, w.version) for w in resolution.warnings] == [
        ("cpp:ranges", "cpp:concepts", "C++17"),
        ("cpp:concepts", "cpp:constraints", "C++17"),
    ]
    assert "not available at C++17" in resolution.warnings[0].message
    explained = resolution.to_dict(explain=True)
    assert explained["requiredBy"]["cpp:concepts"] == "cpp:ranges"
    assert "requiredBy" not in resolution.to_dict()


@pytest.mark.unit
def test_every_edge_into_a_late_feature_is_warned() -> None:
    graph = make_graph(
        [
            make_record("cpp:x", "C++11"),
            make_record("cpp:y", "C++14"),
            make_record("cpp:late", "C++20"),
        ],
        [("REQUIRES", "cpp:x", "cpp:late"), ("REQUIRES", "cpp:y", "cpp:late")],
    )

    resolution = resolve(graph, "cpp", "C++17")

    assert resolution.features == frozenset({"cpp:x", "cpp:y", "cpp:late"})
    assert dict(resolution.required_by) == {"cpp:late": "cpp:x"}
    assert [(w.source, w.target) for w in resolution.warnings] == [
        ("cpp:x", "cpp:late"),
        ("cpp:y", "cpp:late"),
    ]


@pytest.mark.unit
def test_mutual_requirement_raises_for_queries_that_reach_it() -> None:
    graph = make_graph(
        [make_record("cpp:a", "C++11"), make_record("cpp:b", "C++11"), make_record("cpp:old", "C++98")],
        [("REQUIRES", "cpp:b", "cpp:a"), ("REQUIRES", "cpp:a", "cpp:b")],
    )
    resolver = VersionResolver(graph)

    with pytest.raises(CyclicRequirementError) as excinfo:
        resolver.resolve("cpp", "C++17")
    assert excinfo.value.cycles == (CyclicRequirement(cycle=("cpp:a", "cpp:b")),)
    assert "cpp:a -> cpp:b -> cpp:a" in str(excinfo.value)

    lenient = resolver.resolve("cpp", "C++17", strict=False)
    assert not lenient.ok
    assert lenient.features == frozenset()
    assert lenient.errors == excinfo.value.cycles

    # C++98 never reaches the cycle.
    assert resolver.resolve("cpp", "C++98").features == frozenset({"cpp:old"})


@pytest.mark.unit
def test_cycles_are_reported_from_smallest_id() -> None:
    graph = make_graph(
        [make_record(f"cpp:{name}", "C++11") for name in ("c", "a", "b", "self")],
        [
            ("REQUIRES", "cpp:b", "cpp:c"),
            ("REQUIRES", "cpp:c", "cpp:a"),
            ("REQUIRES", "cpp:a", "cpp:b"),
            ("REQUIRES", "cpp:self", "cpp:self"),
        ],
    )
    assert [cycle.cycle for cycle in VersionResolver(graph).cycles] == [
        ("cpp:a", "cpp:b", "cpp:c"),
        ("cpp:self",),
    ]


@pytest.mark.unit
def test_query_arguments_are_validated(cpp_graph) -> None:
    with pytest.raises(VersionParseError):
        resolve(cpp_graph, "cpp", "C11")
    with pytest.raises(VersionParseError):
        resolve(cpp_graph, "rust", "2021")
    with pytest.raises(VersionParseError):
        resolve(cpp_graph, Family.C, parse_version("C++11"))


@pytest.mark.unit
def test_resolver_is_shareable_across_threads(cpp_graph) -> None:
    resolver = VersionResolver(cpp_graph)
    labels = [version.label for version in FAMILY_VERSIONS[Family.CPP]] * 4
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda label: resolver.resolve("cpp", label).features, labels))
    expected = [resolver.resolve("cpp", label).features for label in labels]
    assert results == expected


_CPP_LABELS = [version.label for version in FAMILY_VERSIONS[Family.CPP]]


@st.composite
def _acyclic_graphs(draw):
    count = draw(st.integers(min_value=1, max_value=8))
    records = [
        make_record(f"cpp:f{index}", draw(st.sampled_from(_CPP_LABELS))) for index in range(count)
    ]
    edges = []
    for source in range(count):
        for target in range(source):
            if draw(st.booleans()):
                edges.append(("REQUIRES", f"cpp:f{source}", f"cpp:f{target}"))
    return make_graph(records, edges)


@pytest.mark.property
@given(_acyclic_graphs(), st.sampled_from(_CPP_LABELS), st.sampled_from(_CPP_LABELS))
def test_closure_is_monotonic_without_deprecations(graph, low, high) -> None:
    assume(parse_version(low) <= parse_version(high))
    resolver = VersionResolver(graph)
    assert resolver.resolve("cpp", low).features <= resolver.resolve("cpp", high).features
