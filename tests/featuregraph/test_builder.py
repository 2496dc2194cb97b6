"""Graph assembly: anchor resolution, duplicates, dangling links, and freezing."""

from __future__ import annotations

import dataclasses

import pytest
from hypothesis import given, strategies as st

from LangRefKG.FeatureGraph.builder import AnchorTable, FeatureGraph, build_graph, compute_generation
from LangRefKG.FeatureGraph.errors import DanglingReferenceError, DuplicateFeatureError
from LangRefKG.FeatureGraph.extractor import SourceDocument, extract_documents
from LangRefKG.FeatureGraph.formats import Edge, EdgeType, LinkReference, SourceLocation

from tests.conftest import make_graph, make_record


def _build(files):
    documents = [SourceDocument(path=path, text=text) for path, text in files.items()]
    extraction = extract_documents(documents)
    assert extraction.errors == []
    return build_graph(extraction.drafts, extraction.links)


def _link(from_id: str, path: str, anchor: str = "", hint: EdgeType = EdgeType.RELATES_TO) -> LinkReference:
    return LinkReference(
        from_id=from_id,
        target_path=path,
        target_anchor=anchor,
        edge_type_hint=hint,
        source_location=SourceLocation(path="links.md", line_start=1, line_end=1),
    )


@pytest.mark.component
def test_cross_document_link_becomes_one_edge() -> None:
    result = _build(
        {
            "a.md": "# Foo (C++11)\n\nThe foo feature.\n",
            "b.md": "# Bar (C++14)\n\nSee [Foo](a.md#foo).\n",
        }
    )

    assert len(result.report) == 0
    assert result.graph.ids == ("cpp:bar", "cpp:foo")
    assert result.graph.edges == (
        Edge(type=EdgeType.RELATES_TO, source="cpp:bar", target="cpp:foo"),
    )


@pytest.mark.component
def test_unknown_anchor_is_reported_once_and_dropped() -> None:
    result = _build(
        {
            "a.md": "# Foo (C++11)\n",
            "b.md": "# Bar (C++14)\n\nSee [Bar](a.md#nonexistent).\n",
        }
    )

    (dangling,) = result.report.of_type(DanglingReferenceError)
    assert dangling.source_id == "cpp:bar"
    assert dangling.target == "a.md#nonexistent"
    assert dangling.reason == "unresolved"
    assert dangling.location == "b.md:3"
    assert result.graph.edges == ()
    assert result.report.has_errors


@pytest.mark.component
def test_link_without_anchor_targets_first_record_of_document() -> None:
    result = _build(
        {
            "a.md": "# Foo (C++11)\n\n## Foo details (C++14)\n",
            "b.md": "# Bar (C++14)\n\nThis requires [a](a.md).\n",
        }
    )

    assert result.graph.out_edges("cpp:bar") == (
        Edge(type=EdgeType.REQUIRES, source="cpp:bar", target="cpp:foo"),
    )


@pytest.mark.component
def test_duplicates_are_excluded_and_links_to_or_from_them_dangle() -> None:
    result = _build(
        {
            "a.md": "# Foo (C++11)\n\nSee [bar](c.md#bar).\n",
            "c.md": "# Bar (C++11)\n\nSee [foo](a.md#foo).\n",
            "d.md": "# Foo (C++11)\n",
        }
    )

    (duplicate,) = result.report.of_type(DuplicateFeatureError)
    assert duplicate.feature_id == "cpp:foo"
    assert [location.split(":")[0] for location in duplicate.locations] == ["a.md", "d.md"]

    assert "cpp:foo" not in result.graph
    assert result.graph.ids == ("cpp:bar",)
    assert result.graph.edges == ()
    reasons = sorted(d.reason for d in result.report.of_type(DanglingReferenceError))
    assert reasons == ["duplicate", "duplicate-source"]


@pytest.mark.component
def test_anchor_shared_by_two_families_is_ambiguous() -> None:
    result = _build(
        {
            "ops.md": "# sizeof (C89)\n\n# sizeof (C++98)\n",
            "use.md": "# Arrays (C99)\n\nSee [sizeof](ops.md#sizeof).\n",
        }
    )

    assert set(result.graph.ids) == {"c:arrays", "c:sizeof", "cpp:sizeof"}
    (dangling,) = result.report.of_type(DanglingReferenceError)
    assert dangling.reason == "ambiguous"
    assert "several features" in dangling.message


@pytest.mark.unit
def test_anchor_table_registers_document_default() -> None:
    drafts = [
        make_record("cpp:second", "C++14", path="x.md", line=9),
        make_record("cpp:first", "C++11", path="x.md", line=1),
    ]
    table = AnchorTable.from_drafts(drafts)
    assert table.lookup(("x.md", "")) == ("cpp:first",)
    assert table.lookup(("x.md", "second")) == ("cpp:second",)
    assert table.lookup(("y.md", "first")) == ()


@pytest.mark.unit
def test_build_is_order_independent_and_deterministic() -> None:
    drafts = [
        make_record("cpp:a", "C++11", path="a.md"),
        make_record("cpp:b", "C++14", path="b.md"),
        make_record("c:c", "C99", path="c.md"),
    ]
    links = [
        _link("cpp:b", "a.md", "a", EdgeType.REQUIRES),
        _link("cpp:a", "b.md", "b"),
        _link("cpp:a", "b.md", "b"),
        _link("c:c", "b.md", "b", EdgeType.SUPERSEDES),
    ]

    forward = build_graph(drafts, links).graph
    backward = build_graph(list(reversed(drafts)), list(reversed(links))).graph

    assert forward == backward
    assert forward.generation == backward.generation
    assert len(forward.edges) == 3
    assert [edge.sort_key for edge in forward.edges] == sorted(edge.sort_key for edge in forward.edges)
    assert forward.generation == compute_generation(forward.nodes, forward.edges)


@pytest.mark.unit
def test_generation_changes_with_content() -> None:
    one = make_graph([make_record("cpp:a", "C++11")])
    two = make_graph([make_record("cpp:a", "C++14")])
    assert one.generation != two.generation
    assert FeatureGraph.empty().generation == FeatureGraph.empty().generation


@pytest.mark.unit
def test_frozen_graph_queries() -> None:
    graph = make_graph(
        [
            make_record("cpp:a", "C++11", examples=[("cpp11", "int a;")]),
            make_record("cpp:b", "C++14"),
            make_record("cpp:c", "C++17", examples=[("cpp17", "int c;"), ("cpp", "int d;")]),
        ],
        [
            ("REQUIRES", "cpp:b", "cpp:a"),
            ("RELATES_TO", "cpp:c", "cpp:a"),
        ],
    )

    assert len(graph) == 3 and "cpp:a" in graph and "cpp:z" not in graph
    assert [edge.source for edge in graph.in_edges("cpp:a")] == ["cpp:b", "cpp:c"]
    assert graph.in_edges("cpp:a", EdgeType.REQUIRES) == (
        Edge(type=EdgeType.REQUIRES, source="cpp:b", target="cpp:a"),
    )
    assert graph.out_edges("cpp:a") == ()
    assert len(graph.edges_of_type(EdgeType.SUPERSEDES)) == 0
    assert [(record.id, example.dialect) for record, example in graph.iter_examples()] == [
        ("cpp:a", "cpp11"),
        ("cpp:c", "cpp17"),
        ("cpp:c", "cpp"),
    ]
    assert graph.get("cpp:z") is None
    with pytest.raises(KeyError):
        graph.node("cpp:z")
    with pytest.raises(dataclasses.FrozenInstanceError):
        graph.nodes = ()  # type: ignore[misc]


_IDS = st.sampled_from(["cpp:a", "cpp:b", "cpp:c", "c:d", "c:e"])
_PATHS = st.sampled_from(["one.md", "two.md", "three.md"])


@st.composite
def _drafts_and_links(draw):
    drafts = []
    for index, (feature_id, path) in enumerate(draw(st.lists(st.tuples(_IDS, _PATHS), max_size=8))):
        introduced = "C++11" if feature_id.startswith("cpp:") else "C99"
        drafts.append(make_record(feature_id, introduced, path=path, line=index * 20 + 1))
    links = [
        _link(source, path, anchor, hint)
        for source, path, anchor, hint in draw(
            st.lists(
                st.tuples(
                    _IDS,
                    _PATHS,
                    st.sampled_from(["", "a", "b", "c", "d", "e", "missing"]),
                    st.sampled_from(list(EdgeType)),
                ),
                max_size=12,
            )
        )
    ]
    return drafts, links


@pytest.mark.property
@given(_drafts_and_links())
def test_no_dangling_edge_survives(case) -> None:
    drafts, links = case
    result = build_graph(drafts, links)
    graph = result.graph

    for edge in graph.edges:
        assert edge.source in graph and edge.target in graph
    assert len(set(graph.ids)) == len(graph.ids)
    assert len(result.report.of_type(DanglingReferenceError)) <= len(links)
    assert len(graph.edges) <= len(links)
    duplicated = {d.feature_id for d in result.report.of_type(DuplicateFeatureError)}
    assert duplicated.isdisjoint(graph.ids)
