# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for the feature graph suite",
#   "sections": [
#     {"id": "hypothesis-profile", "name": "Hypothesis profile", "anchor": "hypothesis-profile", "kind": "section"},
#     {"id": "make-record", "name": "make_record", "anchor": "function-make-record", "kind": "function"},
#     {"id": "write-corpus", "name": "write_corpus", "anchor": "fixture-write-corpus", "kind": "fixture"},
#     {"id": "reset-logging", "name": "reset_logging", "anchor": "fixture-reset-logging", "kind": "fixture"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures for the feature graph suite: a deterministic Hypothesis
profile, factories for feature records and frozen graphs, a helper that writes
a Markdown corpus into ``tmp_path``, and cleanup of the managed log handler
installed by the CLI.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Optional, Sequence, Tuple

import pytest
from hypothesis import HealthCheck, settings

from LangRefKG.FeatureGraph.builder import FeatureGraph
from LangRefKG.FeatureGraph.formats import CodeExample, Edge, EdgeType, FeatureRecord, SourceLocation
from LangRefKG.FeatureGraph.logging import ROOT_LOGGER_NAME

# --- Hypothesis profile ---

settings.register_profile(
    "featuregraph",
    max_examples=75,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.filter_too_much],
    database=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "featuregraph"))


def make_record(
    feature_id: str,
    introduced: str,
    *,
    deprecated: Optional[str] = None,
    path: str = "features.md",
    line: int = 1,
    examples: Sequence[Tuple[str, str]] = (),
) -> FeatureRecord:
    """Build a record for ``feature_id`` (``"cpp:lambdas"``) with sensible defaults."""

    family, _, slug = feature_id.partition(":")
    return FeatureRecord(
        id=feature_id,
        name=slug.replace("-", " "),
        anchor=slug,
        language_family=family,
        introduced_version=introduced,
        deprecated_version=deprecated,
        description="",
        examples=tuple(
            CodeExample(
                dialect=dialect,
                source=source,
                source_location=SourceLocation(
                    path=path, line_start=line + 2 + index, line_end=line + 2 + index
                ),
            )
            for index, (dialect, source) in enumerate(examples)
        ),
        source_location=SourceLocation(path=path, line_start=line, line_end=line + 10),
    )


def make_graph(
    records: Iterable[FeatureRecord],
    edges: Iterable[Tuple[str, str, str]] = (),
) -> FeatureGraph:
    """Freeze ``records`` with ``(type, source, target)`` edge triples."""

    return FeatureGraph.from_parts(
        records,
        (Edge(type=EdgeType(kind), source=source, target=target) for kind, source, target in edges),
    )


@pytest.fixture(scope="session")
def record_factory() -> Callable[..., FeatureRecord]:
    return make_record


@pytest.fixture(scope="session")
def graph_factory() -> Callable[..., FeatureGraph]:
    return make_graph


@pytest.fixture
def write_corpus(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Return a helper writing ``{relative_path: text}`` below ``tmp_path / "docs"``."""

    def _write(files: Dict[str, str]) -> Path:
        root = tmp_path / "docs"
        for relative, text in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _write


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Drop handlers the CLI installs so they never outlive a test's streams."""

    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_langrefkg_managed", False):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ``LANGREFKG_*`` variables from the developer's shell out of tests."""

    for name in list(os.environ):
        if name.startswith("LANGREFKG_"):
            monkeypatch.delenv(name, raising=False)
