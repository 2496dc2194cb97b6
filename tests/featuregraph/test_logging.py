"""Structured logging helpers and the lazy package facade."""

from __future__ import annotations

import io
import json
import logging

import pytest

import LangRefKG.FeatureGraph as featuregraph
from LangRefKG.FeatureGraph.logging import ROOT_LOGGER_NAME, configure_logging, get_logger, log_event

pytestmark = pytest.mark.unit


def test_json_records_carry_stage_and_fields(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr("sys.stderr", stream)
    configure_logging("INFO", "json")

    log_event(get_logger("LangRefKG.FeatureGraph.test", stage="build"), "warning", "Duplicate", feature_id="cpp:a")

    payload = json.loads(stream.getvalue().splitlines()[-1])
    assert payload["level"] == "WARNING"
    assert payload["message"] == "Duplicate"
    assert payload["stage"] == "build"
    assert payload["feature_id"] == "cpp:a"


def test_console_format_and_single_managed_handler(monkeypatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr("sys.stderr", stream)
    configure_logging("DEBUG", "console")
    logger = configure_logging("WARNING", "console")

    managed = [h for h in logger.handlers if getattr(h, "_langrefkg_managed", False)]
    assert len(managed) == 1
    assert logger.level == logging.WARNING

    log_event(get_logger("LangRefKG.x"), "info", "hidden")
    log_event(get_logger("LangRefKG.x"), "error", "shown", count=2)
    assert stream.getvalue().strip() == "ERROR: shown [count=2 stage=unknown]"


def test_child_logger_inherits_and_overrides_fields() -> None:
    parent = get_logger("LangRefKG.FeatureGraph.test", stage="extract", path="a.md")
    child = parent.child(path="b.md", line=None)

    assert child.base_fields == {"stage": "extract", "path": "b.md"}
    assert parent.base_fields == {"stage": "extract", "path": "a.md"}


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(AttributeError):
        log_event(logging.getLogger(ROOT_LOGGER_NAME), "loud", "nope")


def test_facade_loads_names_lazily() -> None:
    assert "build_graph" in dir(featuregraph)
    assert featuregraph.build_graph.__name__ == "build_graph"
    with pytest.raises(AttributeError):
        featuregraph.not_a_name  # noqa: B018
