"""NAVMAP headers stay in sync with the modules they describe."""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest

pytestmark = pytest.mark.unit

MODULES = [
    "LangRefKG.FeatureGraph.cancellation",
    "LangRefKG.FeatureGraph.config_loaders",
    "LangRefKG.FeatureGraph.io",
]


def _navmap(module) -> dict:
    lines = Path(module.__file__).read_text(encoding="utf-8").splitlines()
    start = lines.index("# === NAVMAP v1 ===")
    end = lines.index("# === /NAVMAP ===")
    return json.loads("\n".join(line[2:] for line in lines[start + 1 : end]))


@pytest.mark.parametrize("name", MODULES)
def test_navmap_names_module_and_existing_sections(name: str) -> None:
    module = importlib.import_module(name)
    navmap = _navmap(module)

    assert navmap["module"] == name
    for section in navmap["sections"]:
        assert hasattr(module, section["name"]), section["name"]
