# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.__init__",
#   "purpose": "FeatureGraph package facade with lazily loaded public entry points.",
#   "sections": [
#     {"id": "load-attribute", "name": "_load_attribute", "anchor": "function-load-attribute", "kind": "function"},
#     {"id": "getattr", "name": "__getattr__", "anchor": "function-getattr", "kind": "function"},
#     {"id": "dir", "name": "__dir__", "anchor": "function-dir", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""FeatureGraph package facade with lazily loaded public entry points.

The pipeline runs leaf first: :func:`extract_documents` turns Markdown into
record drafts and link references, :func:`build_graph` freezes them into a
:class:`FeatureGraph`, and the three consumers (:class:`VersionResolver`,
:func:`validate_references`, :func:`validate_examples`) read that graph
independently. Names are resolved on first access so importing the package
does not pull in networkx or the CLI stack.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

_LAZY_ATTRIBUTES: Dict[str, Tuple[str, str]] = {
    "SourceDocument": ("extractor", "SourceDocument"),
    "ExtractorConfig": ("extractor", "ExtractorConfig"),
    "ExtractionAccumulator": ("extractor", "ExtractionAccumulator"),
    "extract_document": ("extractor", "extract_document"),
    "extract_documents": ("extractor", "extract_documents"),
    "FeatureGraph": ("builder", "FeatureGraph"),
    "BuildResult": ("builder", "BuildResult"),
    "build_graph": ("builder", "build_graph"),
    "VersionResolver": ("resolver", "VersionResolver"),
    "Resolution": ("resolver", "Resolution"),
    "resolve": ("resolver", "resolve"),
    "validate_references": ("reference_validator", "validate_references"),
    "validate_examples": ("example_validator", "validate_examples"),
    "CompilerBackend": ("backends", "CompilerBackend"),
    "DiagnosticReport": ("report", "DiagnosticReport"),
    "FeatureRecord": ("formats", "FeatureRecord"),
    "Edge": ("formats", "Edge"),
    "EdgeType": ("formats", "EdgeType"),
    "Family": ("versions", "Family"),
    "parse_version": ("versions", "parse_version"),
    "load_graph": ("io", "load_graph"),
    "save_graph": ("io", "save_graph"),
}

__all__ = sorted(_LAZY_ATTRIBUTES)


def _load_attribute(name: str) -> Any:
    module_name, attribute = _LAZY_ATTRIBUTES[name]
    value = getattr(import_module(f"{__name__}.{module_name}"), attribute)
    globals()[name] = value
    return value


def __getattr__(name: str) -> Any:
    """Import the defining submodule only when a public name is requested."""

    if name in _LAZY_ATTRIBUTES:
        return _load_attribute(name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    """Ensure lazily exposed attributes appear in :func:`dir` results."""

    return sorted(set(globals()) | set(_LAZY_ATTRIBUTES))
