# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.io",
#   "purpose": "Document discovery, decoding, and atomic persistence of frozen graphs.",
#   "sections": [
#     {"id": "discover-documents", "name": "discover_documents", "anchor": "function-discover-documents", "kind": "function"},
#     {"id": "load-documents", "name": "load_documents", "anchor": "function-load-documents", "kind": "function"},
#     {"id": "atomic-write", "name": "atomic_write", "anchor": "function-atomic-write", "kind": "function"},
#     {"id": "graph-to-document", "name": "graph_to_document", "anchor": "function-graph-to-document", "kind": "function"},
#     {"id": "graph-from-document", "name": "graph_from_document", "anchor": "function-graph-from-document", "kind": "function"},
#     {"id": "save-graph", "name": "save_graph", "anchor": "function-save-graph", "kind": "function"},
#     {"id": "load-graph", "name": "load_graph", "anchor": "function-load-graph", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Low-level I/O helpers shared by the feature graph commands.

Document discovery returns POSIX paths relative to the input root in sorted
order, which is the order extraction merges results in. Graph files are written
through :func:`atomic_write` so an interrupted ``extract`` never leaves a
half-written graph behind. Loading validates ``schemaVersion`` before the
payload and raises :class:`~LangRefKG.FeatureGraph.errors.GraphFormatError` for
anything unreadable.
"""

from __future__ import annotations

import contextlib
import fnmatch
import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence, TextIO, Tuple

from pydantic import ValidationError

from .builder import FeatureGraph
from .errors import GraphFormatError, ParseError
from .extractor import SourceDocument
from .formats import SCHEMA_VERSION, GraphDocument, validate_schema_version
from .logging import get_logger, log_event

__all__ = [
    "discover_documents",
    "load_documents",
    "atomic_write",
    "graph_to_document",
    "graph_from_document",
    "dump_graph",
    "save_graph",
    "load_graph",
]

_LOGGER = get_logger(__name__, stage="io")


def _matches_any(relative: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        if fnmatch.fnmatch(relative, pattern):
            return True
        # ``**/`` also matches files directly under the root.
        if pattern.startswith("**/") and fnmatch.fnmatch(relative, pattern[3:]):
            return True
    return False


def discover_documents(
    root: Path,
    include: Sequence[str] = ("**/*.md", "**/*.markdown"),
    ignore: Sequence[str] = (),
) -> List[str]:
    """Return sorted POSIX paths (relative to ``root``) of the documents to extract."""

    found = set()
    for pattern in include:
        for candidate in root.glob(pattern):
            if not candidate.is_file():
                continue
            relative = candidate.relative_to(root).as_posix()
            if _matches_any(relative, ignore):
                continue
            found.add(relative)
    return sorted(found)


def load_documents(root: Path, paths: Sequence[str]) -> Tuple[List[SourceDocument], List[ParseError]]:
    """Read ``paths`` below ``root`` as UTF-8 text.

    Unreadable or undecodable files become :class:`ParseError` entries instead
    of aborting the run.
    """

    documents: List[SourceDocument] = []
    errors: List[ParseError] = []
    for relative in paths:
        try:
            raw = (root / relative).read_bytes()
        except OSError as exc:
            errors.append(ParseError(path=relative, reason=f"cannot read file: {exc.strerror or exc}"))
            continue
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            errors.append(
                ParseError(path=relative, reason=f"not valid UTF-8 (byte offset {exc.start})")
            )
            continue
        documents.append(SourceDocument(path=relative, text=text))
    if errors:
        log_event(_LOGGER, "warning", "Skipped unreadable documents", count=len(errors))
    return documents, errors


@contextlib.contextmanager
def atomic_write(path: Path) -> Iterator[TextIO]:
    """Write to a temporary file and atomically replace the destination."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp.{uuid.uuid4().hex}")
    try:
        with tmp.open("w", encoding="utf-8") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def graph_to_document(graph: FeatureGraph) -> Dict[str, Any]:
    """Return the JSON-ready mapping for ``graph`` (camelCase keys)."""

    document = GraphDocument(
        schema_version=SCHEMA_VERSION,
        generation=graph.generation,
        nodes=list(graph.nodes),
        edges=list(graph.edges),
    )
    return document.model_dump(mode="json", by_alias=True)


def graph_from_document(payload: Any) -> FeatureGraph:
    """Rebuild a frozen graph from a parsed JSON mapping.

    Raises:
        GraphFormatError: If the payload is not an object, its schema version is
            missing or unsupported, a node or edge fails validation, or two
            nodes share an id.
    """

    if not isinstance(payload, dict):
        raise GraphFormatError(f"graph file must contain a JSON object, got {type(payload).__name__}")
    validate_schema_version(payload.get("schemaVersion", payload.get("schema_version")))
    try:
        document = GraphDocument.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise GraphFormatError(f"invalid graph file at {where or '<root>'}: {first['msg']}") from exc
    seen: Dict[str, int] = {}
    for index, node in enumerate(document.nodes):
        if node.id in seen:
            raise GraphFormatError(
                f"invalid graph file at nodes.{index}: repeated feature id {node.id!r} "
                f"(first at nodes.{seen[node.id]})"
            )
        seen[node.id] = index
    # The generation is recomputed so it always matches the content.
    return FeatureGraph.from_parts(document.nodes, document.edges)


def dump_graph(graph: FeatureGraph) -> str:
    return json.dumps(graph_to_document(graph), indent=2, ensure_ascii=False) + "\n"


def save_graph(graph: FeatureGraph, path: Path) -> None:
    """Persist ``graph`` as JSON at ``path`` atomically."""

    with atomic_write(path) as handle:
        handle.write(dump_graph(graph))
    log_event(
        _LOGGER,
        "info",
        "Graph written",
        path=str(path),
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        generation=graph.generation[:12],
    )


def load_graph(path: Path) -> FeatureGraph:
    """Load a frozen graph from ``path``.

    Raises:
        GraphFormatError: If the file cannot be read or parsed, or is not a
            compatible graph document.
    """

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise GraphFormatError(f"cannot read graph file {path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise GraphFormatError(
            f"graph file {path} is not valid JSON (line {exc.lineno}, column {exc.colno})"
        ) from exc
    graph = graph_from_document(payload)
    if isinstance(payload, dict) and payload.get("generation") not in (None, graph.generation):
        log_event(
            _LOGGER,
            "warning",
            "Graph generation does not match its content",
            path=str(path),
            stored=payload.get("generation"),
            computed=graph.generation,
        )
    return graph
