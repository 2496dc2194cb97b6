# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.extractor",
#   "purpose": "Turn Markdown documents into feature record drafts and unresolved link references.",
#   "sections": [
#     {"id": "sourcedocument", "name": "SourceDocument", "anchor": "class-sourcedocument", "kind": "class"},
#     {"id": "extractorconfig", "name": "ExtractorConfig", "anchor": "class-extractorconfig", "kind": "class"},
#     {"id": "documentextraction", "name": "DocumentExtraction", "anchor": "class-documentextraction", "kind": "class"},
#     {"id": "extractionaccumulator", "name": "ExtractionAccumulator", "anchor": "class-extractionaccumulator", "kind": "class"},
#     {"id": "parse-version-tag", "name": "parse_version_tag", "anchor": "function-parse-version-tag", "kind": "function"},
#     {"id": "extract-document", "name": "extract_document", "anchor": "function-extract-document", "kind": "function"},
#     {"id": "extract-documents", "name": "extract_documents", "anchor": "function-extract-documents", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Turn Markdown documents into feature record drafts and unresolved links.

A heading ending in a version tag such as ``Lambdas (C++11)`` or
``auto_ptr (C++98, deprecated in C++11)`` opens a feature record. Everything up
to the next heading of the same or a shallower level belongs to it: paragraphs
form the description, fenced blocks become code examples, and inline links
become candidate edges. Links stay unresolved (``path`` + ``anchor``) because
their target document may not have been parsed yet; the graph builder resolves
them once every document is in.

Extraction of one document is a pure function of its text and the
:class:`ExtractorConfig`, which is what lets :func:`extract_documents` fan the
work out over a pool and merge the results in input order.
"""

from __future__ import annotations

import itertools
import posixpath
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import unquote

from pydantic import ValidationError

from LangRefKG.concurrency import create_executor

from .errors import MarkdownSyntaxError, ParseError, VersionParseError
from .formats import CodeExample, EdgeType, FeatureRecord, LinkReference, SourceLocation
from .logging import get_logger, log_event
from .markdown import CodeBlock, Heading, Link, Paragraph, Token, slugify, strip_link_markup, tokenize
from .report import DiagnosticReport
from .settings import DEFAULT_REQUIRES_PATTERN, DEFAULT_SUPERSEDES_PATTERN, FeatureGraphSettings
from .versions import Family, Version, default_dialect, normalize_dialect, parse_version

__all__ = [
    "SourceDocument",
    "ExtractorConfig",
    "VersionTag",
    "DocumentExtraction",
    "ExtractionAccumulator",
    "parse_version_tag",
    "extract_document",
    "extract_documents",
    "MARKDOWN_SUFFIXES",
]

MARKDOWN_SUFFIXES: Tuple[str, ...] = (".md", ".markdown")

_VERSION_TAG = re.compile(
    r"\s*\(\s*(?:since\s+)?(?P<intro>(?:C\+\+|C)\s?\d{2})"
    r"(?:\s*[,;]\s*(?:deprecated|removed)(?:\s+in)?\s+(?P<dep>(?:C\+\+|C)\s?\d{2}))?"
    r"\s*\)\s*$",
    re.IGNORECASE,
)
_URL_SCHEME = re.compile(r"^(?:[a-z][a-z0-9+.\-]*:|//)", re.IGNORECASE)

_LOGGER = get_logger(__name__, stage="extract")


@dataclass(frozen=True)
class SourceDocument:
    """A document to extract: POSIX path relative to the input root plus its text."""

    path: str
    text: str


@dataclass(frozen=True)
class ExtractorConfig:
    """Link classification and example filtering knobs for extraction."""

    requires_pattern: str = DEFAULT_REQUIRES_PATTERN
    supersedes_pattern: str = DEFAULT_SUPERSEDES_PATTERN
    non_code_languages: FrozenSet[str] = frozenset(
        {"text", "txt", "console", "output", "shell", "sh", "bash", "plaintext"}
    )

    @classmethod
    def from_settings(cls, settings: FeatureGraphSettings) -> "ExtractorConfig":
        return cls(
            requires_pattern=settings.requires_pattern,
            supersedes_pattern=settings.supersedes_pattern,
            non_code_languages=frozenset(settings.non_code_languages),
        )

    def classify(self, *texts: str) -> EdgeType:
        """Return the edge type hinted by link text or its lead-in."""

        for text in texts:
            if text and re.search(self.requires_pattern, text, re.IGNORECASE):
                return EdgeType.REQUIRES
        for text in texts:
            if text and re.search(self.supersedes_pattern, text, re.IGNORECASE):
                return EdgeType.SUPERSEDES
        return EdgeType.RELATES_TO


@dataclass(frozen=True)
class VersionTag:
    """Parsed heading tag: feature name plus lifecycle versions."""

    name: str
    introduced: Version
    deprecated: Optional[Version] = None


def parse_version_tag(heading: str) -> Optional[VersionTag]:
    """Split ``heading`` into name and version tag.

    Returns ``None`` when the heading carries no tag.

    Raises:
        VersionParseError: When the tag is present but names an unknown
            version, mixes families, or deprecates no later than it introduces.
    """

    match = _VERSION_TAG.search(heading)
    if match is None:
        return None
    name = heading[: match.start()].strip()
    if not name:
        raise VersionParseError(f"heading {heading!r} has a version tag but no feature name")
    introduced = parse_version(match.group("intro"))
    deprecated: Optional[Version] = None
    if match.group("dep"):
        deprecated = parse_version(match.group("dep"))
        if deprecated.family is not introduced.family:
            raise VersionParseError(
                f"{name}: deprecation {deprecated.label} is not a {introduced.family.label} version"
            )
        if deprecated <= introduced:
            raise VersionParseError(
                f"{name}: deprecated in {deprecated.label}, which does not follow {introduced.label}"
            )
    return VersionTag(name=name, introduced=introduced, deprecated=deprecated)


@dataclass
class DocumentExtraction:
    """Drafts, links, and parse errors produced from one document."""

    path: str
    drafts: List[FeatureRecord] = field(default_factory=list)
    links: List[LinkReference] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)


@dataclass
class ExtractionAccumulator:
    """Caller-owned accumulator merging per-document extraction results."""

    drafts: List[FeatureRecord] = field(default_factory=list)
    links: List[LinkReference] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)

    def add(self, extraction: DocumentExtraction) -> None:
        self.documents.append(extraction.path)
        self.drafts.extend(extraction.drafts)
        self.links.extend(extraction.links)
        self.errors.extend(extraction.errors)

    def add_error(self, error: ParseError) -> None:
        self.errors.append(error)

    def report(self) -> DiagnosticReport:
        return DiagnosticReport(list(self.errors))


@dataclass
class _OpenRecord:
    level: int
    tag: VersionTag
    heading_line: int
    last_line: int
    paragraphs: List[str] = field(default_factory=list)
    examples: List[CodeExample] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)

    @property
    def slug(self) -> str:
        return slugify(self.tag.name) or f"feature-{self.heading_line}"

    @property
    def feature_id(self) -> str:
        return f"{self.tag.introduced.family.value}:{self.slug}"


def _token_end(token: Token) -> int:
    if isinstance(token, Heading):
        return token.line
    if isinstance(token, Link):
        return token.line
    if isinstance(token, CodeBlock):
        return token.closing_line or token.line_end
    return token.line_end


def _resolve_link_target(document_path: str, target: str) -> Optional[Tuple[str, str]]:
    """Return ``(path, anchor)`` for an internal Markdown link, else ``None``."""

    if not target or _URL_SCHEME.match(target):
        return None
    raw_path, _, anchor = target.partition("#")
    raw_path = unquote(raw_path.split("?", 1)[0]).strip()
    anchor = unquote(anchor).strip().lower()
    if not raw_path:
        return document_path, anchor
    if not raw_path.lower().endswith(MARKDOWN_SUFFIXES):
        return None
    if raw_path.startswith("/"):
        joined = raw_path.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(document_path), raw_path)
    return posixpath.normpath(joined), anchor


class _DocumentExtractor:
    """Single-use walker over one document's token stream."""

    def __init__(self, document: SourceDocument, config: ExtractorConfig) -> None:
        self.document = document
        self.config = config
        self.result = DocumentExtraction(path=document.path)
        self.logger = _LOGGER.child(path=document.path)
        self.stack: List[_OpenRecord] = []

    def run(self, tokens: Sequence[Token]) -> DocumentExtraction:
        for token in tokens:
            if isinstance(token, Heading):
                self._on_heading(token)
                continue
            end = _token_end(token)
            for record in self.stack:
                record.last_line = max(record.last_line, end)
            if not self.stack:
                if isinstance(token, Link):
                    log_event(
                        self.logger,
                        "debug",
                        "Ignoring link outside any feature",
                        line=token.line,
                        target=token.target,
                    )
                continue
            current = self.stack[-1]
            if isinstance(token, Paragraph):
                text = strip_link_markup(token.text).strip()
                if text:
                    current.paragraphs.append(text)
            elif isinstance(token, CodeBlock):
                self._on_code_block(current, token)
            elif isinstance(token, Link):
                current.links.append(token)
        while self.stack:
            self._close(self.stack.pop())
        return self.result

    def _on_heading(self, heading: Heading) -> None:
        while self.stack and self.stack[-1].level >= heading.level:
            self._close(self.stack.pop())
        for record in self.stack:
            record.last_line = max(record.last_line, heading.line)
        try:
            tag = parse_version_tag(heading.text)
        except VersionParseError as exc:
            self.result.errors.append(
                ParseError(path=self.document.path, reason=str(exc), line=heading.line)
            )
            return
        if tag is None:
            return
        self.stack.append(
            _OpenRecord(
                level=heading.level,
                tag=tag,
                heading_line=heading.line,
                last_line=heading.line,
            )
        )

    def _on_code_block(self, record: _OpenRecord, block: CodeBlock) -> None:
        language = block.language.lower()
        if language in self.config.non_code_languages:
            return
        dialect = normalize_dialect(language) if language else default_dialect(record.tag.introduced)
        record.examples.append(
            CodeExample(
                dialect=dialect,
                source=block.source,
                source_location=SourceLocation(
                    path=self.document.path,
                    line_start=block.line_start,
                    line_end=block.line_end,
                ),
            )
        )

    def _close(self, record: _OpenRecord) -> None:
        tag = record.tag
        try:
            draft = FeatureRecord(
                id=record.feature_id,
                name=tag.name,
                anchor=record.slug,
                language_family=tag.introduced.family,
                introduced_version=tag.introduced.label,
                deprecated_version=tag.deprecated.label if tag.deprecated else None,
                description="\n\n".join(record.paragraphs),
                examples=tuple(record.examples),
                source_location=SourceLocation(
                    path=self.document.path,
                    line_start=record.heading_line,
                    line_end=record.last_line,
                ),
            )
        except ValidationError as exc:
            self.result.errors.append(
                ParseError(
                    path=self.document.path,
                    reason=f"invalid feature {tag.name!r}: {exc.errors()[0]['msg']}",
                    line=record.heading_line,
                )
            )
            return
        self.result.drafts.append(draft)
        for link in record.links:
            resolved = _resolve_link_target(self.document.path, link.target)
            if resolved is None:
                continue
            target_path, target_anchor = resolved
            self.result.links.append(
                LinkReference(
                    from_id=draft.id,
                    target_path=target_path,
                    target_anchor=target_anchor,
                    edge_type_hint=self.config.classify(link.text, link.lead_in),
                    source_location=SourceLocation(
                        path=self.document.path, line_start=link.line, line_end=link.line
                    ),
                )
            )


def extract_document(
    document: SourceDocument, config: Optional[ExtractorConfig] = None
) -> DocumentExtraction:
    """Extract drafts and link references from a single document.

    A document that cannot be tokenized yields one :class:`ParseError` and no
    drafts; it never raises.
    """

    config = config or ExtractorConfig()
    try:
        tokens = tokenize(document.text)
    except MarkdownSyntaxError as exc:
        return DocumentExtraction(
            path=document.path,
            errors=[ParseError(path=document.path, reason=exc.reason, line=exc.line)],
        )
    # Drafts are emitted as records close; restore heading order.
    result = _DocumentExtractor(document, config).run(tokens)
    result.drafts.sort(key=lambda draft: draft.source_location.line_start)
    return result


def extract_documents(
    documents: Iterable[SourceDocument],
    config: Optional[ExtractorConfig] = None,
    *,
    workers: int = 1,
    policy: str = "io",
    accumulator: Optional[ExtractionAccumulator] = None,
) -> ExtractionAccumulator:
    """Extract every document, in parallel when ``workers > 1``.

    Results are merged into ``accumulator`` (a fresh one by default) in input
    order, so the outcome does not depend on task scheduling.
    """

    config = config or ExtractorConfig()
    accumulator = accumulator if accumulator is not None else ExtractionAccumulator()
    ordered = list(documents)
    executor, needs_shutdown = create_executor(
        policy, min(workers, len(ordered)), thread_name_prefix="langrefkg-extract"
    )
    if executor is None:
        results = [extract_document(document, config) for document in ordered]
    else:
        try:
            results = list(executor.map(extract_document, ordered, itertools.repeat(config)))
        finally:
            if needs_shutdown:
                executor.shutdown(wait=True)
    for result in results:
        accumulator.add(result)
        for error in result.errors:
            log_event(_LOGGER, "warning", "Document parse problem", path=error.path, line=error.line, reason=error.reason)
    log_event(
        _LOGGER,
        "info",
        "Extraction complete",
        documents=len(ordered),
        drafts=len(accumulator.drafts),
        links=len(accumulator.links),
        parse_errors=len(accumulator.errors),
    )
    return accumulator
