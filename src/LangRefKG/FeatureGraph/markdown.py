# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.markdown",
#   "purpose": "Line-oriented Markdown tokenizer producing a closed block/inline token AST.",
#   "sections": [
#     {"id": "tokens", "name": "Heading / Paragraph / CodeBlock / Link", "anchor": "TOK", "kind": "api"},
#     {"id": "tokenize", "name": "tokenize", "anchor": "function-tokenize", "kind": "function"},
#     {"id": "slugify", "name": "slugify", "anchor": "function-slugify", "kind": "function"},
#     {"id": "strip-link-markup", "name": "strip_link_markup", "anchor": "function-strip-link-markup", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Line-oriented Markdown tokenizer producing a closed token AST.

Only the structure the extractor needs is recognised: ATX and setext headings,
fenced code blocks, paragraphs (list items and block quotes fold into
paragraph text), and inline links. The token stream is a flat list of four
frozen dataclasses, :class:`Heading`, :class:`Paragraph`, :class:`CodeBlock`
and :class:`Link`, so consumers can dispatch exhaustively with ``isinstance``.
Each :class:`Link` follows the :class:`Paragraph` it was found in.

Documents that cannot be tokenized (NUL bytes, an unterminated fence) raise
:class:`~LangRefKG.FeatureGraph.errors.MarkdownSyntaxError`.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .errors import MarkdownSyntaxError

__all__ = [
    "Heading",
    "Paragraph",
    "CodeBlock",
    "Link",
    "Token",
    "tokenize",
    "slugify",
    "strip_link_markup",
]


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    line: int


@dataclass(frozen=True)
class Paragraph:
    text: str
    line_start: int
    line_end: int


@dataclass(frozen=True)
class CodeBlock:
    """Fenced code block; ``line_start``/``line_end`` span the body only."""

    info: str
    source: str
    line_start: int
    line_end: int
    closing_line: int = 0

    @property
    def language(self) -> str:
        """Return the first word of the info string (``""`` when absent)."""

        parts = self.info.split()
        if not parts:
            return ""
        return parts[0].strip("{}.")


@dataclass(frozen=True)
class Link:
    text: str
    target: str
    line: int
    title: Optional[str] = None
    lead_in: str = ""


Token = Union[Heading, Paragraph, CodeBlock, Link]

_FENCE_OPEN = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_ATX_HEADING = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t]*$")
_ATX_CLOSING = re.compile(r"(?:^|[ \t]+)#+[ \t]*$")
_SETEXT_H1 = re.compile(r"^ {0,3}=+[ \t]*$")
_SETEXT_H2 = re.compile(r"^ {0,3}-+[ \t]*$")
_FRONT_MATTER_END = ("---", "...")
_CODE_SPAN = re.compile(r"(`+)(?:.+?)\1", re.DOTALL)
_INLINE_LINK = re.compile(
    r"(?<!!)\[(?P<text>(?:[^\[\]\\]|\\.|\[[^\[\]]*\])*)\]"
    r"\(\s*(?P<target><[^<>\n]*>|[^\s()<>]*(?:\([^\s()]*\)[^\s()<>]*)*)"
    r"(?:\s+(?P<title>\"[^\"]*\"|'[^']*'|\([^()]*\)))?\s*\)"
)
_LEAD_IN_BOUNDARY = re.compile(r"[.!?;](?=\s)|\n(?=[ \t]*(?:[-*+]|\d+[.)])[ \t])")
_LIST_OR_QUOTE_MARKER = re.compile(r"^[ \t]*(?:>[ \t]?)*(?:(?:[-*+]|\d+[.)])[ \t]+)?")


def tokenize(text: str) -> List[Token]:
    """Split ``text`` into a flat list of block tokens with trailing link tokens.

    Raises:
        MarkdownSyntaxError: If the document contains NUL bytes or a code fence
            that is never closed.
    """

    if "\x00" in text:
        line = text.count("\n", 0, text.index("\x00")) + 1
        raise MarkdownSyntaxError("document contains NUL bytes", line=line)

    lines = text.splitlines()
    tokens: List[Token] = []
    paragraph: List[Tuple[int, str]] = []

    def flush() -> None:
        if paragraph:
            tokens.extend(_paragraph_tokens(paragraph))
            paragraph.clear()

    index = _skip_front_matter(lines)
    while index < len(lines):
        raw = lines[index]
        lineno = index + 1

        if not raw.strip():
            flush()
            index += 1
            continue

        if raw.lstrip().startswith("<!--"):
            flush()
            index = _skip_html_comment(lines, index)
            continue

        fence = _FENCE_OPEN.match(raw)
        if fence and not (fence.group("fence")[0] == "`" and "`" in fence.group("info")):
            flush()
            block, index = _read_fence(lines, index, fence)
            tokens.append(block)
            continue

        heading = _ATX_HEADING.match(raw)
        if heading:
            flush()
            title = _ATX_CLOSING.sub("", heading.group("text") or "").strip()
            tokens.append(Heading(level=len(heading.group("hashes")), text=title, line=lineno))
            index += 1
            continue

        if paragraph and (_SETEXT_H1.match(raw) or _SETEXT_H2.match(raw)):
            level = 1 if _SETEXT_H1.match(raw) else 2
            title = " ".join(part.strip() for _, part in paragraph)
            first_line = paragraph[0][0]
            paragraph.clear()
            tokens.append(Heading(level=level, text=title, line=first_line))
            index += 1
            continue

        if _SETEXT_H2.match(raw):
            # Thematic break outside a paragraph.
            index += 1
            continue

        paragraph.append((lineno, raw))
        index += 1

    flush()
    return tokens


def _skip_front_matter(lines: Sequence[str]) -> int:
    if not lines or lines[0].strip() != "---":
        return 0
    for index in range(1, len(lines)):
        if lines[index].strip() in _FRONT_MATTER_END:
            return index + 1
    return 0


def _skip_html_comment(lines: Sequence[str], index: int) -> int:
    for cursor in range(index, len(lines)):
        if "-->" in lines[cursor]:
            return cursor + 1
    return len(lines)


def _read_fence(lines: Sequence[str], index: int, match: re.Match[str]) -> Tuple[CodeBlock, int]:
    fence = match.group("fence")
    indent = len(match.group("indent"))
    closing = re.compile(rf"^ {{0,3}}{re.escape(fence[0])}{{{len(fence)},}}[ \t]*$")
    body: List[str] = []
    cursor = index + 1
    while cursor < len(lines):
        line = lines[cursor]
        if closing.match(line):
            start = index + 2
            end = max(start, cursor)
            block = CodeBlock(
                info=match.group("info").strip(),
                source="\n".join(body) + ("\n" if body else ""),
                line_start=start,
                line_end=end if body else start,
                closing_line=cursor + 1,
            )
            return block, cursor + 1
        body.append(_strip_indent(line, indent))
        cursor += 1
    raise MarkdownSyntaxError("unterminated code fence", line=index + 1)


def _strip_indent(line: str, width: int) -> str:
    removable = len(line) - len(line.lstrip(" "))
    return line[min(width, removable) :]


def _mask_code_spans(text: str) -> str:
    """Blank out inline code so link syntax inside backticks is ignored."""

    return _CODE_SPAN.sub(lambda m: " " * len(m.group(0)), text)


def _paragraph_tokens(lines: Sequence[Tuple[int, str]]) -> List[Token]:
    line_start = lines[0][0]
    line_end = lines[-1][0]
    plain = "\n".join(_LIST_OR_QUOTE_MARKER.sub("", raw, count=1).strip() for _, raw in lines)
    joined = "\n".join(raw for _, raw in lines)
    tokens: List[Token] = [Paragraph(text=plain, line_start=line_start, line_end=line_end)]

    masked = _mask_code_spans(joined)
    boundaries = [m.end() for m in _LEAD_IN_BOUNDARY.finditer(masked)]
    previous_end = 0
    for match in _INLINE_LINK.finditer(masked):
        start = match.start()
        boundary = max([b for b in boundaries if b <= start] + [previous_end])
        lead_in = joined[boundary:start]
        target = joined[match.start("target") : match.end("target")].strip()
        if target.startswith("<") and target.endswith(">"):
            target = target[1:-1].strip()
        title = match.group("title")
        tokens.append(
            Link(
                text=joined[match.start("text") : match.end("text")].strip(),
                target=target,
                line=line_start + joined.count("\n", 0, start),
                title=title[1:-1] if title else None,
                lead_in=" ".join(lead_in.split()),
            )
        )
        previous_end = match.end()
    return tokens


def strip_link_markup(text: str) -> str:
    """Replace ``[text](target)`` with ``text`` (code spans are left untouched)."""

    masked = _mask_code_spans(text)
    pieces: List[str] = []
    cursor = 0
    for match in _INLINE_LINK.finditer(masked):
        pieces.append(text[cursor : match.start()])
        pieces.append(text[match.start("text") : match.end("text")])
        cursor = match.end()
    pieces.append(text[cursor:])
    return "".join(pieces)


def slugify(text: str) -> str:
    """Return the anchor slug for heading ``text``.

    NFKD-normalise and drop non-ASCII, lowercase, keep only ``a-z0-9``, space,
    ``_`` and ``-``, turn whitespace runs into ``-``, collapse repeated ``-``
    and strip them from both ends. ``"std::optional<T>"`` → ``"stdoptionalt"``,
    ``"Range-based for loop"`` → ``"range-based-for-loop"``.
    """

    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    lowered = normalized.lower()
    kept = re.sub(r"[^a-z0-9 _\-\s]", "", lowered)
    hyphenated = re.sub(r"\s+", "-", kept.strip())
    return re.sub(r"-{2,}", "-", hyphenated).strip("-")
