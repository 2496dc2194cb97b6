"""Tokenizer coverage: block structure, link extraction, slugs, and failures."""

from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from LangRefKG.FeatureGraph.errors import MarkdownSyntaxError
from LangRefKG.FeatureGraph.markdown import (
    CodeBlock,
    Heading,
    Link,
    Paragraph,
    slugify,
    strip_link_markup,
    tokenize,
)

pytestmark = pytest.mark.unit


def test_headings_paragraphs_and_fences_in_order() -> None:
    text = "\n".join(
        [
            "# Lambdas (C++11)",
            "",
            "Anonymous function objects.",
            "Second line.",
            "",
            "```cpp",
            "auto f = [] { return 1; };",
            "```",
            "",
            "Setext title",
            "------------",
        ]
    )
    tokens = tokenize(text)

    assert tokens[0] == Heading(level=1, text="Lambdas (C++11)", line=1)
    assert tokens[1] == Paragraph(
        text="Anonymous function objects.\nSecond line.", line_start=3, line_end=4
    )
    block = tokens[2]
    assert isinstance(block, CodeBlock)
    assert block.language == "cpp"
    assert block.source == "auto f = [] { return 1; };\n"
    assert (block.line_start, block.line_end, block.closing_line) == (7, 7, 8)
    assert tokens[3] == Heading(level=2, text="Setext title", line=10)


def test_closing_hashes_are_stripped() -> None:
    (heading,) = tokenize("## constexpr (C++11) ##\n")
    assert heading == Heading(level=2, text="constexpr (C++11)", line=1)


def test_links_follow_their_paragraph_with_lead_in() -> None:
    text = "See also [auto](auto.md#auto). This requires [decltype](types.md#decltype).\n"
    tokens = tokenize(text)

    assert isinstance(tokens[0], Paragraph)
    first, second = tokens[1], tokens[2]
    assert first == Link(text="auto", target="auto.md#auto", line=1, lead_in="See also")
    assert second.target == "types.md#decltype"
    assert second.lead_in == "This requires"


def test_images_and_code_spans_are_not_links() -> None:
    text = "![diagram](img.md) and `[not](a.md)` but [yes](b.md).\n"
    links = [token for token in tokenize(text) if isinstance(token, Link)]
    assert [link.target for link in links] == ["b.md"]


def test_link_title_and_angle_brackets() -> None:
    text = '[Spaced](<dir/my file.md#x> "Title")\n'
    (_, link) = tokenize(text)
    assert link.target == "dir/my file.md#x"
    assert link.title == "Title"


def test_fence_content_is_not_tokenized() -> None:
    text = "~~~\n# not a heading\n[not](a link)\n~~~\n"
    tokens = tokenize(text)
    assert len(tokens) == 1
    assert isinstance(tokens[0], CodeBlock)
    assert tokens[0].language == ""


def test_front_matter_is_skipped() -> None:
    text = "---\ntitle: x\n---\n# Real (C11)\n"
    assert tokenize(text) == [Heading(level=1, text="Real (C11)", line=4)]


def test_unterminated_fence_raises() -> None:
    with pytest.raises(MarkdownSyntaxError) as excinfo:
        tokenize("# A (C99)\n\n```c\nint x;\n")
    assert excinfo.value.line == 3


def test_nul_bytes_raise() -> None:
    with pytest.raises(MarkdownSyntaxError):
        tokenize("# A (C99)\n\x00\n")


def test_strip_link_markup_keeps_text() -> None:
    assert strip_link_markup("Use [auto](a.md#auto) here") == "Use auto here"


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Range-based for loop", "range-based-for-loop"),
        ("std::optional<T>", "stdoptionalt"),
        ("  Café   au  lait ", "cafe-au-lait"),
        ("constexpr -- if", "constexpr-if"),
        ("_Generic", "_generic"),
        ("***", ""),
    ],
)
def test_slugify(title: str, expected: str) -> None:
    assert slugify(title) == expected


@pytest.mark.property
@given(st.text(max_size=40))
def test_slugify_is_idempotent_and_restricted(text: str) -> None:
    slug = slugify(text)
    assert slugify(slug) == slug
    assert set(slug) <= set("abcdefghijklmnopqrstuvwxyz0123456789_-")
    assert "--" not in slug
    assert not slug.startswith("-") and not slug.endswith("-")
