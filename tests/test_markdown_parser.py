from docforge.errors import ParseError
from docforge.markdown.html import render_html
from docforge.markdown.parser import (
    Blockquote,
    CodeBlock,
    Heading,
    ImageBlock,
    OrderedItem,
    OrderedList,
    Paragraph,
    UnorderedList,
    flatten_blocks,
    parse_blocks,
    parse_document,
)


SAMPLE = """# Title

Intro line one
line two

- a
- b
* c

1. first
2) second

```python
x = 1
```

![Diagram](data:image/png;base64,AAAA)

> quoted
> more
"""


def test_parses_every_construct():
    assert parse_blocks(SAMPLE) == [
        Heading(1, "Title"),
        Paragraph("Intro line one line two"),
        UnorderedList(("a", "b", "c")),
        OrderedList((OrderedItem(1, "first"), OrderedItem(2, "second"))),
        CodeBlock("x = 1", "python"),
        ImageBlock("Diagram", "data:image/png;base64,AAAA"),
        Blockquote("quoted more"),
    ]


def test_heading_levels_stop_at_three():
    assert parse_blocks("## Two\n\n### Three\n\n#### deep") == [
        Heading(2, "Two"),
        Heading(3, "Three"),
        Paragraph("#### deep"),
    ]


def test_switching_list_family_starts_a_new_list():
    assert parse_blocks("- a\n1. b\n- c") == [
        UnorderedList(("a",)),
        OrderedList((OrderedItem(1, "b"),)),
        UnorderedList(("c",)),
    ]


def test_list_after_paragraph_without_blank_line():
    assert parse_blocks("text\n- item") == [Paragraph("text"), UnorderedList(("item",))]


def test_code_fence_keeps_raw_content():
    text = "```\n  a\n\n# not a heading\n  b\n```"
    assert parse_blocks(text) == [CodeBlock("  a\n\n# not a heading\n  b", "")]


def test_unterminated_fence_keeps_content_and_warns():
    result = parse_document("intro\n\n```js\nlet a;\nlet b;")
    assert result.blocks == [Paragraph("intro"), CodeBlock("let a;\nlet b;", "js")]
    assert len(result.warnings) == 1
    assert isinstance(result.warnings[0], ParseError)
    assert result.warnings[0].line_number == 3


def test_empty_and_crlf_input():
    assert parse_blocks("") == []
    assert parse_blocks("# T\r\nbody") == [Heading(1, "T"), Paragraph("body")]


def test_flatten_round_trip():
    blocks = parse_blocks(SAMPLE)
    assert parse_blocks(flatten_blocks(blocks)) == blocks


def test_html_skips_mermaid_and_escapes():
    blocks = parse_blocks("# A <b>\n\n```mermaid\ngraph TD\n```\n\n1. one\n2. two")
    html = render_html(blocks)
    assert "<h1>A &lt;b&gt;</h1>" in html
    assert "mermaid" not in html
    assert '<ol start="1"><li>one</li><li>two</li></ol>' in html
