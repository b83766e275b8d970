"""On-screen HTML rendering of the block model."""
from __future__ import annotations

from html import escape
from typing import Iterable, Sequence

from docforge.markdown.parser import (
    Block,
    Blockquote,
    CodeBlock,
    Heading,
    ImageBlock,
    OrderedList,
    Paragraph,
    UnorderedList,
)


def _render_block(block: Block) -> str:
    if isinstance(block, Heading):
        return f"<h{block.level}>{escape(block.text)}</h{block.level}>"
    if isinstance(block, Paragraph):
        return f"<p>{escape(block.text)}</p>"
    if isinstance(block, UnorderedList):
        items = "".join(f"<li>{escape(item)}</li>" for item in block.items)
        return f"<ul>{items}</ul>"
    if isinstance(block, OrderedList):
        start = block.items[0].index if block.items else 1
        items = "".join(f"<li>{escape(item.text)}</li>" for item in block.items)
        return f'<ol start="{start}">{items}</ol>'
    if isinstance(block, CodeBlock):
        lang = f' class="language-{escape(block.language)}"' if block.language else ""
        return f"<pre><code{lang}>{escape(block.content)}</code></pre>"
    if isinstance(block, ImageBlock):
        return f'<figure><img src="{escape(block.src)}" alt="{escape(block.alt)}"/></figure>'
    if isinstance(block, Blockquote):
        return f"<blockquote>{escape(block.text)}</blockquote>"
    return ""


def render_html(blocks: Sequence[Block], skip_languages: Iterable[str] = ("mermaid",)) -> str:
    """Render blocks as an HTML fragment.

    Code blocks in ``skip_languages`` are dropped; diagrams are displayed by
    the diagram view instead.
    """
    skipped = {lang.lower() for lang in skip_languages}
    parts = []
    for block in blocks:
        if isinstance(block, CodeBlock) and block.language.lower() in skipped:
            continue
        rendered = _render_block(block)
        if rendered:
            parts.append(rendered)
    return "\n".join(parts)
