"""Line-oriented markdown block parser.

Only a practical subset is recognised: ATX headings up to level 3, bullet and
numbered lists, fenced code, standalone images, blockquotes and paragraphs.
Inline markup is left untouched in the block text.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

from docforge.errors import ParseError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph:
    text: str


@dataclass(frozen=True)
class UnorderedList:
    items: Tuple[str, ...]


@dataclass(frozen=True)
class OrderedItem:
    index: int
    text: str


@dataclass(frozen=True)
class OrderedList:
    items: Tuple[OrderedItem, ...]


@dataclass(frozen=True)
class CodeBlock:
    content: str
    language: str = ""


@dataclass(frozen=True)
class ImageBlock:
    alt: str
    src: str


@dataclass(frozen=True)
class Blockquote:
    text: str


Block = Union[Heading, Paragraph, UnorderedList, OrderedList, CodeBlock, ImageBlock, Blockquote]


@dataclass
class ParseResult:
    blocks: List[Block]
    warnings: List[ParseError] = field(default_factory=list)


_FENCE_RE = re.compile(r"^```(?P<info>[^`]*)$")
_HEADING_RE = re.compile(r"^(?P<marks>#{1,3})(?:[ \t]+(?P<text>.*))?$")
_IMAGE_RE = re.compile(r"^!\[(?P<alt>[^\]]*)\]\((?P<src>[^)\s]+)\)$")
_UNORDERED_RE = re.compile(r"^[-*+](?:[ \t]+(?P<text>.*))?$")
_ORDERED_RE = re.compile(r"^(?P<index>\d+)[.)](?:[ \t]+(?P<text>.*))?$")
_QUOTE_RE = re.compile(r"^>[ \t]?(?P<text>.*)$")


def _is_closing_fence(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith("```") and not stripped[3:].strip("`").strip()


class _Accumulator:
    """Collects contiguous lines of one construct until flushed."""

    def __init__(self, blocks: List[Block]) -> None:
        self._blocks = blocks
        self.kind: Optional[str] = None
        self._parts: list = []

    def add(self, kind: str, part) -> None:
        if self.kind != kind:
            self.flush()
            self.kind = kind
        self._parts.append(part)

    def flush(self) -> None:
        if self.kind is None:
            return
        parts = self._parts
        if self.kind == "paragraph":
            self._blocks.append(Paragraph(" ".join(parts)))
        elif self.kind == "quote":
            self._blocks.append(Blockquote(" ".join(p for p in parts if p)))
        elif self.kind == "unordered":
            self._blocks.append(UnorderedList(tuple(parts)))
        elif self.kind == "ordered":
            self._blocks.append(OrderedList(tuple(parts)))
        self.kind = None
        self._parts = []


def parse_document(text: str) -> ParseResult:
    """Parse ``text`` into blocks, collecting non-fatal parse warnings."""
    blocks: List[Block] = []
    warnings: List[ParseError] = []
    pending = _Accumulator(blocks)
    lines = (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")

    code_lines: Optional[List[str]] = None
    code_language = ""
    code_start = 0

    for number, line in enumerate(lines, start=1):
        if code_lines is not None:
            if _is_closing_fence(line):
                blocks.append(CodeBlock("\n".join(code_lines), code_language))
                code_lines = None
            else:
                code_lines.append(line)
            continue

        stripped = line.strip()
        if not stripped:
            pending.flush()
            continue

        fence = _FENCE_RE.match(stripped)
        if fence:
            pending.flush()
            code_lines = []
            code_language = fence.group("info").strip()
            code_start = number
            continue

        heading = _HEADING_RE.match(stripped)
        if heading:
            pending.flush()
            blocks.append(Heading(len(heading.group("marks")), (heading.group("text") or "").strip()))
            continue

        image = _IMAGE_RE.match(stripped)
        if image:
            pending.flush()
            blocks.append(ImageBlock(image.group("alt"), image.group("src")))
            continue

        quote = _QUOTE_RE.match(stripped)
        if quote:
            pending.add("quote", quote.group("text").strip())
            continue

        bullet = _UNORDERED_RE.match(stripped)
        if bullet:
            pending.add("unordered", (bullet.group("text") or "").strip())
            continue

        numbered = _ORDERED_RE.match(stripped)
        if numbered:
            item = OrderedItem(int(numbered.group("index")), (numbered.group("text") or "").strip())
            pending.add("ordered", item)
            continue

        pending.add("paragraph", stripped)

    if code_lines is not None:
        warning = ParseError("Unterminated code fence", line_number=code_start)
        warnings.append(warning)
        logger.warning("%s opened on line %d; keeping captured content", warning, code_start)
        blocks.append(CodeBlock("\n".join(code_lines), code_language))
    pending.flush()
    return ParseResult(blocks, warnings)


def parse_blocks(text: str) -> List[Block]:
    return parse_document(text).blocks


def _flatten_block(block: Block) -> Optional[str]:
    if isinstance(block, Heading):
        marks = "#" * block.level
        return f"{marks} {block.text}" if block.text else marks
    if isinstance(block, Paragraph):
        return block.text
    if isinstance(block, UnorderedList):
        return "\n".join(f"- {item}".rstrip() for item in block.items)
    if isinstance(block, OrderedList):
        return "\n".join(f"{item.index}. {item.text}".rstrip() for item in block.items)
    if isinstance(block, CodeBlock):
        if block.content:
            return f"```{block.language}\n{block.content}\n```"
        return f"```{block.language}\n```"
    if isinstance(block, ImageBlock):
        return f"![{block.alt}]({block.src})"
    if isinstance(block, Blockquote):
        return f"> {block.text}".rstrip()
    return None


def flatten_blocks(blocks: Sequence[Block]) -> str:
    """Serialise blocks back to markdown, one blank line between blocks."""
    parts = [part for part in (_flatten_block(block) for block in blocks) if part is not None]
    return "\n\n".join(parts)
