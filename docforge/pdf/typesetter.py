"""Paginating PDF typesetter for the markdown block model.

Layout works with a cursor measured from the top of the page. Every fragment
asks ``ensure_space`` for its height before it is drawn; when the fragment
would cross the bottom margin a new page is started.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import requests
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from docforge.errors import ImageDecodeError
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


logger = logging.getLogger(__name__)

_EPSILON = 1e-6

ImageLoader = Callable[[str], bytes]


@dataclass(frozen=True)
class PageLayout:
    width: float = A4[0]
    height: float = A4[1]
    margin_top: float = 20 * mm
    margin_bottom: float = 20 * mm
    margin_left: float = 20 * mm
    margin_right: float = 20 * mm

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right

    @property
    def content_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom

    @property
    def bottom(self) -> float:
        return self.height - self.margin_bottom


@dataclass(frozen=True)
class TypeStyle:
    body_font: str = "Helvetica"
    bold_font: str = "Helvetica-Bold"
    italic_font: str = "Helvetica-Oblique"
    mono_font: str = "Courier"
    body_size: float = 11
    code_size: float = 9
    caption_size: float = 9
    heading_sizes: Tuple[float, float, float] = (20, 16, 13)
    line_height_factor: float = 1.4
    block_gap: float = 6
    list_item_gap: float = 2
    list_gap: float = 4
    quote_gap: float = 6
    code_padding: float = 6
    list_indent: float = 16
    quote_indent: float = 14
    image_gap: float = 8
    code_background: Tuple[float, float, float] = (0.96, 0.96, 0.96)
    quote_rule: Tuple[float, float, float] = (0.8, 0.8, 0.8)

    def line_height(self, size: float) -> float:
        return size * self.line_height_factor


@dataclass(frozen=True)
class Placement:
    """A drawn fragment; ``y`` is measured from the top of the page."""

    page: int
    kind: str
    x: float
    y: float
    width: float
    height: float
    text: str = ""


def _fit_prefix(word: str, font: str, size: float, max_width: float) -> int:
    count = 1
    while count < len(word) and stringWidth(word[: count + 1], font, size) <= max_width:
        count += 1
    return count


def wrap_text(text: str, font: str, size: float, max_width: float) -> List[str]:
    """Greedy word wrap. Words wider than a line are broken by characters.

    Always returns at least one line, so empty text still occupies height.
    """
    words = (text or "").split()
    if not words:
        return [""]
    lines: List[str] = []
    current = ""
    for word in words:
        while len(word) > 1 and stringWidth(word, font, size) > max_width:
            if current:
                lines.append(current)
                current = ""
            cut = _fit_prefix(word, font, size, max_width)
            lines.append(word[:cut])
            word = word[cut:]
        candidate = f"{current} {word}" if current else word
        if not current or stringWidth(candidate, font, size) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def wrap_code(content: str, font: str, size: float, max_width: float) -> List[str]:
    """Hard-wrap monospace lines at the column limit, keeping whitespace."""
    char_width = stringWidth("M", font, size) or size * 0.6
    columns = max(1, int(max_width // char_width))
    wrapped: List[str] = []
    for raw in (content or "").split("\n"):
        line = raw.expandtabs(4).rstrip("\r")
        if not line:
            wrapped.append("")
            continue
        for start in range(0, len(line), columns):
            wrapped.append(line[start : start + columns])
    return wrapped or [""]


def load_image_bytes(src: str) -> bytes:
    """Fetch the bytes behind an image source: data URL, http(s) URL or path."""
    try:
        if src.startswith("data:"):
            header, _, payload = src.partition(",")
            if ";base64" not in header:
                raise ImageDecodeError("Only base64 data URLs are supported", src=src[:64])
            return base64.b64decode(payload, validate=True)
        if src.startswith(("http://", "https://")):
            response = requests.get(src, timeout=30)
            response.raise_for_status()
            return response.content
        return Path(src).read_bytes()
    except ImageDecodeError:
        raise
    except (binascii.Error, ValueError, OSError, requests.RequestException) as exc:
        raise ImageDecodeError(f"Unable to load image: {src[:64]}", src=src[:64]) from exc


class PdfTypesetter:
    def __init__(
        self,
        layout: Optional[PageLayout] = None,
        style: Optional[TypeStyle] = None,
        image_loader: ImageLoader = load_image_bytes,
    ) -> None:
        self.layout = layout or PageLayout()
        self.style = style or TypeStyle()
        self.image_loader = image_loader
        self.placements: List[Placement] = []
        self.page = 1
        self.cursor = self.layout.margin_top
        self._canvas: Optional[canvas.Canvas] = None

    @property
    def page_count(self) -> int:
        return self.page

    # -- page management -------------------------------------------------

    def _pdf_y(self, top: float) -> float:
        return self.layout.height - top

    def _require_canvas(self) -> canvas.Canvas:
        if self._canvas is None:
            raise RuntimeError("No open document; call typeset() to lay out blocks")
        return self._canvas

    def new_page(self) -> None:
        self._require_canvas().showPage()
        self.page += 1
        self.cursor = self.layout.margin_top

    def ensure_space(self, height: float) -> None:
        at_top = self.cursor <= self.layout.margin_top + _EPSILON
        if self.cursor + height > self.layout.bottom + _EPSILON and not at_top:
            self.new_page()

    def _place(self, kind: str, x: float, width: float, height: float, text: str = "") -> None:
        self.placements.append(Placement(self.page, kind, x, self.cursor, width, height, text))

    # -- writers ---------------------------------------------------------

    def write_text(
        self,
        text: str,
        font: str,
        size: float,
        indent: float = 0.0,
        marker: Optional[str] = None,
        gap: Optional[float] = None,
        rule: bool = False,
        kind: str = "text",
    ) -> None:
        c = self._require_canvas()
        x = self.layout.margin_left + indent
        width = self.layout.content_width - indent
        line_height = self.style.line_height(size)
        for index, line in enumerate(wrap_text(text, font, size, width)):
            self.ensure_space(line_height)
            baseline = self._pdf_y(self.cursor + size)
            c.setFillColorRGB(0, 0, 0)
            c.setFont(font, size)
            c.drawString(x, baseline, line)
            if index == 0 and marker:
                marker_x = x - stringWidth(marker, font, size) - 4
                c.drawString(marker_x, baseline, marker)
            if rule:
                c.setStrokeColorRGB(*self.style.quote_rule)
                c.setLineWidth(2)
                rule_x = x - 8
                c.line(rule_x, self._pdf_y(self.cursor), rule_x, self._pdf_y(self.cursor + line_height))
            self._place(kind, x, width, line_height, line)
            self.cursor += line_height
        self.cursor += self.style.block_gap if gap is None else gap

    def write_heading(self, block: Heading) -> None:
        level = min(max(block.level, 1), len(self.style.heading_sizes))
        size = self.style.heading_sizes[level - 1]
        self.write_text(block.text, self.style.bold_font, size, kind="heading")

    def write_list(self, markers: Sequence[str], items: Sequence[str]) -> None:
        for marker, item in zip(markers, items):
            self.write_text(
                item,
                self.style.body_font,
                self.style.body_size,
                indent=self.style.list_indent,
                marker=marker,
                gap=self.style.list_item_gap,
                kind="list-item",
            )
        self.cursor += self.style.list_gap

    def write_code(self, block: CodeBlock) -> None:
        c = self._require_canvas()
        style = self.style
        pad = style.code_padding
        size = style.code_size
        line_height = style.line_height(size)
        x = self.layout.margin_left
        width = self.layout.content_width
        lines = wrap_code(block.content, style.mono_font, size, width - 2 * pad)

        total_height = len(lines) * line_height + 2 * pad
        if total_height <= self.layout.content_height + _EPSILON:
            self.ensure_space(total_height)

        index = 0
        while index < len(lines):
            available = self.layout.bottom - self.cursor - 2 * pad
            fit = int(math.floor((available + _EPSILON) / line_height))
            at_top = self.cursor <= self.layout.margin_top + _EPSILON
            if fit < 1 and not at_top:
                self.new_page()
                continue
            chunk = lines[index : index + max(1, fit)]
            height = len(chunk) * line_height + 2 * pad
            self.ensure_space(height)
            c.setFillColorRGB(*style.code_background)
            c.rect(x, self._pdf_y(self.cursor + height), width, height, stroke=0, fill=1)
            self._place("code-background", x, width, height)
            top = self.cursor
            self.cursor += pad
            c.setFillColorRGB(0, 0, 0)
            c.setFont(style.mono_font, size)
            for line in chunk:
                c.drawString(x + pad, self._pdf_y(self.cursor + size), line)
                self._place("code", x + pad, width - 2 * pad, line_height, line)
                self.cursor += line_height
            self.cursor = top + height
            index += len(chunk)
        self.cursor += style.block_gap

    def write_image(self, block: ImageBlock) -> None:
        c = self._require_canvas()
        data = self.image_loader(block.src)
        try:
            reader = ImageReader(io.BytesIO(data))
            natural_width, natural_height = reader.getSize()
        except Exception as exc:
            raise ImageDecodeError(f"Unable to decode image: {block.alt or block.src[:64]}", src=block.src[:64]) from exc
        if not natural_width or not natural_height:
            raise ImageDecodeError(f"Image has no size: {block.alt or block.src[:64]}", src=block.src[:64])

        caption_height = self.style.line_height(self.style.caption_size) if block.alt else 0.0
        scale = min(1.0, self.layout.content_width / natural_width)
        max_height = self.layout.content_height - caption_height
        if natural_height * scale > max_height > 0:
            scale = max_height / natural_height
        width = natural_width * scale
        height = natural_height * scale

        self.ensure_space(height + caption_height)
        x = self.layout.margin_left + (self.layout.content_width - width) / 2
        try:
            c.drawImage(reader, x, self._pdf_y(self.cursor + height), width=width, height=height)
        except Exception as exc:
            raise ImageDecodeError(f"Unable to draw image: {block.alt or block.src[:64]}", src=block.src[:64]) from exc
        self._place("image", x, width, height, block.alt)
        self.cursor += height
        if block.alt:
            size = self.style.caption_size
            c.setFillColorRGB(0.4, 0.4, 0.4)
            c.setFont(self.style.italic_font, size)
            c.drawCentredString(self.layout.margin_left + self.layout.content_width / 2, self._pdf_y(self.cursor + size), block.alt)
            self._place("caption", self.layout.margin_left, self.layout.content_width, caption_height, block.alt)
            self.cursor += caption_height
        self.cursor += self.style.image_gap

    def write_block(self, block: Block) -> None:
        style = self.style
        if isinstance(block, Heading):
            self.write_heading(block)
        elif isinstance(block, Paragraph):
            self.write_text(block.text, style.body_font, style.body_size)
        elif isinstance(block, UnorderedList):
            self.write_list(["•"] * len(block.items), block.items)
        elif isinstance(block, OrderedList):
            self.write_list([f"{item.index}." for item in block.items], [item.text for item in block.items])
        elif isinstance(block, CodeBlock):
            self.write_code(block)
        elif isinstance(block, ImageBlock):
            self.write_image(block)
        elif isinstance(block, Blockquote):
            self.write_text(
                block.text,
                style.italic_font,
                style.body_size,
                indent=style.quote_indent,
                gap=style.block_gap + style.quote_gap,
                rule=True,
                kind="quote",
            )
        else:
            logger.warning("Skipping unsupported block type %s", type(block).__name__)

    def typeset(self, blocks: Sequence[Block]) -> bytes:
        """Lay out ``blocks`` and return the PDF bytes."""
        buffer = io.BytesIO()
        self._canvas = canvas.Canvas(buffer, pagesize=(self.layout.width, self.layout.height))
        self.placements = []
        self.page = 1
        self.cursor = self.layout.margin_top
        try:
            for block in blocks:
                self.write_block(block)
            self._canvas.save()
            return buffer.getvalue()
        finally:
            self._canvas = None
            buffer.close()
