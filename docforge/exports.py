"""Markdown and PDF exports of a generated document."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from docforge.diagrams.renderer import DiagramRenderer
from docforge.documents.models import Document
from docforge.documents.text import MERMAID_BLOCK_RE, strip_diagram_fences
from docforge.errors import RenderError
from docforge.markdown.parser import Block, CodeBlock, Heading, ImageBlock, parse_blocks
from docforge.pdf.typesetter import PageLayout, PdfTypesetter, TypeStyle
from docforge.utils.file_utils import write_export


logger = logging.getLogger(__name__)

MARKDOWN_FILENAME = "documentation.md"
PDF_FILENAME = "documentation.pdf"
DEFAULT_TITLE = "Project Documentation"
VISUAL_SECTION_TITLE = "Visual Representation"
VISUAL_CAPTION = "Mermaid.js diagram representation"

_LEADING_MARKDOWN_FENCE_RE = re.compile(r"^```markdown\s*\n", re.IGNORECASE)


async def convert_mermaid_markdown_to_images(markdown: str, renderer: DiagramRenderer) -> Tuple[str, int]:
    """Replace mermaid blocks with inline PNG images.

    Blocks that fail to render are kept as they are. Returns the rewritten
    markdown and the number of diagrams converted.
    """
    content = _LEADING_MARKDOWN_FENCE_RE.sub("", markdown or "", count=1)
    segments: List[str] = []
    diagrams = 0
    cursor = 0
    for match in MERMAID_BLOCK_RE.finditer(content):
        start, end = match.span()
        chart = match.group(1).strip()
        segments.append(content[cursor:start])
        cursor = end
        if not chart:
            segments.append(match.group(0))
            continue
        try:
            raster = await renderer.rasterize(chart)
        except RenderError:
            logger.exception("Failed to render Mermaid diagram for export")
            segments.append(match.group(0))
            continue
        image_markup = f"![Diagram {diagrams + 1}]({raster.data_url()})"
        preceding = segments[-1] if segments else ""
        if preceding and not preceding.endswith("\n"):
            image_markup = f"\n{image_markup}"
        following = content[end : end + 1]
        if following and following != "\n":
            image_markup = f"{image_markup}\n"
        segments.append(image_markup)
        diagrams += 1
    segments.append(content[cursor:])
    return "".join(segments).lstrip(), diagrams


async def export_markdown(
    document: Document,
    renderer: DiagramRenderer,
    path: str | Path = MARKDOWN_FILENAME,
) -> Path:
    markdown, diagrams = await convert_mermaid_markdown_to_images(document.text_content, renderer)
    logger.info("Exporting markdown", extra={"diagrams": diagrams})
    return write_export(path, markdown or document.text_content)


async def _visual_section(document: Document, renderer: DiagramRenderer) -> List[Block]:
    chart = strip_diagram_fences(document.visual_content or "")
    if not chart or chart in (document.text_content or ""):
        return []
    blocks: List[Block] = [Heading(2, VISUAL_SECTION_TITLE)]
    try:
        raster = await renderer.rasterize(chart)
    except RenderError:
        logger.exception("Failed to render visual content for export")
        blocks.append(CodeBlock(chart, "mermaid"))
    else:
        blocks.append(ImageBlock(VISUAL_CAPTION, raster.data_url()))
    return blocks


async def build_pdf(
    document: Document,
    renderer: DiagramRenderer,
    layout: Optional[PageLayout] = None,
    style: Optional[TypeStyle] = None,
    title: Optional[str] = DEFAULT_TITLE,
) -> bytes:
    """Typeset a document, with its diagrams rasterized, into PDF bytes."""
    markdown, _ = await convert_mermaid_markdown_to_images(document.text_content, renderer)
    blocks: List[Block] = [Heading(1, title)] if title else []
    blocks.extend(parse_blocks(markdown))
    blocks.extend(await _visual_section(document, renderer))
    typesetter = PdfTypesetter(layout=layout, style=style)
    pdf_bytes = typesetter.typeset(blocks)
    logger.info("Typeset PDF", extra={"pages": typesetter.page_count, "blocks": len(blocks)})
    return pdf_bytes


async def export_pdf(
    document: Document,
    renderer: DiagramRenderer,
    path: str | Path = PDF_FILENAME,
) -> Path:
    return write_export(path, await build_pdf(document, renderer))
