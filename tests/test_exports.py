import asyncio
import io

import pytest
from pypdf import PdfReader

from conftest import FakeEngine
from docforge.diagrams.renderer import DiagramRenderer
from docforge.documents.models import Document
from docforge.errors import ExportIOError
from docforge.exports import (
    VISUAL_SECTION_TITLE,
    build_pdf,
    convert_mermaid_markdown_to_images,
    export_markdown,
    export_pdf,
)
from docforge.utils.file_utils import write_export


MARKDOWN = "# Title\n\nIntro\n\n```mermaid\ngraph TD\n  A --> B\n```\n\nAfter the diagram."


def test_mermaid_blocks_become_inline_images(fake_png_conversion):
    renderer = DiagramRenderer(FakeEngine(), scale=1.0)
    markdown, count = asyncio.run(convert_mermaid_markdown_to_images(MARKDOWN, renderer))
    assert count == 1
    assert "```mermaid" not in markdown
    assert "![Diagram 1](data:image/png;base64," in markdown
    assert markdown.startswith("# Title")
    assert markdown.endswith("After the diagram.")


def test_unrenderable_blocks_are_kept(fake_png_conversion):
    renderer = DiagramRenderer(FakeEngine(accept=lambda source: False))
    markdown, count = asyncio.run(convert_mermaid_markdown_to_images(MARKDOWN, renderer))
    assert count == 0
    assert markdown == MARKDOWN


def test_export_markdown_writes_file(tmp_path, fake_png_conversion):
    renderer = DiagramRenderer(FakeEngine(), scale=1.0)
    path = asyncio.run(export_markdown(Document(text_content=MARKDOWN), renderer, tmp_path / "out" / "doc.md"))
    assert path.read_text(encoding="utf-8").count("data:image/png;base64,") == 1


def test_build_pdf_includes_visual_section(fake_png_conversion):
    renderer = DiagramRenderer(FakeEngine(), scale=1.0)
    document = Document(text_content="# Notes\n\nBody text.", visual_content="graph LR\n  X --> Y")

    pdf = asyncio.run(build_pdf(document, renderer))

    assert pdf.startswith(b"%PDF")
    reader = PdfReader(io.BytesIO(pdf))
    text = "".join(page.extract_text() for page in reader.pages)
    assert "Project Documentation" in text
    assert VISUAL_SECTION_TITLE in text


def test_export_pdf_reports_unwritable_destination(tmp_path, fake_png_conversion):
    blocker = tmp_path / "file.txt"
    blocker.write_text("x", encoding="utf-8")
    renderer = DiagramRenderer(FakeEngine(), scale=1.0)
    with pytest.raises(ExportIOError):
        asyncio.run(export_pdf(Document(text_content="# Hi"), renderer, blocker / "out.pdf"))


def test_write_export_handles_text_and_bytes(tmp_path):
    assert write_export(tmp_path / "a.txt", "héllo").read_text(encoding="utf-8") == "héllo"
    assert write_export(tmp_path / "b.bin", b"\x00\x01").read_bytes() == b"\x00\x01"
