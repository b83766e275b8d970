import base64
import io

import pytest
from pypdf import PdfReader

from conftest import make_png
from docforge.errors import ImageDecodeError
from docforge.markdown.parser import CodeBlock, Heading, ImageBlock, Paragraph, UnorderedList
from docforge.pdf.typesetter import PageLayout, PdfTypesetter, TypeStyle, load_image_bytes, wrap_text


LINE = 15.0
MARGIN = 20.0


def _layout(lines: int) -> PageLayout:
    return PageLayout(
        width=300,
        height=2 * MARGIN + lines * LINE,
        margin_top=MARGIN,
        margin_bottom=MARGIN,
        margin_left=MARGIN,
        margin_right=MARGIN,
    )


def _style(**overrides) -> TypeStyle:
    # 10pt at 1.5 gives 15pt lines for body and code.
    values = dict(body_size=10, code_size=10, line_height_factor=1.5, block_gap=0, image_gap=0)
    values.update(overrides)
    return TypeStyle(**values)


def _data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def _page_count(pdf: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf)).pages)


def test_paragraphs_paginate_at_bottom_margin():
    layout = _layout(10)
    typesetter = PdfTypesetter(layout=layout, style=_style())
    pdf = typesetter.typeset([Paragraph(f"Line {n}") for n in range(12)])

    assert typesetter.page_count == 2
    assert _page_count(pdf) == 2
    first_page = [p for p in typesetter.placements if p.page == 1]
    assert [p.y for p in first_page] == [MARGIN + i * LINE for i in range(10)]
    second_page = [p for p in typesetter.placements if p.page == 2]
    assert [p.text for p in second_page] == ["Line 10", "Line 11"]
    assert second_page[0].y == MARGIN
    for placement in typesetter.placements:
        assert placement.y + placement.height <= layout.bottom + 1e-6


def test_image_and_long_code_block_span_two_pages():
    layout = _layout(30)
    style = _style()
    typesetter = PdfTypesetter(layout=layout, style=style)
    code = "\n".join(f"line {n:02d}" for n in range(40))
    blocks = [ImageBlock("", _data_url(make_png(40, 30))), CodeBlock(code, "text")]

    pdf = typesetter.typeset(blocks)

    assert typesetter.page_count == 2
    assert _page_count(pdf) == 2
    images = [p for p in typesetter.placements if p.kind == "image"]
    assert len(images) == 1 and images[0].page == 1
    backgrounds = [p for p in typesetter.placements if p.kind == "code-background"]
    code_lines = [p for p in typesetter.placements if p.kind == "code"]
    assert len(code_lines) == 40
    assert {b.page for b in backgrounds} == {1, 2}
    line_height = style.line_height(style.code_size)
    for background in backgrounds:
        drawn = [p for p in code_lines if p.page == background.page]
        assert background.height == len(drawn) * line_height + 2 * style.code_padding
        assert background.y + background.height <= layout.bottom + 1e-6


def test_code_block_that_fits_a_page_is_not_split():
    layout = _layout(30)
    typesetter = PdfTypesetter(layout=layout, style=_style())
    blocks = [Paragraph(f"p{n}") for n in range(28)] + [CodeBlock("a\nb\nc\nd\ne")]

    typesetter.typeset(blocks)

    backgrounds = [p for p in typesetter.placements if p.kind == "code-background"]
    assert len(backgrounds) == 1
    assert backgrounds[0].page == 2
    assert backgrounds[0].y == MARGIN


def test_empty_paragraph_still_takes_a_line():
    typesetter = PdfTypesetter(layout=_layout(10), style=_style())
    typesetter.typeset([Paragraph("")])
    assert len(typesetter.placements) == 1
    assert typesetter.placements[0].height == LINE


def test_image_is_scaled_down_to_content_width_and_captioned():
    layout = _layout(30)
    typesetter = PdfTypesetter(layout=layout, style=_style())
    typesetter.typeset([ImageBlock("Architecture", _data_url(make_png(520, 100)))])

    image = next(p for p in typesetter.placements if p.kind == "image")
    assert image.width == pytest.approx(layout.content_width)
    assert image.height == pytest.approx(50.0)
    assert any(p.kind == "caption" and p.text == "Architecture" for p in typesetter.placements)


def test_list_items_and_headings_are_placed():
    typesetter = PdfTypesetter(layout=_layout(30), style=_style())
    typesetter.typeset([Heading(1, "Title"), UnorderedList(("one", "two"))])
    kinds = [p.kind for p in typesetter.placements]
    assert kinds == ["heading", "list-item", "list-item"]


def test_undecodable_image_raises():
    typesetter = PdfTypesetter(layout=_layout(30), style=_style())
    with pytest.raises(ImageDecodeError):
        typesetter.typeset([ImageBlock("bad", "data:image/png;base64,!!!")])
    not_an_image = "data:image/png;base64," + base64.b64encode(b"not an image").decode("ascii")
    with pytest.raises(ImageDecodeError):
        PdfTypesetter(layout=_layout(30), style=_style()).typeset([ImageBlock("bad", not_an_image)])


def test_load_image_bytes_reads_local_path(tmp_path):
    path = tmp_path / "pic.png"
    path.write_bytes(make_png())
    assert load_image_bytes(str(path)) == path.read_bytes()
    with pytest.raises(ImageDecodeError):
        load_image_bytes(str(tmp_path / "missing.png"))


def test_wrap_text_breaks_words_wider_than_a_line():
    lines = wrap_text("x" * 300, "Helvetica", 10, 100)
    assert len(lines) > 1
    assert "".join(lines) == "x" * 300


def test_writers_require_an_open_document():
    typesetter = PdfTypesetter(layout=_layout(10), style=_style())
    with pytest.raises(RuntimeError):
        typesetter.write_block(Paragraph("outside typeset"))
    with pytest.raises(RuntimeError):
        typesetter.new_page()
