"""Serialize a Deck to .pptx bytes with python-pptx."""

from __future__ import annotations

import logging
from io import BytesIO

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, PP_ALIGN
from pptx.util import Inches, Pt

from pitchdeck.deck.slides import (
    SLIDE_HEIGHT,
    SLIDE_WIDTH,
    Align,
    Deck,
    Element,
    ImageElement,
    ShapeElement,
    SlideDescription,
    TableElement,
    TextElement,
)
from pitchdeck.errors import SerializationError

logger = logging.getLogger(__name__)

_BLANK_LAYOUT = 6

_ALIGNMENT = {
    Align.LEFT: PP_ALIGN.LEFT,
    Align.CENTER: PP_ALIGN.CENTER,
    Align.RIGHT: PP_ALIGN.RIGHT,
}


def _rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.lstrip("#").upper())


# ---------------------------------------------------------------------------
# Element writers
# ---------------------------------------------------------------------------


def _add_text(slide, el: TextElement) -> None:
    box = slide.shapes.add_textbox(Inches(el.x), Inches(el.y), Inches(el.w), Inches(el.h))
    if el.role:
        box.name = el.role
    tf = box.text_frame
    tf.word_wrap = True

    for i, line in enumerate(el.text.split("\n")):
        p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
        p.text = line
        p.font.size = Pt(el.size)
        p.font.bold = el.bold
        p.font.italic = el.italic
        p.font.color.rgb = _rgb(el.color)
        p.font.name = el.font
        p.alignment = _ALIGNMENT[el.align]


def _add_shape(slide, el: ShapeElement) -> None:
    shape_type = MSO_SHAPE.ROUNDED_RECTANGLE if el.rounded else MSO_SHAPE.RECTANGLE
    shape = slide.shapes.add_shape(
        shape_type, Inches(el.x), Inches(el.y), Inches(el.w), Inches(el.h)
    )
    if el.role:
        shape.name = el.role
    shape.fill.solid()
    shape.fill.fore_color.rgb = _rgb(el.fill)
    shape.line.fill.background()

    if not el.text:
        return
    tf = shape.text_frame
    tf.word_wrap = True
    tf.vertical_anchor = MSO_ANCHOR.MIDDLE
    p = tf.paragraphs[0]
    p.text = el.text
    p.font.size = Pt(el.text_size)
    p.font.bold = el.bold
    p.font.color.rgb = _rgb(el.text_color)
    p.alignment = PP_ALIGN.CENTER


def _add_table(slide, el: TableElement) -> None:
    n_rows = len(el.rows)
    n_cols = max(len(row) for row in el.rows)
    frame = slide.shapes.add_table(
        n_rows, n_cols, Inches(el.x), Inches(el.y), Inches(el.w), Inches(el.h)
    )
    if el.role:
        frame.name = el.role
    table = frame.table

    if el.col_widths:
        for i, width in enumerate(el.col_widths[:n_cols]):
            table.columns[i].width = Inches(width)
    for row in table.rows:
        row.height = Inches(el.row_height)

    for r, row in enumerate(el.rows):
        for c, source in enumerate(row):
            cell = table.cell(r, c)
            cell.text = source.text
            cell.vertical_anchor = MSO_ANCHOR.MIDDLE
            if source.fill:
                cell.fill.solid()
                cell.fill.fore_color.rgb = _rgb(source.fill)
            p = cell.text_frame.paragraphs[0]
            p.font.size = Pt(el.font_size)
            p.font.bold = source.bold
            p.alignment = _ALIGNMENT[source.align]
            if source.color:
                p.font.color.rgb = _rgb(source.color)


def _add_image(slide, el: ImageElement) -> None:
    picture = slide.shapes.add_picture(
        BytesIO(el.data), Inches(el.x), Inches(el.y), Inches(el.w), Inches(el.h)
    )
    if el.role:
        picture.name = el.role


_WRITERS = {
    TextElement: _add_text,
    ShapeElement: _add_shape,
    TableElement: _add_table,
    ImageElement: _add_image,
}


def _add_element(slide, element: Element) -> None:
    _WRITERS[type(element)](slide, element)


def _add_slide(prs: Presentation, description: SlideDescription) -> None:
    slide = prs.slides.add_slide(prs.slide_layouts[_BLANK_LAYOUT])
    for element in description.elements:
        _add_element(slide, element)
    if description.notes:
        slide.notes_slide.notes_text_frame.text = description.notes


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def write_pptx(deck: Deck) -> bytes:
    """Render every slide of ``deck`` into a 16:9 presentation.

    Args:
        deck: Built slide descriptions and metadata.

    Returns:
        The .pptx file contents.

    Raises:
        SerializationError: Any python-pptx failure while writing.
    """
    try:
        prs = Presentation()
        prs.slide_width = Inches(SLIDE_WIDTH)
        prs.slide_height = Inches(SLIDE_HEIGHT)
        prs.core_properties.author = deck.author
        prs.core_properties.title = deck.title
        prs.core_properties.subject = deck.subject

        for description in deck.slides:
            _add_slide(prs, description)

        buf = BytesIO()
        prs.save(buf)
    except Exception as e:
        logger.error("Failed writing presentation: %s", e)
        raise SerializationError(e) from e

    data = buf.getvalue()
    logger.info("Wrote %d slides (%d bytes)", len(deck), len(data))
    return data
