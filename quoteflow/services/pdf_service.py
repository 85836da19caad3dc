# quoteflow/services/pdf_service.py
"""
Quote PDF builder.

The template is flattened to text, rendered into text and block parts and
laid out with reportlab platypus. Hebrew needs a TTF with Hebrew glyphs; each
line is wrapped in logical order first and then reordered for display with
python-bidi, so multi-line paragraphs keep their reading order.
"""
import asyncio
import base64
import binascii
import functools
import io
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional
from xml.sax.saxutils import escape

import httpx
from bidi.algorithm import get_display
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT, TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from quoteflow.core.config import (
    ASSET_FETCH_TIMEOUT_SECONDS, PDF_FONT_PATH, PDF_MAX_WORKERS, PDF_TIMEOUT_SECONDS
)
from quoteflow.core.exceptions import DocumentGenerationError, DocumentGenerationTimeout, FontUnavailable
from quoteflow.services import template_engine
from quoteflow.services.template_engine import RenderContext, VariableKind

logger = logging.getLogger(__name__)

HEBREW_PROBE = 0x05D0  # alef
MARGIN = 18 * mm
FONT_SIZE = 11
LEADING = 16
IMAGE_MAX_WIDTH = 60 * mm
IMAGE_MAX_HEIGHT = 30 * mm

HEADER_FILL = colors.HexColor("#E8EAF6")
GRID = colors.HexColor("#9FA8DA")

_registered_fonts = {}

# A build that overruns its deadline cannot be interrupted and keeps its
# worker until it finishes; the pool caps how many such builds run at once.
_pdf_executor = ThreadPoolExecutor(max_workers=PDF_MAX_WORKERS, thread_name_prefix="quote-pdf")


# --------------------------
# Fonts
# --------------------------
def register_font(path: Optional[str] = None) -> str:
    """Register the TTF at `path` and return its reportlab font name."""
    path = path or PDF_FONT_PATH
    if path in _registered_fonts:
        return _registered_fonts[path]

    if not path or not os.path.isfile(path):
        logger.error("PDF font not found at %s", path)
        raise FontUnavailable()

    name = f"QuoteFont-{os.path.splitext(os.path.basename(path))[0]}"
    try:
        font = TTFont(name, path)
    except (TTFError, OSError) as exc:
        logger.error("PDF font at %s could not be loaded: %s", path, exc)
        raise FontUnavailable()

    if HEBREW_PROBE not in font.face.charToGlyph:
        logger.error("PDF font at %s has no Hebrew glyphs", path)
        raise FontUnavailable("הגופן שהוגדר אינו תומך בעברית")

    pdfmetrics.registerFont(font)
    _registered_fonts[path] = name
    return name


# --------------------------
# Images
# --------------------------
def load_image_bytes(source: str, timeout: float = ASSET_FETCH_TIMEOUT_SECONDS) -> Optional[bytes]:
    """Bytes of a data URI or http(s) image, or None when it cannot be had."""
    if not source:
        return None

    if source.startswith("data:"):
        header, _, payload = source.partition(",")
        if ";base64" not in header:
            logger.warning("Skipping non-base64 data URI image")
            return None
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError):
            logger.warning("Skipping malformed data URI image")
            return None

    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, timeout=timeout, follow_redirects=True)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch image %s: %s", source, exc)
            return None

    logger.warning("Unsupported image source, skipping")
    return None


def image_flowable(source: str, timeout: float = ASSET_FETCH_TIMEOUT_SECONDS) -> Optional[Image]:
    data = load_image_bytes(source, timeout)
    if not data:
        return None
    try:
        width, height = ImageReader(io.BytesIO(data)).getSize()
    except Exception as exc:  # reportlab re-raises whatever the image decoder throws
        logger.warning("Skipping unreadable image: %s", exc)
        return None

    scale = min(IMAGE_MAX_WIDTH / width, IMAGE_MAX_HEIGHT / height, 1)
    flowable = Image(io.BytesIO(data), width=width * scale, height=height * scale)
    flowable.hAlign = "RIGHT"
    return flowable


# --------------------------
# Text
# --------------------------
def visual(text: str) -> str:
    """Logical-order text to display order."""
    return get_display(text) if text else text


def text_lines(text: str, font_name: str, width: float) -> List[str]:
    """Wrap logical text to `width` and reorder each resulting line."""
    lines = []
    for raw in text.split("\n"):
        raw = raw.strip()
        if not raw:
            lines.append("")
            continue
        for chunk in simpleSplit(raw, font_name, FONT_SIZE, width):
            lines.append(visual(chunk))
    return lines


def _paragraph(line: str, style: ParagraphStyle):
    if not line:
        return Spacer(1, LEADING / 2)
    return Paragraph(escape(line), style)


# --------------------------
# Products table
# --------------------------
def products_table(context: RenderContext, font_name: str, width: float) -> Table:
    """Item rows then summary rows, columns right-to-left."""
    columns = len(template_engine.TABLE_HEADERS)
    rows = [list(reversed([visual(h) for h in template_engine.TABLE_HEADERS]))]
    for row in template_engine.product_rows(context):
        rows.append(list(reversed([visual(cell) for cell in row])))

    first_summary = len(rows)
    for label, value in template_engine.summary_rows(context):
        # spanned cells show the left-most one, so the label sits at column 1
        rows.append([visual(value), visual(label)] + [""] * (columns - 2))

    col_widths = [width * w for w in (0.17, 0.12, 0.18, 0.13, 0.40)]
    table = Table(rows, colWidths=col_widths, repeatRows=1, hAlign="RIGHT")

    style = [
        ("FONTNAME", (0, 0), (-1, -1), font_name),
        ("FONTSIZE", (0, 0), (-1, -1), FONT_SIZE - 1),
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
        ("GRID", (0, 0), (-1, first_summary - 1), 0.5, GRID),
        ("LINEABOVE", (0, first_summary), (-1, first_summary), 0.8, GRID),
    ]
    for row_index in range(first_summary, len(rows)):
        style.append(("SPAN", (1, row_index), (columns - 1, row_index)))
    table.setStyle(TableStyle(style))
    return table


# --------------------------
# Document
# --------------------------
def _block_flowable(name: str, context: RenderContext, font_name: str, width: float, timeout: float):
    variable = template_engine.VARIABLE_CATALOG.get(name)
    if variable is None:
        return None
    if variable.kind == VariableKind.table:
        return products_table(context, font_name, width)
    if variable.kind == VariableKind.image:
        return image_flowable(variable.resolver(context), timeout)
    return None


def build_story(content: str, context: RenderContext, font_name: str, width: float,
                timeout: float = ASSET_FETCH_TIMEOUT_SECONDS) -> list:
    style = ParagraphStyle("quote-rtl", fontName=font_name, fontSize=FONT_SIZE, leading=LEADING, alignment=TA_RIGHT)

    parts = template_engine.render_parts(template_engine.html_to_text(content), context)

    story = []
    for kind, value in parts:
        if kind == "block":
            flowable = _block_flowable(value, context, font_name, width, timeout)
            if flowable is not None:
                story.append(flowable)
                story.append(Spacer(1, LEADING / 2))
            continue
        for line in text_lines(value, font_name, width):
            story.append(_paragraph(line, style))

    if not story:
        empty = ParagraphStyle("quote-empty", parent=style, alignment=TA_CENTER)
        story.append(Paragraph(escape(visual(context.quote.get("quote_number") or "")), empty))
    return story


def build_quote_pdf(content: str, context: RenderContext, font_path: Optional[str] = None,
                    title: str = "", timeout: float = ASSET_FETCH_TIMEOUT_SECONDS) -> bytes:
    """Synchronous A4 build; returns the PDF bytes."""
    font_name = register_font(font_path)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=MARGIN,
        leftMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=title,
    )
    doc.build(build_story(content, context, font_name, doc.width, timeout))
    return buffer.getvalue()


async def generate_quote_pdf(content: str, context: RenderContext, quote_number: str = "",
                             font_path: Optional[str] = None, timeout: Optional[float] = None) -> bytes:
    """
    Run the builder on the PDF worker pool under the configured deadline.
    Time spent waiting for a free worker counts against the deadline.
    """
    timeout = timeout or PDF_TIMEOUT_SECONDS
    build = functools.partial(build_quote_pdf, content, context, font_path, f"הצעת מחיר {quote_number}".strip())
    loop = asyncio.get_running_loop()
    try:
        pdf = await asyncio.wait_for(loop.run_in_executor(_pdf_executor, build), timeout)
    except asyncio.TimeoutError:
        logger.error("PDF generation timed out after %ss", timeout, extra={"quote_number": quote_number})
        raise DocumentGenerationTimeout()
    except FontUnavailable:
        raise
    except Exception:
        logger.exception("PDF generation failed", extra={"quote_number": quote_number})
        raise DocumentGenerationError()

    if not pdf.startswith(b"%PDF"):
        logger.error("PDF builder returned a malformed stream", extra={"quote_number": quote_number})
        raise DocumentGenerationError()

    logger.info("PDF generated (%d bytes)", len(pdf), extra={"quote_number": quote_number})
    return pdf
