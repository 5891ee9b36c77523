"""Render a captured page into a standalone PDF (text or screenshot mode)."""

from __future__ import annotations

import io
import logging
from typing import List

from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .document import CapturedPage
from .fonts import FontResolution

LOGGER = logging.getLogger(__name__)

# A4 portrait in points
PAGE_WIDTH = 595
PAGE_HEIGHT = 842
MARGIN = 50
# Leaves room for the header band stamped by the merger
TOP_MARGIN = 70
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN

TITLE_SIZE = 18
TITLE_MAX_CHARS = 100
URL_SIZE = 9
URL_MAX_CHARS = 80
BODY_SIZE = 11
LINE_HEIGHT = BODY_SIZE + 4
MAX_LINES = 300

ELLIPSIS = "..."


def truncate(text: str, limit: int) -> str:
    """Cut *text* to *limit* characters, appending an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def fit_text(text: str, font_name: str, font_size: float, max_width: float) -> str:
    """Shorten *text* (with an ellipsis) until it fits in *max_width*."""
    if stringWidth(text, font_name, font_size) <= max_width:
        return text
    while text and stringWidth(text + ELLIPSIS, font_name, font_size) > max_width:
        text = text[:-1]
    return text + ELLIPSIS if text else ""


def _break_word(word: str, font_name: str, font_size: float, max_width: float) -> List[str]:
    pieces: List[str] = []
    current = ""
    for char in word:
        if current and stringWidth(current + char, font_name, font_size) > max_width:
            pieces.append(current)
            current = char
        else:
            current += char
    if current:
        pieces.append(current)
    return pieces


def wrap_text(
    text: str,
    font_name: str,
    font_size: float,
    max_width: float,
    max_lines: int = MAX_LINES,
) -> List[str]:
    """Greedy word-wrap of *text* into lines no wider than *max_width*.

    Paragraph breaks are kept, blank lines come out as empty strings, words
    wider than a full line are split by character, and at most *max_lines*
    lines are returned.
    """
    lines: List[str] = []

    for paragraph in text.split("\n"):
        if len(lines) >= max_lines:
            break
        if not paragraph.strip():
            lines.append("")
            continue

        current = ""
        for word in paragraph.split():
            if stringWidth(word, font_name, font_size) > max_width:
                pieces = _break_word(word, font_name, font_size, max_width)
            else:
                pieces = [word]

            for piece in pieces:
                candidate = f"{current} {piece}" if current else piece
                if current and stringWidth(candidate, font_name, font_size) > max_width:
                    lines.append(current)
                    current = piece
                else:
                    current = candidate

        if current:
            lines.append(current)

    return lines[:max_lines]


def render_text_page(page: CapturedPage, fonts: FontResolution) -> bytes:
    """Lay out title, URL, a rule and the wrapped body text on A4 pages."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
    pdf.setTitle(fonts.safe_text(page.display_title))
    pdf.setCreator("sitepdf")

    y = PAGE_HEIGHT - TOP_MARGIN - TITLE_SIZE
    title = fonts.safe_text(truncate(page.title.strip() or "Untitled", TITLE_MAX_CHARS))
    pdf.setFont(fonts.bold, TITLE_SIZE)
    pdf.setFillColorRGB(0, 0, 0)
    pdf.drawString(MARGIN, y, fit_text(title, fonts.bold, TITLE_SIZE, CONTENT_WIDTH))

    y -= 25
    url = fonts.safe_text(truncate(page.url, URL_MAX_CHARS))
    pdf.setFont(fonts.regular, URL_SIZE)
    pdf.setFillColorRGB(0.4, 0.4, 0.4)
    pdf.drawString(MARGIN, y, fit_text(url, fonts.regular, URL_SIZE, CONTENT_WIDTH))

    y -= 20
    pdf.setStrokeColorRGB(0.8, 0.8, 0.8)
    pdf.setLineWidth(1)
    pdf.line(MARGIN, y, PAGE_WIDTH - MARGIN, y)

    y -= 30
    body = fonts.safe_text(page.text.strip())
    lines = wrap_text(body, fonts.regular, BODY_SIZE, CONTENT_WIDTH)

    pdf.setFont(fonts.regular, BODY_SIZE)
    pdf.setFillColorRGB(0, 0, 0)
    for line in lines:
        if y < MARGIN + LINE_HEIGHT:
            pdf.showPage()
            # showPage resets the graphics state
            pdf.setFont(fonts.regular, BODY_SIZE)
            pdf.setFillColorRGB(0, 0, 0)
            y = PAGE_HEIGHT - TOP_MARGIN
        if line:
            pdf.drawString(MARGIN, y, line)
        y -= LINE_HEIGHT

    pdf.save()
    return buffer.getvalue()


def render_image_page(page: CapturedPage) -> bytes:
    """Embed the page screenshot as a single page sized to the image."""
    if not page.screenshot:
        raise ValueError(f"No screenshot captured for {page.url}")

    image = ImageReader(io.BytesIO(page.screenshot))
    width, height = image.getSize()

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(width, height))
    pdf.setTitle(page.display_title)
    pdf.setCreator("sitepdf")
    pdf.drawImage(image, 0, 0, width=width, height=height)
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def render_page(page: CapturedPage, fonts: FontResolution) -> bytes:
    """Pick the renderer matching how *page* was captured."""
    if page.screenshot:
        return render_image_page(page)
    return render_text_page(page, fonts)
