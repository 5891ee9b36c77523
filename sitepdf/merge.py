"""Merge per-page PDFs into one indexed document with stamped headers.

Layout of the merged document:

1. Optional table-of-contents pages (A4).
2. Every page of every per-page document, in crawl order.
3. A header band (page index of total, title, URL) stamped onto each content
   page after it has been placed, so TOC pages stay unstamped.

A bookmark per captured page points at its first physical page.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pypdf import PageObject, PdfReader, PdfWriter
from reportlab.pdfgen import canvas

from .document import CapturedPage, TableOfContentsEntry
from .fonts import FontResolution
from .render import MARGIN, PAGE_HEIGHT, PAGE_WIDTH, fit_text, truncate
from .urls import url_to_label

LOGGER = logging.getLogger(__name__)

TOC_TITLE = "Table of Contents"
TOC_TITLE_SIZE = 24
TOC_NUMBER_SIZE = 11
TOC_ENTRY_SIZE = 10
TOC_LINE_HEIGHT = 20
TOC_TITLE_MAX_CHARS = 70
TOC_TEXT_X = 80

HEADER_HEIGHT = 60
HEADER_PADDING = 10
HEADER_TITLE_MAX_CHARS = 50
HEADER_URL_MAX_CHARS = 60


@dataclass(slots=True)
class MergedDocument:
    """Serialized merged PDF and its page accounting."""

    data: bytes
    page_count: int
    toc_page_count: int = 0
    content_start_pages: List[int] = field(default_factory=list)


def toc_display_title(entry: TableOfContentsEntry, fonts: FontResolution) -> str:
    """Title shown for *entry*, replaced by an ASCII label when unrenderable."""
    title = entry.title.strip() or entry.url
    if not fonts.can_render(title):
        title = url_to_label(entry.url)
    return truncate(title, TOC_TITLE_MAX_CHARS)


def render_table_of_contents(
    entries: Sequence[TableOfContentsEntry], fonts: FontResolution
) -> bytes:
    """Draw the TOC onto as many A4 pages as the entries need."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
    pdf.setTitle(TOC_TITLE)

    y = PAGE_HEIGHT - MARGIN
    pdf.setFont(fonts.bold, TOC_TITLE_SIZE)
    pdf.setFillColorRGB(0, 0, 0)
    pdf.drawString(MARGIN, y, TOC_TITLE)
    y -= 40

    text_width = PAGE_WIDTH - TOC_TEXT_X - MARGIN
    for entry in entries:
        if y < MARGIN:
            pdf.showPage()
            y = PAGE_HEIGHT - MARGIN

        pdf.setFont(fonts.bold, TOC_NUMBER_SIZE)
        pdf.setFillColorRGB(0.15, 0.39, 0.92)
        pdf.drawString(MARGIN, y, f"{entry.page_number}.")

        title = fonts.safe_text(toc_display_title(entry, fonts))
        pdf.setFont(fonts.regular, TOC_ENTRY_SIZE)
        pdf.setFillColorRGB(0.2, 0.2, 0.2)
        pdf.drawString(
            TOC_TEXT_X, y, fit_text(title, fonts.regular, TOC_ENTRY_SIZE, text_width)
        )
        y -= TOC_LINE_HEIGHT

    pdf.save()
    return buffer.getvalue()


def render_header(
    width: float,
    height: float,
    page: CapturedPage,
    index: int,
    total: int,
    fonts: FontResolution,
) -> PageObject:
    """Build a transparent overlay page carrying the header band."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(width, height))
    text_width = max(width - 2 * HEADER_PADDING, 1)

    pdf.setFillColorRGB(0.95, 0.95, 0.95, alpha=0.9)
    pdf.rect(0, height - HEADER_HEIGHT, width, HEADER_HEIGHT, stroke=0, fill=1)

    pdf.setFont(fonts.regular, 10)
    pdf.setFillColorRGB(0.4, 0.4, 0.4)
    pdf.drawString(HEADER_PADDING, height - 20, f"{index} / {total}")

    title = fonts.safe_text(truncate(page.title.strip() or "Untitled", HEADER_TITLE_MAX_CHARS))
    pdf.setFont(fonts.regular, 12)
    pdf.setFillColorRGB(0.2, 0.2, 0.2)
    pdf.drawString(
        HEADER_PADDING, height - 38, fit_text(title, fonts.regular, 12, text_width)
    )

    url = fonts.safe_text(truncate(page.url, HEADER_URL_MAX_CHARS))
    pdf.setFont(fonts.regular, 8)
    pdf.setFillColorRGB(0.5, 0.5, 0.5)
    pdf.drawString(HEADER_PADDING, height - 52, fit_text(url, fonts.regular, 8, text_width))

    pdf.showPage()
    pdf.save()
    return PdfReader(io.BytesIO(buffer.getvalue())).pages[0]


def _stamp_header(
    target: PageObject,
    page: CapturedPage,
    index: int,
    total: int,
    fonts: FontResolution,
) -> None:
    box = target.mediabox
    try:
        overlay = render_header(
            float(box.right), float(box.top), page, index, total, fonts
        )
        target.merge_page(overlay, over=True)
    except Exception as exc:
        # A missing header must not cost the reader the page itself
        LOGGER.warning("Failed to add header for %s: %s", page.url, exc)


def merge_documents(
    documents: Sequence[bytes],
    pages: Sequence[CapturedPage],
    entries: Sequence[TableOfContentsEntry],
    fonts: FontResolution,
    *,
    include_toc: bool = True,
    title: Optional[str] = None,
) -> MergedDocument:
    """Concatenate per-page PDFs behind an optional TOC and stamp headers.

    Args:
        documents: One rendered PDF per captured page, in crawl order.
        pages: The captured pages the documents were rendered from.
        entries: TOC entries, one per captured page.
        fonts: Font resolution shared with the renderers.
        include_toc: Whether to emit the table-of-contents pages.
        title: Optional document title for the PDF metadata.

    Raises:
        ValueError: If documents, pages and entries differ in length.
    """
    if not len(documents) == len(pages) == len(entries):
        raise ValueError(
            "documents, pages and entries must have the same length "
            f"({len(documents)}, {len(pages)}, {len(entries)})"
        )

    writer = PdfWriter()
    toc_page_count = 0
    if include_toc:
        toc_reader = PdfReader(io.BytesIO(render_table_of_contents(entries, fonts)))
        for toc_page in toc_reader.pages:
            writer.add_page(toc_page)
        toc_page_count = len(toc_reader.pages)

    total = len(pages)
    content_start_pages: List[int] = []
    for index, (document, page, entry) in enumerate(
        zip(documents, pages, entries), start=1
    ):
        content_start_pages.append(len(writer.pages))
        reader = PdfReader(io.BytesIO(document))
        for source_page in reader.pages:
            placed = writer.add_page(source_page)
            _stamp_header(placed, page, index, total, fonts)

        writer.add_outline_item(
            entry.title.strip() or entry.url, content_start_pages[-1]
        )

    if content_start_pages:
        writer.page_mode = "/UseOutlines"
    metadata = {"/Producer": "sitepdf"}
    if title:
        metadata["/Title"] = title
    writer.add_metadata(metadata)

    buffer = io.BytesIO()
    writer.write(buffer)
    page_count = len(writer.pages)
    LOGGER.debug(
        "Merged %d documents into %d pages (%d TOC)",
        total,
        page_count,
        toc_page_count,
    )
    return MergedDocument(
        data=buffer.getvalue(),
        page_count=page_count,
        toc_page_count=toc_page_count,
        content_start_pages=content_start_pages,
    )
