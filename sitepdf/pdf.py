"""Document generation pass: render, index, merge and package captured pages.

Example usage:

    from sitepdf.pdf import generate_pdf_async

    result = await generate_pdf_async(crawl_result.pages, include_toc=True)
    Path("site.pdf").write_bytes(result.merged_pdf)
    for warning in result.warnings:
        print("warning:", warning)
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
import zipfile
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .document import CapturedPage, PdfResult, TableOfContentsEntry
from .fonts import FontResolution, resolve_font_async
from .merge import merge_documents
from .render import render_page
from .urls import url_to_label

LOGGER = logging.getLogger(__name__)

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def build_table_of_contents(pages: Sequence[CapturedPage]) -> List[TableOfContentsEntry]:
    """One entry per page in crawl order, numbered from 1."""
    return [
        TableOfContentsEntry(title=page.display_title, url=page.url, page_number=number)
        for number, page in enumerate(pages, start=1)
    ]


def archive_filename(index: int, page: CapturedPage) -> str:
    """Stable, filesystem-safe name for a page inside the companion archive."""
    label = _FILENAME_UNSAFE.sub("_", url_to_label(page.url)).strip("_") or "page"
    return f"{index:03d}_{label[:80]}.pdf"


def build_archive(documents: Sequence[bytes], pages: Sequence[CapturedPage]) -> bytes:
    """Pack per-page PDFs into an in-memory ZIP archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for index, (document, page) in enumerate(zip(documents, pages), start=1):
            archive.writestr(archive_filename(index, page), document)
    return buffer.getvalue()


def _generate(
    pages: Sequence[CapturedPage],
    fonts: FontResolution,
    include_toc: bool,
    include_archive: bool,
    title: Optional[str],
) -> PdfResult:
    documents = [render_page(page, fonts) for page in pages]
    entries = build_table_of_contents(pages)
    merged = merge_documents(
        documents,
        pages,
        entries,
        fonts,
        include_toc=include_toc,
        title=title,
    )

    return PdfResult(
        merged_pdf=merged.data,
        individual_pdfs=documents,
        table_of_contents=entries,
        warnings=[fonts.warning] if fonts.warning else [],
        archive=build_archive(documents, pages) if include_archive else None,
        page_count=merged.page_count,
    )


async def generate_pdf_async(
    pages: Sequence[CapturedPage],
    *,
    include_toc: bool = True,
    include_archive: bool = True,
    font_path: Optional[Union[str, Path]] = None,
    title: Optional[str] = None,
) -> PdfResult:
    """Render every captured page and merge them into one indexed PDF.

    Fonts are resolved once for the whole pass; a missing or broken font
    degrades to Helvetica and is reported in ``PdfResult.warnings``. The
    document title defaults to the first page's title.

    Raises:
        ValueError: If *pages* is empty.
    """
    if not pages:
        raise ValueError("Cannot generate a PDF without captured pages")

    if title is None:
        title = pages[0].display_title

    fonts = await resolve_font_async(font_path)
    # Rendering and merging are CPU-bound; keep them off the event loop
    result = await asyncio.to_thread(
        _generate, list(pages), fonts, include_toc, include_archive, title
    )
    LOGGER.info(
        "PDF generated: %d pages, %.2f MB%s",
        result.page_count,
        result.total_size / 1024 / 1024,
        f" ({len(result.warnings)} warning(s))" if result.warnings else "",
    )
    return result


def generate_pdf(
    pages: Sequence[CapturedPage],
    *,
    include_toc: bool = True,
    include_archive: bool = True,
    font_path: Optional[Union[str, Path]] = None,
    title: Optional[str] = None,
) -> PdfResult:
    """Synchronous wrapper for generate_pdf_async."""
    return asyncio.run(
        generate_pdf_async(
            pages,
            include_toc=include_toc,
            include_archive=include_archive,
            font_path=font_path,
            title=title,
        )
    )
