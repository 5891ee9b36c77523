"""Font resolution with graceful fallback to the built-in Helvetica family."""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

LOGGER = logging.getLogger(__name__)

FALLBACK_REGULAR = "Helvetica"
FALLBACK_BOLD = "Helvetica-Bold"

# sfnt version tags: TrueType, CFF OpenType, TrueType collection, Apple TrueType
_FONT_SIGNATURES = (b"\x00\x01\x00\x00", b"OTTO", b"ttcf", b"true")

# Encoding used by reportlab for the standard 14 fonts
_FALLBACK_ENCODING = "cp1252"


def is_valid_font_signature(data: bytes) -> bool:
    """Return True if *data* starts with a known TrueType/OpenType tag."""
    return len(data) >= 4 and data[:4] in _FONT_SIGNATURES


@dataclass(frozen=True)
class FontResolution:
    """Fonts to draw with for one document-generation pass."""

    regular: str = FALLBACK_REGULAR
    bold: str = FALLBACK_BOLD
    embedded: bool = False
    warning: Optional[str] = None

    def can_render(self, text: str) -> bool:
        """Whether every character of *text* has a glyph in these fonts."""
        if self.embedded:
            return True
        try:
            text.encode(_FALLBACK_ENCODING)
        except UnicodeEncodeError:
            return False
        return True

    def safe_text(self, text: str) -> str:
        """Replace characters the fallback font cannot encode with ``?``."""
        if self.embedded:
            return text
        return text.encode(_FALLBACK_ENCODING, errors="replace").decode(
            _FALLBACK_ENCODING
        )


def _fallback(warning: str) -> FontResolution:
    LOGGER.warning("%s", warning)
    return FontResolution(warning=warning)


def resolve_font(path: Optional[Union[str, Path]]) -> FontResolution:
    """Load and register the font at *path*, or fall back to Helvetica.

    Never raises: a missing file, an unknown signature or an embed error all
    produce the fallback resolution with a human-readable warning.
    """
    if not path:
        return _fallback(
            "No font file configured; using Helvetica. "
            "Non-Latin text may not display correctly."
        )

    font_path = Path(path).expanduser()
    if not font_path.is_file():
        return _fallback(
            f"Font file not found at {font_path}; using Helvetica. "
            "Non-Latin text may not display correctly."
        )

    try:
        data = font_path.read_bytes()
    except OSError as exc:
        return _fallback(f"Could not read font file {font_path}: {exc}; using Helvetica.")

    if not is_valid_font_signature(data):
        return _fallback(
            f"Font file {font_path} is not a valid TrueType/OpenType font; using Helvetica."
        )

    name = "SitePdf-" + hashlib.sha1(data).hexdigest()[:12]
    try:
        pdfmetrics.registerFont(TTFont(name, io.BytesIO(data)))
    except Exception as exc:
        return _fallback(f"Failed to embed font {font_path}: {exc}; using Helvetica.")

    LOGGER.info("Embedded font %s from %s", name, font_path)
    # Variable fonts carry both weights, so the same face serves as bold
    return FontResolution(regular=name, bold=name, embedded=True)


async def resolve_font_async(path: Optional[Union[str, Path]]) -> FontResolution:
    """Resolve fonts without blocking the event loop on the file read."""
    return await asyncio.to_thread(resolve_font, path)
