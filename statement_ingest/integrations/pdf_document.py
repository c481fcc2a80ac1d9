"""
PyMuPDF wrapper: opens PDFs from memory, extracts positioned text runs and
renders pages for OCR.
"""

from itertools import groupby
from typing import List

import structlog
from PIL import Image
import fitz  # PyMuPDF

from ..models import PositionedTextItem

logger = structlog.get_logger()


class PdfDocumentError(Exception):
    """Raised when a PDF cannot be opened or read."""

    def __init__(self, message: str, password_protected: bool = False):
        self.password_protected = password_protected
        super().__init__(message)


class PdfDocument:
    """
    An open PDF held in memory.
    Use as a context manager so the underlying document is always closed.
    """

    def __init__(self, content: bytes):
        try:
            self._doc = fitz.open(stream=content, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise PdfDocumentError(f"Could not open PDF: {e}") from e

        if self._doc.needs_pass:
            self._doc.close()
            raise PdfDocumentError("PDF is password-protected", password_protected=True)
        if self._doc.page_count == 0:
            self._doc.close()
            raise PdfDocumentError("PDF has no pages")

    def __enter__(self) -> "PdfDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if not self._doc.is_closed:
            self._doc.close()

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def text_runs(self, page_index: int, gap_ratio: float = 0.5) -> List[PositionedTextItem]:
        """
        Extract text runs with positions for one page.

        Words on the same text line are merged into one run while the gap
        between them stays under `gap_ratio` times the glyph height. The y
        coordinate is flipped to PDF user space (origin at page bottom).

        Args:
            page_index: 0-based page number
            gap_ratio: Maximum word gap, as a fraction of word height

        Returns:
            Text runs in reading order
        """
        try:
            page = self._doc[page_index]
            words = page.get_text("words")
        except (RuntimeError, ValueError) as e:
            raise PdfDocumentError(f"Could not read page {page_index + 1}: {e}") from e

        page_height = page.rect.height
        runs: List[PositionedTextItem] = []

        # (x0, y0, x1, y1, text, block_no, line_no, word_no)
        ordered = sorted(words, key=lambda w: (w[5], w[6], w[7]))
        for _, line_words in groupby(ordered, key=lambda w: (w[5], w[6])):
            current = None
            for x0, y0, x1, y1, text, *_ in line_words:
                if not text.strip():
                    continue
                height = max(y1 - y0, 1.0)
                if current is not None and x0 - current[2] <= gap_ratio * height:
                    current = (current[0], current[1], x1, current[3] + " " + text)
                    continue
                if current is not None:
                    runs.append(self._make_item(current, page_height, page_index))
                current = (x0, y1, x1, text)
            if current is not None:
                runs.append(self._make_item(current, page_height, page_index))

        return runs

    @staticmethod
    def _make_item(run, page_height: float, page_index: int) -> PositionedTextItem:
        x0, y1, _, text = run
        return PositionedTextItem(text=text, x=round(x0, 2), y=round(page_height - y1, 2), page=page_index)

    def render(self, page_index: int, scale: float = 2.0) -> Image.Image:
        """Render a page to an RGB image at the given scale factor."""
        try:
            page = self._doc[page_index]
            pixmap = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        except (RuntimeError, ValueError) as e:
            raise PdfDocumentError(f"Could not render page {page_index + 1}: {e}") from e

        image = Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples)
        logger.debug("Rendered page", page=page_index + 1, width=pixmap.width, height=pixmap.height)
        return image
