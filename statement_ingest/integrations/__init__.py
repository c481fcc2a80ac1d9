"""External integrations: PDF reading and OCR engines."""

from .ocr_engine import OcrEngine, OcrEngineError, create_ocr_engine
from .pdf_document import PdfDocument, PdfDocumentError

__all__ = [
    "OcrEngine",
    "OcrEngineError",
    "PdfDocument",
    "PdfDocumentError",
    "create_ocr_engine",
]
