"""
Tesseract OCR engine via pytesseract.
"""

from typing import Optional

import structlog
import pytesseract
from PIL import Image, ImageOps

from ..config import Settings, get_settings
from .ocr_engine import OcrEngineError

logger = structlog.get_logger()


class TesseractEngine:
    """Local OCR using the tesseract binary."""

    name = "tesseract"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def recognize(self, image: Image.Image) -> str:
        """
        Recognize text in an image.

        Raises:
            OcrEngineError: tesseract is missing, timed out or failed
        """
        prepared = ImageOps.grayscale(image)
        try:
            text = pytesseract.image_to_string(
                prepared,
                lang=self.settings.ocr_language,
                config="--psm 6",
                timeout=self.settings.ocr_timeout_seconds,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise OcrEngineError("Tesseract is not installed or not on PATH") from e
        except pytesseract.TesseractError as e:
            raise OcrEngineError(f"Tesseract failed: {e.message}") from e
        except RuntimeError as e:
            # pytesseract signals its own timeout with a bare RuntimeError
            raise OcrEngineError(f"Tesseract timed out: {e}") from e

        logger.debug("Tesseract recognized text", characters=len(text))
        return text
