"""OCR engine interface and factory."""

from typing import Optional, Protocol, runtime_checkable

from PIL import Image

from ..config import Settings, get_settings


class OcrEngineError(Exception):
    """Raised by an OCR engine when recognition fails."""


@runtime_checkable
class OcrEngine(Protocol):
    """Anything that turns an image into plain text."""

    name: str

    def recognize(self, image: Image.Image) -> str:
        ...


def create_ocr_engine(settings: Optional[Settings] = None) -> OcrEngine:
    """
    Build the OCR engine selected by `settings.ocr_engine`.

    Raises:
        OcrEngineError: unknown engine name, or the engine could not be set up
    """
    settings = settings or get_settings()
    engine = settings.ocr_engine.lower().strip()

    if engine == "tesseract":
        from .tesseract import TesseractEngine
        return TesseractEngine(settings)
    if engine in ("google_vision", "google-vision", "vision"):
        from .google_vision import GoogleVisionClient
        return GoogleVisionClient(settings)

    raise OcrEngineError(f"Unknown OCR engine '{settings.ocr_engine}' (expected 'tesseract' or 'google_vision')")
