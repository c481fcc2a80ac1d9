"""
Text extraction from PDFs and images.

Digital PDFs yield positioned text runs. PDFs with too little embedded text
are treated as scans and go through OCR, as do photos of statements.
"""

import asyncio
import io
from typing import List, Optional

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener

from ..config import Settings, get_settings
from ..errors import DocumentUnreadable, OcrFailure
from ..integrations import OcrEngine, OcrEngineError, PdfDocument, PdfDocumentError, create_ocr_engine
from ..models import ExtractedText, ExtractionMethod, PositionedTextItem, ProgressStage, RawDocument
from ..utils.progress import CancellationToken, ProgressReporter
from .table.segmentation import cluster_rows, rows_to_lines

logger = structlog.get_logger()

register_heif_opener()

PDF_UNREADABLE_MESSAGE = "Failed to parse PDF. The file may be corrupted or password-protected."
OCR_FAILED_MESSAGE = (
    "OCR failed. Please try a clearer scan or upload a digital PDF. "
    "Make sure the image is well-lit and text is readable."
)


class DocumentTextExtractor:
    """Extracts text (with positions where available) from PDFs and images."""

    def __init__(self, settings: Optional[Settings] = None, ocr_engine: Optional[OcrEngine] = None):
        self.settings = settings or get_settings()
        self._ocr_engine = ocr_engine

    @property
    def ocr_engine(self) -> OcrEngine:
        # Built on first use so digital PDFs never need OCR credentials
        if self._ocr_engine is None:
            self._ocr_engine = create_ocr_engine(self.settings)
        return self._ocr_engine

    async def extract_pdf(
        self,
        document: RawDocument,
        reporter: Optional[ProgressReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractedText:
        """
        Extract text from a PDF, falling back to OCR for scanned documents.

        Raises:
            DocumentUnreadable: corrupt or password-protected PDF
            OcrFailure: OCR was needed and produced nothing usable
            ExtractionCancelled: the cancel token was set
        """
        reporter = reporter or ProgressReporter()
        cancel_token = cancel_token or CancellationToken()
        reporter.report(ProgressStage.LOADING, "Loading PDF...", 10)

        try:
            pdf = PdfDocument(document.content)
        except PdfDocumentError as e:
            raise DocumentUnreadable(
                PDF_UNREADABLE_MESSAGE,
                stage="extracting",
                password_protected=e.password_protected,
                reason=str(e),
            ) from e

        with pdf:
            page_count = pdf.page_count
            logger.info("Opened PDF", filename=document.filename, pages=page_count)

            items: List[PositionedTextItem] = []
            for index in range(page_count):
                cancel_token.raise_if_cancelled(stage="extracting", page=index)
                try:
                    items.extend(pdf.text_runs(index, self.settings.run_merge_gap_ratio))
                except PdfDocumentError as e:
                    raise DocumentUnreadable(PDF_UNREADABLE_MESSAGE, stage="extracting", reason=str(e)) from e
                reporter.report(
                    ProgressStage.EXTRACTING,
                    f"Extracting text from page {index + 1} of {page_count}...",
                    10 + (index + 1) / page_count * 40,
                )

            rows = cluster_rows(items, self.settings.row_tolerance)
            text = "\n".join(rows_to_lines(rows))

            if len(text.strip()) >= self.settings.min_native_text_chars:
                return ExtractedText(
                    method=ExtractionMethod.NATIVE,
                    items=items,
                    text=text,
                    page_count=page_count,
                    pages_processed=page_count,
                )

            logger.info(
                "Little embedded text, treating PDF as scanned",
                characters=len(text.strip()),
                threshold=self.settings.min_native_text_chars,
            )
            return await self._ocr_pdf(pdf, reporter, cancel_token)

    async def _ocr_pdf(
        self,
        pdf: PdfDocument,
        reporter: ProgressReporter,
        cancel_token: CancellationToken,
    ) -> ExtractedText:
        reporter.report(ProgressStage.OCR_SETUP, "Initializing OCR for scanned PDF...", 10)
        page_count = pdf.page_count
        pages_to_process = min(page_count, self.settings.ocr_max_pages)

        page_texts = []
        for index in range(pages_to_process):
            cancel_token.raise_if_cancelled(stage="extracting", page=index)
            reporter.report(
                ProgressStage.OCR,
                f"Performing OCR on page {index + 1} of {pages_to_process}...",
                10 + (index + 1) / pages_to_process * 70,
            )
            try:
                image = pdf.render(index, self.settings.ocr_render_scale)
            except PdfDocumentError as e:
                raise DocumentUnreadable(PDF_UNREADABLE_MESSAGE, stage="extracting", reason=str(e)) from e
            page_texts.append(await self._recognize(image, index, cancel_token))

        text = "\n".join(page_texts)
        if not text.strip():
            raise OcrFailure(OCR_FAILED_MESSAGE, stage="extracting", reason="no text recognized")

        if page_count > pages_to_process:
            logger.warning("OCR limited to first pages", processed=pages_to_process, total=page_count)

        return ExtractedText(
            method=ExtractionMethod.OCR,
            text=text,
            page_count=page_count,
            pages_processed=pages_to_process,
        )

    async def extract_image(
        self,
        document: RawDocument,
        reporter: Optional[ProgressReporter] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractedText:
        """OCR a photo or scan (JPEG, PNG, HEIC)."""
        reporter = reporter or ProgressReporter()
        cancel_token = cancel_token or CancellationToken()
        reporter.report(ProgressStage.OCR, "Processing image with OCR...", 10)

        image = open_image(document.content)
        text = await self._recognize(image, 0, cancel_token)
        if not text.strip():
            raise OcrFailure(OCR_FAILED_MESSAGE, stage="extracting", reason="no text recognized")

        return ExtractedText(method=ExtractionMethod.OCR, text=text, page_count=1, pages_processed=1)

    async def _recognize(self, image: Image.Image, page: int, cancel_token: CancellationToken) -> str:
        cancel_token.raise_if_cancelled(stage="extracting", page=page)
        timeout = self.settings.ocr_timeout_seconds
        try:
            engine = self.ocr_engine
            text = await asyncio.wait_for(
                asyncio.to_thread(engine.recognize, image),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise OcrFailure(
                f"OCR timed out after {timeout}s",
                stage="extracting",
                page=page,
            ) from e
        except OcrEngineError as e:
            raise OcrFailure(OCR_FAILED_MESSAGE, stage="extracting", page=page, reason=str(e)) from e

        logger.info("OCR page complete", page=page + 1, characters=len(text))
        return text


def open_image(content: bytes) -> Image.Image:
    """Decode image bytes (HEIC included), applying EXIF orientation."""
    try:
        image = Image.open(io.BytesIO(content))
        image = ImageOps.exif_transpose(image)
        return image.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise DocumentUnreadable("Could not read image file", stage="extracting", reason=str(e)) from e
