"""
Tests for PDF and image text extraction, including the OCR fallback.
"""

import pytest
import fitz  # PyMuPDF

from statement_ingest.config import Settings
from statement_ingest.errors import DocumentUnreadable, ExtractionCancelled, OcrFailure
from statement_ingest.ingestion.text_extractor import DocumentTextExtractor
from statement_ingest.integrations import OcrEngineError, PdfDocument, PdfDocumentError
from statement_ingest.models import ExtractionMethod, ProgressStage, RawDocument
from statement_ingest.utils.progress import CancellationToken, ProgressReporter

from builders import (
    DEBT_STATEMENT_PAGE,
    OCR_STATEMENT_TEXT,
    FailingOcrEngine,
    FakeOcrEngine,
    build_pdf,
    build_png,
)


class TestPdfDocument:

    def test_text_runs_merge_words(self, debt_pdf):
        with PdfDocument(debt_pdf.content) as pdf:
            runs = pdf.text_runs(0)

        texts = [run.text for run in runs]
        assert "Transaction Date" in texts
        assert "TESCO STORES 2041" in texts
        assert "12 Dec" in texts

    def test_user_space_coordinates(self, debt_pdf):
        with PdfDocument(debt_pdf.content) as pdf:
            runs = {run.text: run for run in pdf.text_runs(0)}

        # Higher on the page means a larger y
        assert runs["Barclaycard Platinum"].y > runs["Transaction Date"].y > runs["12 Dec"].y
        assert runs["Transaction Date"].y == runs["Transaction Details"].y
        assert abs(runs["12 Dec"].x - 50) < 2

    def test_render(self, debt_pdf):
        with PdfDocument(debt_pdf.content) as pdf:
            image = pdf.render(0, scale=1.0)
        assert image.mode == "RGB"
        assert image.size == (595, 842)

    def test_corrupt(self):
        with pytest.raises(PdfDocumentError):
            PdfDocument(b"this is not really a pdf")

    def test_password_protected(self):
        content = build_pdf(
            [DEBT_STATEMENT_PAGE],
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="secret",
        )
        with pytest.raises(PdfDocumentError) as exc_info:
            PdfDocument(content)
        assert exc_info.value.password_protected


class TestDocumentTextExtractor:
    """Native text first, OCR when the text layer is too thin."""

    @pytest.mark.asyncio
    async def test_native_pdf(self, settings, debt_pdf):
        engine = FakeOcrEngine([OCR_STATEMENT_TEXT])
        extractor = DocumentTextExtractor(settings, ocr_engine=engine)

        extracted = await extractor.extract_pdf(debt_pdf)

        assert extracted.method == ExtractionMethod.NATIVE
        assert extracted.has_positions
        assert extracted.page_count == 1
        assert "Previous balance £1,200.00" in extracted.text.splitlines()
        assert engine.calls == 0

    @pytest.mark.asyncio
    async def test_scanned_pdf_uses_ocr(self, settings, scanned_pdf):
        engine = FakeOcrEngine([OCR_STATEMENT_TEXT])
        extractor = DocumentTextExtractor(settings, ocr_engine=engine)

        extracted = await extractor.extract_pdf(scanned_pdf)

        assert extracted.method == ExtractionMethod.OCR
        assert not extracted.has_positions
        assert extracted.text == OCR_STATEMENT_TEXT
        assert engine.calls == 1
        # Rendered at the configured scale
        assert engine.image_sizes == [(1190, 1684)]

    @pytest.mark.asyncio
    async def test_ocr_page_cap(self, settings):
        document = RawDocument(content=build_pdf([[]] * 7), filename="long-scan.pdf")
        engine = FakeOcrEngine(["12 Jan 2025 TESCO 1.00"])
        extractor = DocumentTextExtractor(settings, ocr_engine=engine)

        extracted = await extractor.extract_pdf(document)

        assert engine.calls == settings.ocr_max_pages
        assert extracted.pages_processed == settings.ocr_max_pages
        assert extracted.page_count == 7

    @pytest.mark.asyncio
    async def test_ocr_without_text_fails(self, settings, scanned_pdf):
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine(["  "]))
        with pytest.raises(OcrFailure):
            await extractor.extract_pdf(scanned_pdf)

    @pytest.mark.asyncio
    async def test_ocr_engine_error(self, settings, scanned_pdf):
        extractor = DocumentTextExtractor(settings, ocr_engine=FailingOcrEngine())
        with pytest.raises(OcrFailure) as exc_info:
            await extractor.extract_pdf(scanned_pdf)
        assert exc_info.value.context["reason"] == "engine exploded"

    @pytest.mark.asyncio
    async def test_unknown_engine_setting(self, scanned_pdf):
        extractor = DocumentTextExtractor(Settings(_env_file=None, ocr_engine="abbyy"))
        with pytest.raises(OcrFailure) as exc_info:
            await extractor.extract_pdf(scanned_pdf)
        assert exc_info.value.stage == "extracting"
        assert "abbyy" in exc_info.value.context["reason"]

    @pytest.mark.asyncio
    async def test_missing_vision_credentials(self, tmp_path, scanned_pdf):
        settings = Settings(
            _env_file=None,
            ocr_engine="google_vision",
            google_application_credentials=str(tmp_path / "missing-key.json"),
        )
        extractor = DocumentTextExtractor(settings)
        with pytest.raises(OcrFailure) as exc_info:
            await extractor.extract_pdf(scanned_pdf)
        assert isinstance(exc_info.value.__cause__, OcrEngineError)

    @pytest.mark.asyncio
    async def test_corrupt_pdf(self, settings):
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine())
        document = RawDocument(content=b"not a pdf at all", filename="broken.pdf")

        with pytest.raises(DocumentUnreadable) as exc_info:
            await extractor.extract_pdf(document)
        assert exc_info.value.stage == "extracting"

    @pytest.mark.asyncio
    async def test_encrypted_pdf(self, settings):
        content = build_pdf(
            [DEBT_STATEMENT_PAGE],
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="secret",
        )
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine())

        with pytest.raises(DocumentUnreadable) as exc_info:
            await extractor.extract_pdf(RawDocument(content=content, filename="locked.pdf"))
        assert exc_info.value.context["password_protected"] is True

    @pytest.mark.asyncio
    async def test_progress_reported(self, settings, debt_pdf):
        events = []
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine())

        await extractor.extract_pdf(debt_pdf, ProgressReporter(events.append))

        assert [e.stage for e in events] == [ProgressStage.LOADING, ProgressStage.EXTRACTING]
        assert events[-1].percent == 50

    @pytest.mark.asyncio
    async def test_cancelled_before_first_page(self, settings, debt_pdf):
        token = CancellationToken()
        token.cancel()
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine())

        with pytest.raises(ExtractionCancelled) as exc_info:
            await extractor.extract_pdf(debt_pdf, cancel_token=token)
        assert exc_info.value.context["page"] == 0

    @pytest.mark.asyncio
    async def test_image(self, settings):
        engine = FakeOcrEngine([OCR_STATEMENT_TEXT])
        extractor = DocumentTextExtractor(settings, ocr_engine=engine)

        extracted = await extractor.extract_image(RawDocument(content=build_png(), filename="photo.png"))

        assert extracted.method == ExtractionMethod.OCR
        assert extracted.text == OCR_STATEMENT_TEXT
        assert engine.image_sizes == [(200, 100)]

    @pytest.mark.asyncio
    async def test_unreadable_image(self, settings):
        extractor = DocumentTextExtractor(settings, ocr_engine=FakeOcrEngine(["x"]))
        with pytest.raises(DocumentUnreadable):
            await extractor.extract_image(RawDocument(content=b"\x00\x01garbage", filename="photo.jpg"))
