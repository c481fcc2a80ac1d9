"""
Statement ingestion pipeline.

Orchestrates one document through:
1. Validation (size, file kind for the upload purpose)
2. Extraction (tabular read, text export parse, native PDF text or OCR)
3. Reconstruction (column roles or page table layout)
4. Assembly into TransactionRecords
5. Quality scoring against the minimum threshold
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import structlog

from ..config import Settings, get_settings
from ..errors import (
    DateFormatUndetected,
    FileTooLarge,
    LowQualityExtraction,
    NoTransactionsFound,
    StatementIngestError,
    UnsupportedFileType,
)
from ..integrations import OcrEngine
from ..models import (
    AssemblyResult,
    AuditAction,
    ColumnMapping,
    ColumnRole,
    DocumentPurpose,
    ExtractedText,
    ExtractionMethod,
    FileKind,
    PipelineResult,
    PipelineRun,
    PipelineState,
    ProgressStage,
    QualityReport,
    RawDocument,
    StatementSummary,
    TabularData,
)
from ..utils.audit_logger import AuditLogger
from ..utils.normalization import DateFormat, detect_date_format, get_date_format, strip_time
from ..utils.progress import CancellationToken, ProgressCallback, ProgressReporter
from .assembler import (
    assemble_statement_lines,
    assemble_table_rows,
    assemble_tabular,
    assemble_text_patterns,
)
from .column_detector import (
    detect_account_type,
    detect_bank,
    detect_columns,
    detect_creditor,
    sample_text_from_rows,
)
from .quality import score_checklist, score_digital
from .summary_extractor import extract_summary
from .table import TableReconstructor
from .tabular_reader import decode_text, read_tabular
from .text_extractor import DocumentTextExtractor
from .text_formats import parse_text_export

logger = structlog.get_logger()


ACCEPTED_KINDS: Dict[DocumentPurpose, tuple] = {
    DocumentPurpose.DEBT: (FileKind.CSV, FileKind.XLS, FileKind.XLSX, FileKind.PDF, FileKind.IMAGE),
    DocumentPurpose.SAVINGS: (FileKind.PDF, FileKind.TXT, FileKind.CSV, FileKind.XLS, FileKind.XLSX),
}

EXTENSION_KINDS = {
    "csv": FileKind.CSV,
    "xls": FileKind.XLS,
    "xlsx": FileKind.XLSX,
    "pdf": FileKind.PDF,
    "txt": FileKind.TXT,
    "jpg": FileKind.IMAGE,
    "jpeg": FileKind.IMAGE,
    "png": FileKind.IMAGE,
    "heic": FileKind.IMAGE,
    "heif": FileKind.IMAGE,
}

MIME_KINDS = {
    "text/csv": FileKind.CSV,
    "application/csv": FileKind.CSV,
    "application/vnd.ms-excel": FileKind.XLS,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileKind.XLSX,
    "application/pdf": FileKind.PDF,
    "text/plain": FileKind.TXT,
}

ACCEPTED_EXTENSIONS = {
    purpose: sorted(ext for ext, kind in EXTENSION_KINDS.items() if kind in kinds)
    for purpose, kinds in ACCEPTED_KINDS.items()
}


def resolve_file_kind(document: RawDocument, purpose: DocumentPurpose) -> FileKind:
    """
    Resolve the input format from the extension, then the MIME type.

    Raises:
        UnsupportedFileType: unknown format, or not accepted for this purpose
    """
    kind = EXTENSION_KINDS.get(document.extension)
    if kind is None and document.mime_type:
        mime = document.mime_type.split(";")[0].strip().lower()
        kind = MIME_KINDS.get(mime) or (FileKind.IMAGE if mime.startswith("image/") else None)

    if kind is None or kind not in ACCEPTED_KINDS[purpose]:
        raise UnsupportedFileType(document.filename, ACCEPTED_EXTENSIONS[purpose], purpose=purpose.value)
    return kind


@dataclass
class _RunContext:
    """Everything one invocation needs; never shared between runs."""
    document: RawDocument
    purpose: DocumentPurpose
    run: PipelineRun
    audit: AuditLogger
    reporter: ProgressReporter
    cancel_token: CancellationToken
    date_format: Optional[str] = None
    column_overrides: Optional[Mapping[ColumnRole, str]] = None


class StatementPipeline:
    """
    Turns one uploaded statement into normalized transactions plus a quality report.

    The instance holds only configuration and collaborators, so it can be
    reused across documents and runs.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        ocr_engine: Optional[OcrEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = DocumentTextExtractor(self.settings, ocr_engine=ocr_engine)
        self.reconstructor = TableReconstructor(self.settings)

    async def run(
        self,
        document: RawDocument,
        purpose: DocumentPurpose = DocumentPurpose.DEBT,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        date_format: Optional[str] = None,
        column_overrides: Optional[Mapping[ColumnRole, str]] = None,
        audit: Optional[AuditLogger] = None,
    ) -> PipelineResult:
        """
        Run the full pipeline for one document.

        Args:
            document: The uploaded file
            purpose: Debt or savings upload flow
            progress: Optional callback receiving ProgressEvents
            cancel_token: Optional cooperative cancellation token
            date_format: Caller-confirmed date format label for tabular input
            column_overrides: Caller-confirmed column roles for tabular input
            audit: Optional observer; one is created per run otherwise

        Returns:
            PipelineResult

        Raises:
            StatementIngestError: the run failed; the error names its stage
        """
        run = PipelineRun(filename=document.filename)
        if audit is not None:
            run.id = audit.run_id
        ctx = _RunContext(
            document=document,
            purpose=purpose,
            run=run,
            audit=audit or AuditLogger(run.id, document.filename),
            reporter=ProgressReporter(progress),
            cancel_token=cancel_token or CancellationToken(),
            date_format=date_format,
            column_overrides=column_overrides,
        )
        ctx.audit.record(
            AuditAction.RUN_STARTED,
            "Pipeline run started",
            purpose=purpose.value,
            size=document.size,
        )

        try:
            result = await self._dispatch(ctx)
        except StatementIngestError as e:
            e.with_stage(run.state.value)
            self._fail(ctx, e)
            raise
        except Exception as e:
            self._fail(ctx, e)
            raise

        self._transition(ctx, PipelineState.SUCCEEDED)
        ctx.reporter.complete(f"Successfully extracted {result.transaction_count} transactions!")
        ctx.audit.record(
            AuditAction.RUN_SUCCEEDED,
            "Pipeline run succeeded",
            transactions=result.transaction_count,
            quality=result.quality.score,
        )
        return result

    # -------------------------------------------------------------------------
    # State handling
    # -------------------------------------------------------------------------

    def _transition(self, ctx: _RunContext, state: PipelineState) -> None:
        previous = ctx.run.state
        ctx.run.transition(state)
        ctx.audit.state_changed(previous, state)

    def _fail(self, ctx: _RunContext, error: Exception) -> None:
        stage = error.stage if isinstance(error, StatementIngestError) else ctx.run.state.value
        ctx.run.error = error
        self._transition(ctx, PipelineState.FAILED)
        ctx.audit.failed(error, stage)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def _dispatch(self, ctx: _RunContext) -> PipelineResult:
        document = ctx.document
        if document.size > self.settings.max_file_size_bytes:
            raise FileTooLarge(document.size, self.settings.max_file_size_bytes)

        kind = resolve_file_kind(document, ctx.purpose)
        logger.info("Parsing statement", filename=document.filename, kind=kind.value, purpose=ctx.purpose.value)

        if kind.is_tabular:
            self._transition(ctx, PipelineState.EXTRACTING)
            ctx.reporter.report(ProgressStage.LOADING, "Reading file...", 10)
            data = read_tabular(document, kind)
            return self._run_tabular(ctx, kind, data, ExtractionMethod.TABULAR)

        if kind == FileKind.TXT:
            return self._run_text_export(ctx)

        if kind == FileKind.IMAGE:
            self._transition(ctx, PipelineState.EXTRACTING)
            extracted = await self.extractor.extract_image(document, ctx.reporter, ctx.cancel_token)
            return self._run_debt_pages(ctx, kind, extracted)

        self._transition(ctx, PipelineState.EXTRACTING)
        extracted = await self.extractor.extract_pdf(document, ctx.reporter, ctx.cancel_token)
        ctx.audit.record(
            AuditAction.EXTRACTION,
            "Extracted document text",
            method=extracted.method.value,
            pages=extracted.page_count,
            pages_processed=extracted.pages_processed,
            characters=len(extracted.text),
        )
        if ctx.purpose == DocumentPurpose.SAVINGS:
            return self._run_savings_pages(ctx, kind, extracted)
        return self._run_debt_pages(ctx, kind, extracted)

    # -------------------------------------------------------------------------
    # Tabular and text exports
    # -------------------------------------------------------------------------

    def _run_text_export(self, ctx: _RunContext) -> PipelineResult:
        self._transition(ctx, PipelineState.EXTRACTING)
        ctx.reporter.report(ProgressStage.PARSING, "Reading file...", 30)
        text = decode_text(ctx.document.content)
        data = parse_text_export(text)

        if data is not None:
            return self._run_tabular(ctx, FileKind.TXT, data, ExtractionMethod.TEXT)

        # Unstructured text: treat as statement lines
        ctx.audit.record(AuditAction.FALLBACK_USED, "No text export structure, reading statement lines")
        extracted = ExtractedText(method=ExtractionMethod.TEXT, text=text, page_count=1, pages_processed=1)
        return self._run_savings_pages(ctx, FileKind.TXT, extracted)

    def _run_tabular(
        self,
        ctx: _RunContext,
        kind: FileKind,
        data: TabularData,
        method: ExtractionMethod,
    ) -> PipelineResult:
        self._transition(ctx, PipelineState.RECONSTRUCTING)
        ctx.reporter.report(ProgressStage.PARSING, "Detecting columns...", 40)
        if not data.rows:
            raise NoTransactionsFound("No transaction data found in file.", stage="reconstructing")

        mapping = detect_columns(
            data.headers,
            data.rows,
            sample_size=self.settings.column_sample_rows,
            overrides=ctx.column_overrides,
        )
        ctx.audit.record(
            AuditAction.COLUMNS_DETECTED,
            "Detected column roles",
            columns={role.value: header for role, header in mapping.columns.items()},
            missing=[role.value for role in mapping.missing_required],
        )

        date_column = mapping.get(ColumnRole.DATE)
        if date_column is None:
            raise NoTransactionsFound(
                "Could not find a date column. Please map the columns manually.",
                stage="reconstructing",
                missing_roles=[role.value for role in mapping.missing_required],
                rows_seen=len(data.rows),
            )

        date_format = self._resolve_date_format(ctx, data, date_column)
        date_format, transform = strip_time(date_format)

        self._transition(ctx, PipelineState.ASSEMBLING)
        ctx.reporter.report(ProgressStage.PARSING, "Parsing transactions...", 60)
        sample_text = sample_text_from_rows(data.rows)
        if ctx.purpose == DocumentPurpose.SAVINGS:
            counterparty = detect_bank(ctx.document.filename, sample_text, self.settings)
        else:
            counterparty = detect_creditor(f"{ctx.document.filename} {sample_text}", self.settings)
        assembly = assemble_tabular(data, mapping, date_format, transform, ctx.purpose, counterparty)
        self._require_records(assembly, mapping, len(data.rows))

        descriptions = [r.description for r in assembly.records]
        account_type = detect_account_type(descriptions) if ctx.purpose == DocumentPurpose.SAVINGS else None

        quality = self._score(ctx, assembly, None, checklist=True)
        return PipelineResult(
            run_id=ctx.run.id,
            purpose=ctx.purpose,
            file_kind=kind,
            transactions=assembly.records,
            quality=quality,
            extraction_method=method,
            mapping=mapping,
            date_format=date_format.label,
            counterparty=counterparty,
            account_type=account_type,
        )

    def _resolve_date_format(self, ctx: _RunContext, data: TabularData, date_column: str) -> DateFormat:
        if ctx.date_format:
            return get_date_format(ctx.date_format)

        samples = data.column_values(date_column)
        detected = detect_date_format(samples, limit=self.settings.date_sample_size)
        if detected is None:
            raise DateFormatUndetected(
                samples[: self.settings.date_sample_size],
                stage="reconstructing",
                message="Could not detect date format. Please choose the date format manually.",
            )
        ctx.audit.record(AuditAction.DATE_FORMAT_DETECTED, "Detected date format", format=detected.label)
        return detected

    # -------------------------------------------------------------------------
    # Page-oriented documents
    # -------------------------------------------------------------------------

    def _run_debt_pages(self, ctx: _RunContext, kind: FileKind, extracted: ExtractedText) -> PipelineResult:
        self._transition(ctx, PipelineState.RECONSTRUCTING)
        ctx.reporter.report(ProgressStage.PARSING, "Analyzing statement...", 60)
        summary = extract_summary(extracted.text, self.settings)
        creditor = detect_creditor(extracted.text, self.settings)

        table = None
        if extracted.has_positions:
            table = self.reconstructor.reconstruct(extracted.items, ctx.cancel_token)

        self._transition(ctx, PipelineState.ASSEMBLING)
        ctx.reporter.report(ProgressStage.PARSING, "Extracting transactions...", 80)
        assembly = AssemblyResult()
        if table is not None and table.rows:
            assembly = assemble_table_rows(table, summary, creditor)

        if not assembly.records:
            ctx.audit.record(AuditAction.FALLBACK_USED, "No table rows, matching text patterns")
            assembly = assemble_text_patterns(extracted.text, creditor)

        self._require_records(assembly, None, assembly.candidate_rows)

        quality = self._score(ctx, assembly, summary, checklist=False)
        return PipelineResult(
            run_id=ctx.run.id,
            purpose=ctx.purpose,
            file_kind=kind,
            transactions=assembly.records,
            quality=quality,
            extraction_method=extracted.method,
            anchors=table.anchors if table is not None else [],
            counterparty=creditor,
            starting_balance=summary.starting_balance,
            closing_balance=summary.closing_balance,
            interest_rate=summary.interest_rate,
        )

    def _run_savings_pages(self, ctx: _RunContext, kind: FileKind, extracted: ExtractedText) -> PipelineResult:
        self._transition(ctx, PipelineState.RECONSTRUCTING)
        ctx.reporter.report(ProgressStage.PARSING, "Analyzing transactions...", 60)
        lines = extracted.text.splitlines()
        bank = detect_bank(ctx.document.filename, extracted.text, self.settings)

        self._transition(ctx, PipelineState.ASSEMBLING)
        ctx.reporter.report(ProgressStage.PARSING, "Extracting transactions...", 80)
        assembly = assemble_statement_lines(lines, bank)
        self._require_records(assembly, None, assembly.candidate_rows)

        summary = extract_summary(extracted.text, self.settings)
        quality = self._score(ctx, assembly, summary, checklist=True)
        return PipelineResult(
            run_id=ctx.run.id,
            purpose=ctx.purpose,
            file_kind=kind,
            transactions=assembly.records,
            quality=quality,
            extraction_method=extracted.method,
            date_format="DD/MM/YYYY",
            counterparty=bank,
            account_type=detect_account_type(r.description for r in assembly.records),
            starting_balance=summary.starting_balance,
            closing_balance=summary.closing_balance,
        )

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    def _require_records(self, assembly: AssemblyResult, mapping: Optional[ColumnMapping], rows_seen: int) -> None:
        if assembly.records:
            return
        missing: List[str] = [role.value for role in mapping.missing_required] if mapping else []
        raise NoTransactionsFound(
            "No transactions found. The document may not contain a recognizable statement structure.",
            stage="assembling",
            missing_roles=missing,
            rows_seen=rows_seen,
        )

    def _score(
        self,
        ctx: _RunContext,
        assembly: AssemblyResult,
        summary: Optional[StatementSummary],
        checklist: bool,
    ) -> QualityReport:
        self._transition(ctx, PipelineState.SCORING)
        ctx.reporter.report(ProgressStage.PARSING, "Validating data...", 90)
        quality = score_checklist(assembly, summary) if checklist else score_digital(assembly, summary)
        ctx.audit.record(
            AuditAction.QUALITY_SCORED,
            "Scored extraction",
            score=quality.score,
            method=quality.method.value,
            rows=quality.rows_found,
        )
        if not quality.meets(self.settings.min_quality_score):
            raise LowQualityExtraction(quality.score, self.settings.min_quality_score)
        return quality


def parse_statement(
    document: RawDocument,
    purpose: DocumentPurpose = DocumentPurpose.DEBT,
    settings: Optional[Settings] = None,
    ocr_engine: Optional[OcrEngine] = None,
    **kwargs,
) -> PipelineResult:
    """Synchronous convenience wrapper around StatementPipeline.run."""
    pipeline = StatementPipeline(settings=settings, ocr_engine=ocr_engine)
    return asyncio.run(pipeline.run(document, purpose=purpose, **kwargs))
