"""
Typed failures raised by the statement ingestion pipeline.

Every error carries the pipeline stage it happened in (when known) and a
small context dict that callers can surface to users or logs.
"""

from typing import Any, Dict, List, Optional


class StatementIngestError(Exception):
    """Base class for every pipeline failure."""

    kind = "statement_ingest_error"

    def __init__(self, message: str, stage: Optional[str] = None, **context: Any):
        self.message = message
        self.stage = stage
        self.context: Dict[str, Any] = context
        super().__init__(message)

    def with_stage(self, stage: str) -> "StatementIngestError":
        if self.stage is None:
            self.stage = stage
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "stage": self.stage,
            "context": self.context,
        }


class FileTooLarge(StatementIngestError):
    kind = "file_too_large"

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"File is too large ({size / (1024 * 1024):.1f}MB). "
            f"Maximum size is {limit / (1024 * 1024):.0f}MB.",
            stage="validating",
            size=size,
            limit=limit,
        )


class UnsupportedFileType(StatementIngestError):
    kind = "unsupported_file_type"

    def __init__(self, filename: str, accepted: List[str], purpose: Optional[str] = None):
        super().__init__(
            f"Unsupported file type for '{filename}'. Accepted: {', '.join(accepted)}",
            stage="validating",
            filename=filename,
            accepted=accepted,
            purpose=purpose,
        )


class DocumentUnreadable(StatementIngestError):
    """Corrupt, password-protected, or otherwise unopenable input."""

    kind = "document_unreadable"


class OcrFailure(StatementIngestError):
    kind = "ocr_failure"


class NoTransactionsFound(StatementIngestError):
    kind = "no_transactions_found"

    def __init__(
        self,
        message: str = "No transactions found in document",
        stage: Optional[str] = None,
        missing_roles: Optional[List[str]] = None,
        rows_seen: int = 0,
    ):
        super().__init__(
            message,
            stage=stage,
            missing_roles=list(missing_roles or []),
            rows_seen=rows_seen,
        )
        self.missing_roles = list(missing_roles or [])


class LowQualityExtraction(StatementIngestError):
    kind = "low_quality_extraction"

    def __init__(self, score: int, threshold: int, stage: Optional[str] = "scoring"):
        super().__init__(
            f"Low quality extraction ({score}%). Please check the file format.",
            stage=stage,
            score=score,
            threshold=threshold,
        )
        self.score = score
        self.threshold = threshold


class DateFormatUndetected(StatementIngestError):
    kind = "date_format_undetected"

    def __init__(self, samples: List[str], stage: Optional[str] = None, message: Optional[str] = None):
        super().__init__(
            message or "Could not detect date format",
            stage=stage,
            samples=list(samples)[:5],
        )


class ExtractionCancelled(StatementIngestError):
    kind = "extraction_cancelled"

    def __init__(self, stage: Optional[str] = None, page: Optional[int] = None):
        super().__init__("Extraction cancelled", stage=stage, page=page)
