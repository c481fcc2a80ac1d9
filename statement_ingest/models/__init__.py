"""Data models for the statement ingestion system."""

from .enums import (
    AccountType,
    AnchorRole,
    AuditAction,
    ColumnRole,
    DocumentPurpose,
    ExtractionMethod,
    FileKind,
    PipelineState,
    ProgressStage,
    ScoringMethod,
    TransactionType,
)
from .document import (
    ColumnAnchor,
    ExtractedText,
    PositionedTextItem,
    RawDocument,
    Row,
    TabularData,
)
from .transaction import (
    AssemblyResult,
    StatementSummary,
    TransactionRecord,
)
from .report import (
    AuditEntry,
    ColumnMapping,
    PipelineResult,
    PipelineRun,
    ProgressEvent,
    QualityReport,
)

__all__ = [
    # Enums
    "AccountType",
    "AnchorRole",
    "AuditAction",
    "ColumnRole",
    "DocumentPurpose",
    "ExtractionMethod",
    "FileKind",
    "PipelineState",
    "ProgressStage",
    "ScoringMethod",
    "TransactionType",
    # Documents
    "ColumnAnchor",
    "ExtractedText",
    "PositionedTextItem",
    "RawDocument",
    "Row",
    "TabularData",
    # Transactions
    "AssemblyResult",
    "StatementSummary",
    "TransactionRecord",
    # Reports
    "AuditEntry",
    "ColumnMapping",
    "PipelineResult",
    "PipelineRun",
    "ProgressEvent",
    "QualityReport",
]
