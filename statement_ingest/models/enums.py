"""Enumerations for the statement ingestion system."""

from enum import Enum


class DocumentPurpose(str, Enum):
    """
    Which upload flow a document belongs to.

    DEBT: Credit card / loan statements (charges positive, payments negative)
    SAVINGS: Bank, savings and ISA statements
    """
    DEBT = "debt"
    SAVINGS = "savings"


class FileKind(str, Enum):
    """Concrete input format, resolved from extension or MIME type."""
    CSV = "csv"
    XLS = "xls"
    XLSX = "xlsx"
    PDF = "pdf"
    IMAGE = "image"
    TXT = "txt"

    @property
    def is_tabular(self) -> bool:
        return self in (FileKind.CSV, FileKind.XLS, FileKind.XLSX)


class TransactionType(str, Enum):
    """Type of transaction."""
    DEBIT = "debit"        # Money out / charge
    CREDIT = "credit"      # Money in / payment received


class ColumnRole(str, Enum):
    """Semantic role of a column in tabular input."""
    DATE = "date"
    DEBIT = "debit"
    CREDIT = "credit"
    BALANCE = "balance"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    REFERENCE = "reference"


class AnchorRole(str, Enum):
    """Semantic role of a header label in a page-oriented table."""
    TRANSACTION_DATE = "transaction_date"
    PROCESS_DATE = "process_date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    BALANCE = "balance"


class ExtractionMethod(str, Enum):
    """How text was obtained from a page-oriented document."""
    NATIVE = "native"      # Embedded text layer
    OCR = "ocr"            # Rendered and recognized
    TABULAR = "tabular"    # Spreadsheet / CSV cells
    TEXT = "text"          # Plain text export


class ScoringMethod(str, Enum):
    """Quality scoring strategy."""
    DIGITAL = "digital"        # Additive score for debt statements
    CHECKLIST = "checklist"    # Weighted per-field ratios


class AccountType(str, Enum):
    """Account classification inferred from transaction descriptions."""
    PREMIUM_BONDS = "Premium Bonds"
    LISA = "LISA"
    ISA = "ISA"
    CURRENT_ACCOUNT = "Current Account"
    SAVINGS = "Savings"


class ProgressStage(str, Enum):
    """Stage names reported to progress callbacks."""
    LOADING = "loading"
    EXTRACTING = "extracting"
    OCR_SETUP = "ocr-setup"
    OCR = "ocr"
    PARSING = "parsing"
    COMPLETE = "complete"


class PipelineState(str, Enum):
    """Lifecycle of a single pipeline run."""
    IDLE = "idle"
    EXTRACTING = "extracting"
    RECONSTRUCTING = "reconstructing"
    ASSEMBLING = "assembling"
    SCORING = "scoring"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.SUCCEEDED, PipelineState.FAILED)


class AuditAction(str, Enum):
    """Types of actions recorded in the run audit log."""
    RUN_STARTED = "run_started"
    STATE_CHANGED = "state_changed"
    EXTRACTION = "extraction"
    COLUMNS_DETECTED = "columns_detected"
    DATE_FORMAT_DETECTED = "date_format_detected"
    FALLBACK_USED = "fallback_used"
    QUALITY_SCORED = "quality_scored"
    RUN_FAILED = "run_failed"
    RUN_SUCCEEDED = "run_succeeded"
