"""Statement ingestion: bank and creditor statements into normalized transactions."""

from .errors import StatementIngestError
from .ingestion import StatementPipeline, parse_statement
from .models import DocumentPurpose, PipelineResult, RawDocument, TransactionRecord

__version__ = "0.1.0"

__all__ = [
    "DocumentPurpose",
    "PipelineResult",
    "RawDocument",
    "StatementIngestError",
    "StatementPipeline",
    "TransactionRecord",
    "parse_statement",
]
