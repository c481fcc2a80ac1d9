"""Ingestion of bank and creditor statements into normalized transactions."""

from .column_detector import detect_account_type, detect_bank, detect_columns, detect_creditor
from .pipeline import StatementPipeline, parse_statement, resolve_file_kind
from .table import TableReconstructor
from .text_extractor import DocumentTextExtractor

__all__ = [
    "DocumentTextExtractor",
    "StatementPipeline",
    "TableReconstructor",
    "detect_account_type",
    "detect_bank",
    "detect_columns",
    "detect_creditor",
    "parse_statement",
    "resolve_file_kind",
]
