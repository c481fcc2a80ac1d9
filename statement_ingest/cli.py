"""Command-line entry point: parse one statement file and print the result as JSON."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from .config import get_settings
from .errors import StatementIngestError
from .ingestion.pipeline import parse_statement
from .models import ColumnRole, DocumentPurpose, RawDocument
from .utils.logging_setup import configure_logging

logger = structlog.get_logger()


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="statement-ingest",
        description="Extract transactions from a bank or credit statement (CSV, XLS/XLSX, PDF, image, TXT).",
    )
    p.add_argument("path", type=Path, help="Statement file to parse.")
    p.add_argument(
        "--purpose",
        choices=[purpose.value for purpose in DocumentPurpose],
        default=DocumentPurpose.DEBT.value,
        help="Upload flow: debt (credit cards, loans) or savings (bank, ISA).",
    )
    p.add_argument("--date-format", default=None, help='Date format override for tabular files, e.g. "DD/MM/YYYY".')
    p.add_argument(
        "--column",
        action="append",
        default=[],
        metavar="ROLE=HEADER",
        help="Column role override for tabular files, e.g. --column date='Posting Date'. Repeatable.",
    )
    p.add_argument("--log-level", default=None, help="Log level (default from STATEMENT_APP_LOG_LEVEL).")
    p.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines on stderr.")
    p.add_argument("--indent", type=int, default=2, help="JSON indentation of the output.")
    return p


def _parse_overrides(parser: argparse.ArgumentParser, values: List[str]):
    overrides = {}
    for value in values:
        role, sep, header = value.partition("=")
        if not sep:
            parser.error(f"--column expects ROLE=HEADER, got '{value}'")
        try:
            overrides[ColumnRole(role.strip().lower())] = header.strip()
        except ValueError:
            parser.error(f"Unknown column role '{role}'. Choose from: {', '.join(r.value for r in ColumnRole)}")
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    overrides = _parse_overrides(parser, args.column)

    settings = get_settings()
    configure_logging(args.log_level or settings.app_log_level, json_output=args.log_json)

    if not args.path.is_file():
        parser.error(f"File not found: {args.path}")

    document = RawDocument.from_path(args.path)
    try:
        result = parse_statement(
            document,
            purpose=DocumentPurpose(args.purpose),
            settings=settings,
            date_format=args.date_format,
            column_overrides=overrides or None,
        )
    except StatementIngestError as e:
        logger.error("Statement parsing failed", kind=e.kind, stage=e.stage)
        print(f"Error ({e.kind}): {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=args.indent, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
