"""
Plain-text statement exports.

Three layouts are recognized:
- key-value blocks ("Date: ...", "Description: ...", "Amount: ...", "Balance: ...")
  as exported by Santander
- tab-separated lines, with columns identified by content
- comma-separated text, read as CSV
"""

import re
from typing import Dict, List, Optional

import structlog

from ..models import TabularData
from .tabular_reader import read_csv_text

logger = structlog.get_logger()

KEY_VALUE_LINE = re.compile(r"^(Date|Description|Amount|Balance):", re.I)
FIELD_LINE = re.compile(r"^([^:]+):\s*(.*)$")
SKIPPED_PREFIXES = ("From:", "Account:")
UNPRINTABLE = re.compile(r"[^\x20-\x7E£]")

TAB_DATE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
TAB_MONEY = re.compile(r"^-?£?[\d,]+\.\d{2}$")

STANDARD_HEADERS = ["Date", "Description", "Amount", "Balance"]


def parse_text_export(text: str) -> Optional[TabularData]:
    """
    Parse a text export into rows.

    Returns:
        TabularData, or None when the text has no recognizable structure.
    """
    lines = [line.strip() for line in text.splitlines()]
    non_empty = [line for line in lines if line]
    if not non_empty:
        return None

    if any(KEY_VALUE_LINE.match(line) for line in non_empty):
        logger.info("Detected key-value text export")
        return parse_key_value(non_empty)

    first_line = non_empty[0]
    if "\t" in first_line:
        logger.info("Detected tab-separated text export")
        return parse_tab_separated(non_empty)
    if "," in first_line:
        logger.info("Detected comma-separated text export")
        return read_csv_text("\n".join(non_empty))

    return None


def parse_key_value(lines: List[str]) -> TabularData:
    """Each 'Date:' line opens a new transaction."""
    rows: List[Dict[str, str]] = []
    current: Dict[str, str] = {}

    for line in lines:
        if line.startswith(SKIPPED_PREFIXES):
            continue
        match = FIELD_LINE.match(line)
        if not match:
            continue

        field = match.group(1).strip().title()
        value = UNPRINTABLE.sub("", match.group(2)).strip()
        if field not in STANDARD_HEADERS:
            continue

        if field == "Date" and "Date" in current:
            rows.append(current)
            current = {}
        current[field] = value

    if current:
        rows.append(current)

    rows = [{header: row.get(header, "") for header in STANDARD_HEADERS} for row in rows]
    return TabularData(headers=list(STANDARD_HEADERS), rows=rows)


def parse_tab_separated(lines: List[str]) -> TabularData:
    """
    Assign tab-separated cells by content: the first date is the Date, the
    first money value the Amount, the second the Balance, the rest Description.
    """
    rows: List[Dict[str, str]] = []
    for line in lines:
        row: Dict[str, str] = {}
        for value in (part.strip() for part in line.split("\t")):
            if not value:
                continue
            if TAB_DATE.match(value):
                row.setdefault("Date", value)
            elif TAB_MONEY.match(value):
                if "Amount" not in row:
                    row["Amount"] = value
                elif "Balance" not in row:
                    row["Balance"] = value
            else:
                row["Description"] = (row.get("Description", "") + " " + value).strip()
        if row:
            rows.append(row)

    headers = [header for header in STANDARD_HEADERS if any(header in row for row in rows)]
    rows = [{header: row.get(header, "") for header in headers} for row in rows]
    return TabularData(headers=headers, rows=rows)
