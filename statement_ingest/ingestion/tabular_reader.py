"""
CSV and spreadsheet reading with pandas.
Every cell comes back as a stripped string; typing happens later.
"""

import io
import zipfile
from typing import Optional

import pandas as pd
import structlog
import xlrd
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import DocumentUnreadable
from ..models import FileKind, RawDocument, TabularData

logger = structlog.get_logger()

EXCEL_ENGINES = {
    FileKind.XLSX: "openpyxl",
    FileKind.XLS: "xlrd",
}


def decode_text(content: bytes) -> str:
    """Decode exported text, tolerating BOMs and legacy encodings."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("cp1252", errors="replace")


def read_csv_text(text: str, sep: Optional[str] = ",") -> TabularData:
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise DocumentUnreadable(f"Error parsing CSV: {e}", stage="extracting") from e
    return _frame_to_tabular(frame)


def read_tabular(document: RawDocument, kind: FileKind) -> TabularData:
    """
    Read CSV, XLS or XLSX into headers plus string rows.
    Spreadsheets use their first sheet.

    Raises:
        DocumentUnreadable: the file cannot be parsed as the declared kind
    """
    if kind == FileKind.CSV:
        data = read_csv_text(decode_text(document.content))
    elif kind in EXCEL_ENGINES:
        try:
            frame = pd.read_excel(
                io.BytesIO(document.content),
                sheet_name=0,
                dtype=str,
                keep_default_na=False,
                engine=EXCEL_ENGINES[kind],
            )
        except (ValueError, OSError, zipfile.BadZipFile, InvalidFileException, xlrd.XLRDError) as e:
            raise DocumentUnreadable(f"Error reading spreadsheet: {e}", stage="extracting") from e
        data = _frame_to_tabular(frame)
    else:
        raise ValueError(f"Not a tabular file kind: {kind.value}")

    logger.info("Read tabular file", filename=document.filename, columns=len(data.headers), rows=len(data.rows))
    return data


def _frame_to_tabular(frame: pd.DataFrame) -> TabularData:
    frame = frame.fillna("")
    frame.columns = [str(column).strip() for column in frame.columns]
    frame = frame.apply(lambda column: column.astype(str).str.strip())

    # Drop pandas' placeholder names for unlabelled, empty columns
    unnamed_empty = [
        column for column in frame.columns
        if column.startswith("Unnamed:") and (frame[column] == "").all()
    ]
    frame = frame.drop(columns=unnamed_empty)

    frame = frame[(frame != "").any(axis=1)]
    headers = list(frame.columns)
    rows = frame.to_dict(orient="records")
    return TabularData(headers=headers, rows=rows)
