"""
Tests for tabular file reading and plain-text export parsing.
"""

import io
from datetime import datetime

import pandas as pd
import pytest

from statement_ingest.errors import DocumentUnreadable
from statement_ingest.ingestion.tabular_reader import decode_text, read_csv_text, read_tabular
from statement_ingest.ingestion.text_formats import parse_key_value, parse_tab_separated, parse_text_export
from statement_ingest.models import FileKind, RawDocument

SANTANDER_EXPORT = """From: 01/03/2024 to 31/03/2024
Account: XXXX XXXX XXXX 1234

Date: 01/03/2024
Description: INTEREST PAID
Amount: 2.50
Balance: 1002.50

Date: 05/03/2024
Description: CARD PAYMENT TO TESCO
Amount: -50.00
Balance: 952.50
"""


class TestTabularReader:

    def test_csv_cells_are_strings(self):
        data = read_csv_text("Date,Amount,Balance\n01/02/2024,0012.50,100\n")
        assert data.headers == ["Date", "Amount", "Balance"]
        assert data.rows == [{"Date": "01/02/2024", "Amount": "0012.50", "Balance": "100"}]

    def test_empty_columns_and_rows_dropped(self):
        data = read_csv_text("Date,Amount,\n01/02/2024, 5.00 ,\n,,\n02/02/2024,6.00,\n")
        assert data.headers == ["Date", "Amount"]
        assert [row["Amount"] for row in data.rows] == ["5.00", "6.00"]

    def test_decode_text(self):
        assert decode_text("\ufeffDate".encode("utf-8")) == "Date"
        assert decode_text("£5".encode("cp1252")) == "£5"

    def test_xlsx(self):
        frame = pd.DataFrame({
            "Date": [datetime(2024, 1, 15), datetime(2024, 1, 16)],
            "Description": ["COFFEE", "LUNCH"],
            "Amount": ["3.20", "8.50"],
        })
        buffer = io.BytesIO()
        frame.to_excel(buffer, index=False)

        data = read_tabular(RawDocument(content=buffer.getvalue(), filename="export.xlsx"), FileKind.XLSX)
        assert data.headers == ["Date", "Description", "Amount"]
        assert data.rows[0]["Date"].startswith("2024-01-15")
        assert data.rows[1]["Description"] == "LUNCH"

    def test_corrupt_spreadsheet(self):
        document = RawDocument(content=b"definitely not a workbook", filename="export.xlsx")
        with pytest.raises(DocumentUnreadable):
            read_tabular(document, FileKind.XLSX)

    def test_non_tabular_kind(self):
        with pytest.raises(ValueError):
            read_tabular(RawDocument(content=b"", filename="a.pdf"), FileKind.PDF)


class TestTextExports:
    """Key-value, tab-separated and comma-separated text exports."""

    def test_key_value_blocks(self):
        data = parse_text_export(SANTANDER_EXPORT)

        assert data.headers == ["Date", "Description", "Amount", "Balance"]
        assert data.rows == [
            {"Date": "01/03/2024", "Description": "INTEREST PAID", "Amount": "2.50", "Balance": "1002.50"},
            {"Date": "05/03/2024", "Description": "CARD PAYMENT TO TESCO", "Amount": "-50.00", "Balance": "952.50"},
        ]

    def test_key_value_missing_fields_are_blank(self):
        data = parse_key_value(["Date: 01/03/2024", "Amount: 1.00", "Date: 02/03/2024", "Description: X"])
        assert data.rows == [
            {"Date": "01/03/2024", "Description": "", "Amount": "1.00", "Balance": ""},
            {"Date": "02/03/2024", "Description": "X", "Amount": "", "Balance": ""},
        ]

    def test_tab_separated(self):
        data = parse_text_export("01/03/2024\tCARD PAYMENT\t-12.00\t988.00\n02/03/2024\tSALARY\tBACS\t1,500.00\t2,488.00\n")

        assert data.headers == ["Date", "Description", "Amount", "Balance"]
        assert data.rows[0] == {"Date": "01/03/2024", "Description": "CARD PAYMENT", "Amount": "-12.00", "Balance": "988.00"}
        assert data.rows[1]["Description"] == "SALARY BACS"
        assert data.rows[1]["Balance"] == "2,488.00"

    def test_tab_separated_without_balance(self):
        data = parse_tab_separated(["01/03/2024\tCOFFEE\t3.20"])
        assert data.headers == ["Date", "Description", "Amount"]

    def test_comma_separated(self):
        data = parse_text_export("Date,Description,Amount\n01/03/2024,COFFEE,3.20\n")
        assert data.rows == [{"Date": "01/03/2024", "Description": "COFFEE", "Amount": "3.20"}]

    def test_unstructured_text(self):
        assert parse_text_export("Dear customer\nThank you for banking with us\n") is None
        assert parse_text_export("   \n") is None
