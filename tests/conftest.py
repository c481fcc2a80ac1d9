"""
Shared fixtures for the statement ingestion tests.
"""

import pytest

from statement_ingest.config import Settings
from statement_ingest.models import RawDocument

from builders import DEBT_STATEMENT_PAGE, SAVINGS_STATEMENT_PAGE, build_pdf


@pytest.fixture
def settings():
    """Settings with defaults, independent of the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def debt_pdf() -> RawDocument:
    return RawDocument(content=build_pdf([DEBT_STATEMENT_PAGE]), filename="statement.pdf")


@pytest.fixture
def savings_pdf() -> RawDocument:
    return RawDocument(content=build_pdf([SAVINGS_STATEMENT_PAGE]), filename="savings.pdf")


@pytest.fixture
def scanned_pdf() -> RawDocument:
    return RawDocument(content=build_pdf([[(50, 60, "Scanned copy")]]), filename="scan.pdf")


@pytest.fixture
def balance_csv() -> RawDocument:
    content = (
        "Date,Balance\n"
        "01/02/2024,100.00\n"
        "02/02/2024,150.00\n"
        "05/02/2024,120.00\n"
        "10/02/2024,120.50\n"
        "15/02/2024,220.50\n"
    ).encode("utf-8")
    return RawDocument(content=content, filename="export.csv")
