"""
Tests for amount and date normalization.
"""

from datetime import date
from decimal import Decimal

import pytest

from statement_ingest.errors import DateFormatUndetected
from statement_ingest.utils.normalization import (
    detect_date_format,
    get_date_format,
    is_numeric_value,
    looks_like_date,
    parse_amount,
    parse_date,
    parse_loose_date,
    strip_time,
)


class TestParseAmount:
    """Monetary parsing never raises and keeps sign information."""

    @pytest.mark.parametrize("text,expected", [
        ("£1,234.56", Decimal("1234.56")),
        ("1234.56", Decimal("1234.56")),
        ("-45.00", Decimal("-45.00")),
        ("45.00-", Decimal("-45.00")),
        ("(12.50)", Decimal("-12.50")),
        ("£ 2,000", Decimal("2000")),
        ("1.234,56", Decimal("1234.56")),
        ("12,5", Decimal("12.5")),
        ("1,234", Decimal("1234")),
        ("100.00 CR", Decimal("100.00")),
        ("DR 7.20", Decimal("7.20")),
        ("$3.10", Decimal("3.10")),
    ])
    def test_formats(self, text, expected):
        assert parse_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "N/A", None, "£", "CR"])
    def test_no_digits_is_nan(self, text):
        assert parse_amount(text).is_nan()

    def test_numbers_pass_through(self):
        assert parse_amount(12) == Decimal("12")
        assert parse_amount(12.5) == Decimal("12.5")
        assert parse_amount(Decimal("-3.30")) == Decimal("-3.30")
        assert parse_amount(float("nan")).is_nan()

    def test_formatted_value_round_trips(self):
        for value in [Decimal("0.01"), Decimal("19.99"), Decimal("1200.00"), Decimal("-87.45")]:
            formatted = f"£{abs(value):,.2f}"
            if value < 0:
                formatted = f"-{formatted}"
            assert parse_amount(formatted) == value

    def test_is_numeric_value(self):
        assert is_numeric_value("£1,234.56")
        assert is_numeric_value("-45.00")
        assert is_numeric_value("(12.50)")
        assert is_numeric_value("100.00 CR")
        assert not is_numeric_value("TESCO STORES 2041")
        assert not is_numeric_value("")
        assert not is_numeric_value("12/01/2024")


class TestDateFormats:
    """Strict per-format parsing and majority-vote detection."""

    def test_parse_date_strict(self):
        fmt = get_date_format("DD/MM/YYYY")
        assert parse_date("25/12/2024", fmt) == date(2024, 12, 25)
        assert parse_date("2024-12-25", fmt) is None
        assert parse_date("31/02/2024", fmt) is None
        assert parse_date("", fmt) is None

    def test_parse_date_rejects_out_of_range_years(self):
        fmt = get_date_format("YYYY-MM-DD")
        assert parse_date("1899-12-31", fmt) is None
        assert parse_date("2101-01-01", fmt) is None
        assert parse_date("2000-01-01", fmt) == date(2000, 1, 1)

    def test_unknown_label_raises(self):
        with pytest.raises(DateFormatUndetected):
            get_date_format("YYYY.DD.MM")

    def test_label_lookup_is_case_tolerant(self):
        assert get_date_format("dd/mm/yyyy").label == "DD/MM/YYYY"
        assert get_date_format("yyyy-mm-dd hh:mm:ss").label == "YYYY-MM-DD HH:mm:ss"

    def test_majority_vote(self):
        """Seven day-first dates outvote three month-first ones."""
        day_first = [f"{day}/01/2024" for day in range(13, 20)]
        month_first = ["01/13/2024", "02/14/2024", "03/15/2024"]
        detected = detect_date_format(day_first + month_first)
        assert detected.label == "DD/MM/YYYY"

    def test_month_first_detected(self):
        detected = detect_date_format(["01/13/2024", "02/14/2024", "12/25/2024"])
        assert detected.label == "MM/DD/YYYY"

    def test_ambiguous_values_prefer_earlier_format(self):
        detected = detect_date_format(["01/02/2024", "03/04/2024"])
        assert detected.label == "DD/MM/YYYY"

    def test_sample_limit(self):
        samples = ["2024-01-15"] * 3 + ["15/01/2024"] * 10
        assert detect_date_format(samples, limit=3).label == "YYYY-MM-DD"

    def test_nothing_parses(self):
        assert detect_date_format(["soon", "", None, "yesterday"]) is None
        assert detect_date_format([]) is None

    def test_strip_time(self):
        detected = detect_date_format(["2024-01-15 10:30:00", "2024-01-16 09:00:00"])
        assert detected.label == "YYYY-MM-DD HH:mm:ss"

        date_only, transform = strip_time(detected)
        assert date_only.label == "YYYY-MM-DD"
        assert transform("2024-01-15 10:30:00") == "2024-01-15"
        assert parse_date(transform("2024-01-16 09:00:00"), date_only) == date(2024, 1, 16)
        assert transform("garbage") == "garbage"

    def test_strip_time_without_time_is_identity(self):
        fmt = get_date_format("DD/MM/YYYY")
        date_only, transform = strip_time(fmt)
        assert date_only is fmt
        assert transform("01/02/2024") == "01/02/2024"

    def test_loose_dates(self):
        assert parse_loose_date("15 Jan 2025") == date(2025, 1, 15)
        assert parse_loose_date("15 January 2025") == date(2025, 1, 15)
        assert parse_loose_date("Jan 15,2025") == date(2025, 1, 15)
        assert parse_loose_date("15/01/2025") == date(2025, 1, 15)
        assert parse_loose_date("next week") is None

    def test_looks_like_date(self):
        assert looks_like_date("2024-01-15")
        assert looks_like_date("15 Jan 2024")
        assert not looks_like_date("45.60")
        assert not looks_like_date("")
