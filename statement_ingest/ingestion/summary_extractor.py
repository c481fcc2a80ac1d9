"""
Statement-level figures: opening and closing balances, interest rate, and
the reference period used to date month-name entries that omit the year.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from ..config import Settings, get_settings
from ..models import StatementSummary
from ..utils.normalization import MONTH_PATTERN, parse_amount, parse_loose_date

logger = structlog.get_logger()

_MONEY = r"[:\s]+(?:£\s*)?(\(?-?[\d,]+(?:\.\d{1,2})?\)?)"

STARTING_BALANCE_PATTERNS = (
    re.compile(r"previous\s+(?:closing\s+)?balance" + _MONEY, re.I),
    re.compile(r"opening\s+balance" + _MONEY, re.I),
    re.compile(r"balance\s+(?:b/f|brought\s+forward)" + _MONEY, re.I),
)
CLOSING_BALANCE_PATTERNS = (
    re.compile(r"(?<!previous\s)closing\s+balance" + _MONEY, re.I),
    re.compile(r"new\s+balance" + _MONEY, re.I),
    re.compile(r"balance\s+(?:c/f|carried\s+forward)" + _MONEY, re.I),
)

PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%")
RATE_CONTEXT = re.compile(r"\bapr\b|interest|\brate\b", re.I)
MIN_RATE = Decimal("0.1")
MAX_RATE = Decimal("50")

FULL_DATE = re.compile(
    r"\b(\d{1,2})\s+(" + MONTH_PATTERN + r")[a-z]*\.?\s+(\d{4})\b|\b\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4}\b",
    re.I,
)


def _first_amount(text: str, patterns) -> Optional[Decimal]:
    for line in text.splitlines():
        for pattern in patterns:
            match = pattern.search(line)
            if match:
                value = parse_amount(match.group(1))
                if value.is_finite():
                    return value
    return None


def find_interest_rate(text: str) -> Optional[Decimal]:
    """
    First plausible percentage (0.1% to 50%), preferring lines that mention
    APR, interest or rate.
    """
    fallback = None
    for line in text.splitlines():
        for match in PERCENT.finditer(line):
            rate = Decimal(match.group(1))
            if not MIN_RATE <= rate <= MAX_RATE:
                continue
            if RATE_CONTEXT.search(line):
                return rate
            if fallback is None:
                fallback = rate
    return fallback


def latest_full_date(text: str) -> Optional[date]:
    latest = None
    for match in FULL_DATE.finditer(text):
        if match.group(2):
            parsed = parse_loose_date(f"{match.group(1)} {match.group(2)[:3]} {match.group(3)}")
        else:
            parsed = parse_loose_date(match.group(0))
        if parsed is not None and (latest is None or parsed > latest):
            latest = parsed
    return latest


def extract_summary(
    text: str,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> StatementSummary:
    """
    Scan statement text for summary figures and a reference period.

    Without any full date in the text, the reference period is the current
    year with the month before the rollover month, so later months are read
    as belonging to the previous year.
    """
    settings = settings or get_settings()
    today = today or date.today()

    summary = StatementSummary(
        starting_balance=_first_amount(text, STARTING_BALANCE_PATTERNS),
        closing_balance=_first_amount(text, CLOSING_BALANCE_PATTERNS),
        interest_rate=find_interest_rate(text),
    )

    reference = latest_full_date(text)
    if reference is not None:
        summary.reference_year = reference.year
        summary.reference_month = reference.month
    else:
        summary.reference_year = today.year
        summary.reference_month = max(settings.statement_rollover_month - 1, 1)

    logger.info(
        "Extracted statement summary",
        starting_balance=str(summary.starting_balance) if summary.starting_balance is not None else None,
        closing_balance=str(summary.closing_balance) if summary.closing_balance is not None else None,
        interest_rate=str(summary.interest_rate) if summary.interest_rate is not None else None,
        reference=f"{summary.reference_year}-{summary.reference_month:02d}",
    )
    return summary
