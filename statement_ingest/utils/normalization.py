"""
Amount and date normalization shared by every ingestion path.

Amounts are parsed into Decimal and never raise: unparseable input becomes
Decimal("NaN"). Dates are matched against an ordered list of known formats;
a format is detected by majority vote over sample values.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Optional, Tuple

import structlog

from ..errors import DateFormatUndetected

logger = structlog.get_logger()

NAN = Decimal("NaN")

MIN_YEAR = 1900
MAX_YEAR = 2100

_CURRENCY_RE = re.compile(r"[£$€¥]|\b(?:GBP|USD|EUR)\b", re.I)
_MARKER_RE = re.compile(r"^(?:CR|DR)\.?|(?:CR|DR)\.?$", re.I)
_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_RE = re.compile(
    r"^\(?\s*[-+]?\s*(?:[£$€¥]\s*)?[-+]?\s*(?:\d[\d,.\s]*\d|\d|\.\d+)\s*-?\)?\s*(?:CR|DR)?$",
    re.I,
)
_DIGIT_RE = re.compile(r"\d")

MONTH_NUMBERS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
MONTH_PATTERN = r"jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"


# =============================================================================
# Amounts
# =============================================================================

def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary value into a signed Decimal.

    Handles currency symbols, grouping separators, CR/DR markers, accounting
    parentheses and leading or trailing minus signs. When both '.' and ','
    are present the right-most one is the decimal separator; a lone ','
    followed by one or two digits is a decimal comma.

    Returns:
        The parsed amount, or Decimal("NaN") when no digits are present.
    """
    if value is None:
        return NAN
    if isinstance(value, bool):
        return NAN
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value:
            return NAN
        return Decimal(str(value))

    text = _WHITESPACE_RE.sub("", str(value))
    text = _CURRENCY_RE.sub("", text)
    text = _MARKER_RE.sub("", text)
    if not _DIGIT_RE.search(text):
        return NAN

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if text.startswith("-") or text.endswith("-"):
        negative = True
    text = text.strip("+-")

    text = re.sub(r"[^\d.,]", "", text)
    text = _normalize_separators(text)

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return NAN
    return -amount if negative else amount


def _normalize_separators(text: str) -> str:
    last_dot = text.rfind(".")
    last_comma = text.rfind(",")

    if last_dot >= 0 and last_comma >= 0:
        if last_dot > last_comma:
            return text.replace(",", "")
        return text.replace(".", "").replace(",", ".")

    if last_comma >= 0:
        if text.count(",") == 1 and re.search(r",\d{1,2}$", text):
            return text.replace(",", ".")
        return text.replace(",", "")

    if text.count(".") > 1:
        return text.replace(".", "")
    return text


def is_valid_amount(amount: Decimal) -> bool:
    return amount.is_finite()


def is_numeric_value(value: Any) -> bool:
    """Strict 'looks like money' test used by column validators."""
    if value is None:
        return False
    text = str(value).strip()
    if not text or not _DIGIT_RE.search(text):
        return False
    return bool(_NUMERIC_RE.match(text))


# =============================================================================
# Dates
# =============================================================================

@dataclass(frozen=True)
class DateFormat:
    """A known date layout: display label, strptime directive and strict shape."""
    label: str
    directive: str
    pattern: "re.Pattern[str]"

    @property
    def has_time(self) -> bool:
        return "%H" in self.directive

    def matches(self, value: str) -> bool:
        return bool(self.pattern.match(value))


def _fmt(label: str, directive: str, pattern: str) -> DateFormat:
    return DateFormat(label, directive, re.compile(pattern, re.I))


# Detection order matters: each sample votes for the first format that parses it.
DATE_FORMATS: Tuple[DateFormat, ...] = (
    _fmt("DD/MM/YYYY", "%d/%m/%Y", r"^\d{2}/\d{2}/\d{4}$"),
    _fmt("MM/DD/YYYY", "%m/%d/%Y", r"^\d{2}/\d{2}/\d{4}$"),
    _fmt("YYYY-MM-DD", "%Y-%m-%d", r"^\d{4}-\d{2}-\d{2}$"),
    _fmt("DD-MM-YYYY", "%d-%m-%Y", r"^\d{2}-\d{2}-\d{4}$"),
    _fmt("MM-DD-YYYY", "%m-%d-%Y", r"^\d{2}-\d{2}-\d{4}$"),
    _fmt("YYYY/MM/DD", "%Y/%m/%d", r"^\d{4}/\d{2}/\d{2}$"),
    _fmt("D/M/YYYY", "%d/%m/%Y", r"^\d{1,2}/\d{1,2}/\d{4}$"),
    _fmt("M/D/YYYY", "%m/%d/%Y", r"^\d{1,2}/\d{1,2}/\d{4}$"),
    _fmt("D/MM/YYYY", "%d/%m/%Y", r"^\d{1,2}/\d{2}/\d{4}$"),
    _fmt("DD/MM/YY", "%d/%m/%y", r"^\d{2}/\d{2}/\d{2}$"),
    _fmt("MM/DD/YY", "%m/%d/%y", r"^\d{2}/\d{2}/\d{2}$"),
    _fmt("YYYY-MM-DD HH:mm:ss", "%Y-%m-%d %H:%M:%S", r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$"),
    _fmt("DD/MM/YYYY HH:mm:ss", "%d/%m/%Y %H:%M:%S", r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2}$"),
    _fmt("DD/MM/YYYY HH:mm", "%d/%m/%Y %H:%M", r"^\d{2}/\d{2}/\d{4} \d{2}:\d{2}$"),
    _fmt("D MMM YYYY", "%d %b %Y", r"^\d{1,2} [a-z]{3} \d{4}$"),
    _fmt("DD MMM YYYY", "%d %b %Y", r"^\d{2} [a-z]{3} \d{4}$"),
    _fmt("MMM D, YYYY", "%b %d, %Y", r"^[a-z]{3} \d{1,2}, \d{4}$"),
    _fmt("MMMM D, YYYY", "%B %d, %Y", r"^[a-z]{3,9} \d{1,2}, \d{4}$"),
)

_FORMATS_BY_LABEL = {fmt.label: fmt for fmt in DATE_FORMATS}


def get_date_format(label: str) -> DateFormat:
    """Look up a known format by its label, e.g. 'DD/MM/YYYY'."""
    fmt = _FORMATS_BY_LABEL.get(label.strip().upper().replace("HH:MM", "HH:mm").replace(":SS", ":ss"))
    if fmt is None:
        raise DateFormatUndetected(
            [label],
            message=f"Unknown date format '{label}'. Known: {', '.join(_FORMATS_BY_LABEL)}",
        )
    return fmt


def parse_date(value: Any, fmt: DateFormat) -> Optional[date]:
    """Strictly parse a value with the given format; None when it does not fit."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or not fmt.matches(text):
        return None
    try:
        parsed = datetime.strptime(text, fmt.directive)
    except ValueError:
        return None
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        return None
    return parsed.date()


def detect_date_format(samples: Iterable[Any], limit: int = 20) -> Optional[DateFormat]:
    """
    Detect the date format used by a column by majority vote.

    Up to `limit` non-empty samples are examined. Each sample counts once,
    for the first format (in DATE_FORMATS order) that parses it. Ties go to
    the earlier format.

    Returns:
        The winning format, or None when no sample parses under any format.
    """
    values = [str(s).strip() for s in samples if s is not None and str(s).strip()]
    values = values[:limit]

    counts = {fmt.label: 0 for fmt in DATE_FORMATS}
    for value in values:
        for fmt in DATE_FORMATS:
            if parse_date(value, fmt) is not None:
                counts[fmt.label] += 1
                break

    best: Optional[DateFormat] = None
    best_count = 0
    for fmt in DATE_FORMATS:
        if counts[fmt.label] > best_count:
            best = fmt
            best_count = counts[fmt.label]

    if best is not None:
        logger.debug("Detected date format", format=best.label, votes=best_count, samples=len(values))
    return best


def strip_time(fmt: DateFormat) -> Tuple[DateFormat, Callable[[str], str]]:
    """
    Drop the time component of a date-time format.

    Returns the date-only format and a transform that rewrites values from
    the original format into it. Values that do not parse pass through
    unchanged. Formats without time return (fmt, identity).
    """
    if not fmt.has_time:
        return fmt, _identity

    date_only = _FORMATS_BY_LABEL[fmt.label.split(" ")[0]]

    def transform(value: str) -> str:
        text = str(value).strip()
        try:
            parsed = datetime.strptime(text, fmt.directive)
        except ValueError:
            return value
        return parsed.strftime(date_only.directive)

    return date_only, transform


def _identity(value: str) -> str:
    return value


# Layouts tried, in order, for free-text dates found in statement prose.
_LOOSE_FORMATS = (
    "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%d/%m/%y", "%d-%m-%y",
    "%Y-%m-%d", "%d %b %Y", "%d %B %Y", "%b %d, %Y", "%B %d, %Y", "%d %b %y",
)


def parse_loose_date(value: str) -> Optional[date]:
    """Parse a full date in any common UK statement layout."""
    text = _WHITESPACE_RE.sub(" ", str(value).strip())
    text = re.sub(r"\s*,\s*", ", ", text)
    for directive in _LOOSE_FORMATS:
        try:
            parsed = datetime.strptime(text, directive)
        except ValueError:
            continue
        if MIN_YEAR <= parsed.year <= MAX_YEAR:
            return parsed.date()
    return None


def looks_like_date(value: Any) -> bool:
    """True when a value parses under any known format."""
    if value is None:
        return False
    text = str(value).strip()
    if not text:
        return False
    return any(parse_date(text, fmt) is not None for fmt in DATE_FORMATS) or parse_loose_date(text) is not None


def sample_values(values: Iterable[Any], limit: int) -> List[str]:
    """First `limit` non-empty values as stripped strings."""
    result = []
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            result.append(text)
        if len(result) >= limit:
            break
    return result
