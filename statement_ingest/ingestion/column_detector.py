"""
Column role detection for tabular statements, plus the keyword-table
detectors for account type, bank and creditor.

Each role is described by a RoleRule (keywords, header patterns and a
validator over sample values). Every (header, role) pair is scored and
roles are assigned greedily from the highest score down, so one header
never serves two roles.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog
from rapidfuzz import fuzz

from ..config import Settings, get_settings
from ..models import AccountType, ColumnMapping, ColumnRole
from ..utils.normalization import is_numeric_value, looks_like_date

logger = structlog.get_logger()

Validator = Callable[[List[str]], bool]

EXACT_KEYWORD_SCORE = 100
KEYWORD_SCORE = 50
PATTERN_SCORE = 30
VALIDATOR_SCORE = 20
MAX_CONFIDENCE_SCORE = 200

REQUIRED_ROLES = (ColumnRole.DATE,)
# At least one of these must be mapped
VALUE_ROLES = (ColumnRole.BALANCE, ColumnRole.AMOUNT)


def _non_empty(values: List[str]) -> List[str]:
    return [v for v in values if v is not None and str(v).strip() != ""]


def _any_date(values: List[str]) -> bool:
    return any(looks_like_date(v) for v in _non_empty(values))


def _any_numeric(values: List[str]) -> bool:
    return any(is_numeric_value(v) for v in _non_empty(values))


def _all_numeric(values: List[str]) -> bool:
    present = _non_empty(values)
    return bool(present) and all(is_numeric_value(v) for v in present)


def _mostly_distinct(values: List[str]) -> bool:
    present = _non_empty(values)
    return bool(present) and len(set(present)) > len(present) * 0.3


def _identifier_like(values: List[str]) -> bool:
    present = _non_empty(values)
    return bool(present) and all(
        re.fullmatch(r"[A-Za-z0-9\-/#]+", str(v).strip()) and re.search(r"\d", str(v))
        for v in present
    )


@dataclass(frozen=True)
class RoleRule:
    keywords: Tuple[str, ...]
    patterns: Tuple["re.Pattern[str]", ...]
    validator: Validator


def _patterns(*sources: str) -> Tuple["re.Pattern[str]", ...]:
    return tuple(re.compile(source, re.I) for source in sources)


# Table order breaks score ties.
ROLE_RULES: Dict[ColumnRole, RoleRule] = {
    ColumnRole.DATE: RoleRule(
        keywords=("date", "transaction date", "posting date", "value date", "processed date"),
        patterns=_patterns(r"date", r"time", r"when"),
        validator=_any_date,
    ),
    ColumnRole.DEBIT: RoleRule(
        keywords=("debit", "withdrawal", "money out", "out", "withdrawals", "paid out", "debits"),
        patterns=_patterns(r"debit", r"withdrawal", r"\bout\b", r"\bpaid\b"),
        validator=_any_numeric,
    ),
    ColumnRole.CREDIT: RoleRule(
        keywords=("credit", "deposit", "money in", "in", "deposits", "paid in", "credits"),
        patterns=_patterns(r"credit", r"deposit", r"\bin\b", r"received"),
        validator=_any_numeric,
    ),
    ColumnRole.BALANCE: RoleRule(
        keywords=("balance", "running balance", "account balance", "current balance", "closing balance"),
        patterns=_patterns(r"balance", r"total", r"amount"),
        validator=_all_numeric,
    ),
    ColumnRole.DESCRIPTION: RoleRule(
        keywords=("description", "narrative", "details", "memo", "reference", "transaction type", "payee"),
        patterns=_patterns(r"desc", r"narrative", r"details", r"memo", r"payee", r"merchant"),
        validator=_mostly_distinct,
    ),
    ColumnRole.REFERENCE: RoleRule(
        keywords=("reference", "ref", "transaction id", "id", "cheque number"),
        patterns=_patterns(r"\bref", r"\bid\b", r"number", r"cheque"),
        validator=_identifier_like,
    ),
    ColumnRole.AMOUNT: RoleRule(
        keywords=("amount", "value", "sum", "total", "wins"),
        patterns=_patterns(r"amount", r"value", r"\bsum\b", r"wins"),
        validator=_any_numeric,
    ),
}


def _contains_word(text: str, phrase: str) -> bool:
    return re.search(r"(?<![a-z0-9])" + re.escape(phrase) + r"(?![a-z0-9])", text) is not None


def score_header(header: str, rule: RoleRule, values: List[str]) -> Tuple[int, int]:
    """
    Score one header against one role.

    Returns:
        (total score, header-evidence score). The evidence part excludes the
        validator bonus. Header evidence always outranks a validator-only match.
    """
    header_lower = header.lower().strip()
    evidence = 0

    if header_lower in rule.keywords:
        evidence += EXACT_KEYWORD_SCORE
    for keyword in rule.keywords:
        if _contains_word(header_lower, keyword):
            evidence += KEYWORD_SCORE
    for pattern in rule.patterns:
        if pattern.search(header_lower):
            evidence += PATTERN_SCORE

    total = evidence
    if rule.validator(values):
        total += VALIDATOR_SCORE
    return total, evidence


def detect_columns(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, str]],
    sample_size: Optional[int] = None,
    overrides: Optional[Mapping[ColumnRole, str]] = None,
) -> ColumnMapping:
    """
    Map headers to column roles.

    Args:
        headers: Ordered unique header names
        rows: Data rows keyed by header
        sample_size: Number of leading rows fed to validators
        overrides: Caller-confirmed role assignments, applied as-is

    Returns:
        ColumnMapping; missing required roles are reported, not raised.
    """
    if sample_size is None:
        sample_size = get_settings().column_sample_rows
    sample = list(rows[:sample_size])
    overrides = dict(overrides or {})

    candidates = []
    for role_index, (role, rule) in enumerate(ROLE_RULES.items()):
        for header_index, header in enumerate(headers):
            values = [str(row.get(header, "") or "") for row in sample]
            total, _ = score_header(header, rule, values)
            if total > 0:
                candidates.append((total, role_index, header_index, role, header))

    candidates.sort(key=lambda c: (-c[0], c[1], c[2]))

    mapping = ColumnMapping()
    used_headers = set()
    for role, header in overrides.items():
        if header in headers:
            mapping.columns[role] = header
            mapping.scores[role] = MAX_CONFIDENCE_SCORE
            mapping.confidence[role] = 1.0
            used_headers.add(header)

    for total, _, _, role, header in candidates:
        if role in mapping.columns or header in used_headers:
            continue
        mapping.columns[role] = header
        mapping.scores[role] = total
        mapping.confidence[role] = min(total, MAX_CONFIDENCE_SCORE) / MAX_CONFIDENCE_SCORE
        used_headers.add(header)

    mapping.missing_required = missing_roles(mapping)

    logger.info(
        "Detected columns",
        columns={role.value: header for role, header in mapping.columns.items()},
        missing=[role.value for role in mapping.missing_required],
    )
    return mapping


def missing_roles(mapping: ColumnMapping) -> List[ColumnRole]:
    missing = [role for role in REQUIRED_ROLES if role not in mapping.columns]
    if not any(role in mapping.columns for role in VALUE_ROLES):
        missing.extend(VALUE_ROLES)
    return missing


# =============================================================================
# Account type, bank and creditor
# =============================================================================

# Checked in order; LISA precedes ISA so lifetime ISAs are not misfiled.
ACCOUNT_TYPE_INDICATORS: Dict[AccountType, Tuple[str, ...]] = {
    AccountType.PREMIUM_BONDS: ("wins", "prize", "premium bond", "ernie", "ns&i"),
    AccountType.LISA: ("lisa", "lifetime isa", "lifetime individual savings account"),
    AccountType.ISA: ("isa", "individual savings account", "stocks and shares isa", "cash isa"),
    AccountType.CURRENT_ACCOUNT: (
        "current account", "debit card", "direct debit", "standing order",
        "atm", "contactless", "faster payment", "bacs",
    ),
    AccountType.SAVINGS: ("savings account", "instant access", "notice account", "fixed term"),
}

BANK_INDICATORS: Dict[str, Tuple[str, ...]] = {
    "Barclays": ("barclays", "barclay"),
    "Halifax": ("halifax", "hfx"),
    "HSBC": ("hsbc", "hongkong shanghai"),
    "Lloyds": ("lloyds", "lloyds bank"),
    "Monzo": ("monzo",),
    "NatWest": ("natwest", "national westminster"),
    "Santander": ("santander", "abbey national"),
    "Starling": ("starling",),
    "First Direct": ("first direct",),
    "Nationwide": ("nationwide",),
    "NS&I": ("ns&i", "national savings", "premium bond", "ernie"),
    "Trading212": ("trading212", "trading 212"),
    "TSB": ("tsb",),
}

CREDITORS: Tuple[Tuple[str, str], ...] = (
    ("american express", "American Express"),
    ("amex", "Amex"),
    ("barclaycard", "Barclaycard"),
    ("barclays", "Barclays"),
    ("lloyds", "Lloyds"),
    ("halifax", "Halifax"),
    ("hsbc", "HSBC"),
    ("natwest", "NatWest"),
    ("nationwide", "Nationwide"),
    ("santander", "Santander"),
    ("tesco bank", "Tesco Bank"),
    ("mbna", "MBNA"),
    ("capital one", "Capital One"),
    ("newday", "NewDay"),
    ("aqua", "Aqua"),
    ("vanquis", "Vanquis"),
    ("monzo", "Monzo"),
    ("starling", "Starling"),
    ("revolut", "Revolut"),
    ("virgin money", "Virgin Money"),
    ("john lewis", "John Lewis"),
    ("argos", "Argos"),
    ("m&s bank", "M&S Bank"),
    ("sainsburys bank", "Sainsburys Bank"),
)

# Indicators shorter than this are too ambiguous for fuzzy matching
MIN_FUZZY_INDICATOR_LENGTH = 6


def detect_account_type(descriptions: Iterable[str], limit: int = 20) -> AccountType:
    """Classify an account from its first transaction descriptions."""
    text = " ".join(str(d or "") for d in list(descriptions)[:limit]).lower()

    for account_type, keywords in ACCOUNT_TYPE_INDICATORS.items():
        if any(_contains_word(text, keyword) for keyword in keywords):
            return account_type

    if _contains_word(text, "card") or "direct debit" in text or "standing order" in text:
        return AccountType.CURRENT_ACCOUNT
    return AccountType.SAVINGS


def _fuzzy_contains(text: str, indicator: str, threshold: float) -> bool:
    if len(indicator) < MIN_FUZZY_INDICATOR_LENGTH or not text:
        return False
    return fuzz.partial_ratio(indicator, text) >= threshold


def _match_table(
    text: str,
    table: Iterable[Tuple[str, Tuple[str, ...]]],
    threshold: Optional[float],
) -> Optional[str]:
    entries = list(table)
    for name, indicators in entries:
        if any(_contains_word(text, indicator) for indicator in indicators):
            return name
    if threshold is None:
        return None
    for name, indicators in entries:
        if any(_fuzzy_contains(text, indicator, threshold) for indicator in indicators):
            logger.debug("Fuzzy provider match", provider=name)
            return name
    return None


def detect_bank(
    filename: str = "",
    sample_text: str = "",
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """
    Identify the bank from the filename first, then from sample text.

    Exact indicator matches win; fuzzy partial matching only runs on the
    sample text, to tolerate OCR noise.
    """
    settings = settings or get_settings()
    filename_text = re.sub(r"[_\-.]+", " ", filename.lower())

    bank = _match_table(filename_text, BANK_INDICATORS.items(), None)
    if bank:
        return bank
    return _match_table(sample_text.lower(), BANK_INDICATORS.items(), settings.provider_fuzzy_threshold)


def detect_creditor(text: str, settings: Optional[Settings] = None) -> Optional[str]:
    """Identify the credit provider named in a debt statement."""
    settings = settings or get_settings()
    table = [(display, (needle,)) for needle, display in CREDITORS]
    return _match_table(text.lower(), table, settings.provider_fuzzy_threshold)


def sample_text_from_rows(rows: Sequence[Mapping[str, str]], limit: int = 10) -> str:
    return " ".join(" ".join(str(v) for v in row.values()) for row in rows[:limit])
