"""
Transaction assembly: turns reconstructed table rows, free text, statement
lines and mapped spreadsheet rows into TransactionRecords.

Sign convention: positive amounts are debits (charges, money out), negative
amounts are credits (payments, money in).
"""

import re
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import structlog

from ..models import (
    AnchorRole,
    AssemblyResult,
    ColumnMapping,
    ColumnRole,
    DocumentPurpose,
    StatementSummary,
    TabularData,
    TransactionRecord,
)
from ..utils.normalization import (
    MONTH_NUMBERS,
    MONTH_PATTERN,
    DateFormat,
    get_date_format,
    parse_amount,
    parse_date,
    parse_loose_date,
)
from .table import TableReconstruction

logger = structlog.get_logger()

ZERO = Decimal("0")

CREDIT_TOKEN = re.compile(r"(?<![a-z])cr(?![a-z])", re.I)
CREDIT_DESCRIPTION = re.compile(r"payment\s+received|thank\s+you", re.I)

DAY_MONTH = re.compile(r"\b(\d{1,2})\s+(" + MONTH_PATTERN + r")[a-z]*\b", re.I)
MONTH_DAY = re.compile(r"\b(" + MONTH_PATTERN + r")[a-z]*\s+(\d{1,2})\b", re.I)
FULL_DATE_IN_CELL = re.compile(
    r"\d{1,2}\s+(?:" + MONTH_PATTERN + r")[a-z]*\s+\d{4}|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}",
    re.I,
)

TEXT_TRANSACTION = re.compile(
    r"(\d{1,2}\s+(?:" + MONTH_PATTERN + r")[a-z]*\s+\d{4}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})"
    r"\s+(.+?)\s+(-?£?[\d,]+\.\d{2})\s*(cr\b)?",
    re.I,
)

STATEMENT_LINE_DATE = re.compile(r"^(\d{1,2}/\d{1,2}/\d{4})")
STATEMENT_MONEY = re.compile(r"£\s*([\d,]+\.\d{2})")
MONEY_IN_HINT = re.compile(r"interest|paid in|\bfrom\b", re.I)
STATEMENT_LINE_DATE_FORMAT = get_date_format("D/M/YYYY")


# =============================================================================
# Dates
# =============================================================================

def resolve_month_day(month: int, day: int, summary: StatementSummary) -> Optional[date]:
    """Place a month/day pair in the statement's reference period."""
    year = summary.reference_year or date.today().year
    if summary.reference_month is not None and month > summary.reference_month:
        year -= 1
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_full_date(text: str) -> Optional[date]:
    """Full date with numeric or named month; month names are cut to three letters."""
    text = text.strip()
    named = re.match(r"^(\d{1,2})\s+(" + MONTH_PATTERN + r")[a-z]*\.?\s+(\d{4})$", text, re.I)
    if named:
        return parse_loose_date(f"{named.group(1)} {named.group(2)[:3]} {named.group(3)}")
    return parse_loose_date(text)


def parse_cell_date(text: str, summary: StatementSummary) -> Optional[date]:
    """Date from a table cell: a full date, '12 Jan' or 'Jan 12'."""
    if not text:
        return None
    full = FULL_DATE_IN_CELL.search(text)
    if full:
        parsed = parse_full_date(full.group(0))
        if parsed is not None:
            return parsed

    match = DAY_MONTH.search(text)
    if match:
        return resolve_month_day(MONTH_NUMBERS[match.group(2)[:3].lower()], int(match.group(1)), summary)
    match = MONTH_DAY.search(text)
    if match:
        return resolve_month_day(MONTH_NUMBERS[match.group(1)[:3].lower()], int(match.group(2)), summary)
    return None


# =============================================================================
# Page-oriented sources
# =============================================================================

def assemble_table_rows(
    table: TableReconstruction,
    summary: StatementSummary,
    counterparty: Optional[str] = None,
) -> AssemblyResult:
    """
    Records from reconstructed rows. Rows need a date and an amount; the
    amount is negated by a 'CR' token, a following 'CR' row or a minus sign.
    """
    result = AssemblyResult()

    for row in table.rows:
        if not row.has_amount:
            continue
        result.candidate_rows += 1

        date_text = row.cell(AnchorRole.TRANSACTION_DATE) or row.cell(AnchorRole.PROCESS_DATE)
        txn_date = parse_cell_date(date_text, summary)
        if txn_date is not None:
            result.valid_dates += 1

        amount_text = row.cell(AnchorRole.AMOUNT)
        amount = parse_amount(amount_text)
        if txn_date is None or not amount.is_finite():
            continue

        credit = row.credit_marker or bool(CREDIT_TOKEN.search(amount_text)) or amount < 0
        magnitude = abs(amount)

        balance = parse_amount(row.cell(AnchorRole.BALANCE)) if row.cell(AnchorRole.BALANCE) else None
        result.records.append(TransactionRecord(
            date=txn_date,
            description=row.cell(AnchorRole.DESCRIPTION),
            amount=-magnitude if credit else magnitude,
            balance=balance if balance is not None and balance.is_finite() else None,
            counterparty=counterparty,
            source_page=row.page,
            source_row=row.row_index,
        ))

    logger.info("Assembled table rows", candidates=result.candidate_rows, records=len(result.records))
    return result


def assemble_text_patterns(text: str, counterparty: Optional[str] = None) -> AssemblyResult:
    """Fallback for text without layout: one regex over the whole document."""
    result = AssemblyResult()
    joined = " ".join(line.strip() for line in text.splitlines() if line.strip())

    for match in TEXT_TRANSACTION.finditer(joined):
        result.candidate_rows += 1
        date_text, description, amount_text, cr_marker = match.groups()

        txn_date = parse_full_date(date_text)
        if txn_date is None:
            continue
        result.valid_dates += 1

        amount = parse_amount(amount_text)
        if not amount.is_finite():
            continue

        description = description.strip()
        credit = bool(cr_marker) or amount < 0 or bool(CREDIT_DESCRIPTION.search(description))
        magnitude = abs(amount)
        result.records.append(TransactionRecord(
            date=txn_date,
            description=description,
            amount=-magnitude if credit else magnitude,
            counterparty=counterparty,
        ))

    logger.info("Assembled text patterns", candidates=result.candidate_rows, records=len(result.records))
    return result


def assemble_statement_lines(lines: List[str], counterparty: Optional[str] = None) -> AssemblyResult:
    """
    Bank statement lines of the form 'DD/MM/YYYY description £in £out £balance'.

    Lines that do not start with a date continue the previous description.
    Amount columns are read by count: one is the balance; two are money in
    or out (judged from the description) plus balance; three are in, out,
    balance. Without explicit money in/out the amount comes from the balance
    change.
    """
    entries: List[Dict[str, object]] = []
    current: Optional[Dict[str, object]] = None

    start = 0
    for index, line in enumerate(lines[:20]):
        lowered = line.lower()
        if "date" in lowered and "description" in lowered and "balance" in lowered:
            start = index + 1
            break

    for raw in lines[start:]:
        line = raw.strip()
        if len(line) < 5:
            continue

        match = STATEMENT_LINE_DATE.match(line)
        if not match:
            if current is not None:
                current["description"] = f"{current['description']} {line}".strip()
            continue

        rest = line[match.end():].strip()
        amounts = STATEMENT_MONEY.findall(rest)
        money = STATEMENT_MONEY.search(rest)
        description = rest[:money.start()].strip() if money else rest

        money_in = money_out = balance = ""
        if len(amounts) == 1:
            balance = amounts[0]
        elif len(amounts) == 2:
            if MONEY_IN_HINT.search(description):
                money_in = amounts[0]
            else:
                money_out = amounts[0]
            balance = amounts[1]
        elif len(amounts) >= 3:
            money_in, money_out, balance = amounts[0], amounts[1], amounts[2]

        current = {
            "date": match.group(1),
            "description": description,
            "money_in": money_in,
            "money_out": money_out,
            "balance": balance,
        }
        entries.append(current)

    result = AssemblyResult(candidate_rows=len(entries))
    previous_balance: Optional[Decimal] = None

    for position, entry in enumerate(entries):
        balance = parse_amount(entry["balance"]) if entry["balance"] else None
        if balance is not None and not balance.is_finite():
            balance = None

        txn_date = parse_date(entry["date"], STATEMENT_LINE_DATE_FORMAT)
        if txn_date is not None:
            result.valid_dates += 1

        money_in = parse_amount(entry["money_in"]) if entry["money_in"] else None
        money_out = parse_amount(entry["money_out"]) if entry["money_out"] else None

        amount: Optional[Decimal] = None
        inferred = False
        if money_in is not None or money_out is not None:
            amount = (money_out if money_out is not None else ZERO) - (money_in if money_in is not None else ZERO)
        elif balance is not None:
            inferred = True
            # Balance going up is money in, a credit
            amount = previous_balance - balance if previous_balance is not None else ZERO

        if balance is not None:
            previous_balance = balance

        if txn_date is None or amount is None or not amount.is_finite():
            continue

        result.records.append(TransactionRecord(
            date=txn_date,
            description=str(entry["description"]),
            amount=amount,
            balance=balance,
            counterparty=counterparty,
            amount_inferred=inferred,
            source_row=position,
        ))

    logger.info("Assembled statement lines", candidates=result.candidate_rows, records=len(result.records))
    return result


# =============================================================================
# Tabular sources
# =============================================================================

def _balance_delta_amount(delta: Decimal, purpose: DocumentPurpose) -> Decimal:
    # Savings: a rising balance is money in (credit). Debt: a rising balance is a new charge.
    return -delta if purpose == DocumentPurpose.SAVINGS else delta


def _source_sign(purpose: DocumentPurpose) -> int:
    # Bank exports write money out as negative; card exports write charges as positive.
    return -1 if purpose == DocumentPurpose.SAVINGS else 1


def assemble_tabular(
    data: TabularData,
    mapping: ColumnMapping,
    date_format: DateFormat,
    transform: Callable[[str], str],
    purpose: DocumentPurpose = DocumentPurpose.DEBT,
    counterparty: Optional[str] = None,
) -> AssemblyResult:
    """
    Records from mapped spreadsheet rows.

    Amount resolution, in order:
    1. Separate debit/credit columns: debit positive, credit negative
    2. A single amount column: direction from the balance change when a
       balance column exists, otherwise from the source sign
    3. Balance only: the balance change (the first row gets zero)
    """
    result = AssemblyResult()
    date_col = mapping.get(ColumnRole.DATE)
    debit_col = mapping.get(ColumnRole.DEBIT)
    credit_col = mapping.get(ColumnRole.CREDIT)
    amount_col = mapping.get(ColumnRole.AMOUNT)
    balance_col = mapping.get(ColumnRole.BALANCE)
    description_col = mapping.get(ColumnRole.DESCRIPTION)
    reference_col = mapping.get(ColumnRole.REFERENCE)

    previous_balance: Optional[Decimal] = None

    for index, row in enumerate(data.rows):
        result.candidate_rows += 1

        raw_date = row.get(date_col, "") if date_col else ""
        txn_date = parse_date(transform(raw_date), date_format) if raw_date else None
        if txn_date is not None:
            result.valid_dates += 1

        balance = parse_amount(row.get(balance_col, "")) if balance_col else None
        if balance is not None and not balance.is_finite():
            balance = None
        delta = balance - previous_balance if balance is not None and previous_balance is not None else None

        amount: Optional[Decimal] = None
        inferred = False

        debit = parse_amount(row.get(debit_col, "")) if debit_col else None
        credit = parse_amount(row.get(credit_col, "")) if credit_col else None
        if debit is not None and debit.is_finite() and debit != 0:
            amount = abs(debit)
        elif credit is not None and credit.is_finite() and credit != 0:
            amount = -abs(credit)
        elif amount_col:
            value = parse_amount(row.get(amount_col, ""))
            if value.is_finite():
                if delta is not None and delta != 0:
                    direction = _balance_delta_amount(delta, purpose)
                    amount = abs(value) if direction > 0 else -abs(value)
                else:
                    amount = value * _source_sign(purpose)

        if amount is None and (debit is not None and debit.is_finite() or credit is not None and credit.is_finite()):
            amount = ZERO

        if amount is None and balance is not None:
            inferred = True
            amount = _balance_delta_amount(delta, purpose) if delta is not None else ZERO

        if balance is not None:
            previous_balance = balance

        if txn_date is None or amount is None:
            continue

        description = row.get(description_col, "") if description_col else ""
        if not description and reference_col:
            description = row.get(reference_col, "")

        result.records.append(TransactionRecord(
            date=txn_date,
            description=description,
            amount=amount,
            balance=balance,
            counterparty=counterparty,
            amount_inferred=inferred,
            source_row=index,
        ))

    logger.info("Assembled tabular rows", candidates=result.candidate_rows, records=len(result.records))
    return result
