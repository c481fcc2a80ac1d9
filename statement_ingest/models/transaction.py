"""Transaction models for the statement ingestion system."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from .enums import TransactionType


def decimal_to_json(value: Optional[Decimal]) -> Optional[float]:
    """Decimal to a JSON-friendly float rounded to cents."""
    if value is None:
        return None
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class TransactionRecord:
    """
    A single normalized statement line.

    Sign convention: a positive amount is a debit (charge, money out, debt
    increases); a negative amount is a credit (payment, money in).
    """
    date: date
    description: str
    amount: Decimal
    balance: Optional[Decimal] = None
    counterparty: Optional[str] = None

    # True when the amount was derived from consecutive balances
    amount_inferred: bool = False

    # Provenance
    source_page: Optional[int] = None
    source_row: Optional[int] = None

    def __post_init__(self):
        if not self.amount.is_finite():
            raise ValueError(f"Transaction amount must be finite, got {self.amount}")

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.CREDIT if self.amount < 0 else TransactionType.DEBIT

    @property
    def amount_cents(self) -> int:
        """Return amount in integer cents."""
        return int((self.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": decimal_to_json(self.amount),
            "balance": decimal_to_json(self.balance),
            "type": self.transaction_type.value,
            "counterparty": self.counterparty,
            "amount_inferred": self.amount_inferred,
            "source_page": self.source_page,
            "source_row": self.source_row,
        }


@dataclass
class StatementSummary:
    """Statement-level figures found outside the transaction table."""
    starting_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None

    # Reference period used to place month-name dates without a year
    reference_year: Optional[int] = None
    reference_month: Optional[int] = None


@dataclass
class AssemblyResult:
    """Records built from candidate rows, plus counts the quality scorer needs."""
    records: List[TransactionRecord] = field(default_factory=list)
    candidate_rows: int = 0
    valid_dates: int = 0

    @property
    def dropped_rows(self) -> int:
        return max(self.candidate_rows - len(self.records), 0)

    @property
    def all_dates_valid(self) -> bool:
        return self.candidate_rows > 0 and self.valid_dates >= self.candidate_rows
