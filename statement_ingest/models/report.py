"""Detection, quality and pipeline result models."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .document import ColumnAnchor
from .enums import (
    AccountType,
    AuditAction,
    ColumnRole,
    DocumentPurpose,
    ExtractionMethod,
    FileKind,
    PipelineState,
    ProgressStage,
    ScoringMethod,
)
from .transaction import TransactionRecord, decimal_to_json


@dataclass
class ColumnMapping:
    """
    Assignment of tabular headers to semantic roles.

    confidence values are on a [0, 1] scale; scores keep the raw heuristic
    totals the confidence was derived from.
    """
    columns: Dict[ColumnRole, str] = field(default_factory=dict)
    confidence: Dict[ColumnRole, float] = field(default_factory=dict)
    scores: Dict[ColumnRole, int] = field(default_factory=dict)
    missing_required: List[ColumnRole] = field(default_factory=list)

    @property
    def is_viable(self) -> bool:
        return not self.missing_required

    @property
    def overall_confidence(self) -> float:
        if not self.confidence:
            return 0.0
        return sum(self.confidence.values()) / len(self.confidence)

    def get(self, role: ColumnRole) -> Optional[str]:
        return self.columns.get(role)

    def has(self, role: ColumnRole) -> bool:
        return role in self.columns

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": {role.value: header for role, header in self.columns.items()},
            "confidence": {role.value: round(value, 3) for role, value in self.confidence.items()},
            "missing_required": [role.value for role in self.missing_required],
        }


@dataclass(frozen=True)
class QualityReport:
    """Confidence assessment of an extraction, score in [0, 100]."""
    score: int
    method: ScoringMethod
    rows_found: int = 0
    valid_dates: int = 0
    valid_descriptions: int = 0
    valid_balances: int = 0
    valid_amounts: int = 0
    has_starting_balance: bool = False
    has_interest_rate: bool = False

    @property
    def confidence(self) -> float:
        return self.score / 100.0

    def meets(self, threshold: int) -> bool:
        return self.score >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "method": self.method.value,
            "rows_found": self.rows_found,
            "valid_dates": self.valid_dates,
            "valid_descriptions": self.valid_descriptions,
            "valid_balances": self.valid_balances,
            "valid_amounts": self.valid_amounts,
            "has_starting_balance": self.has_starting_balance,
            "has_interest_rate": self.has_interest_rate,
        }


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification, percent in [0, 100]."""
    stage: ProgressStage
    message: str
    percent: float


@dataclass
class AuditEntry:
    """Single entry in the run audit log."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)
    action: AuditAction = AuditAction.STATE_CHANGED
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error_message: Optional[str] = None


@dataclass
class PipelineRun:
    """Per-invocation state holder."""
    id: str = field(default_factory=lambda: str(uuid4()))
    filename: str = ""
    state: PipelineState = PipelineState.IDLE
    stage_history: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[Exception] = None

    def transition(self, state: PipelineState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Run {self.id} already finished in state {self.state.value}")
        self.state = state
        self.stage_history.append(state)
        if state.is_terminal:
            self.completed_at = datetime.utcnow()


@dataclass
class PipelineResult:
    """Successful outcome of a pipeline run."""
    run_id: str
    purpose: DocumentPurpose
    file_kind: FileKind
    transactions: List[TransactionRecord]
    quality: QualityReport
    extraction_method: ExtractionMethod
    mapping: Optional[ColumnMapping] = None
    anchors: List[ColumnAnchor] = field(default_factory=list)
    date_format: Optional[str] = None
    counterparty: Optional[str] = None
    account_type: Optional[AccountType] = None
    starting_balance: Optional[Decimal] = None
    closing_balance: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "purpose": self.purpose.value,
            "file_kind": self.file_kind.value,
            "extraction_method": self.extraction_method.value,
            "counterparty": self.counterparty,
            "account_type": self.account_type.value if self.account_type else None,
            "date_format": self.date_format,
            "starting_balance": decimal_to_json(self.starting_balance),
            "closing_balance": decimal_to_json(self.closing_balance),
            "interest_rate": float(self.interest_rate) if self.interest_rate is not None else None,
            "mapping": self.mapping.to_dict() if self.mapping else None,
            "anchors": [
                {"role": anchor.role.value, "x": round(anchor.x, 2), "label": anchor.label}
                for anchor in self.anchors
            ],
            "quality": self.quality.to_dict(),
            "transaction_count": self.transaction_count,
            "transactions": [t.to_dict() for t in self.transactions],
        }
