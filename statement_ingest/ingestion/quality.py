"""
Extraction quality scoring.

Two strategies:
- digital: additive score for debt statements (transactions found, volume,
  summary figures, date validity)
- checklist: weighted ratios of well-formed fields per record
"""

from typing import Optional

import structlog

from ..models import AssemblyResult, QualityReport, ScoringMethod, StatementSummary

logger = structlog.get_logger()

# Digital scoring
FOUND_SCORE = 40
FIVE_ROWS_SCORE = 10
TEN_ROWS_SCORE = 10
STARTING_BALANCE_SCORE = 20
INTEREST_RATE_SCORE = 10
VALID_DATES_SCORE = 10

# Checklist weights, summing to 100
CHECKLIST_WEIGHTS = {
    "rows": 30,
    "dates": 20,
    "descriptions": 15,
    "balances": 20,
    "amounts": 15,
}

MIN_DESCRIPTION_LENGTH = 3


def score_digital(assembly: AssemblyResult, summary: Optional[StatementSummary] = None) -> QualityReport:
    """Additive score in [0, 100] for PDF and image debt statements."""
    summary = summary or StatementSummary()
    records = assembly.records
    count = len(records)

    score = 0
    if count > 0:
        score += FOUND_SCORE
    if count >= 5:
        score += FIVE_ROWS_SCORE
    if count >= 10:
        score += TEN_ROWS_SCORE
    if summary.starting_balance is not None:
        score += STARTING_BALANCE_SCORE
    if summary.interest_rate is not None:
        score += INTEREST_RATE_SCORE
    if count > 0 and assembly.all_dates_valid:
        score += VALID_DATES_SCORE

    report = QualityReport(
        score=min(score, 100),
        method=ScoringMethod.DIGITAL,
        rows_found=count,
        valid_dates=assembly.valid_dates,
        valid_descriptions=_count_descriptions(assembly),
        valid_balances=sum(1 for r in records if r.balance is not None),
        valid_amounts=sum(1 for r in records if not r.amount_inferred),
        has_starting_balance=summary.starting_balance is not None,
        has_interest_rate=summary.interest_rate is not None,
    )
    logger.info("Scored extraction", method=report.method.value, score=report.score, rows=count)
    return report


def score_checklist(assembly: AssemblyResult, summary: Optional[StatementSummary] = None) -> QualityReport:
    """Weighted per-field score in [0, 100] for bank statements and tabular files."""
    summary = summary or StatementSummary()
    records = assembly.records
    count = len(records)

    valid_dates = min(assembly.valid_dates, assembly.candidate_rows)
    valid_descriptions = _count_descriptions(assembly)
    valid_balances = sum(1 for r in records if r.balance is not None)
    valid_amounts = sum(1 for r in records if not r.amount_inferred and r.amount != 0)

    achieved = 0.0
    if count > 0:
        achieved += CHECKLIST_WEIGHTS["rows"]
        achieved += CHECKLIST_WEIGHTS["dates"] * valid_dates / max(assembly.candidate_rows, count)
        achieved += CHECKLIST_WEIGHTS["descriptions"] * valid_descriptions / count
        achieved += CHECKLIST_WEIGHTS["balances"] * valid_balances / count
        achieved += CHECKLIST_WEIGHTS["amounts"] * valid_amounts / count

    report = QualityReport(
        score=min(int(round(achieved / sum(CHECKLIST_WEIGHTS.values()) * 100)), 100),
        method=ScoringMethod.CHECKLIST,
        rows_found=count,
        valid_dates=valid_dates,
        valid_descriptions=valid_descriptions,
        valid_balances=valid_balances,
        valid_amounts=valid_amounts,
        has_starting_balance=summary.starting_balance is not None,
        has_interest_rate=summary.interest_rate is not None,
    )
    logger.info("Scored extraction", method=report.method.value, score=report.score, rows=count)
    return report


def _count_descriptions(assembly: AssemblyResult) -> int:
    return sum(1 for r in assembly.records if len(r.description.strip()) > MIN_DESCRIPTION_LENGTH)
