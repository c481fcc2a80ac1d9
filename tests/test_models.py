"""
Tests for models, errors and run utilities.
"""

from datetime import date
from decimal import Decimal

import pytest

from statement_ingest.errors import FileTooLarge, NoTransactionsFound
from statement_ingest.models import (
    PipelineRun,
    PipelineState,
    ProgressStage,
    TransactionRecord,
    TransactionType,
)
from statement_ingest.utils.progress import CancellationToken, ProgressReporter


class TestTransactionRecord:

    def test_type_follows_sign(self):
        debit = TransactionRecord(date=date(2024, 1, 1), description="TESCO", amount=Decimal("4.50"))
        credit = TransactionRecord(date=date(2024, 1, 2), description="PAYMENT", amount=Decimal("-100"))

        assert debit.transaction_type == TransactionType.DEBIT
        assert credit.transaction_type == TransactionType.CREDIT
        assert debit.amount_cents == 450
        assert credit.amount_cents == -10000

    def test_amount_must_be_finite(self):
        with pytest.raises(ValueError):
            TransactionRecord(date=date(2024, 1, 1), description="X", amount=Decimal("NaN"))

    def test_to_dict(self):
        record = TransactionRecord(
            date=date(2024, 1, 1),
            description="TESCO",
            amount=Decimal("4.505"),
            balance=Decimal("100"),
        )
        data = record.to_dict()
        assert data["date"] == "2024-01-01"
        assert data["amount"] == 4.51
        assert data["balance"] == 100.0
        assert data["type"] == "debit"


class TestPipelineRun:

    def test_history(self):
        run = PipelineRun(filename="a.csv")
        run.transition(PipelineState.EXTRACTING)
        run.transition(PipelineState.SUCCEEDED)

        assert run.stage_history == [PipelineState.IDLE, PipelineState.EXTRACTING, PipelineState.SUCCEEDED]
        assert run.completed_at is not None

    def test_terminal_states_are_final(self):
        run = PipelineRun()
        run.transition(PipelineState.FAILED)
        with pytest.raises(RuntimeError):
            run.transition(PipelineState.EXTRACTING)


class TestRunUtilities:

    def test_progress_is_clamped(self):
        events = []
        reporter = ProgressReporter(events.append)
        reporter.report(ProgressStage.OCR, "page", 130)
        reporter.report(ProgressStage.OCR, "page", -5)
        reporter.complete()

        assert [e.percent for e in events] == [100.0, 0.0, 100.0]
        assert reporter.last_event.stage == ProgressStage.COMPLETE

    def test_reporter_without_callback(self):
        reporter = ProgressReporter()
        reporter.report(ProgressStage.LOADING, "Loading", 10)
        assert reporter.last_event.percent == 10

    def test_cancellation_token(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        assert not token.cancelled

        token.cancel()
        assert token.cancelled

    def test_error_serialization(self):
        error = FileTooLarge(size=20 * 1024 * 1024, limit=10 * 1024 * 1024)
        data = error.to_dict()

        assert data["kind"] == "file_too_large"
        assert data["stage"] == "validating"
        assert data["context"]["limit"] == 10 * 1024 * 1024
        assert "20.0MB" in data["message"]

    def test_with_stage_keeps_existing(self):
        error = NoTransactionsFound(stage="assembling")
        assert error.with_stage("scoring").stage == "assembling"
        assert NoTransactionsFound().with_stage("scoring").stage == "scoring"
