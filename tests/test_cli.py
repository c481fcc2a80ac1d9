"""
Tests for the command-line entry point.
"""

import json
import sys

import pytest
import structlog

from statement_ingest import cli


def _stderr_logging(*args, **kwargs):
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))


@pytest.fixture(autouse=True)
def stderr_logging(monkeypatch):
    # Keep stdout clean for the JSON output without touching global logging handlers
    monkeypatch.setattr(cli, "configure_logging", _stderr_logging)
    yield
    structlog.reset_defaults()


class TestCli:

    def test_prints_result_json(self, tmp_path, capsys):
        path = tmp_path / "export.csv"
        path.write_text("Date,Balance\n01/02/2024,100.00\n02/02/2024,150.00\n", encoding="utf-8")

        exit_code = cli.main([str(path), "--purpose", "savings", "--indent", "0"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["purpose"] == "savings"
        assert output["transaction_count"] == 2
        assert output["transactions"][1]["amount"] == -50.0

    def test_column_override(self, tmp_path, capsys):
        path = tmp_path / "export.csv"
        path.write_text("Posted,Sum\n01/02/2024,3.20\n", encoding="utf-8")

        exit_code = cli.main([str(path), "--column", "date=Posted", "--date-format", "DD/MM/YYYY"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["mapping"]["columns"]["date"] == "Posted"

    def test_pipeline_error_exit_code(self, tmp_path, capsys):
        path = tmp_path / "export.csv"
        path.write_text("Description,Amount\nCoffee,3.20\n", encoding="utf-8")

        assert cli.main([str(path)]) == 1
        assert "no_transactions_found" in capsys.readouterr().err

    def test_bad_column_override(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text("Date,Amount\n01/02/2024,1.00\n", encoding="utf-8")

        with pytest.raises(SystemExit) as exc_info:
            cli.main([str(path), "--column", "colour=Date"])
        assert exc_info.value.code == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([str(tmp_path / "missing.csv")])
        assert exc_info.value.code == 2
