"""Tests for the reconciliation CLI."""

import json
import pytest

from order_reconciler.reconciliation import SweepSummary
from order_reconciler.reconciliation.cli import (
    build_settings,
    create_parser,
    main,
    render_summary,
    resolve_interval,
)

IN_MEMORY_DB = "sqlite+aiosqlite:///:memory:"


class TestParser:
    """Tests for argument parsing."""

    def test_sweep_arguments(self):
        args = create_parser().parse_args(
            ["sweep", "--days", "5", "--limit", "10", "--no-logging", "--format", "text"]
        )

        assert args.command == "sweep"
        assert args.days == 5
        assert args.limit == 10
        assert args.no_logging is True
        assert args.format == "text"

    def test_reconcile_order_arguments(self):
        args = create_parser().parse_args(["--database-url", IN_MEMORY_DB, "reconcile-order", "17"])

        assert args.command == "reconcile-order"
        assert args.order_id == "17"
        assert args.database_url == IN_MEMORY_DB

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestBuildSettings:
    """Tests for CLI settings overrides."""

    def test_defaults_from_env(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_DAYS", "4")

        settings = build_settings()

        assert settings.lookback_days == 4
        assert settings.max_orders == 25

    def test_overrides_are_clamped(self):
        settings = build_settings(days=60, limit=2, no_logging=True)

        assert settings.lookback_days == 30
        assert settings.max_orders == 5
        assert settings.logging_enabled is False


class TestRenderSummary:
    """Tests for summary rendering."""

    def test_formats(self):
        summary = SweepSummary(id="sweep_cli", lookback_days=2, max_orders=25)

        assert json.loads(render_summary(summary, "json"))["id"] == "sweep_cli"
        assert "RECONCILIATION SWEEP SUMMARY" in render_summary(summary, "text")
        assert render_summary(summary, "csv").startswith("order_id,outcome")

    def test_unsupported_format(self):
        summary = SweepSummary(id="sweep_cli", lookback_days=2, max_orders=25)
        with pytest.raises(ValueError):
            render_summary(summary, "xml")


class TestCommands:
    """End-to-end command runs against an empty in-memory database."""

    def test_sweep_with_no_orders(self, capsys):
        exit_code = main(["--database-url", IN_MEMORY_DB, "sweep", "--format", "json"])

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["checked"] == 0
        assert data["reconciled"] == 0

    def test_sweep_writes_output_file(self, tmp_path):
        output = tmp_path / "sweep.txt"

        exit_code = main([
            "--database-url", IN_MEMORY_DB, "sweep", "--format", "text", "--output", str(output)
        ])

        assert exit_code == 0
        assert "Orders Checked: 0" in output.read_text()

    def test_sweep_aborts_without_stripe_key(self, monkeypatch, capsys):
        monkeypatch.delenv("STRIPE_API_KEY", raising=False)

        exit_code = main(["--database-url", IN_MEMORY_DB, "sweep"])

        assert exit_code == 2
        assert json.loads(capsys.readouterr().out)["aborted"] is True

    def test_reconcile_missing_order(self):
        assert main(["--database-url", IN_MEMORY_DB, "reconcile-order", "99"]) == 1


class TestResolveInterval:
    """Tests for the schedule interval."""

    def test_explicit_interval(self):
        assert resolve_interval(120) == 120

    @pytest.mark.parametrize("value", [0, -5])
    def test_non_positive_interval_clamped(self, value):
        assert resolve_interval(value) == 1

    def test_default_from_env(self, monkeypatch):
        monkeypatch.setenv("RECONCILIATION_INTERVAL_SECONDS", "900")
        assert resolve_interval() == 900
