"""Tests for sweep models and report generation."""

import csv
import io
import json

from order_reconciler.reconciliation import (
    OutcomeKind,
    ReconciliationOutcome,
    ReportGenerator,
    SweepSummary,
)


def build_summary() -> SweepSummary:
    summary = SweepSummary(id="sweep_001", lookback_days=2, max_orders=25)
    summary.add_outcome(ReconciliationOutcome(
        order_id=1,
        kind=OutcomeKind.SKIPPED_NO_REFERENCE,
        detail="No Stripe payment intent found",
    ))
    summary.add_outcome(ReconciliationOutcome(
        order_id=2,
        kind=OutcomeKind.RECONCILED,
        detail="Payment reconciled automatically: Stripe payment was successful.",
        provider_reference="pi_1",
        provider_status="succeeded",
    ))
    summary.add_outcome(ReconciliationOutcome(
        order_id=3,
        kind=OutcomeKind.PROVIDER_ERROR,
        detail="Failed to connect to Stripe API",
        provider_reference="pi_2",
    ))
    return summary


class TestSweepSummary:
    """Tests for SweepSummary aggregation."""

    def test_counts(self):
        summary = build_summary()

        assert summary.checked == 3
        assert summary.reconciled == 1
        assert summary.count(OutcomeKind.PROVIDER_ERROR) == 1

    def test_summary_dict(self):
        data = build_summary().to_summary_dict()

        assert data["checked"] == 3
        assert data["reconciled"] == 1
        assert data["statistics"]["skipped_no_reference"] == 1
        assert data["statistics"]["not_yet_succeeded"] == 0
        assert "outcomes" not in data

    def test_full_dict(self):
        data = build_summary().to_full_dict()

        assert len(data["outcomes"]) == 3
        assert data["outcomes"][1]["kind"] == "reconciled"
        assert data["outcomes"][1]["provider_reference"] == "pi_1"


class TestReportGenerator:
    """Tests for the ReportGenerator class."""

    def test_to_json_summary(self):
        output = ReportGenerator(build_summary()).to_json(include_details=False)

        data = json.loads(output)
        assert data["id"] == "sweep_001"
        assert data["reconciled"] == 1
        assert "outcomes" not in data

    def test_to_json_with_details(self):
        output = ReportGenerator(build_summary()).to_json(include_details=True)

        data = json.loads(output)
        assert [o["order_id"] for o in data["outcomes"]] == [1, 2, 3]

    def test_to_csv(self):
        output = ReportGenerator(build_summary()).to_csv()

        rows = list(csv.reader(io.StringIO(output)))
        assert rows[0] == ["order_id", "outcome", "provider_reference", "provider_status", "detail"]
        assert rows[2][:4] == ["2", "reconciled", "pi_1", "succeeded"]
        assert len(rows) == 4

    def test_to_csv_filtered(self):
        output = ReportGenerator(build_summary()).to_csv(kind=OutcomeKind.PROVIDER_ERROR)

        rows = list(csv.reader(io.StringIO(output)))
        assert len(rows) == 2
        assert rows[1][0] == "3"

    def test_to_summary_text(self):
        text = ReportGenerator(build_summary()).to_summary_text()

        assert "RECONCILIATION SWEEP SUMMARY" in text
        assert "sweep_001" in text
        assert "Orders Checked: 3" in text
        assert "Orders Reconciled: 1" in text
        assert "Order #3 (pi_2): Failed to connect to Stripe API" in text

    def test_aborted_summary_text(self):
        summary = SweepSummary(
            id="sweep_002",
            lookback_days=2,
            max_orders=25,
            aborted=True,
            error_message="Stripe API not available",
        )

        text = ReportGenerator(summary).to_summary_text()

        assert "Aborted:" in text
        assert "Stripe API not available" in text
