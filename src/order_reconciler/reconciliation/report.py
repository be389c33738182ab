"""Report generation for sweep results."""

import json
import csv
import io
from typing import Optional

from .models import SweepSummary, OutcomeKind


class ReportGenerator:
    """Generator for sweep reports in various formats."""

    def __init__(self, summary: SweepSummary):
        """Initialize the report generator.

        Args:
            summary: The sweep summary to generate output from.
        """
        self.summary = summary

    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the sweep.

        Args:
            include_details: If True, include per-order outcomes.
            indent: JSON indentation level.

        Returns:
            JSON string representation of the sweep.
        """
        if include_details:
            data = self.summary.to_full_dict()
        else:
            data = self.summary.to_summary_dict()
        return json.dumps(data, indent=indent)

    def to_csv(self, kind: Optional[OutcomeKind] = None) -> str:
        """Generate CSV of per-order outcomes.

        Args:
            kind: Only include outcomes of this kind. All outcomes if None.

        Returns:
            CSV string with a header row and one row per outcome.
        """
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([
            "order_id", "outcome", "provider_reference", "provider_status", "detail"
        ])
        for outcome in self.summary.outcomes:
            if kind is not None and outcome.kind != kind:
                continue
            writer.writerow([
                outcome.order_id,
                outcome.kind.value,
                outcome.provider_reference or "",
                outcome.provider_status or "",
                outcome.detail,
            ])
        return output.getvalue()

    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the sweep.

        Returns:
            Formatted text summary.
        """
        summary = self.summary.to_summary_dict()
        stats = summary["statistics"]

        lines = [
            "=" * 60,
            "RECONCILIATION SWEEP SUMMARY",
            "=" * 60,
            f"Sweep ID: {summary['id']}",
            f"Provider: {summary['provider']}",
            f"Lookback: {summary['lookback_days']} days",
            f"Order Limit: {summary['max_orders']}",
            "",
            "Statistics:",
            f"  Orders Checked: {summary['checked']}",
            f"  Orders Reconciled: {summary['reconciled']}",
            f"  Skipped (no reference): {stats[OutcomeKind.SKIPPED_NO_REFERENCE.value]}",
            f"  Not Yet Succeeded: {stats[OutcomeKind.NOT_YET_SUCCEEDED.value]}",
            f"  Provider Errors: {stats[OutcomeKind.PROVIDER_ERROR.value]}",
            f"  Already Completed: {stats[OutcomeKind.ALREADY_COMPLETED.value]}",
            f"  Not Payable: {stats[OutcomeKind.NOT_PAYABLE.value]}",
            "",
            f"Started At: {summary['started_at']}",
            f"Completed At: {summary['completed_at'] or 'N/A'}",
        ]

        if summary.get("error_message"):
            lines.extend([
                "",
                "Aborted:",
                f"  {summary['error_message']}",
            ])

        errors = [
            o for o in self.summary.outcomes if o.kind == OutcomeKind.PROVIDER_ERROR
        ]
        if errors:
            lines.extend(["", "Provider Errors:"])
            for o in errors:
                lines.append(f"  Order #{o.order_id} ({o.provider_reference}): {o.detail}")

        lines.append("=" * 60)

        return "\n".join(lines)
