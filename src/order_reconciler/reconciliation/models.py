"""Models for order reconciliation."""

import enum
from datetime import datetime
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field

from ..database import utcnow


class ReconciliationPath(str, enum.Enum):
    """How a reconciliation was triggered."""
    AUTOMATIC = "automatic"
    MANUAL = "manual"


class OutcomeKind(str, enum.Enum):
    """Result of attempting to reconcile a single order."""
    RECONCILED = "reconciled"
    SKIPPED_NO_REFERENCE = "skipped_no_reference"
    PROVIDER_ERROR = "provider_error"
    NOT_YET_SUCCEEDED = "not_yet_succeeded"
    ALREADY_COMPLETED = "already_completed"
    NOT_PAYABLE = "not_payable"


class ManualFailureKind(str, enum.Enum):
    """Reasons a manual single-order correction can fail."""
    PERMISSION_DENIED = "permission_denied"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    WRONG_METHOD = "wrong_method"
    UNAVAILABLE = "unavailable"
    NO_REFERENCE = "no_reference"
    PROVIDER_ERROR = "provider_error"
    NOT_SUCCEEDED = "not_succeeded"
    NOT_PAYABLE = "not_payable"


class ProviderTransactionStatus(BaseModel):
    """Point-in-time snapshot of a transaction fetched from the provider."""
    reference: str = Field(..., description="Provider transaction reference")
    status: str = Field(..., description="Raw provider status, e.g. 'succeeded'")
    amount: Optional[int] = Field(None, description="Amount in minor units")
    currency: Optional[str] = Field(None, description="Three-letter currency code")
    raw_data: Optional[Dict[str, Any]] = Field(default=None, description="Sanitized provider response")


class ReconciliationOutcome(BaseModel):
    """Outcome of reconciling one order."""
    order_id: int = Field(..., description="Local order ID")
    kind: OutcomeKind = Field(..., description="Outcome kind")
    detail: str = Field(..., description="Human-readable detail")
    provider_reference: Optional[str] = Field(None, description="Provider transaction reference")
    provider_status: Optional[str] = Field(None, description="Status reported by the provider")

    @property
    def is_reconciled(self) -> bool:
        return self.kind == OutcomeKind.RECONCILED


class SweepSummary(BaseModel):
    """Summary of one reconciliation sweep."""
    id: str = Field(..., description="Sweep ID")
    provider: str = Field(default="stripe", description="Payment provider name")
    lookback_days: int = Field(..., description="Lookback window used for candidate selection")
    max_orders: int = Field(..., description="Candidate cap used for this sweep")
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = Field(None, description="Time the sweep finished")

    checked: int = Field(default=0)
    reconciled: int = Field(default=0)
    outcomes: List[ReconciliationOutcome] = Field(default_factory=list)

    aborted: bool = Field(default=False, description="True if the sweep could not run")
    error_message: Optional[str] = Field(None, description="Reason the sweep was aborted")

    def add_outcome(self, outcome: ReconciliationOutcome) -> None:
        """Record an outcome and update the counters."""
        self.outcomes.append(outcome)
        self.checked += 1
        if outcome.is_reconciled:
            self.reconciled += 1

    def count(self, kind: OutcomeKind) -> int:
        """Number of outcomes of the given kind."""
        return sum(1 for o in self.outcomes if o.kind == kind)

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a summary of the sweep without per-order outcomes."""
        return {
            "id": self.id,
            "provider": self.provider,
            "lookback_days": self.lookback_days,
            "max_orders": self.max_orders,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "checked": self.checked,
            "reconciled": self.reconciled,
            "statistics": {
                kind.value: self.count(kind) for kind in OutcomeKind
            },
            "aborted": self.aborted,
            "error_message": self.error_message,
        }

    def to_full_dict(self) -> Dict[str, Any]:
        """Return the complete summary including per-order outcomes."""
        result = self.to_summary_dict()
        result["outcomes"] = [o.model_dump(mode="json") for o in self.outcomes]
        return result


class ManualReconciliationResult(BaseModel):
    """Result of a manual single-order correction."""
    success: bool
    message: str
    order_id: Optional[int] = None
    failure_kind: Optional[ManualFailureKind] = None
    outcome: Optional[ReconciliationOutcome] = None

    @classmethod
    def failure(
        cls,
        kind: ManualFailureKind,
        message: str,
        order_id: Optional[int] = None,
        outcome: Optional[ReconciliationOutcome] = None,
    ) -> "ManualReconciliationResult":
        return cls(
            success=False,
            message=message,
            order_id=order_id,
            failure_kind=kind,
            outcome=outcome,
        )
