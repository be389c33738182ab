"""Order reconciliation against a payment provider.

This module corrects local order status when a provider webhook was
missed, by asking the provider (e.g. Stripe) for each recent unpaid
order's authoritative payment state.

Features:
- Select recent pending/on-hold orders for the provider's payment method
- Mark orders paid when the provider reports the payment succeeded
- Periodic sweeps and single-order manual corrections
- Activity logging and sweep reports
"""

from .models import (
    ReconciliationPath,
    OutcomeKind,
    ManualFailureKind,
    ProviderTransactionStatus,
    ReconciliationOutcome,
    SweepSummary,
    ManualReconciliationResult,
)
from .provider import (
    SUCCEEDED_STATUS,
    ProviderError,
    ProviderClientBase,
    StripeProviderClient,
    get_provider_client,
    load_provider_client,
)
from .activity_log import ActivityLog
from .engine import ReconciliationEngine, parse_order_id
from .scheduler import SweepScheduler
from .report import ReportGenerator
from .api import router

__all__ = [
    # Models
    "ReconciliationPath",
    "OutcomeKind",
    "ManualFailureKind",
    "ProviderTransactionStatus",
    "ReconciliationOutcome",
    "SweepSummary",
    "ManualReconciliationResult",
    # Provider clients
    "SUCCEEDED_STATUS",
    "ProviderError",
    "ProviderClientBase",
    "StripeProviderClient",
    "get_provider_client",
    "load_provider_client",
    # Core components
    "ActivityLog",
    "ReconciliationEngine",
    "parse_order_id",
    "SweepScheduler",
    "ReportGenerator",
    "router",
]
