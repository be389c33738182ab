# order_reconciler package
__version__ = "0.1.0"

from .config import ReconciliationSettings
from .database import (
    Order,
    OrderNote,
    OrderStatus,
    OrderRepository,
    DatabaseManager,
)

from .reconciliation import (
    ReconciliationEngine,
    ReconciliationOutcome,
    OutcomeKind,
    ManualFailureKind,
    SweepSummary,
    SweepScheduler,
    ReportGenerator,
    get_provider_client,
)
