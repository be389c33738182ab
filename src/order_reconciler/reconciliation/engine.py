"""Reconciliation engine that corrects order status from provider state."""

import uuid
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import ReconciliationSettings
from ..database import (
    Order,
    OrderRepository,
    UNPAID_STATUSES,
    session_scope,
    utcnow,
)
from .activity_log import ActivityLog
from .models import (
    ManualFailureKind,
    ManualReconciliationResult,
    OutcomeKind,
    ReconciliationOutcome,
    ReconciliationPath,
    SweepSummary,
)
from .provider import ProviderClientBase, ProviderError, SUCCEEDED_STATUS

logger = logging.getLogger(__name__)

# Largest key a signed 64-bit INTEGER column can hold
MAX_ORDER_ID = 2**63 - 1


def parse_order_id(order_id: Union[int, str, None]) -> Optional[int]:
    """Parse an order ID supplied by a caller.

    Args:
        order_id: Raw order ID, as an int or a string of ASCII digits.

    Returns:
        The positive integer ID, or None if absent, malformed or out of range.
    """
    if order_id is None or isinstance(order_id, bool):
        return None
    if isinstance(order_id, int):
        parsed = order_id
    else:
        text = str(order_id).strip()
        if not (text.isascii() and text.isdigit()):
            return None
        parsed = int(text)
    return parsed if 0 < parsed <= MAX_ORDER_ID else None


class ReconciliationEngine:
    """Brings local order status in line with the payment provider.

    Construct one engine at service start and hand it to every trigger
    (scheduler, API, CLI). Each sweep or manual action opens its own
    database session from ``session_factory``.

    Example:
        engine = ReconciliationEngine(db.session_factory, load_provider_client())
        summary = await engine.run_sweep(ReconciliationSettings.from_env())
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider_client: Optional[ProviderClientBase] = None,
        payment_method: Optional[str] = None,
    ):
        """Initialize the engine.

        Args:
            session_factory: Factory for database sessions.
            provider_client: Provider client, or None if it is not configured.
            payment_method: Payment method identifier for candidate orders.
                Defaults to the provider client's identifier, then "stripe".
        """
        self._session_factory = session_factory
        self._provider_client = provider_client
        self.provider_available = provider_client is not None

        if payment_method:
            self.payment_method = payment_method
        elif provider_client is not None and provider_client.payment_method:
            self.payment_method = provider_client.payment_method
        else:
            self.payment_method = "stripe"

        if provider_client is not None and provider_client.provider_name:
            self.provider_name = provider_client.provider_name
        else:
            self.provider_name = self.payment_method.capitalize()

        if not self.provider_available:
            logger.warning(f"{self.provider_name} client not configured; reconciliation disabled")

    def _unavailable_message(self) -> str:
        return f"{self.provider_name} API not available"

    async def select_candidates(
        self,
        repo: OrderRepository,
        settings: ReconciliationSettings,
        now: Optional[datetime] = None,
    ) -> List[Order]:
        """Select orders eligible for reconciliation.

        Args:
            repo: Order repository to query.
            settings: Run configuration (lookback window and cap).
            now: Reference time, defaults to the current UTC time.

        Returns:
            At most ``settings.max_orders`` unpaid orders for this provider,
            in the store's natural order.
        """
        now = now or utcnow()
        created_after = now - timedelta(days=settings.lookback_days)
        return await repo.find(
            statuses=UNPAID_STATUSES,
            payment_method=self.payment_method,
            created_after=created_after,
            limit=settings.max_orders,
        )

    async def reconcile(
        self,
        repo: OrderRepository,
        order: Order,
        path: ReconciliationPath = ReconciliationPath.AUTOMATIC,
        activity: Optional[ActivityLog] = None,
    ) -> ReconciliationOutcome:
        """Reconcile a single order against the provider.

        Args:
            repo: Order repository bound to the current session.
            order: The order to reconcile.
            path: Whether this was triggered by a sweep or manually.
            activity: Activity log for outcome messages.

        Returns:
            ReconciliationOutcome describing what happened.
        """
        activity = activity or ActivityLog()
        reference = order.provider_transaction_id

        if not reference:
            activity.info(f"Skipped order #{order.id}: no {self.provider_name} transaction reference")
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.SKIPPED_NO_REFERENCE,
                detail=f"No {self.provider_name} payment intent found",
            )

        if not self.provider_available:
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.PROVIDER_ERROR,
                detail=self._unavailable_message(),
                provider_reference=reference,
            )

        try:
            transaction = self._provider_client.get_transaction_status(reference)
        except ProviderError as e:
            activity.info(f"Error checking payment intent {reference}: {e}")
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.PROVIDER_ERROR,
                detail=str(e),
                provider_reference=reference,
            )

        if transaction.status != SUCCEEDED_STATUS:
            activity.info(
                f"Order #{order.id} payment intent {reference} has status "
                f"{transaction.status}, leaving unchanged"
            )
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.NOT_YET_SUCCEEDED,
                detail=f"Payment not successful in {self.provider_name}. Status: {transaction.status}",
                provider_reference=reference,
                provider_status=transaction.status,
            )

        if order.is_paid:
            activity.info(f"Order #{order.id} is already {order.status}, no changes made")
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.ALREADY_COMPLETED,
                detail=f"Order already marked as {order.status}",
                provider_reference=reference,
                provider_status=transaction.status,
            )

        if not await repo.complete_payment(order, reference):
            activity.info(f"Order #{order.id} is {order.status} and cannot be marked as paid")
            return ReconciliationOutcome(
                order_id=order.id,
                kind=OutcomeKind.NOT_PAYABLE,
                detail=f"Order status {order.status} cannot be marked as paid",
                provider_reference=reference,
                provider_status=transaction.status,
            )

        if path == ReconciliationPath.MANUAL:
            note = f"Payment manually reconciled: {self.provider_name} payment was successful."
            activity.info(f"Manual reconciliation successful for order #{order.id}")
        else:
            note = f"Payment reconciled automatically: {self.provider_name} payment was successful."
            activity.info(f"Successfully reconciled order #{order.id} with payment intent {reference}")
        await repo.add_note(order, note)

        return ReconciliationOutcome(
            order_id=order.id,
            kind=OutcomeKind.RECONCILED,
            detail=note,
            provider_reference=reference,
            provider_status=transaction.status,
        )

    async def run_sweep(
        self,
        settings: Optional[ReconciliationSettings] = None,
    ) -> SweepSummary:
        """Run one reconciliation sweep over recent unpaid orders.

        A provider error on one order never stops the remaining orders
        from being checked. Each completed order is committed on its own.

        Args:
            settings: Run configuration. Defaults to the built-in defaults.

        Returns:
            SweepSummary with checked and reconciled counts.
        """
        settings = settings or ReconciliationSettings()
        activity = ActivityLog(enabled=settings.logging_enabled)

        summary = SweepSummary(
            id=str(uuid.uuid4()),
            provider=self.payment_method,
            lookback_days=settings.lookback_days,
            max_orders=settings.max_orders,
        )

        if not self.provider_available:
            message = self._unavailable_message()
            activity.info(f"Reconciliation aborted: {message}")
            summary.aborted = True
            summary.error_message = message
            summary.completed_at = utcnow()
            return summary

        logger.debug(
            f"Starting sweep {summary.id} (lookback={settings.lookback_days}d, "
            f"limit={settings.max_orders})"
        )

        async with session_scope(self._session_factory) as session:
            repo = OrderRepository(session)
            candidates = await self.select_candidates(repo, settings)

            for order in candidates:
                outcome = await self.reconcile(
                    repo, order, ReconciliationPath.AUTOMATIC, activity
                )
                summary.add_outcome(outcome)
                if outcome.is_reconciled:
                    await session.commit()

        summary.completed_at = utcnow()
        activity.info(
            f"Reconciliation completed. Checked {summary.checked} orders, "
            f"reconciled {summary.reconciled}"
        )
        return summary

    async def reconcile_one(
        self,
        order_id: Union[int, str, None],
        authorized: bool,
        settings: Optional[ReconciliationSettings] = None,
    ) -> ManualReconciliationResult:
        """Manually reconcile a single order.

        Preconditions are checked in order: authorization, a valid order
        ID, the order exists, it was paid through this provider, and the
        provider client is available.

        Args:
            order_id: ID of the order to reconcile.
            authorized: Whether the caller may manage orders.
            settings: Run configuration (only logging_enabled is used).

        Returns:
            ManualReconciliationResult, successful iff the order is now paid.
        """
        settings = settings or ReconciliationSettings()
        activity = ActivityLog(enabled=settings.logging_enabled)

        if not authorized:
            return ManualReconciliationResult.failure(
                ManualFailureKind.PERMISSION_DENIED, "Permission denied"
            )

        parsed_id = parse_order_id(order_id)
        if parsed_id is None:
            return ManualReconciliationResult.failure(
                ManualFailureKind.BAD_REQUEST, "No order specified"
            )

        async with session_scope(self._session_factory) as session:
            repo = OrderRepository(session)
            order = await repo.get_by_id(parsed_id)

            if order is None:
                return ManualReconciliationResult.failure(
                    ManualFailureKind.NOT_FOUND, "Order not found", order_id=parsed_id
                )

            if order.payment_method != self.payment_method:
                return ManualReconciliationResult.failure(
                    ManualFailureKind.WRONG_METHOD,
                    f"Not a {self.provider_name} order",
                    order_id=parsed_id,
                )

            if not self.provider_available:
                message = self._unavailable_message()
                activity.info(f"Manual reconciliation of order #{parsed_id} failed: {message}")
                return ManualReconciliationResult.failure(
                    ManualFailureKind.UNAVAILABLE, message, order_id=parsed_id
                )

            outcome = await self.reconcile(repo, order, ReconciliationPath.MANUAL, activity)

        return self._to_manual_result(outcome)

    def _to_manual_result(self, outcome: ReconciliationOutcome) -> ManualReconciliationResult:
        if outcome.kind == OutcomeKind.RECONCILED:
            return ManualReconciliationResult(
                success=True,
                message="Order updated successfully",
                order_id=outcome.order_id,
                outcome=outcome,
            )
        if outcome.kind == OutcomeKind.ALREADY_COMPLETED:
            return ManualReconciliationResult(
                success=True,
                message="Order already marked as paid",
                order_id=outcome.order_id,
                outcome=outcome,
            )

        failures = {
            OutcomeKind.SKIPPED_NO_REFERENCE: (ManualFailureKind.NO_REFERENCE, outcome.detail),
            OutcomeKind.PROVIDER_ERROR: (
                ManualFailureKind.PROVIDER_ERROR,
                f"Error checking payment: {outcome.detail}",
            ),
            OutcomeKind.NOT_YET_SUCCEEDED: (ManualFailureKind.NOT_SUCCEEDED, outcome.detail),
            OutcomeKind.NOT_PAYABLE: (ManualFailureKind.NOT_PAYABLE, outcome.detail),
        }
        kind, message = failures[outcome.kind]
        return ManualReconciliationResult.failure(
            kind, message, order_id=outcome.order_id, outcome=outcome
        )
