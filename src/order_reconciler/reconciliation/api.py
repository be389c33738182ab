"""API endpoints for reconciliation operations."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..auth import verify_api_key, is_authorized, limiter
from ..config import ReconciliationSettings
from .engine import ReconciliationEngine
from .models import ManualFailureKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])

FAILURE_STATUS_CODES = {
    ManualFailureKind.PERMISSION_DENIED: 403,
    ManualFailureKind.BAD_REQUEST: 400,
    ManualFailureKind.NOT_FOUND: 404,
    ManualFailureKind.WRONG_METHOD: 422,
    ManualFailureKind.UNAVAILABLE: 503,
    ManualFailureKind.NO_REFERENCE: 409,
    ManualFailureKind.PROVIDER_ERROR: 502,
    ManualFailureKind.NOT_SUCCEEDED: 409,
    ManualFailureKind.NOT_PAYABLE: 409,
}


class SweepRequestBody(BaseModel):
    """Optional overrides for a manually triggered sweep."""
    lookback_days: Optional[int] = Field(None, description="Days of past orders to check (1-30)")
    max_orders: Optional[int] = Field(None, description="Maximum orders to check (5-100)")
    logging_enabled: Optional[bool] = Field(None, description="Write activity log messages")


class SweepSummaryResponse(BaseModel):
    """Summary response for a sweep."""
    id: str
    provider: str
    checked: int = 0
    reconciled: int = 0
    lookback_days: int
    max_orders: int
    aborted: bool = False
    error_message: Optional[str] = None


def get_engine(request: Request) -> ReconciliationEngine:
    """Dependency returning the engine constructed at application start."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Reconciliation engine not initialized")
    return engine


def resolve_settings(body: Optional[SweepRequestBody]) -> ReconciliationSettings:
    """Merge request overrides over the environment configuration."""
    settings = ReconciliationSettings.from_env()
    if body is None:
        return settings
    overrides = body.model_dump(exclude_none=True)
    if not overrides:
        return settings
    return ReconciliationSettings(**{**settings.model_dump(), **overrides})


@router.post("/sweeps", response_model=SweepSummaryResponse)
@limiter.limit("30/minute")
async def run_sweep_now(
    request: Request,
    body: Optional[SweepRequestBody] = None,
    engine: ReconciliationEngine = Depends(get_engine),
    api_key: str = Depends(verify_api_key),
):
    """
    Run a reconciliation sweep now.

    Checks recent pending and on-hold orders against the payment provider
    and marks the ones that were actually paid.
    """
    settings = resolve_settings(body)
    logger.info(
        f"Manual sweep requested (lookback={settings.lookback_days}d, "
        f"limit={settings.max_orders})"
    )
    summary = await engine.run_sweep(settings)

    return SweepSummaryResponse(
        id=summary.id,
        provider=summary.provider,
        checked=summary.checked,
        reconciled=summary.reconciled,
        lookback_days=summary.lookback_days,
        max_orders=summary.max_orders,
        aborted=summary.aborted,
        error_message=summary.error_message,
    )


@router.post("/orders/{order_id}")
async def reconcile_order(
    order_id: str,
    engine: ReconciliationEngine = Depends(get_engine),
    authorized: bool = Depends(is_authorized),
):
    """
    Reconcile a single order against the payment provider.

    Responds with ``success`` and a message; failures carry a
    ``failure_kind`` and a matching HTTP status code.
    """
    result = await engine.reconcile_one(
        order_id,
        authorized=authorized,
        settings=ReconciliationSettings.from_env(),
    )

    content = {
        "success": result.success,
        "data": result.message,
        "order_id": result.order_id,
        "failure_kind": result.failure_kind.value if result.failure_kind else None,
        "outcome": result.outcome.model_dump(mode="json") if result.outcome else None,
    }
    status_code = 200 if result.success else FAILURE_STATUS_CODES[result.failure_kind]
    return JSONResponse(status_code=status_code, content=content)


@router.get("/health")
async def reconciliation_health(engine: ReconciliationEngine = Depends(get_engine)):
    """Health check endpoint for reconciliation service."""
    return {
        "status": "healthy",
        "service": "reconciliation",
        "provider_available": engine.provider_available,
    }
