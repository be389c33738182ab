"""FastAPI application hosting the reconciliation engine."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .auth import limiter
from .config import get_schedule_enabled, get_schedule_interval
from .database import DatabaseManager
from .reconciliation import (
    ReconciliationEngine,
    SweepScheduler,
    load_provider_client,
    router as reconciliation_router,
)

logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[ReconciliationEngine] = None,
    database_url: Optional[str] = None,
    start_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Create the API application.

    When no engine is given, one is built during startup from the
    environment: the database at ``database_url`` (or DATABASE_URL) and
    the Stripe client from STRIPE_API_KEY.

    Args:
        engine: Pre-built engine to serve.
        database_url: Database URL used when building the engine.
        start_scheduler: Run periodic sweeps in-process. Defaults to
            RECONCILIATION_SCHEDULE_ENABLED.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_manager: Optional[DatabaseManager] = None
        if getattr(app.state, "engine", None) is None:
            db_manager = DatabaseManager(database_url)
            await db_manager.initialize()
            app.state.engine = ReconciliationEngine(
                db_manager.session_factory,
                provider_client=load_provider_client(),
            )

        scheduler = SweepScheduler(
            engine=app.state.engine,
            interval_seconds=get_schedule_interval(),
            enabled=get_schedule_enabled() if start_scheduler is None else start_scheduler,
        )
        await scheduler.start()
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            await scheduler.stop()
            if db_manager is not None:
                await db_manager.shutdown()
                app.state.engine = None

    app = FastAPI(title="Order Reconciler", lifespan=lifespan)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.state.engine = engine
    app.include_router(reconciliation_router)
    return app
