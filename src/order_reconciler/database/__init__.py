"""Database module for order persistence."""

from .models import (
    Order,
    OrderNote,
    Base,
    OrderStatus,
    UNPAID_STATUSES,
    COMPLETED_STATUSES,
    PAYABLE_STATUSES,
    utcnow,
)
from .session import (
    get_database_url,
    create_async_engine,
    get_async_session_factory,
    create_tables,
    session_scope,
    DatabaseManager,
)
from .repository import OrderRepository

__all__ = [
    # Models
    "Order",
    "OrderNote",
    "Base",
    "OrderStatus",
    "UNPAID_STATUSES",
    "COMPLETED_STATUSES",
    "PAYABLE_STATUSES",
    "utcnow",
    # Session management
    "get_database_url",
    "create_async_engine",
    "get_async_session_factory",
    "create_tables",
    "session_scope",
    "DatabaseManager",
    # Repositories
    "OrderRepository",
]
