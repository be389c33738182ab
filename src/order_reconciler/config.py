"""Run configuration for reconciliation sweeps."""

import os
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = 2
MIN_LOOKBACK_DAYS = 1
MAX_LOOKBACK_DAYS = 30

DEFAULT_MAX_ORDERS = 25
MIN_MAX_ORDERS = 5
MAX_MAX_ORDERS = 100

DEFAULT_INTERVAL_SECONDS = 3600

_TRUE_VALUES = frozenset(["1", "true", "yes", "on"])
_FALSE_VALUES = frozenset(["0", "false", "no", "off"])


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def parse_bool(value: Optional[str], default: bool) -> bool:
    """Parse a boolean flag from an environment-style string.

    Args:
        value: Raw string value, or None when unset.
        default: Value to use when unset or unrecognised.

    Returns:
        Parsed boolean.
    """
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning(f"Unrecognised boolean value {value!r}, using {default}")
    return default


def parse_int(value: Optional[str], default: int, name: str = "value") -> int:
    """Parse an integer from an environment-style string, falling back to default."""
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


class ReconciliationSettings(BaseModel):
    """Parameters governing one reconciliation sweep.

    Out-of-range values are clamped rather than rejected, so a host
    can pass through whatever its settings form submitted.
    """
    model_config = ConfigDict(frozen=True)

    lookback_days: int = Field(
        default=DEFAULT_LOOKBACK_DAYS,
        description="How many days of past orders to check for missed payments",
    )
    max_orders: int = Field(
        default=DEFAULT_MAX_ORDERS,
        description="Maximum number of orders to check per run",
    )
    logging_enabled: bool = Field(
        default=True,
        description="Write reconciliation activity to the activity log",
    )

    @field_validator("lookback_days", mode="before")
    @classmethod
    def clamp_lookback_days(cls, value: Any) -> int:
        return _clamp(int(value), MIN_LOOKBACK_DAYS, MAX_LOOKBACK_DAYS)

    @field_validator("max_orders", mode="before")
    @classmethod
    def clamp_max_orders(cls, value: Any) -> int:
        return _clamp(int(value), MIN_MAX_ORDERS, MAX_MAX_ORDERS)

    @classmethod
    def from_env(cls) -> "ReconciliationSettings":
        """Load settings from RECONCILIATION_* environment variables."""
        return cls(
            lookback_days=parse_int(
                os.getenv("RECONCILIATION_DAYS"), DEFAULT_LOOKBACK_DAYS, "RECONCILIATION_DAYS"
            ),
            max_orders=parse_int(
                os.getenv("RECONCILIATION_LIMIT"), DEFAULT_MAX_ORDERS, "RECONCILIATION_LIMIT"
            ),
            logging_enabled=parse_bool(os.getenv("RECONCILIATION_LOGGING"), True),
        )


def get_schedule_enabled() -> bool:
    """Whether the periodic sweep should run inside the API process."""
    return parse_bool(os.getenv("RECONCILIATION_SCHEDULE_ENABLED"), True)


def get_schedule_interval() -> int:
    """Seconds between scheduled sweeps (hourly by default)."""
    interval = parse_int(
        os.getenv("RECONCILIATION_INTERVAL_SECONDS"),
        DEFAULT_INTERVAL_SECONDS,
        "RECONCILIATION_INTERVAL_SECONDS",
    )
    return max(1, interval)
