"""Activity log for human-readable reconciliation messages."""

import logging
from typing import Optional

ACTIVITY_LOGGER_NAME = "order_reconciler.activity"


class ActivityLog:
    """Append-only sink for reconciliation outcome messages.

    Messages go to the ``order_reconciler.activity`` logger. When
    disabled, ``info`` does nothing.
    """

    def __init__(self, enabled: bool = True, logger: Optional[logging.Logger] = None):
        self.enabled = enabled
        self._logger = logger or logging.getLogger(ACTIVITY_LOGGER_NAME)

    def info(self, message: str) -> None:
        if not self.enabled:
            return
        self._logger.info(message)
