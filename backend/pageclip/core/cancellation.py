"""Cooperative cancellation."""

import logging

from ..errors import CancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag threaded through every pipeline stage.

    Cancelling never aborts an in-flight request; stages check the token
    between awaits and unwind with CancelledError.
    """

    def __init__(self):
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self, where: str = "") -> None:
        """Raise CancelledError if cancellation was requested.

        Args:
            where: Checkpoint name for the log line
        """
        if self._cancelled:
            logger.info(f"Processing cancelled{f' before {where}' if where else ''}")
            raise CancelledError()
