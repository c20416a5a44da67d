"""Fleet-wide cancellation signal."""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot broadcast signal shared by every session of a fleet.

    The first call to cancel() wins and records its reason; later calls
    are ignored. The token is never reset.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> bool:
        """
        Set the signal.

        Args:
            reason: Short human readable cause, kept only for the first call

        Returns:
            bool: True if this call set the signal, False if it was already set
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        logger.info(f"Cancelling fleet: {reason}")
        return True

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    async def wait(self) -> None:
        """Block until the signal is set."""
        await self._event.wait()
