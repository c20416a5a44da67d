"""Bounded retry for flaky setup operations."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
from flakeswarm.core.cancellation import CancellationToken
from flakeswarm.core.exceptions import BackendError, RetryCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _pause(delay_seconds: float, token: Optional[CancellationToken]) -> None:
    if token is None:
        await asyncio.sleep(delay_seconds)
        return
    try:
        await asyncio.wait_for(token.wait(), timeout=delay_seconds)
    except asyncio.TimeoutError:
        pass


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    *,
    delay_seconds: float = 0.0,
    retry_on: Tuple[Type[BaseException], ...] = (BackendError,),
    description: str = "operation",
    token: Optional[CancellationToken] = None,
) -> T:
    """
    Await an operation until it succeeds or the attempt budget runs out.

    Errors carrying ``transient=False`` are never retried. When a token is
    given, no new attempt starts once it is cancelled and the pause between
    attempts ends as soon as it fires.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Attempt budget; anything below 1 still makes one attempt
        delay_seconds: Fixed pause between attempts
        retry_on: Exception types that count as a failed attempt; anything
            else propagates immediately
        description: Label used in log messages
        token: Cancellation signal that stops further attempts

    Returns:
        T: Result of the first successful attempt

    Raises:
        RetryCancelledError: The token fired before an attempt succeeded;
            the last failure is chained as its cause
        Exception: The last failure once every attempt has failed, or the
            first non-transient one
    """
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt == attempts or not getattr(e, "transient", True):
                raise
            if token is not None and token.is_cancelled:
                raise RetryCancelledError(f"{description} cancelled: {token.reason}") from e
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")
            if delay_seconds > 0:
                await _pause(delay_seconds, token)
            if token is not None and token.is_cancelled:
                raise RetryCancelledError(f"{description} cancelled: {token.reason}") from e
    raise AssertionError("unreachable")
