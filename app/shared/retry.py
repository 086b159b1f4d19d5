"""
Retry-with-backoff and cancellation for store writes issued by dashboard sessions
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import OperationalError

from ..config import PERSISTENCE_RETRY_ATTEMPTS, PERSISTENCE_RETRY_DELAY

logger = logging.getLogger(__name__)

# Connection drops, lock timeouts and similar transient store failures
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (OperationalError, ConnectionError, TimeoutError)


class OperationCancelled(Exception):
    """The caller cancelled the operation; any late result is discarded"""


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise OperationCancelled()


async def with_retry(
    operation: Callable[[], Any],
    *,
    attempts: int = PERSISTENCE_RETRY_ATTEMPTS,
    base_delay: float = PERSISTENCE_RETRY_DELAY,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    token: Optional[CancellationToken] = None,
    description: str = "store write",
) -> Any:
    """
    Run ``operation`` with exponential backoff between attempts.

    Sync callables run in a worker thread so the event loop keeps serving
    other sessions. Non-retryable errors propagate immediately. When ``token``
    is cancelled before an attempt or while it runs, OperationCancelled is
    raised and the result is dropped.
    """
    for attempt in range(attempts):
        if token is not None:
            token.raise_if_cancelled()
        try:
            if inspect.iscoroutinefunction(operation):
                result = await operation()
            else:
                result = await asyncio.to_thread(operation)
                if inspect.isawaitable(result):
                    result = await result
        except retry_on as e:
            if attempt == attempts - 1:
                logger.error(f"❌ {description} failed after {attempts} attempts: {e}")
                raise
            logger.warning(f"🔄 Retry {attempt + 1}/{attempts} for {description}: {e}")
            await asyncio.sleep(base_delay * (2**attempt))
            continue

        if token is not None:
            token.raise_if_cancelled()
        return result

    raise RuntimeError("with_retry called with attempts < 1")


def error_message(error: BaseException) -> str:
    """User-facing text for a failed store call (HTTPException detail or the error itself)"""
    detail = getattr(error, "detail", None)
    if isinstance(detail, str):
        return detail
    return str(error) or error.__class__.__name__
