"""Retry helpers for database commits and job store operations."""
import asyncio
import inspect
import logging
from typing import Any, Callable, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_DB_MESSAGES = (
    "database is locked",
    "connection refused",
    "connection reset",
    "connection closed",
    "server closed",
    "timeout",
    "too many clients",
)


async def retry_with_backoff(
    func: Callable[[], Any],
    max_retries: int = 3,
    base_delay: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Callable[[BaseException], bool] = lambda e: True,
    description: str = "operation",
) -> Any:
    """Call `func` up to `max_retries` times with exponential backoff.

    `func` may be a plain callable or return an awaitable. The delay before
    attempt n+1 is base_delay * 2**(n-1). The last exception is re-raised
    once the attempts are exhausted.
    """
    last_exception = None
    for attempt in range(max_retries):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except retry_on as e:
            if not should_retry(e):
                raise
            last_exception = e
            if attempt + 1 >= max_retries:
                break
            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{description} failed ({e}), retrying in {delay}s (attempt {attempt + 1}/{max_retries})"
            )
            await asyncio.sleep(delay)
    raise last_exception


def _is_transient_db_error(e: BaseException) -> bool:
    error_str = str(e).lower()
    return any(msg in error_str for msg in TRANSIENT_DB_MESSAGES)


async def retry_on_lock(coro_func: Callable[[], T], max_retries: int = 3, base_delay: float = 0.1) -> T:
    """Retry a database operation on transient errors with exponential backoff.

    Handles SQLite lock contention and PostgreSQL transient connection errors
    that occur when many checks commit at once.
    """
    return await retry_with_backoff(
        coro_func,
        max_retries=max_retries,
        base_delay=base_delay,
        retry_on=(OperationalError, InterfaceError),
        should_retry=_is_transient_db_error,
        description="Database commit",
    )
