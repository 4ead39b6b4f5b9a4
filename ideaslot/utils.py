"""
Time helpers and the LLM retry decorator.

Provides:
    - utc_now() / ensure_utc(): aware UTC datetimes for TIMESTAMPTZ columns
    - parse_timestamp() / isoformat_utc(): the store and state-file wire format
    - @with_retry: exponential backoff for async calls
"""

import asyncio
import logging
import re
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar, Union

from ideaslot.exceptions import RetryExhaustedError

T = TypeVar("T")

logger = logging.getLogger(__name__)

# Fraction before an optional UTC offset; PostgREST trims trailing zeros
_FRACTION = re.compile(r"\.(\d+)(?=([+-]\d{2}:?\d{2})?$)")


# ===========================================================================
# TIMESTAMPS
# ===========================================================================


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive *dt*, or convert an aware one."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Read a ``created_at`` / ``lastProcessedAt`` value as aware UTC.

    Supabase and JavaScript writers both end up here, so a trailing ``Z``
    is accepted and fractional seconds of any length are cut or padded
    to microseconds.  Empty values map to ``None``.

    Raises:
        ValueError: If a non-empty string is not ISO-8601.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = f"{text[:-1]}+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    return ensure_utc(datetime.fromisoformat(text))


def isoformat_utc(dt: Optional[datetime] = None) -> str:
    return ensure_utc(dt or utc_now()).isoformat()


# ===========================================================================
# RETRY
# ===========================================================================


def backoff_delays(max_attempts: int, base_delay: float) -> Iterator[float]:
    """Delays slept between attempts: ``base, 2*base, 4*base, ...``."""
    for retry in range(max_attempts - 1):
        yield base_delay * (2 ** retry)


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry an async function with exponential backoff.

    Only *retryable_exceptions* are retried; anything else propagates on
    the first failure.  LLM calls use this; provider HTTP calls go through
    the request schedulers instead.

    Args:
        max_attempts: Total attempts including the first.
        base_delay: Seconds slept before the first retry.
        retryable_exceptions: Exception types worth another attempt.
        operation_name: Label for logs and the final error; defaults to
            the function name.

    Raises:
        RetryExhaustedError: Carrying the last error once attempts run out.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = operation_name or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            delays = backoff_delays(max_attempts, base_delay)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    delay = next(delays, None)
                    if delay is None:
                        logger.error("[RETRY] %s gave up after %d attempts: %s", name, attempt, exc)
                        raise RetryExhaustedError(name, attempt, exc) from exc
                    logger.warning(
                        "[RETRY] %s attempt %d/%d failed (%s); sleeping %.1fs",
                        name,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
