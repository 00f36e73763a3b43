"""Retry combinator shared by the debate and vote phases."""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    attempts: int,
    label: str,
) -> T:
    """Await call() up to `attempts` times with no delay between attempts.

    The last exception is re-raised once every attempt has failed. A success
    on a later attempt is returned exactly like a first-attempt success.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except Exception as exc:
            if attempt == attempts:
                raise
            logger.warning("%s attempt %d/%d failed, retrying: %s", label, attempt, attempts, exc)
    raise AssertionError("unreachable")
