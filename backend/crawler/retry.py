"""
Fixed-delay retry for a single unit of work.

The delay paces requests against the site; it is not a congestion backoff, so
it does not grow between attempts.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from shared.utils.logging import get_logger
from shared.utils.metrics import RETRY_ATTEMPTS

logger = get_logger(__name__)

T = TypeVar("T")


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_retries: int = 2,
    retry_delay_s: float = 5.0,
) -> T:
    """
    Run ``operation`` once plus up to ``max_retries`` more times.

    Args:
        operation: Zero-argument coroutine factory; called anew per attempt.
        label: Human-readable name of the unit of work, for logs.
        max_retries: Additional attempts after the first.
        retry_delay_s: Seconds to wait between attempts.

    Raises:
        Exception: The last attempt's exception, unchanged.
    """
    attempts = max_retries + 1
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if attempt >= attempts:
                raise
            RETRY_ATTEMPTS.inc()
            logger.warning(
                "attempt_failed",
                label=label,
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
                retry_in_s=retry_delay_s,
            )
            await asyncio.sleep(retry_delay_s)
    raise RuntimeError(f"{label}: no attempts made")
