# careslot/db/retry.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError

from careslot.core.errors import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Driver-level failures worth another attempt; business errors are never retried
TRANSIENT_ERRORS = (OperationalError, InterfaceError)


async def with_retries(op: str, fn: Callable[[], Awaitable[T]], *, attempts: int) -> T:
    """
    Run `fn` up to `attempts` times while it fails with a transient DB error.
    The last failure surfaces as StoreError("store_unavailable").
    """
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except TRANSIENT_ERRORS as exc:
            if attempt == attempts:
                logger.error("%s failed after %d attempt(s): %s", op, attempt, exc)
                raise StoreError("store_unavailable") from exc
            logger.warning("%s attempt %d/%d failed, retrying: %s", op, attempt, attempts, exc)
            await asyncio.sleep(0.05 * attempt)
    raise AssertionError("unreachable")
