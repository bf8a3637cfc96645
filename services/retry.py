# ============================================================================
# CONDITIONAL WRITE RETRY AND CLIENT WAITS
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - Retry helpers shared by all client operations
# PURPOSE: Retrying get-modify-put and bounded polling waits
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Conditional Write Retry and Client Waits

update_status_with_retry is the only way client operations change a
status. It re-reads the resource on every attempt, applies the mutation to
that fresh copy and writes it conditionally; a ConflictError starts the
next attempt after an exponential, jittered delay.

wait_for polls a probe on the same kind of schedule until it returns a
value or the caller's timeout runs out.
"""

import asyncio
import logging
import os
import random
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from core.config import RetryDefaults, WaitDefaults, get_defaults
from core.contracts import ResourceKind
from core.models import Resource
from repositories import ConflictError, ObjectStore
from services.errors import RetryExhaustedError, WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]
Timeout = Union[float, int, timedelta, None]


def default_holder() -> str:
    """$HOSTNAME, else sdk-<unix timestamp>."""
    return os.environ.get("HOSTNAME") or f"sdk-{int(time.time())}"


def as_seconds(timeout: Timeout) -> Optional[float]:
    if timeout is None:
        return None
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


def _jittered(delay: float, jitter: float) -> float:
    return delay * (1 + random.uniform(0, jitter))


async def retry_on_conflict(
    fn: Callable[[], Awaitable[T]],
    description: str = "update",
    defaults: Optional[RetryDefaults] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Call `fn` until it does not raise ConflictError.

    Other exceptions propagate immediately.

    Raises:
        RetryExhaustedError: every attempt conflicted
    """
    defaults = defaults or get_defaults().retry
    delay = defaults.initial_delay
    last: Optional[ConflictError] = None

    for attempt in range(1, defaults.max_attempts + 1):
        try:
            return await fn()
        except ConflictError as e:
            last = e
            logger.debug(f"{description}: conflict on attempt {attempt}/{defaults.max_attempts}")
            if attempt < defaults.max_attempts:
                await sleep(_jittered(delay, defaults.jitter))
                delay = min(delay * 2, defaults.max_delay)

    logger.warning(f"{description}: giving up after {defaults.max_attempts} conflicts")
    raise RetryExhaustedError(description, defaults.max_attempts) from last


async def update_status_with_retry(
    store: ObjectStore,
    kind: ResourceKind,
    namespace: str,
    name: str,
    mutate: Callable[[Resource], Any],
    defaults: Optional[RetryDefaults] = None,
    sleep: Sleep = asyncio.sleep,
) -> Resource:
    """
    Retrying get-modify-put of a resource's status.

    Args:
        store: Object store
        kind, namespace, name: Resource identity
        mutate: Receives a freshly read resource and returns the new status,
            or None to leave it unchanged. May raise to abort (not retried).

    Returns:
        The resource as stored after the write (or as read, if unchanged)

    Raises:
        NotFoundError: the resource does not exist
        RetryExhaustedError: conflicts on every attempt
    """
    async def attempt() -> Resource:
        resource = await store.get(kind, namespace, name)
        status = mutate(resource)
        if status is None:
            return resource
        return await store.update_status(resource.with_status(status))

    return await retry_on_conflict(
        attempt,
        description=f"{ResourceKind(kind).value}/{namespace}/{name} status update",
        defaults=defaults,
        sleep=sleep,
    )


async def wait_for(
    probe: Callable[[], Awaitable[Optional[T]]],
    timeout: Timeout = None,
    description: str = "condition",
    defaults: Optional[WaitDefaults] = None,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Poll `probe` until it returns something other than None.

    The probe runs at least once, so timeout=0 is a single attempt.

    Args:
        probe: Async callable; None means "not yet"
        timeout: Seconds (or timedelta); None waits forever
        description: Used in the timeout error

    Raises:
        WaitTimeoutError: timeout elapsed first
    """
    defaults = defaults or get_defaults().wait
    seconds = as_seconds(timeout)
    if seconds is None:
        seconds = defaults.default_timeout

    loop = asyncio.get_running_loop()
    deadline = None if seconds is None else loop.time() + seconds
    interval = defaults.initial_interval

    while True:
        result = await probe()
        if result is not None:
            return result

        delay = _jittered(interval, defaults.jitter)
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise WaitTimeoutError(description, seconds)
            delay = min(delay, remaining)

        await sleep(delay)
        interval = min(interval * defaults.multiplier, defaults.max_interval)


__all__ = [
    "default_holder",
    "as_seconds",
    "retry_on_conflict",
    "update_status_with_retry",
    "wait_for",
]
