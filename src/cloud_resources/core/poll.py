"""Bounded polling for eventually-consistent remote state."""

import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from cloud_resources.core.errors import PollTimeoutError
from cloud_resources.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

FORCE_RECONCILE_ENV = "CLOUD_RESOURCES_FORCE_RECONCILE_SECONDS"


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-interval polling bounded by a total wait window.

    Attributes:
        interval: Seconds between attempts
        timeout: Ceiling of the whole wait in seconds
    """

    interval: float = 5.0
    timeout: float = 300.0


DEFAULT_POLL_POLICY = PollPolicy()


async def poll_until(
    check: Callable[[], Awaitable[T | None]],
    description: str,
    policy: PollPolicy = DEFAULT_POLL_POLICY,
    transient: tuple[type[Exception], ...] = (),
) -> T:
    """Call ``check`` immediately and then every interval until it returns a value.

    ``None`` means "not yet". Exceptions listed in ``transient`` are treated
    the same way; any other exception propagates at once. Cancelling the
    calling task aborts the wait.

    Args:
        check: Async callable returning the awaited value or None
        description: Human readable description used in errors and logs
        policy: Interval and ceiling of the wait
        transient: Exception types that count as "not yet"

    Returns:
        The first non-None value returned by ``check``

    Raises:
        PollTimeoutError: If the ceiling is reached without a value
    """
    retry = retry_if_result(lambda result: result is None)
    if transient:
        retry = retry | retry_if_exception_type(transient)

    retrying = AsyncRetrying(
        wait=wait_fixed(policy.interval),
        stop=stop_after_delay(policy.timeout),
        retry=retry,
        before_sleep=lambda state: logger.debug(
            "Still waiting", target=description, attempt=state.attempt_number
        ),
    )

    try:
        return await retrying(check)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        raise PollTimeoutError(description, policy.timeout) from last_error


def get_forced_reconcile_time_or_default(default: timedelta) -> timedelta:
    """Return the reconcile interval forced through the environment, if any.

    Args:
        default: Interval to use when no override is set

    Returns:
        Forced or default reconcile interval
    """
    forced = os.getenv(FORCE_RECONCILE_ENV, "")
    if not forced:
        return default

    try:
        return timedelta(seconds=float(forced))
    except ValueError:
        logger.warning("Ignoring invalid forced reconcile time", value=forced)
        return default
