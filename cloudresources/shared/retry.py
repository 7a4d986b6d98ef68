"""Retry policy for polling remote calls that may fail while credentials propagate."""

from collections.abc import Callable
from dataclasses import dataclass
import logging
import time
from typing import TypeVar

from cloudresources.context import ReconcileContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always(_err: Exception) -> bool:
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Poll at a fixed interval until success or until `timeout` seconds have passed.

    `retryable` classifies a raised exception; non-retryable exceptions propagate
    immediately. The first attempt runs without waiting.
    """

    interval: float
    timeout: float
    retryable: Callable[[Exception], bool] = _always


class RetryExhaustedError(Exception):
    """Raised when a policy's ceiling is reached without a successful attempt."""

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        super().__init__(f"no successful attempt after {attempts} tries: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def poll(
    fn: Callable[[], T],
    policy: RetryPolicy,
    ctx: ReconcileContext,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call fn until it returns, sleeping policy.interval between failed attempts."""
    started = clock()
    attempts = 0
    last_error: Exception | None = None
    while True:
        ctx.check()
        attempts += 1
        try:
            return fn()
        except Exception as e:
            if not policy.retryable(e):
                raise
            last_error = e
            logger.warning("attempt %d failed, retrying in %ss: %s", attempts, policy.interval, e)
        if clock() - started + policy.interval > policy.timeout:
            raise RetryExhaustedError(attempts, last_error)
        ctx.wait(policy.interval)
