"""Outcome types for store operations and the retry combinator driving them.

An operation returns ``Ok`` with its value, ``Retryable`` when a fresh attempt
may succeed (serialization conflicts), or ``Fatal`` when it must not be retried.
"""
import logging
import time
import typing

import attr


log = logging.getLogger(__name__)

T = typing.TypeVar("T")


@attr.s(auto_attribs=True, frozen=True)
class Ok(typing.Generic[T]):
    value: T


@attr.s(auto_attribs=True, frozen=True)
class Retryable:
    reason: Exception


@attr.s(auto_attribs=True, frozen=True)
class Fatal:
    error: Exception


Outcome = typing.Union[Ok[T], Retryable, Fatal]


@attr.s(auto_attribs=True, frozen=True)
class RetryPolicy:
    max_retries: int = 4
    # seconds
    initial_backoff: float = 0.1
    max_backoff: float = 0.2
    multiplier: float = 2.0

    def delays(self) -> typing.Iterator[float]:
        delay = self.initial_backoff
        for _ in range(self.max_retries):
            yield min(delay, self.max_backoff)
            delay *= self.multiplier


def with_retry(
    operation: typing.Callable[[], Outcome],
    policy: RetryPolicy,
    sleep: typing.Callable[[float], None] = time.sleep,
) -> typing.Any:
    """Run ``operation`` until it is ``Ok`` or ``Fatal``, or the policy runs out of retries.

    Each retry calls ``operation`` again from scratch; nothing is carried over between attempts.
    """
    delays = policy.delays()
    attempt = 1
    while True:
        outcome = operation()
        if isinstance(outcome, Ok):
            return outcome.value
        if isinstance(outcome, Fatal):
            raise outcome.error

        delay = next(delays, None)
        if delay is None:
            log.error("Giving up after %d attempts: %s", attempt, outcome.reason)
            raise outcome.reason
        log.warning("Attempt %d failed with %s, retrying in %.3fs", attempt, outcome.reason, delay)
        sleep(delay)
        attempt += 1
