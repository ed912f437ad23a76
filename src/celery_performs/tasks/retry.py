"""Retry and discard policies for generated jobs.

Policies are declared on a job class, either in the configuration bag or in
a declaration block, and consulted by ``ApplicationJob.run`` when ``perform``
raises.

Usage:
    ```python
    Post.performs(
        "publish",
        discard_on=DeserializationError,
        block=lambda job: job.retry_on(ConnectionError, wait="polynomially_longer", attempts=10),
    )
    ```
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)

ExceptionTypes = tuple[type[BaseException], ...]
RetryWait = Union[int, float, timedelta, str, Callable[[int], Any]]

DEFAULT_RETRY_WAIT = 3
DEFAULT_RETRY_ATTEMPTS = 5


def exponential_backoff(retry_count: int, base_delay: int = 60, max_delay: int = 3600, multiplier: float = 2.0) -> int:
    """Calculate exponential backoff delay for retries.

    Args:
        retry_count: Current retry attempt number (0-indexed)
        base_delay: Base delay in seconds (default: 60)
        max_delay: Maximum delay in seconds (default: 3600)
        multiplier: Exponential multiplier (default: 2.0)

    Returns:
        Delay in seconds before next retry

    Example:
        ```python
        delay = exponential_backoff(retry_count=2)  # Returns 240 (60 * 2^2)
        ```
    """
    delay = int(base_delay * (multiplier ** retry_count))
    return min(delay, max_delay)


def linear_backoff(retry_count: int, base_delay: int = 60, max_delay: int = 3600, increment: int = 60) -> int:
    """Calculate linear backoff delay for retries.

    Args:
        retry_count: Current retry attempt number (0-indexed)
        base_delay: Base delay in seconds (default: 60)
        max_delay: Maximum delay in seconds (default: 3600)
        increment: Delay increment per retry (default: 60)

    Returns:
        Delay in seconds before next retry
    """
    delay = base_delay + (increment * retry_count)
    return min(delay, max_delay)


def polynomially_longer(executions: int) -> int:
    """Delay that grows with the fourth power of the executions so far.

    Example:
        ```python
        polynomially_longer(1)  # 3
        polynomially_longer(3)  # 83
        ```
    """
    return executions ** 4 + 2


# Named strategies accepted by retry_on(wait=...)
BACKOFF_STRATEGIES: dict[str, Callable[[int], int]] = {
    "polynomially_longer": polynomially_longer,
    "exponentially_longer": lambda executions: exponential_backoff(executions - 1, base_delay=3),
}


def resolve_retry_delay(wait: RetryWait, executions: int) -> float:
    """Turn a retry ``wait`` into seconds for the given execution count.

    Raises:
        ValueError: If ``wait`` names an unknown strategy.
    """
    if isinstance(wait, str):
        try:
            wait = BACKOFF_STRATEGIES[wait]
        except KeyError:
            raise ValueError(f"Unknown retry wait strategy: {wait!r}") from None

    if callable(wait):
        wait = wait(executions)

    if isinstance(wait, timedelta):
        return wait.total_seconds()
    return float(wait)


def as_exception_types(value: Any) -> ExceptionTypes:
    if isinstance(value, type):
        return (value,)
    types = tuple(value)
    if not types or not all(isinstance(t, type) and issubclass(t, BaseException) for t in types):
        raise TypeError(f"Expected exception classes, got {value!r}")
    return types


@dataclass(frozen=True)
class RetryPolicy:
    exceptions: ExceptionTypes
    wait: RetryWait = DEFAULT_RETRY_WAIT
    attempts: int = DEFAULT_RETRY_ATTEMPTS

    def matches(self, exc: BaseException) -> bool:
        return isinstance(exc, self.exceptions)

    def exhausted(self, executions: int) -> bool:
        return executions >= self.attempts

    def delay(self, executions: int) -> float:
        return resolve_retry_delay(self.wait, executions)


@dataclass(frozen=True)
class DiscardPolicy:
    exceptions: ExceptionTypes

    def matches(self, exc: BaseException) -> bool:
        return isinstance(exc, self.exceptions)


Policy = Union[RetryPolicy, DiscardPolicy]


def add_policy(policies: tuple[Policy, ...], policy: Policy) -> tuple[Policy, ...]:
    """Return ``policies`` with ``policy`` appended.

    A previous policy of the same kind for the same exceptions is dropped, so
    declaring a job twice does not stack duplicate handlers.
    """
    kept = tuple(
        existing for existing in policies
        if not (type(existing) is type(policy) and existing.exceptions == policy.exceptions)
    )
    return kept + (policy,)


def find_policy(policies: tuple[Policy, ...], exc: BaseException) -> Policy | None:
    """Return the most recently declared policy handling ``exc``."""
    for policy in reversed(policies):
        if policy.matches(exc):
            return policy
    return None
