"""Delayed enqueueing for generated jobs.

A job class may carry ``wait`` (relative delay) and ``wait_until`` (absolute
time). Each is either a constant or a one-argument callable that receives the
domain object being enqueued; constants are wrapped so both are callables
once assigned.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Union

WaitValue = Union[int, float, timedelta, datetime, Callable[[Any], Any], None]


def to_callable(value: Any) -> Callable[[Any], Any]:
    """Wrap a constant into a callable taking the record; callables pass through."""
    if callable(value):
        return value
    return lambda _record: value


def delay_seconds(wait: int | float | timedelta) -> float:
    if isinstance(wait, timedelta):
        return wait.total_seconds()
    return float(wait)


class Waiting:
    """``wait`` and ``wait_until`` support, mixed into every job base."""

    wait: Callable[[Any], Any] | None = None
    wait_until: Callable[[Any], Any] | None = None

    @classmethod
    def set_wait(cls, value: WaitValue) -> None:
        cls.wait = None if value is None else staticmethod(to_callable(value))

    @classmethod
    def set_wait_until(cls, value: WaitValue) -> None:
        cls.wait_until = None if value is None else staticmethod(to_callable(value))

    @classmethod
    def waits_for(cls, record: Any) -> dict[str, Any]:
        """Evaluate the waits for ``record``, dropping empty results."""
        waits = {
            "wait": cls.wait(record) if cls.wait else None,
            "wait_until": cls.wait_until(record) if cls.wait_until else None,
        }
        return {key: value for key, value in waits.items() if value is not None}

    @classmethod
    def scoped_by_wait(cls, record: Any) -> Any:
        """Return the job configured with ``record``'s waits, or the job itself."""
        waits = cls.waits_for(record)
        if waits:
            return cls.set(**waits)
        return cls
