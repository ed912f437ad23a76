"""Configuration bag handling for generated job classes.

Each key of a ``performs(...)`` configuration bag is applied to the job class
through a fixed table of setters. Keys missing from the table may still name
an existing Celery task attribute (``max_retries``, ``rate_limit``,
``acks_late``, ...), which is assigned, or a configuration classmethod on the
job, which is called with the value. Anything else is an error at
declaration time.
"""

import inspect
import logging
from typing import Any, Callable

from ..exceptions import UnknownConfigurationError
from .retry import as_exception_types

logger = logging.getLogger(__name__)


def _set_queue(job_class: type, value: Any) -> None:
    job_class.queue_as(value)


def _set_wait(job_class: type, value: Any) -> None:
    job_class.set_wait(value)


def _set_wait_until(job_class: type, value: Any) -> None:
    job_class.set_wait_until(value)


def _set_priority(job_class: type, value: Any) -> None:
    job_class.priority = value


def _set_retry_on(job_class: type, value: Any) -> None:
    # retry_on=ConnectionError, retry_on=(A, B) or
    # retry_on={"exceptions": (A, B), "wait": 10, "attempts": 3}
    if isinstance(value, dict):
        options = dict(value)
        exceptions = as_exception_types(options.pop("exceptions"))
        job_class.retry_on(*exceptions, **options)
    else:
        job_class.retry_on(*as_exception_types(value))


def _set_discard_on(job_class: type, value: Any) -> None:
    job_class.discard_on(*as_exception_types(value))


# Task attributes that identify or bind the job rather than configure it
RESERVED_ATTRIBUTES = frozenset({
    "name", "app", "request", "celery_app", "perform", "run", "bind",
    "register", "registered_task", "get_app", "reset_exec_options",
    "set", "new", "enqueue", "build", "perform_later", "perform_all_later",
    "scoped_by_wait", "waits_for", "inherit_configuration", "propagate_configuration",
})

CONFIGURATION_SETTERS: dict[str, Callable[[type, Any], None]] = {
    "queue": _set_queue,
    "queue_as": _set_queue,
    "wait": _set_wait,
    "wait_until": _set_wait_until,
    "priority": _set_priority,
    "retry_on": _set_retry_on,
    "discard_on": _set_discard_on,
}


def apply_option(job_class: type, key: str, value: Any) -> None:
    """Apply one configuration entry to ``job_class``.

    Raises:
        UnknownConfigurationError: If nothing on the job class answers to ``key``.
    """
    # An explicit value replaces whatever app default Celery copied on binding
    vars(job_class).get("_app_defaults", {}).pop(key, None)

    setter = CONFIGURATION_SETTERS.get(key)
    if setter is not None:
        setter(job_class, value)
        return

    if key.startswith("_") or key in RESERVED_ATTRIBUTES:
        raise UnknownConfigurationError(job_class, key)

    try:
        static = inspect.getattr_static(job_class, key)
    except AttributeError:
        raise UnknownConfigurationError(job_class, key) from None

    if isinstance(static, classmethod):
        getattr(job_class, key)(value)
    elif callable(static) or isinstance(static, (staticmethod, property)):
        # Instance behaviour such as apply_async or retry is not configuration
        raise UnknownConfigurationError(job_class, key)
    else:
        setattr(job_class, key, value)


def apply_configuration(job_class: type, configs: dict[str, Any], block: Callable[[type], Any] | None = None) -> None:
    """Apply a configuration bag and an optional block to ``job_class``."""
    for key, value in configs.items():
        apply_option(job_class, key, value)

    if block is not None:
        block(job_class)

    job_class.propagate_configuration()
    if configs or block is not None:
        logger.debug(
            f"Configured {job_class.__qualname__}",
            extra={"job": job_class.__qualname__, "options": sorted(configs)},
        )
