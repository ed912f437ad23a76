"""Base task classes for generated jobs.

``BaseTask`` adds lifecycle logging to Celery tasks. ``ApplicationJob`` is the
default job base every generated ``Job`` class inherits from: it carries the
wait settings, retry and discard policies, argument serialization and
the ``perform_later`` / ``perform_all_later`` submission primitives.

Usage:
    ```python
    from celery_performs.tasks.base import ApplicationJob

    class NotifierJob(ApplicationJob):
        name = "notifications.NotifierJob"
        queue = "mailers"

        def perform(self, user, subject):
            user.notify(subject)

    NotifierJob.register()
    NotifierJob.set(wait=timedelta(minutes=5)).perform_later(user, "hello")
    ```
"""

import logging
from typing import Any, Iterable

from celery import Celery, Task, group

from ..core.celery_app import get_celery_app
from ..exceptions import PerformsError
from ..identification import deserialize_arguments, serialize_arguments
from .retry import DiscardPolicy, Policy, RetryPolicy, add_policy, as_exception_types, find_policy
from .waiting import Waiting, delay_seconds

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """Base task class with lifecycle logging.

    Features:
    - Automatic error logging
    - Success and retry logging with task metadata
    """

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict[str, Any], einfo: Any) -> None:
        """Called when task fails.

        Args:
            exc: Exception that caused the failure
            task_id: Task ID
            args: Task positional arguments
            kwargs: Task keyword arguments
            einfo: Exception info
        """
        logger.error(
            f"Task {self.name} (ID: {task_id}) failed",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "task_args": args,
                "task_kwargs": kwargs,
                "exception": str(exc),
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval: Any, task_id: str, args: tuple, kwargs: dict[str, Any]) -> None:
        logger.info(
            f"Task {self.name} (ID: {task_id}) completed successfully",
            extra={
                "task_id": task_id,
                "task_name": self.name,
            },
        )
        super().on_success(retval, task_id, args, kwargs)

    def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict[str, Any], einfo: Any) -> None:
        logger.warning(
            f"Task {self.name} (ID: {task_id}) retrying",
            extra={
                "task_id": task_id,
                "task_name": self.name,
                "retry_count": self.request.retries,
                "max_retries": self.max_retries,
                "exception": str(exc),
            },
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


def scheduling_options(options: dict[str, Any]) -> dict[str, Any]:
    """Translate job options into ``apply_async`` keyword arguments.

    ``wait`` becomes a countdown in seconds and ``wait_until`` an eta. When
    both are given the absolute ``wait_until`` decides.
    """
    translated = {key: options[key] for key in ("queue", "priority") if options.get(key) is not None}

    if options.get("wait_until") is not None:
        translated["eta"] = options["wait_until"]
    elif options.get("wait") is not None:
        translated["countdown"] = delay_seconds(options["wait"])

    return translated


class ConfiguredJob:
    """A job class paired with scheduling options, as returned by ``Job.set``."""

    def __init__(self, job_class: type["ApplicationJob"], options: dict[str, Any]) -> None:
        self.job_class = job_class
        self.options = options

    def perform_later(self, *args: Any, **kwargs: Any) -> Any:
        return self.job_class.enqueue(args, kwargs, self.options)

    def new(self, *args: Any, **kwargs: Any) -> Any:
        return self.job_class.build(args, kwargs, self.options)

    def set(self, **options: Any) -> "ConfiguredJob":
        return ConfiguredJob(self.job_class, {**self.options, **options})

    def __repr__(self) -> str:
        return f"<ConfiguredJob {self.job_class.__qualname__} {self.options!r}>"


class ApplicationJob(Waiting, BaseTask):
    """Default base for generated jobs.

    Subclasses implement ``perform``; Celery calls ``run``, which locates the
    domain objects referenced by global id and applies retry and discard
    policies around ``perform``.
    """

    # Celery application the job registers with; None means the global app.
    celery_app: Celery | None = None

    queue: str | None = None
    typing = False

    rescue_policies: tuple[Policy, ...] = ()

    def perform(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError(f"{type(self).__qualname__} must implement perform()")

    def run(self, *args: Any, **kwargs: Any) -> Any:
        try:
            args, kwargs = deserialize_arguments(args, kwargs)
            return self.perform(*args, **kwargs)
        except Exception as exc:
            return self.rescue(exc)

    def rescue(self, exc: Exception) -> Any:
        """Apply the first matching retry or discard policy, else re-raise."""
        policy = find_policy(self.rescue_policies, exc)
        if policy is None:
            raise exc

        if isinstance(policy, DiscardPolicy):
            logger.warning(
                f"Discarded {self.name} due to {type(exc).__name__}",
                extra={
                    "task_id": self.request.id,
                    "task_name": self.name,
                    "exception": str(exc),
                },
            )
            return None

        executions = (self.request.retries or 0) + 1
        if policy.exhausted(executions):
            logger.error(
                f"Stopped retrying {self.name} after {executions} attempts",
                extra={"task_id": self.request.id, "task_name": self.name, "exception": str(exc)},
            )
            raise exc

        raise self.retry(exc=exc, countdown=policy.delay(executions), max_retries=policy.attempts - 1)

    # -- class level configuration -----------------------------------------

    @classmethod
    def retry_on(cls, *exceptions: type[BaseException], wait: Any = 3, attempts: int = 5) -> None:
        cls.rescue_policies = add_policy(
            cls.rescue_policies,
            RetryPolicy(as_exception_types(exceptions), wait=wait, attempts=attempts),
        )

    @classmethod
    def discard_on(cls, *exceptions: type[BaseException]) -> None:
        cls.rescue_policies = add_policy(cls.rescue_policies, DiscardPolicy(as_exception_types(exceptions)))

    @classmethod
    def queue_as(cls, queue: Any) -> None:
        cls.queue = str(queue)

    # -- registration ------------------------------------------------------

    @classmethod
    def get_app(cls) -> Celery:
        return cls.celery_app or get_celery_app()

    @classmethod
    def bind(cls, app: Celery) -> Celery:
        # Celery copies app defaults (priority, acks_late, ...) onto the class
        # for every unset option; remember which ones so a shared Job
        # configured later can still take over.
        unset = [name for name, _ in cls.from_config if getattr(cls, name, None) is None]
        bound = super().bind(app)
        cls._app_defaults = {name: vars(cls)[name] for name in unset if name in vars(cls)}
        return bound

    @classmethod
    def inherit_configuration(cls) -> None:
        """Drop copied app defaults where a base class now sets the option."""
        defaults = vars(cls).get("_app_defaults", {})
        for name, value in list(defaults.items()):
            if vars(cls).get(name, value) is not value:
                # Reassigned since binding
                del defaults[name]
                continue
            inherited = next((vars(base)[name] for base in cls.__mro__[1:] if name in vars(base)), None)
            if inherited is not None:
                delattr(cls, name)
                del defaults[name]

    @classmethod
    def propagate_configuration(cls) -> None:
        """Refresh this job and its subclasses after the class was reconfigured."""
        cls.reset_exec_options()
        for subclass in cls.__subclasses__():
            subclass.inherit_configuration()
            subclass.propagate_configuration()

    @classmethod
    def register(cls) -> "ApplicationJob":
        """Register the job with its Celery app and return the task instance."""
        if not cls.name:
            raise PerformsError(f"{cls.__qualname__} needs a task name before it can be registered")

        app = cls.get_app()
        task = app.tasks.get(cls.name)
        if type(task) is cls:
            return task

        task = app.register_task(cls())
        logger.debug(f"Registered job {cls.name}", extra={"task_name": cls.name, "queue": cls.queue})
        return task

    @classmethod
    def registered_task(cls) -> "ApplicationJob":
        task = cls.get_app().tasks.get(cls.name)
        if type(task) is cls:
            return task
        return cls.register()

    @classmethod
    def reset_exec_options(cls) -> None:
        """Drop Celery's cached routing options after the class was reconfigured."""
        cls._exec_options = None
        task = cls.get_app().tasks.get(cls.name) if cls.name else None
        if type(task) is cls:
            task._exec_options = None

    # -- submission --------------------------------------------------------

    @classmethod
    def set(cls, **options: Any) -> ConfiguredJob:
        return ConfiguredJob(cls, options)

    @classmethod
    def perform_later(cls, *args: Any, **kwargs: Any) -> Any:
        return cls.enqueue(args, kwargs, {})

    @classmethod
    def new(cls, *args: Any, **kwargs: Any) -> Any:
        return cls.build(args, kwargs, {})

    @classmethod
    def enqueue(cls, args: tuple, kwargs: dict[str, Any], options: dict[str, Any]) -> Any:
        task = cls.registered_task()
        job_args, job_kwargs = serialize_arguments(args, kwargs)
        async_options = scheduling_options(options)

        result = task.apply_async(args=job_args, kwargs=job_kwargs, **async_options)
        logger.info(
            f"Enqueued {cls.name}",
            extra={
                "task_id": getattr(result, "id", None),
                "task_name": cls.name,
                "queue": async_options.get("queue", task.queue),
                "countdown": async_options.get("countdown"),
                "eta": str(async_options["eta"]) if "eta" in async_options else None,
            },
        )
        return result

    @classmethod
    def build(cls, args: tuple, kwargs: dict[str, Any], options: dict[str, Any]) -> Any:
        """Prepare an immutable signature for bulk submission."""
        task = cls.registered_task()
        job_args, job_kwargs = serialize_arguments(args, kwargs)
        return task.si(*job_args, **job_kwargs).set(**scheduling_options(options))

    @classmethod
    def perform_all_later(cls, jobs: Iterable[Any]) -> Any:
        """Submit prepared signatures (from ``new``) in a single group."""
        jobs = list(jobs)
        if not jobs:
            return None

        result = group(jobs).apply_async()
        logger.info(
            f"Enqueued {len(jobs)} jobs in bulk",
            extra={"task_names": sorted({job.task for job in jobs}), "count": len(jobs)},
        )
        return result

