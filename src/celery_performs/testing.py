"""Test helpers for code that enqueues generated jobs.

``JobRecorder`` intercepts Celery submissions (single ``apply_async`` calls
and ``group`` submissions) so tests can inspect what was enqueued and run the
jobs in-process afterwards. Nothing reaches a broker while it is active.

Usage:
    ```python
    from celery_performs.testing import JobRecorder

    def test_retract_is_delayed(post):
        with JobRecorder() as jobs:
            post.retract_later(reason="spam")

        jobs.assert_enqueued_with(
            job=Post.RetractJob,
            args=[post],
            kwargs={"reason": "spam"},
            at=datetime.now(timezone.utc) + timedelta(minutes=5),
        )
        jobs.perform_enqueued_jobs()
    ```
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest import mock

from celery import Task, group
from celery.canvas import maybe_signature
from celery.exceptions import Retry

from .core.celery_app import get_celery_app
from .identification import serialize_arguments

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(seconds=2)


@dataclass
class EnqueuedJob:
    """One recorded submission."""

    task: Task
    args: list
    kwargs: dict[str, Any]
    options: dict[str, Any]
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    performed: bool = False

    @property
    def job(self) -> type:
        return type(self.task)

    @property
    def queue(self) -> str | None:
        return self.options.get("queue") or getattr(self.task, "queue", None)

    @property
    def scheduled_at(self) -> datetime | None:
        if self.options.get("eta") is not None:
            return self.options["eta"]
        if self.options.get("countdown") is not None:
            return self.enqueued_at + timedelta(seconds=self.options["countdown"])
        return None

    def perform(self) -> Any:
        try:
            result = self.task.apply(
                args=self.args,
                kwargs=self.kwargs,
                task_id=self.options.get("task_id"),
                retries=self.options.get("retries"),
                throw=True,
            )
        finally:
            self.performed = True
        return result.get(propagate=True) if result is not None else None


def _same_time(actual: datetime | None, expected: datetime, tolerance: timedelta) -> bool:
    if actual is None:
        return False
    if (actual.tzinfo is None) != (expected.tzinfo is None):
        actual = actual.replace(tzinfo=None)
        expected = expected.replace(tzinfo=None)
    return abs(actual - expected) <= tolerance


class JobRecorder:
    """Records job submissions instead of sending them to the broker."""

    def __init__(self) -> None:
        self.jobs: list[EnqueuedJob] = []
        self._patches: list[Any] = []

    def __enter__(self) -> "JobRecorder":
        recorder = self

        def record_apply_async(task: Task, args: Any = None, kwargs: Any = None, **options: Any) -> EnqueuedJob:
            return recorder.record(task, args, kwargs, options)

        def record_group(grp: group, args: Any = None, kwargs: Any = None, **options: Any) -> list[EnqueuedJob]:
            return [recorder.record_signature(sig, options) for sig in grp.tasks]

        self._patches = [
            mock.patch.object(Task, "apply_async", record_apply_async),
            mock.patch.object(group, "apply_async", record_group),
        ]
        for patch in self._patches:
            patch.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        for patch in reversed(self._patches):
            patch.stop()
        self._patches = []

    def record(self, task: Task, args: Any, kwargs: Any, options: dict[str, Any]) -> EnqueuedJob:
        entry = EnqueuedJob(task=task, args=list(args or ()), kwargs=dict(kwargs or {}), options=dict(options))
        self.jobs.append(entry)
        logger.debug(f"Recorded {task.name}", extra={"task_name": task.name})
        return entry

    def record_signature(self, sig: Any, options: dict[str, Any]) -> EnqueuedJob:
        sig = maybe_signature(sig)
        try:
            task = sig.type
        except KeyError:
            task = get_celery_app().tasks[sig.task]
        return self.record(task, sig.args, sig.kwargs, {**sig.options, **options})

    # -- queries -----------------------------------------------------------

    def enqueued(self, job: type | None = None) -> list[EnqueuedJob]:
        return [entry for entry in self.jobs if job is None or entry.job is job]

    def pending(self, job: type | None = None) -> list[EnqueuedJob]:
        return [entry for entry in self.enqueued(job) if not entry.performed]

    def clear(self) -> None:
        self.jobs.clear()

    def assert_enqueued_jobs(self, count: int, job: type | None = None) -> None:
        actual = len(self.enqueued(job))
        assert actual == count, f"Expected {count} enqueued jobs, found {actual}"

    def assert_no_enqueued_jobs(self, job: type | None = None) -> None:
        self.assert_enqueued_jobs(0, job)

    def assert_enqueued_with(
        self,
        job: type | None = None,
        args: list | tuple | None = None,
        kwargs: dict[str, Any] | None = None,
        queue: str | None = None,
        at: datetime | None = None,
        tolerance: timedelta = DEFAULT_TOLERANCE,
    ) -> EnqueuedJob:
        """Assert a matching job was enqueued and return it.

        ``args`` and ``kwargs`` are compared in serialized form, so domain
        objects match the global ids they were enqueued as.
        ``at`` is compared with a tolerance when given.
        """
        expected_args, expected_kwargs = serialize_arguments(args or (), kwargs or {})

        for entry in self.enqueued(job):
            if args is not None and entry.args != expected_args:
                continue
            if kwargs is not None and entry.kwargs != expected_kwargs:
                continue
            if queue is not None and entry.queue != queue:
                continue
            if at is not None and not _same_time(entry.scheduled_at, at, tolerance):
                continue
            return entry

        described = [
            (entry.job.__qualname__, entry.args, entry.kwargs, entry.queue, entry.scheduled_at)
            for entry in self.jobs
        ]
        raise AssertionError(f"No enqueued job matched {job!r} args={args!r} kwargs={kwargs!r}; enqueued: {described!r}")

    # -- execution ---------------------------------------------------------

    def perform(self, entry: EnqueuedJob) -> Any:
        """Run one recorded job.

        A job that asks to be retried is recorded again as a pending job,
        with the retry count and countdown Celery computed, and the
        ``Retry`` is returned instead of raised.
        """
        try:
            return entry.perform()
        except Retry as exc:
            if exc.sig is None:
                raise
            retried = self.record_signature(exc.sig, {})
            logger.debug(
                f"Recorded retry of {entry.task.name}",
                extra={"task_name": entry.task.name, "retries": retried.options.get("retries")},
            )
            return exc

    def perform_enqueued_jobs(self, job: type | None = None) -> list[Any]:
        """Run pending jobs in-process, including jobs they enqueue themselves."""
        results = []
        pending = self.pending(job)
        while pending:
            for entry in pending:
                results.append(self.perform(entry))
            pending = self.pending(job)
        return results
