"""Registry of generated jobs and enqueue methods.

Every class that declares ``performs`` gets one ``ContextArtifacts`` entry
holding its base job, its method jobs keyed by normalized method name and the
namespace its generated ``_later`` functions live in. Declarations happen at
class-definition time, so the registry is written once per declaration and
read afterwards.

Usage:
    ```python
    from celery_performs.tasks.registry import get_job_info, list_jobs, registry

    registry.job_for(Post, "publish")      # Post.PublishJob
    get_job_info("blog.Post.PublishJob")   # {"name": ..., "queue": ..., ...}
    list_jobs(queue="mailers")
    ```
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from celery import Celery

from ..core.celery_app import get_celery_app

logger = logging.getLogger(__name__)


@dataclass
class ContextArtifacts:
    """Everything generated on behalf of one declaring class."""

    context: type
    later_methods: type
    base_job: type | None = None
    method_jobs: dict[str, type] = field(default_factory=dict)

    def generated_names(self) -> list[str]:
        return sorted(name for name in vars(self.later_methods) if not name.startswith("__"))


class JobRegistry:
    """Explicit table from declaring class to its generated artifacts."""

    def __init__(self) -> None:
        self._contexts: dict[type, ContextArtifacts] = {}

    def get(self, context: type) -> ContextArtifacts | None:
        return self._contexts.get(context)

    def artifacts_for(self, context: type) -> ContextArtifacts:
        artifacts = self._contexts.get(context)
        if artifacts is None:
            later_methods = type(
                f"{context.__name__}LaterMethods",
                (),
                {"__module__": context.__module__, "__qualname__": f"{context.__qualname__}.LaterMethods"},
            )
            artifacts = ContextArtifacts(context=context, later_methods=later_methods)
            self._contexts[context] = artifacts
            logger.debug(f"Tracking job declarations for {context.__qualname__}")
        return artifacts

    def job_for(self, context: type, method: str) -> type | None:
        artifacts = self._contexts.get(context)
        if artifacts is None:
            return None
        return artifacts.method_jobs.get(method)

    def jobs(self) -> list[type]:
        return [job for artifacts in self._contexts.values() for job in artifacts.method_jobs.values()]

    def contexts(self) -> list[type]:
        return list(self._contexts)

    def __contains__(self, context: type) -> bool:
        return context in self._contexts


# Process-wide registry, written at class-definition time
registry = JobRegistry()


def _describe(job: type) -> dict[str, Any]:
    return {
        "name": job.name,
        "job": job.__qualname__,
        "module": job.__module__,
        "queue": job.queue,
        "priority": job.priority,
        "delayed": bool(job.wait or job.wait_until),
        "policies": [type(policy).__name__ for policy in job.rescue_policies],
    }


def get_job_info(task_name: str) -> dict[str, Any] | None:
    """Get metadata for a generated job by its Celery task name.

    Args:
        task_name: Task name, e.g. ``"blog.Post.PublishJob"``

    Returns:
        Job metadata dictionary or None if not found
    """
    for job in registry.jobs():
        if job.name == task_name:
            return _describe(job)
    return None


def list_jobs(context: type | None = None, queue: str | None = None) -> list[dict[str, Any]]:
    """List generated jobs, optionally filtered.

    Args:
        context: Only jobs declared on this class
        queue: Only jobs routed to this queue

    Returns:
        List of job metadata dictionaries
    """
    if context is not None:
        artifacts = registry.get(context)
        jobs = list(artifacts.method_jobs.values()) if artifacts else []
    else:
        jobs = registry.jobs()

    described = [_describe(job) for job in jobs]
    if queue:
        described = [info for info in described if info["queue"] == queue]
    return described


def discover_jobs(app: Celery | None = None) -> dict[str, Any]:
    """Cross-check the Celery app's tasks against the generated jobs.

    Returns:
        Dictionary of task name -> {"name", "generated", "metadata"}
    """
    app = app or get_celery_app()
    discovered = {}
    for task_name in app.tasks.keys():
        if task_name.startswith("celery."):  # Skip internal Celery tasks
            continue
        metadata = get_job_info(task_name)
        discovered[task_name] = {
            "name": task_name,
            "generated": metadata is not None,
            "metadata": metadata,
        }
    return discovered
