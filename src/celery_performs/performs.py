"""Generate Celery jobs and enqueue methods from plain methods.

Declaring ``performs`` for a method creates three things on the declaring
class:

- a job class (``PublishJob``) whose ``perform`` calls the method on the
  object the job was enqueued for,
- an instance method (``publish_later``) that enqueues that job,
- a class method (``publish_later_bulk``) that enqueues one job per object of
  a collection.

All job classes of a declaring class inherit from its shared ``Job`` class,
which carries common configuration such as the queue.

Usage:
    ```python
    from datetime import timedelta

    from celery_performs import Performs, performs

    @performs(queue="posts")
    class Post(Performs, Identification):
        @performs(queue="important", discard_on=DeserializationError)
        def publish(self):
            ...

        @performs(wait=timedelta(minutes=5))
        def retract(self, reason):
            ...

    post.publish_later()                  # Post.PublishJob on "important"
    post.retract_later(reason="spam")     # Post.RetractJob in five minutes
    Post.publish_later_bulk(posts)        # one PublishJob per post

    # Methods defined elsewhere can be declared afterwards
    Post.performs("archive", wait_until=lambda post: post.expires_at)
    ```
"""

import logging
from typing import Any, Callable

from .naming import BASE_JOB_NAME, NamingPolicy, bulk_name, job_class_name, later_name, strip_suffix
from .tasks.base import ApplicationJob
from .tasks.configuration import apply_configuration
from .tasks.registry import registry

logger = logging.getLogger(__name__)

Block = Callable[[type], Any]

GENERATED_MARKER = "_performs_generated"
LATER_METHODS_ATTRIBUTE = "performs_later_methods"


def _is_job_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, ApplicationJob)


def _is_generated(value: Any) -> bool:
    return getattr(getattr(value, "__func__", value), GENERATED_MARKER, False)


def _job_base_for(context: type) -> type[ApplicationJob]:
    base = getattr(context, "performs_job_base", ApplicationJob)
    if not _is_job_class(base):
        raise TypeError(f"{context.__qualname__}.performs_job_base must subclass ApplicationJob, got {base!r}")
    return base


def _define_nested(context: type, name: str, base: type, attrs: dict[str, Any] | None = None) -> type:
    namespace = {
        "__module__": context.__module__,
        "__qualname__": f"{context.__qualname__}.{name}",
        **(attrs or {}),
    }
    job = type(name, (base,), namespace)
    setattr(context, name, job)
    return job


def _install(context: type, name: str, value: Any) -> None:
    # Methods written in the class body win over generated ones
    current = vars(context).get(name)
    if current is None or _is_generated(current):
        setattr(context, name, value)


def _mark(function: Callable, context: type, name: str) -> Callable:
    function.__name__ = name
    function.__qualname__ = f"{context.__qualname__}.{name}"
    function.__module__ = context.__module__
    setattr(function, GENERATED_MARKER, True)
    return function


def ensure_base_job(context: type) -> type[ApplicationJob]:
    """Return the shared ``Job`` class of ``context``, creating it on first use."""
    artifacts = registry.artifacts_for(context)
    if artifacts.base_job is None:
        existing = vars(context).get(BASE_JOB_NAME)
        if _is_job_class(existing):
            artifacts.base_job = existing
        else:
            artifacts.base_job = _define_nested(context, BASE_JOB_NAME, _job_base_for(context))
            logger.debug(f"Defined {artifacts.base_job.__qualname__}")
    return artifacts.base_job


def _ensure_method_job(context: type, normalized: str) -> type[ApplicationJob]:
    artifacts = registry.artifacts_for(context)
    job = artifacts.method_jobs.get(normalized)
    if job is not None:
        return job

    base_job = ensure_base_job(context)
    class_name = job_class_name(normalized)
    task_name = f"{context.__module__}.{context.__qualname__}.{class_name}"

    job = vars(context).get(class_name)
    if _is_job_class(job):
        if "name" not in vars(job):
            job.name = task_name
    else:
        job = _define_nested(context, class_name, base_job, {"name": task_name})
        logger.debug(f"Defined {job.__qualname__}", extra={"task_name": task_name})

    artifacts.method_jobs[normalized] = job
    return job


def _generate_perform(job: type[ApplicationJob], target: str) -> None:
    installed = vars(job).get("perform")
    if installed is not None:
        previous = getattr(installed, "_performs_target", target)
        if previous != target:
            logger.warning(
                f"{job.__qualname__} already performs {previous!r}; not switching to {target!r}",
                extra={"job": job.__qualname__, "performs": previous, "declared": target},
            )
        return

    def perform(self: ApplicationJob, record: Any, *args: Any, **kwargs: Any) -> Any:
        return getattr(record, target)(*args, **kwargs)

    perform.__qualname__ = f"{job.__qualname__}.perform"
    perform._performs_target = target
    job.perform = perform


def _generate_bulk(context: type, job: type[ApplicationJob], normalized: str, suffix: str) -> str | None:
    if not callable(getattr(job, "perform_all_later", None)):
        return None

    name = bulk_name(normalized, suffix)

    def enqueue_all(records: Any) -> Any:
        return job.perform_all_later([job.scoped_by_wait(record).new(record) for record in records])

    if callable(getattr(context, "all", None)):
        def later_bulk(cls: type, collection: Any = None) -> Any:
            return enqueue_all(cls.all() if collection is None else collection)
    else:
        def later_bulk(cls: type, collection: Any) -> Any:
            return enqueue_all(collection)

    _mark(later_bulk, context, name)
    setattr(registry.artifacts_for(context).later_methods, name, later_bulk)
    _install(context, name, classmethod(later_bulk))
    return name


def _generate_later(context: type, job: type[ApplicationJob], normalized: str, suffix: str) -> str:
    name = later_name(normalized, suffix)

    def later(self: Any, *args: Any, **kwargs: Any) -> Any:
        return job.scoped_by_wait(self).perform_later(self, *args, **kwargs)

    _mark(later, context, name)
    later_methods = registry.artifacts_for(context).later_methods
    setattr(later_methods, name, later)
    if LATER_METHODS_ATTRIBUTE not in vars(context):
        setattr(context, LATER_METHODS_ATTRIBUTE, later_methods)
    _install(context, name, later)
    return name


def declare(
    context: type,
    method: str | None = None,
    block: Block | None = None,
    **configs: Any,
) -> tuple[str, str] | None:
    """Declare that ``method`` of ``context`` can be performed by a job.

    Without a method the configuration applies to the shared ``Job`` class.

    Args:
        context: The declaring class
        method: Method name, optionally ending in ``!`` or ``?``
        block: Called with the job class for configuration a bag can't express
        **configs: Job options (``queue``, ``wait``, ``wait_until``,
            ``retry_on``, ``discard_on`` or any Celery task attribute)

    Returns:
        ``(normalized_name, later_method_name)``, or None without a method

    Raises:
        UnknownConfigurationError: If an option matches nothing on the job class
    """
    if method is None:
        apply_configuration(ensure_base_job(context), configs, block)
        return None

    naming: NamingPolicy = getattr(context, "performs_naming_policy", strip_suffix)
    normalized, suffix = naming(str(method))

    job = _ensure_method_job(context, normalized)
    apply_configuration(job, configs, block)
    _generate_perform(job, normalized + suffix)
    job.register()

    bulk = _generate_bulk(context, job, normalized, suffix)
    later = _generate_later(context, job, normalized, suffix)

    logger.debug(
        f"{context.__qualname__} performs {method}",
        extra={"job": job.name, "later_method": later, "bulk_method": bulk},
    )
    return normalized, later


class _Declaration:
    """Stands in for a decorated method until its class exists."""

    def __init__(self, function: Any, declarations: list[tuple[Block | None, dict[str, Any]]]) -> None:
        self.function = function
        # Innermost decorator first
        self.declarations = declarations

    def stacked(self, block: Block | None, configs: dict[str, Any]) -> "_Declaration":
        return _Declaration(self.function, [*self.declarations, (block, configs)])

    def __set_name__(self, owner: type, name: str) -> None:
        setattr(owner, name, self.function)
        for block, configs in self.declarations:
            declare(owner, name, block, **configs)


def performs(target: Any = None, /, *, block: Block | None = None, **configs: Any) -> Any:
    """Decorator form of ``declare``.

    On a method, declares that method once the class is created. On a class,
    configures the class's shared ``Job``.
    """
    if isinstance(target, str):
        raise TypeError("performs() decorates methods and classes; use declare(context, name) for names")

    def decorate(target: Any) -> Any:
        if isinstance(target, type):
            declare(target, None, block, **configs)
            return target
        if isinstance(target, _Declaration):
            return target.stacked(block, configs)
        return _Declaration(target, [(block, configs)])

    if target is None:
        return decorate
    return decorate(target)


class Performs:
    """Mixin giving a class the ``performs`` classmethod and its defaults."""

    performs_job_base = ApplicationJob
    performs_naming_policy = staticmethod(strip_suffix)

    @classmethod
    def performs(cls, method: str | None = None, /, block: Block | None = None, **configs: Any) -> tuple[str, str] | None:
        return declare(cls, method, block, **configs)
