"""Celery application factory.

Every generated job class is registered with the app returned by
``get_celery_app()`` unless a context picks a job base bound elsewhere.

Usage:
    ```python
    from celery_performs.core.celery_app import celery_app

    celery_app.tasks  # includes e.g. "blog.Post.PublishJob"
    ```
"""

import logging
from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_celery_app(settings: Settings | None = None) -> Celery:
    """Create and configure a Celery application.

    Args:
        settings: Application settings. If None, will fetch from get_settings().

    Returns:
        Configured Celery application instance
    """
    if settings is None:
        settings = get_settings()

    celery_app = Celery(
        "performs",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        accept_content=settings.CELERY_ACCEPT_CONTENT,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        timezone=settings.CELERY_TIMEZONE,
        enable_utc=settings.CELERY_ENABLE_UTC,
        task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
        task_default_queue=settings.CELERY_TASK_DEFAULT_QUEUE,
    )

    @setup_logging.connect
    def config_loggers(*args: Any, **kwargs: Any) -> None:
        """Keep Celery on the root logger configuration."""
        pass

    logger.debug("Celery application configured", extra={"broker": settings.CELERY_BROKER_URL})
    return celery_app


# Global Celery app instance
celery_app = create_celery_app()


def get_celery_app() -> Celery:
    """Get the global Celery application instance.

    Returns:
        Global Celery application instance
    """
    return celery_app
