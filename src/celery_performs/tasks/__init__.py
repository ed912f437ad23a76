"""Job infrastructure on top of Celery.

Key Components:
- BaseTask: Celery task with lifecycle logging
- ApplicationJob: default base of generated jobs (waits, policies, submission)
- Retry mechanisms: retry_on / discard_on policies and backoff strategies
- Configuration: option table applied to generated job classes
- Job registry: generated artifacts per declaring class and job metadata
"""

from .base import ApplicationJob, BaseTask, ConfiguredJob
from .configuration import CONFIGURATION_SETTERS, apply_configuration, apply_option
from .registry import (
    ContextArtifacts,
    JobRegistry,
    discover_jobs,
    get_job_info,
    list_jobs,
    registry,
)
from .retry import (
    DiscardPolicy,
    RetryPolicy,
    exponential_backoff,
    linear_backoff,
    polynomially_longer,
    resolve_retry_delay,
)
from .waiting import Waiting

__all__ = [
    # Base task
    "BaseTask",
    "ApplicationJob",
    "ConfiguredJob",
    "Waiting",
    # Configuration
    "CONFIGURATION_SETTERS",
    "apply_configuration",
    "apply_option",
    # Retry mechanisms
    "RetryPolicy",
    "DiscardPolicy",
    "exponential_backoff",
    "linear_backoff",
    "polynomially_longer",
    "resolve_retry_delay",
    # Job registry
    "ContextArtifacts",
    "JobRegistry",
    "registry",
    "get_job_info",
    "list_jobs",
    "discover_jobs",
]
