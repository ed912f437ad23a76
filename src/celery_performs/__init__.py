"""Generate Celery jobs and ``*_later`` methods from plain methods."""

from .exceptions import (
    DeserializationError,
    PerformsError,
    RecordNotFound,
    SerializationError,
    UnknownConfigurationError,
)
from .identification import GlobalID, Identification, Locator
from .performs import Performs, declare, ensure_base_job, performs
from .tasks.base import ApplicationJob, ConfiguredJob

__version__ = "0.1.0"

__all__ = [
    "ApplicationJob",
    "ConfiguredJob",
    "DeserializationError",
    "GlobalID",
    "Identification",
    "Locator",
    "Performs",
    "PerformsError",
    "RecordNotFound",
    "SerializationError",
    "UnknownConfigurationError",
    "declare",
    "ensure_base_job",
    "performs",
]
