"""Exceptions raised by the job conventions.

Everything that goes wrong while a job actually runs belongs to Celery or the
ORM and is propagated untouched. Only the declaration and the argument
boundary have errors of their own.
"""


class PerformsError(Exception):
    """Base class for all celery_performs errors."""


class UnknownConfigurationError(PerformsError, AttributeError):
    """A configuration key matches no setter or attribute on the job class."""

    def __init__(self, job_class: type, option: str) -> None:
        self.job_class = job_class
        self.option = option
        super().__init__(f"{job_class.__name__} has no configuration option {option!r}")


class SerializationError(PerformsError):
    """An argument could not be turned into something a job can carry."""


class DeserializationError(PerformsError):
    """A job argument could not be turned back into an object."""


class RecordNotFound(DeserializationError):
    """A global id points at a record that no longer exists."""

    def __init__(self, model: str, model_id: str) -> None:
        self.model = model
        self.model_id = model_id
        super().__init__(f"Couldn't find {model} with id={model_id}")
