"""
Structured (JSON) logging configuration for celery_performs.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger import jsonlogger

from ..config import Settings, get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that stamps every record with the same base fields.

    Job lifecycle records carry ``job``, ``task_id`` and friends through
    ``extra``; those end up next to the fields added here.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)

        if 'message' not in log_record and hasattr(record, 'getMessage'):
            log_record['message'] = record.getMessage()


def resolve_log_level(settings: Settings) -> str:
    """
    Pick the log level name for the given settings.

    An explicit LOG_LEVEL wins; otherwise development logs at DEBUG and every
    other environment at INFO.
    """
    log_level_str = settings.LOG_LEVEL.upper()
    if not log_level_str:
        log_level_str = "DEBUG" if settings.ENVIRONMENT.lower() == "development" else "INFO"
    return log_level_str


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structured JSON logging on the root logger.

    Call once at process start, in the web process and in the Celery worker.

    Environment Variables:
        LOG_LEVEL: Desired log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        ENVIRONMENT: Application environment (development, production, staging)
    """
    if settings is None:
        settings = get_settings()

    environment = settings.ENVIRONMENT.lower()
    log_level_str = resolve_log_level(settings)
    log_level = getattr(logging, log_level_str, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    json_formatter = CustomJsonFormatter(
        fmt='%(timestamp)s %(level)s %(name)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S',
        static_fields={
            'environment': environment,
            'application': 'celery-performs',
        }
    )

    console_handler.setFormatter(json_formatter)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Structured logging configured",
        extra={
            "log_level": log_level_str,
            "environment": environment,
        }
    )

    # Celery and kombu are chatty at DEBUG
    logging.getLogger("celery").setLevel(max(log_level, logging.INFO))
    logging.getLogger("kombu").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name of the logger (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
