"""Structured JSON logging with run context."""
import logging
import sys
from typing import Any, TextIO

from pythonjsonlogger import jsonlogger

from eduflow.config import get_settings

RUN_CONTEXT_FIELDS = ("run_id", "workflow_id", "organization_id", "node_id")


class RunContextFilter(logging.Filter):
    """Add run context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add default run context fields if not present."""
        for name in RUN_CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with standardized field names."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to the log record."""
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        # Empty context fields are noise in every line
        for name in RUN_CONTEXT_FIELDS:
            if not getattr(record, name, None):
                log_record.pop(name, None)


def setup_logging(stream: TextIO | None = None) -> None:
    """Configure structured JSON logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(stream or sys.stdout)

    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)


class RunContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call extra with the adapter's own."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> logging.LoggerAdapter:
    """
    Get a logger with run context support.

    Args:
        name: Logger name (typically __name__)

    Returns:
        LoggerAdapter that can accept run context in extra dict
    """
    logger = logging.getLogger(name)
    return RunContextAdapter(logger, extra={})


def with_run_context(
    run_id: str | None = None,
    workflow_id: str | None = None,
    organization_id: str | None = None,
    node_id: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create an extra dict with run context for logging.

    Args:
        run_id: Run ID
        workflow_id: Workflow ID
        organization_id: Owning organization
        node_id: Node currently executing
        **kwargs: Additional context fields

    Returns:
        Dict to pass as extra parameter to logger methods
    """
    extra = kwargs.copy()
    if run_id:
        extra["run_id"] = run_id
    if workflow_id:
        extra["workflow_id"] = workflow_id
    if organization_id:
        extra["organization_id"] = organization_id
    if node_id:
        extra["node_id"] = node_id
    return extra
