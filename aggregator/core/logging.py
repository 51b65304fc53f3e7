"""
Structured Logging Configuration

structlog setup shared by the API process and the scheduled jobs.
Job runs bind `job` and `run_id` so every line of one sync or enrichment
run can be grouped.
"""

import logging
import sys
import uuid
from typing import Optional

import structlog
from structlog.types import Processor

from ..config import get_settings

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def setup_logging(log_level: Optional[str] = None):
    """
    Configure structured logging for the application.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    settings = get_settings()

    if log_level is None:
        log_level = settings.log_level or ("DEBUG" if settings.debug else "INFO")
    level = getattr(logging, log_level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.environment == "development":
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    else:
        renderer = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "aggregator") -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_job_context(job: str) -> str:
    """Tag subsequent log lines in this task with the job name and a fresh run id."""
    run_id = uuid.uuid4().hex[:8]
    structlog.contextvars.bind_contextvars(job=job, run_id=run_id)
    return run_id


def clear_job_context():
    structlog.contextvars.unbind_contextvars("job", "run_id")
