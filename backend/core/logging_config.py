"""Structured logging configuration using structlog.

Both processes log through the same pipeline. Every event carries the
process ``component`` (``api`` or ``worker``); events emitted while a
worker loop handles a job also carry ``worker`` and ``run_id``, bound as
context variables by ``worker.loop.WorkerLoop``.
"""

import logging
import sys
from typing import Optional

import structlog

from app.config import Settings, get_settings


def add_component(component: str):
    """Build a processor that stamps each event with the process component."""

    def processor(logger, method_name, event_dict):
        event_dict.setdefault("component", component)
        return event_dict

    return processor


def setup_logging(settings: Optional[Settings] = None, component: str = "api") -> None:
    """Configure structured logging for the API or worker process.

    Console output when ``ENVIRONMENT`` is development or ``LOG_FORMAT`` is
    ``text``; one JSON object per line otherwise.
    """
    settings = settings or get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        add_component(component),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.LOG_FORMAT == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Node log lines are the run's output; keep them even when LOG_LEVEL is raised
    logging.getLogger("flowrunner.run").setLevel(logging.INFO)

    quiet = ["uvicorn.access", "httpx", "httpcore", "aiosqlite", "redis"]
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQLALCHEMY_ECHO else logging.WARNING
    )
