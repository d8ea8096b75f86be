"""
Structured logging for the docs chat service.

Every module logs through the structlog `logger` defined here with key/value
context (`logger.info("Document processed", document_id=..., chunks=...)`).
Console output in development, one JSON object per line with JSON_LOGS=true.
"""
import logging
import sys

import structlog

from .config import get_settings

# third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "sentence_transformers", "urllib3", "multipart")


def _renderer(json_logs: bool):
    if json_logs:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty(),
                                          exception_formatter=structlog.dev.plain_traceback)]


def setup_logging(log_level: str = "INFO", json_logs: bool = False):
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR (unknown names mean INFO)
        json_logs: JSON lines instead of the coloured console renderer
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # uvicorn and SQLAlchemy log through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            *_renderer(json_logs),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return structlog.get_logger("docchat")


_settings = get_settings()
logger = setup_logging(log_level=_settings.log_level, json_logs=_settings.json_logs)
