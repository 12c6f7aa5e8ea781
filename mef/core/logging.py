"""structlog setup for the MEF backend.

Every record, from structlog or from the stdlib loggers of uvicorn, SQLAlchemy
and httpx, goes through one ProcessorFormatter so the JSON lines
share ``service``, ``correlation_id`` and timestamp fields.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "mef-backend"

# Third-party loggers kept at WARNING unless overridden
QUIET_LOGGERS = ("uvicorn.access", "httpx", "sqlalchemy.engine")


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_structlog(
    log_level: str = "INFO",
    json_logs: bool = True,
    logger_levels: dict[str, str] | None = None,
) -> None:
    """Route structlog and stdlib logging to stdout.

    Must run before the other mef modules are imported: loggers created
    earlier keep the default processor chain.

    Args:
        log_level: Root level
        json_logs: JSON lines when True, ConsoleRenderer otherwise
        logger_levels: Per-logger levels applied over QUIET_LOGGERS
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    # UUIDs, Decimals and datetimes in event fields render as strings
    renderer = structlog.processors.JSONRenderer(default=str) if json_logs else structlog.dev.ConsoleRenderer()

    levels = {name: "WARNING" for name in QUIET_LOGGERS}
    levels.update(logger_levels or {})

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {name: {"level": level} for name, level in levels.items()},
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
