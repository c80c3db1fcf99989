import logging
import sys
from typing import Any

import structlog

JSON_FORMAT = "json"
CONSOLE_FORMAT = "console"


def configure_logging(level: int | str = logging.INFO, log_format: str = JSON_FORMAT) -> None:
    """
    Route structlog through stdlib logging on stderr.

    stdout is left to the CLI result table and the JSON event emitter.
    """
    renderer: Any
    if log_format == CONSOLE_FORMAT:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying the keptn context, project, stage and service of one invocation."""
    return structlog.get_logger().bind(**{k: v for k, v in kwargs.items() if v})
