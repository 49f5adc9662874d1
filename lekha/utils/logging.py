import logging
import sys

import structlog

from lekha.config import Config


def configure_logging():
    """Route stdlib and structlog output through one structured pipeline."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=Config.LOG_LEVEL.upper(),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if Config.LOG_JSON
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
