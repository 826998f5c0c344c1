"""
Logging configuration
"""

import logging
import sys
from core.config import settings


class ETLContextFormatter(logging.Formatter):
    """Appends the structured ETL context (if any) to the log line"""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        etl_context = getattr(record, "etl_context", None)
        if etl_context:
            context_str = ", ".join(
                f"{k}={v}" for k, v in etl_context.items()
                if v is not None and k != "stack"
            )
            message = f"{message} | {context_str}"
        return message


def setup_logging():
    """Configure application logging"""

    # Get log level from settings
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ETLContextFormatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # Set SQLAlchemy and HTTP client logging to WARNING to reduce noise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {settings.LOG_LEVEL} level")
