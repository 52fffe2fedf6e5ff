"""Logging setup shared by the CLI and the API."""
import logging
import sys

from cm_orders.config import config

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once from LOG_LEVEL."""
    resolved = (level or config.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    # Quieten library loggers at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
