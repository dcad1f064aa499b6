"""Logging configuration."""

import logging
import sys

from store_tenancy.core.config import get_settings


def setup_logging(level: int | None = None) -> None:
    """Configure process-wide logging to stdout.

    Level is DEBUG when settings.debug is True, otherwise INFO, unless an
    explicit level is given (scripts pass --verbose through here). httpx
    request logging is kept at WARNING so tenant URLs with keys in query
    strings never reach INFO logs.
    """
    if level is None:
        level = logging.DEBUG if get_settings().debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
