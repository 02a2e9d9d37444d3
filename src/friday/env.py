"""Logging setup for friday.

Every module logs through the ``friday`` logger; the CLI attaches a
RichHandler so pipeline progress and event traces render on stderr.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOGGER = logging.getLogger("friday")


def configure_logging(level: str | None = None) -> None:
    """Route log records to a stderr RichHandler.

    *level* defaults to the ``LOG_LEVEL`` environment variable, then INFO.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_time=False,
                show_path=False,
                rich_tracebacks=False,
            )
        ],
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
