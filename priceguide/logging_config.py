"""Logging setup for scripts and jobs that use the cache layer."""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging.

    Args:
        level: Level name (e.g. "DEBUG"). Defaults to LOG_LEVEL from env.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)

    # redis-py is chatty at DEBUG
    logging.getLogger("redis").setLevel(max(numeric_level, logging.INFO))
