"""
Loguru setup shared by the API, the seed script and the database helpers
"""
import os
import sys
from datetime import datetime

from loguru import logger

from printshop.config import settings

_configured = False


def setup_logging(level: str = None, log_dir: str = None):
    """Route loguru to stderr and, when a log dir is configured, to rotating files"""
    global _configured
    if _configured:
        return logger

    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}",
    )

    log_dir = log_dir if log_dir is not None else settings.log_dir
    if log_dir:
        logger.add(
            os.path.join(log_dir, f"{datetime.now().strftime('%Y-%m-%d')}.log"),
            mode="a",
            level="INFO",
            format="{time} | {level} | {message}",
            rotation="5 MB",
            retention="7 days",
        )

    _configured = True
    logger.info(f"Logging initialized at level {(level or settings.log_level).upper()}")
    return logger
