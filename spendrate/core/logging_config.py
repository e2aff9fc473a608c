import logging
import sys

from spendrate.core.config import settings


def configure_logging(level: str = None) -> logging.Logger:
    """Install a single stdout handler on the package logger."""
    logger = logging.getLogger("spendrate")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    # Clear any handlers from a previous call (uvicorn reload)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger
