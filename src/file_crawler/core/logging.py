"""Logging configuration."""

import logging
import sys


def setup_logging(level: str | None = None) -> None:
    """Configure application logging.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL setting.
    """
    if level is None:
        from file_crawler.config import get_settings

        level = get_settings().log_level

    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Third-party clients log every HTTP request at INFO.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        logging.Logger: Configured logger instance.
    """
    return logging.getLogger(name)
