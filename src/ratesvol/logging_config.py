"""
Logging setup for scripts and notebooks.

The library itself only creates module-level loggers and never configures
handlers on import.
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level for the root logger
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("ratesvol").setLevel(level)


__all__ = ["setup_logging", "LOG_FORMAT"]
