"""Logging setup for the accountability core."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """Install a single stream handler on the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    root = logging.getLogger("stakefit")
    root.setLevel(level.upper())

    if not any(getattr(h, "_stakefit", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._stakefit = True  # type: ignore[attr-defined]
        root.addHandler(handler)
