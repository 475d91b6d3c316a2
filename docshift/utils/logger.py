"""Central logging configuration for the library."""

import logging
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-level logger. Handlers are left to the application."""
    return logging.getLogger(name)


def configure_logging(level: str = "WARNING", fmt: str = DEFAULT_FORMAT) -> None:
    """Install a stderr handler on the root logger. Called by the CLI and the server only."""
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=fmt, force=True)
