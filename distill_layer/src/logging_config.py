"""Shared logging configuration for the distillation engine.

Call ``configure_logging()`` once at a CLI entry point. The library modules
only create named loggers and never touch the root logger themselves.
"""

import logging
from typing import Union


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Attach a console handler to the root logger.

    Only configures if the root logger has no handlers (idempotent).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if root.handlers:
        return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)
    root.setLevel(level)
