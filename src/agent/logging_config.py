# src/agent/logging_config.py
"""
Central logging configuration for the mbot runtime.

Call configure_logging() from your main entrypoint once, for example:

    from agent.logging_config import configure_logging
    configure_logging(logging.DEBUG)

After that, instruction lifecycle logs (instruction.manager), module
lifecycle logs (modules.base) and offline world logs (game.offline) are
visible on stdout.
"""

from __future__ import annotations

import logging
import sys
from typing import Union


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging if no handlers are attached yet.

    Args:
        level: default logging level (logging.INFO, "DEBUG", ...)
    """
    root = logging.getLogger()

    # Don't duplicate handlers if someone already configured logging.
    if root.handlers:
        root.setLevel(level)
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
