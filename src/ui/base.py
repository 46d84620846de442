# src/ui/base.py
"""
LoggingUserInterface: a UserInterface that only writes to the `logging`
tree. Used for headless runs and as the default when no UI is given.
"""

from __future__ import annotations

import logging
from typing import Any, Optional


log = logging.getLogger(__name__)


class LoggingUserInterface:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or log
        self.context: Any = None

    def mount(self, context: Any) -> None:
        self.context = context

    def notify(self, message: str) -> None:
        self._log.info("%s", message)

    def log(self, message: str) -> None:
        self._log.debug("%s", message)

    def log_error(self, error: BaseException | str) -> None:
        if isinstance(error, BaseException):
            self._log.error("%s: %s", type(error).__name__, error)
        else:
            self._log.error("%s", error)

    def log_chat_message(self, username: str, message: str) -> None:
        self._log.info("<%s> %s", username, message)

    def log_whisper(self, username: str, message: str) -> None:
        self._log.info("%s whispers: %s", username, message)
