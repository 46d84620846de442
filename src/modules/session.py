# src/modules/session.py
"""The `agent` module: connect to the game and leave it."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from instruction.errors import ActionFailed
from instruction.interrupt import Interrupt

from .base import ModuleBase, instruction


log = logging.getLogger(__name__)


class SessionModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("agent")

    @instruction
    async def create_bot(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        """Connect and wait until the bot has spawned; an interrupt abandons the join."""
        if self.context.connected:
            raise ActionFailed(code="already_connected", details={"username": self.context.bot.username})
        await self.context.create_bot(interrupt)

    @instruction
    async def quit(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        """Disconnect; agent.create_bot has to run again before world actions."""
        if not self.context.connected:
            raise ActionFailed(code="not_connected", details={})
        self.context.quit()
        self.context.ui.log("Quit the game")
