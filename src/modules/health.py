# src/modules/health.py
"""
The `health` module keeps the bot fed and, optionally, logs it off before
it dies.

Instructions:
    exit_before_death  {"set": bool, "threshold": number = 10}
    auto_eat           {"enabled": bool}
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from instruction.errors import ActionFailed
from instruction.interrupt import Interrupt
from spec.types import InstructionCall

from .base import ModuleBase, instruction


log = logging.getLogger(__name__)

# Auto-eat starts eating below this food level, depending on current health.
EAT_START_AT_HEALTHY = 14
EAT_START_AT_HURT = 19
HEALTHY_THRESHOLD = 18

DEFAULT_EXIT_THRESHOLD = 10.0

QUIT_CALL = InstructionCall(module="agent", instruction="quit")


def auto_eat_options(health: float) -> Dict[str, Any]:
    """Eat earlier while hurt so health regenerates."""
    start_at = EAT_START_AT_HEALTHY if health >= HEALTHY_THRESHOLD else EAT_START_AT_HURT
    return {"priority": "food_points", "start_at": start_at, "banned_food": []}


class HealthModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("health")
        self.auto_eat_enabled = True
        self.can_exit_before_death = False
        self.exit_before_death_threshold = DEFAULT_EXIT_THRESHOLD
        self._quit_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_create_bot(self) -> None:
        super().on_create_bot()
        self.bot.set_auto_eat(self.auto_eat_enabled, auto_eat_options(self.bot.health))

    def on_spawn(self) -> None:
        self._quit_task = None
        self.bot.on("health", self._on_health)

    def _on_health(self) -> None:
        bot = self.context.bot
        if bot is None:
            return
        health = bot.health
        self.context.ui.log(f"Health: {health}")

        if self.auto_eat_enabled:
            bot.set_auto_eat(True, auto_eat_options(health))
        else:
            bot.set_auto_eat(False)

        if self.can_exit_before_death and health < self.exit_before_death_threshold:
            self._exit_game(health)

    def _exit_game(self, health: float) -> None:
        if self._quit_task is not None and not self._quit_task.done():
            return
        log.warning("Health %.1f under %.1f, quitting", health, self.exit_before_death_threshold)
        self._quit_task = asyncio.get_running_loop().create_task(self.context.dispatch(QUIT_CALL))
        self._quit_task.add_done_callback(_log_quit_failure)
        self.context.ui.notify("Bot low in health, quitting")

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    @instruction
    async def exit_before_death(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        enabled = args.get("set")
        if not isinstance(enabled, bool):
            raise ActionFailed(code="invalid_args", details={"set": enabled})

        threshold = args.get("threshold", DEFAULT_EXIT_THRESHOLD)
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            threshold = DEFAULT_EXIT_THRESHOLD

        self.can_exit_before_death = enabled
        self.exit_before_death_threshold = float(threshold)

    @instruction
    async def auto_eat(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        enabled = args.get("enabled")
        if not isinstance(enabled, bool):
            raise ActionFailed(code="invalid_args", details={"enabled": enabled})
        self.auto_eat_enabled = enabled
        if self.context.connected:
            self.bot.set_auto_eat(enabled, auto_eat_options(self.bot.health) if enabled else None)


def _log_quit_failure(task: "asyncio.Task[None]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log.error("Exit-before-death quit failed: %r", exc)
