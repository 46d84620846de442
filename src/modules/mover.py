# src/modules/mover.py
"""
The `mover` module owns the movement settings and wraps navigation so other
modules get interrupt handling for free.

Instructions:
    apply_movements            {"movements": {"set": {...}, "add": {...}}}
    reset_and_apply_movements  {"movements": {"set": {...}, "add": {...}}}
    save_position              {"name": str, "position": {x, y, z}?}
    forget_position            {"name": str}
    goto_position              {"name": str} or {"position": {x, y, z}}, "range": float?
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from instruction.errors import ActionFailed, InstructionInterrupted
from instruction.interrupt import Interrupt
from spec.types import Goal, GoalBlock, GoalNear, Vec3

from .base import ModuleBase, instruction, position_arg
from .movements import MovementSettings


log = logging.getLogger(__name__)


class MoverModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("mover")
        self.movements = MovementSettings()
        self.positions: Dict[str, Vec3] = {}

    def on_spawn(self) -> None:
        self.bot.navigator.set_movements(self.movements)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def goto(self, goal: Goal, interrupt: Optional[Interrupt] = None) -> None:
        """
        Travel to `goal`. An interrupt stops the navigator and surfaces as
        InstructionInterrupted("goto").

        Raises:
            InstructionInterrupted, ActionFailed("navigation_failed")
        """
        navigator = self.bot.navigator
        if interrupt is not None:
            interrupt.raise_if_interrupted("goto")
            interrupt.set_on_interrupt(navigator.stop)
        try:
            await navigator.goto(goal)
        except Exception as exc:
            if interrupt is not None and interrupt.has_interrupt:
                raise InstructionInterrupted("goto") from exc
            raise ActionFailed(
                code="navigation_failed",
                details={"goal": repr(goal), "reason": str(exc)},
            ) from exc
        finally:
            if interrupt is not None:
                interrupt.clear_on_interrupt()

    def apply_movement_settings(self, modifications: Optional[Mapping[str, Any]]) -> MovementSettings:
        try:
            self.movements.apply(modifications)
        except ValueError as exc:
            raise ActionFailed(code="invalid_movements", details={"reason": str(exc)}) from exc
        self._push_movements()
        return self.movements

    def reset_movement_settings(self, modifications: Optional[Mapping[str, Any]] = None) -> MovementSettings:
        fresh = MovementSettings()
        try:
            fresh.apply(modifications)
        except ValueError as exc:
            raise ActionFailed(code="invalid_movements", details={"reason": str(exc)}) from exc
        self.movements = fresh
        self._push_movements()
        return fresh

    def _push_movements(self) -> None:
        if self.context.connected:
            self.bot.navigator.set_movements(self.movements)

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    @instruction
    async def apply_movements(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        self.apply_movement_settings(args.get("movements"))

    @instruction
    async def reset_and_apply_movements(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        self.reset_movement_settings(args.get("movements"))

    @instruction
    async def save_position(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        """Remember a position by name; defaults to where the bot stands."""
        name = _require_name(args)
        if args.get("position") is not None:
            position = position_arg(args)
        else:
            position = self.bot.position().floored()
        self.positions[name] = position
        self.context.ui.log(f"Saved position {name} at {position.to_dict()}")

    @instruction
    async def forget_position(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        name = _require_name(args)
        if self.positions.pop(name, None) is None:
            raise ActionFailed(code="unknown_position", details={"name": name})

    @instruction
    async def goto_position(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        if args.get("name") is not None:
            name = _require_name(args)
            position = self.positions.get(name)
            if position is None:
                raise ActionFailed(code="unknown_position", details={"name": name})
        elif args.get("position") is not None:
            position = position_arg(args)
        else:
            raise ActionFailed(code="invalid_args", details={"expected": "name or position"})

        reach = args.get("range", 0)
        if not isinstance(reach, (int, float)) or reach < 0:
            raise ActionFailed(code="invalid_args", details={"range": reach})

        goal: Goal = GoalNear(position, float(reach)) if reach else GoalBlock(position)
        self.context.ui.log(f"Moving to {position.to_dict()}")
        await self.goto(goal, interrupt)


def _require_name(args: Mapping[str, Any]) -> str:
    name = args.get("name")
    if not isinstance(name, str) or not name:
        raise ActionFailed(code="invalid_args", details={"name": name})
    return name

