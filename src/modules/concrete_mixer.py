# src/modules/concrete_mixer.py
"""
The `concrete_mixer` module turns concrete powder into concrete by placing
it next to water and digging the hardened block back up.

An adjacent water source is assumed to be present. Requires `mover`.

Instructions:
    mix_concrete_powder  {"reference_block_position": {x, y, z},
                          "reference_face": {x, y, z},
                          "delay_ms": int = 100}
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from instruction.errors import ActionFailed
from instruction.interrupt import Interrupt
from spec.types import GoalLookAtBlock, Item

from .base import ModuleBase, instruction, position_arg


log = logging.getLogger(__name__)

REACH = 4.0
DEFAULT_DELAY_MS = 100


class ConcreteMixerModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("concrete_mixer", ["mover"])

    def _find_item(self, fragment: str) -> Optional[Item]:
        for item in self.bot.inventory_items():
            if fragment in item.name:
                return item
        return None

    @instruction
    async def mix_concrete_powder(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        reference_position = position_arg(args, "reference_block_position")
        face = position_arg(args, "reference_face")
        delay = float(args.get("delay_ms", DEFAULT_DELAY_MS)) / 1000.0

        if self._find_item("concrete_powder") is None:
            raise ActionFailed(code="no_concrete_powder", details={})

        await self.context.modules.get("mover").goto(GoalLookAtBlock(reference_position, REACH), interrupt)

        reference = self.bot.block_at(reference_position)
        if reference is None or reference.bounding_box == "empty":
            raise ActionFailed(code="no_reference_block", details={"position": reference_position.to_dict()})
        await self.bot.look_at(reference_position)

        target = reference_position.floored() + face
        mixed = 0
        while True:
            # one place+harden+dig cycle runs to completion before checking
            interrupt.raise_if_interrupted("mix_concrete_powder")

            powder = self._find_item("concrete_powder")
            if powder is None:
                break

            await self.bot.equip(powder, "hand")
            await self.bot.place_block(reference, face)
            await asyncio.sleep(delay)

            pickaxe = self._find_item("pickaxe")
            if pickaxe is None:
                raise ActionFailed(code="no_pickaxe", details={})
            await self.bot.equip(pickaxe, "hand")

            placed = self.bot.block_at(target)
            if placed is None or placed.bounding_box == "empty":
                raise ActionFailed(code="nothing_placed", details={"position": target.to_dict()})
            await self.bot.dig(placed)
            await asyncio.sleep(delay)

            mixed += 1
            log.debug("Mixed %s at %s", placed.name, target)

        self.context.ui.log(f"Mixed {mixed} concrete powder")
