# src/modules/miner.py
"""
The `miner` module: find, reach, dig and collect blocks.

Requires the `utility` and `mover` modules.

Instructions:
    mine_blocks    {
                     "find_blocks_options": {"matching": str | [str],
                                             "max_distance": 32, "count": 16},
                     "number_of_blocks_to_mine": int?,   (default: until none left)
                     "search_after_mine": bool?,
                     "min_height": number?, "max_height": number?,
                     "safe_block_filter": bool?,
                     "reset_and_apply_movements": bool?, "movements": {...}?
                   }
    mine_block     {"position": {x, y, z}}
    dig            {"position": {x, y, z}}
    collect_block  {"block_name": str, "count": int?, "timeout_s": number?,
                    "reset_and_apply_movements": bool?, "movements": {...}?}
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, Mapping, Optional

from instruction.errors import ActionFailed, InstructionInterrupted
from instruction.interrupt import Interrupt
from spec.types import (
    Block,
    GoalCompositeAll,
    GoalCompositeAny,
    GoalFollow,
    GoalLookAtBlock,
    GoalY,
    Vec3,
)

from .base import ModuleBase, instruction, position_arg


log = logging.getLogger(__name__)

# Reach used when walking up to a block before digging it.
DIG_REACH = 4.0

# Physics ticks to wait for the drop to spawn after a block breaks.
DROP_SPAWN_TICKS = 10

DEFAULT_COLLECT_TIMEOUT_S = 15.0


def _checkpoint(interrupt: Optional[Interrupt], label: str) -> None:
    if interrupt is not None:
        interrupt.raise_if_interrupted(label)


class MinerModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("miner", ["utility", "mover"])

    @property
    def _utility(self) -> Any:
        return self.context.modules.get("utility")

    @property
    def _mover(self) -> Any:
        return self.context.modules.get("mover")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def find_blocks(
        self,
        options: Mapping[str, Any],
        *,
        min_height: float = -math.inf,
        max_height: float = math.inf,
        safe_to_break: bool = True,
    ) -> List[Vec3]:
        """Utility.find_blocks restricted to min_height <= y <= max_height."""
        matching = options.get("matching")
        if matching is None:
            raise ActionFailed(code="invalid_args", details={"find_blocks_options": dict(options)})

        return self._utility.find_blocks(
            matching,
            max_distance=float(options.get("max_distance", 32.0)),
            count=int(options.get("count", 16)),
            predicate=lambda block: min_height <= block.position.y <= max_height,
            safe_to_break=safe_to_break,
        )

    async def mine_block_at(self, position: Vec3, interrupt: Optional[Interrupt] = None) -> None:
        """Walk to, dig and collect one block."""
        ui = self.context.ui
        ui.log(f"Moving to mine block at position {position.to_dict()}")
        await self._mover.goto(
            GoalCompositeAll([
                GoalLookAtBlock(position, DIG_REACH),
                # stand level with the block or one above it, never jump to dig
                GoalCompositeAny([GoalY(position.y), GoalY(position.y + 1)]),
            ]),
            interrupt,
        )

        block = self.bot.block_at(position)
        if block is None or block.bounding_box == "empty":
            raise ActionFailed(code="block_gone", details={"position": position.to_dict()})

        ui.log("Equipping harvesting tool")
        tool = self.bot.navigator.best_harvest_tool(block)
        if tool is None:
            raise ActionFailed(code="no_harvest_tool", details={"block": block.name})
        await self.bot.equip(tool, "hand")
        _checkpoint(interrupt, "mine_block")

        ui.log("Digging block")
        await self.dig_block(block, interrupt)
        ui.log("Finished digging block")
        _checkpoint(interrupt, "mine_block")

        await self._utility.wait_for_physics_ticks(DROP_SPAWN_TICKS, interrupt)
        _checkpoint(interrupt, "mine_block")

        ui.log("Collecting block")
        await self.collect_drops(block.name, 1, interrupt)
        ui.log("Finished collecting block")

    async def dig_block(self, block: Block, interrupt: Optional[Interrupt] = None) -> None:
        """Dig `block`; an interrupt calls stop_digging() and raises InstructionInterrupted("dig")."""
        if interrupt is not None:
            interrupt.set_on_interrupt(self.bot.stop_digging)
        try:
            await self.bot.dig(block)
        except Exception as exc:
            if interrupt is not None and interrupt.has_interrupt:
                raise InstructionInterrupted("dig") from exc
            raise
        finally:
            if interrupt is not None:
                interrupt.clear_on_interrupt()

    async def collect_drops(
        self,
        item_name: str,
        count: Optional[int] = None,
        interrupt: Optional[Interrupt] = None,
        *,
        timeout: float = DEFAULT_COLLECT_TIMEOUT_S,
    ) -> int:
        """Follow dropped `item_name` entities until picked up. Returns how many were collected."""
        ui = self.context.ui
        navigator = self.bot.navigator
        collected = 0

        while count is None or collected < count:
            _checkpoint(interrupt, "collect_block")

            entity = self.bot.nearest_entity(
                lambda e: e.dropped_item is not None and e.dropped_item.name == item_name
            )
            if entity is None:
                ui.log("There is no entity, we are finished")
                break

            if interrupt is not None:
                interrupt.set_on_interrupt(navigator.stop)
            try:
                navigator.set_goal(GoalFollow(entity, 0.0))
                await self._utility.wait_for_entity_gone(entity, interrupt, timeout=timeout)
            finally:
                navigator.set_goal(None)
                if interrupt is not None:
                    interrupt.clear_on_interrupt()

            collected += 1
            ui.log("Collected one entity")

        return collected

    def _movements_from_args(self, args: Mapping[str, Any]) -> None:
        if args.get("reset_and_apply_movements"):
            self._mover.reset_movement_settings(args.get("movements"))

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    @instruction
    async def mine_blocks(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        """
        Mine matching blocks until the requested number is reached, nothing
        is left in range, or an interrupt arrives.

        A block that fails (unreachable, no tool) is reported and skipped.
        """
        options = args.get("find_blocks_options")
        if not isinstance(options, Mapping):
            raise ActionFailed(code="invalid_args", details={"find_blocks_options": options})

        limit = args.get("number_of_blocks_to_mine")
        if limit is not None and (not isinstance(limit, int) or limit < 0):
            raise ActionFailed(code="invalid_args", details={"number_of_blocks_to_mine": limit})

        min_height = args.get("min_height")
        max_height = args.get("max_height")
        min_height = -math.inf if min_height is None else float(min_height)
        max_height = math.inf if max_height is None else float(max_height)
        search_after_mine = bool(args.get("search_after_mine", False))
        safe_to_break = bool(args.get("safe_block_filter", True))

        self._movements_from_args(args)

        mined = 0
        while limit is None or mined < limit:
            interrupt.raise_if_interrupted("mine_blocks")

            positions = self.find_blocks(
                options,
                min_height=min_height,
                max_height=max_height,
                safe_to_break=safe_to_break,
            )
            if not positions:
                if mined:
                    self.context.ui.log(f"No more blocks in range after mining {mined}")
                    return
                raise ActionFailed(code="no_blocks_found", details={"matching": options.get("matching")})

            interrupt.raise_if_interrupted("mine_blocks")

            mined_this_pass = 0
            for position in positions:
                if limit is not None and mined >= limit:
                    break
                try:
                    await self.mine_block_at(position, interrupt)
                except Exception as exc:
                    interrupt.raise_if_interrupted("mine_blocks")
                    log.info("Skipping block at %s: %s", position, exc)
                    self.context.ui.log_error(exc)
                    continue

                mined += 1
                mined_this_pass += 1
                interrupt.raise_if_interrupted("mine_blocks")
                if search_after_mine:
                    break

            if mined_this_pass == 0:
                # every candidate failed; searching again would find the same ones
                raise ActionFailed(code="no_reachable_blocks", details={"candidates": len(positions)})

    @instruction
    async def mine_block(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        await self.mine_block_at(position_arg(args), interrupt)

    @instruction
    async def dig(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        position = position_arg(args)
        block = self.bot.block_at(position)
        if block is None or block.bounding_box == "empty":
            raise ActionFailed(code="block_gone", details={"position": position.to_dict()})
        await self.dig_block(block, interrupt)

    @instruction
    async def collect_block(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        block_name = args.get("block_name")
        if not isinstance(block_name, str) or not block_name:
            raise ActionFailed(code="invalid_args", details={"block_name": block_name})

        count = args.get("count")
        if count is not None and (not isinstance(count, int) or count < 0):
            raise ActionFailed(code="invalid_args", details={"count": count})

        timeout = float(args.get("timeout_s", DEFAULT_COLLECT_TIMEOUT_S))
        self._movements_from_args(args)
        await self.collect_drops(block_name, count, interrupt, timeout=timeout)

