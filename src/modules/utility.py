# src/modules/utility.py
"""
The `utility` module: world-query and waiting helpers shared by other modules.

Helpers (called directly by other modules):
    find_blocks(matching, ...)             block name(s) -> positions, nearest first
    wait_for_physics_ticks(count, ...)     resolves after `count` physics ticks
    wait_for_entity_gone(entity, ...)      resolves when the entity disappears

Instructions:
    wait {"milliseconds": int}
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from instruction.errors import ActionFailed
from instruction.interrupt import Interrupt
from spec.types import Block, Entity, Vec3

from .base import ModuleBase, instruction


log = logging.getLogger(__name__)


class UtilityModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("utility")
        # [remaining ticks, future]
        self._tick_waiters: List[List[Any]] = []
        self._entity_waiters: Dict[int, List[asyncio.Future]] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_spawn(self) -> None:
        self._release_all()
        self.bot.on("physics_tick", self._on_physics_tick)
        self.bot.on("entity_gone", self._on_entity_gone)

    def _on_physics_tick(self) -> None:
        still_waiting = []
        for waiter in self._tick_waiters:
            waiter[0] -= 1
            fut = waiter[1]
            if fut.done():
                continue
            if waiter[0] <= 0:
                fut.set_result(None)
            else:
                still_waiting.append(waiter)
        self._tick_waiters = still_waiting

    def _on_entity_gone(self, entity: Entity) -> None:
        for fut in self._entity_waiters.pop(entity.id, []):
            if not fut.done():
                fut.set_result(None)

    def _release_all(self) -> None:
        # waiters from a previous session would otherwise never resolve
        pending = [fut for _, fut in self._tick_waiters]
        for futures in self._entity_waiters.values():
            pending.extend(futures)
        for fut in pending:
            if not fut.done():
                fut.set_exception(ActionFailed(code="session_ended"))
        self._tick_waiters = []
        self._entity_waiters = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def find_blocks(
        self,
        matching: Union[str, Sequence[str]],
        *,
        max_distance: float = 32.0,
        count: int = 1,
        predicate: Optional[Callable[[Block], bool]] = None,
        safe_to_break: bool = True,
    ) -> List[Vec3]:
        """
        Wrapper for GameConnection.find_blocks accepting one block name or a
        list of them. With safe_to_break, blocks the mover's movement
        settings forbid digging are filtered out.
        """
        names = [matching] if isinstance(matching, str) else list(matching)
        if not names or not all(isinstance(n, str) for n in names):
            raise ActionFailed(code="invalid_block_names", details={"matching": matching})

        checks: List[Callable[[Block], bool]] = []
        if predicate is not None:
            checks.append(predicate)
        if safe_to_break and "mover" in self.context.modules:
            checks.append(self.context.modules.get("mover").movements.safe_to_break)

        def accept(block: Block) -> bool:
            return all(check(block) for check in checks)

        return self.bot.find_blocks(
            names,
            max_distance=max_distance,
            count=count,
            predicate=accept if checks else None,
        )

    async def wait_for_physics_ticks(
        self,
        count: int,
        interrupt: Optional[Interrupt] = None,
    ) -> None:
        if count <= 0:
            return
        fut = asyncio.get_running_loop().create_future()
        self._tick_waiters.append([count, fut])
        await self._await_interruptibly(fut, interrupt, "wait_for_physics_ticks")

    async def wait_for_entity_gone(
        self,
        entity: Optional[Entity],
        interrupt: Optional[Interrupt] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Resolve when `entity` disappears (picked up, despawned, killed).

        Raises:
            ActionFailed("timeout") if it is still there after `timeout` seconds.
        """
        if entity is None:
            return
        fut = asyncio.get_running_loop().create_future()
        self._entity_waiters.setdefault(entity.id, []).append(fut)
        try:
            await self._await_interruptibly(fut, interrupt, "wait_for_entity_gone", timeout=timeout)
        finally:
            self._forget_entity_waiter(entity.id, fut)

    def _forget_entity_waiter(self, entity_id: int, fut: asyncio.Future) -> None:
        waiters = self._entity_waiters.get(entity_id)
        if waiters is None:
            return
        if fut in waiters:
            waiters.remove(fut)
        if not waiters:
            del self._entity_waiters[entity_id]

    async def _await_interruptibly(
        self,
        fut: "asyncio.Future[None]",
        interrupt: Optional[Interrupt],
        label: str,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Await `fut`; an interrupt request resolves it early and is then
        raised as InstructionInterrupted(label).

        Chains onto any stop callback already registered on the interrupt and
        restores it afterwards.
        """
        previous = None
        if interrupt is not None:
            interrupt.raise_if_interrupted(label)
            previous = interrupt.on_interrupt

            def stop() -> None:
                if previous is not None:
                    previous()
                if not fut.done():
                    fut.set_result(None)

            interrupt.set_on_interrupt(stop)

        try:
            await asyncio.wait_for(fut, timeout=timeout)
        except asyncio.TimeoutError:
            raise ActionFailed(code="timeout", details={"wait": label, "timeout_s": timeout}) from None
        finally:
            if interrupt is not None:
                if previous is not None:
                    interrupt.set_on_interrupt(previous)
                else:
                    interrupt.clear_on_interrupt()

        if interrupt is not None:
            interrupt.raise_if_interrupted(label)

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    @instruction
    async def wait(self, args: Mapping[str, Any], interrupt: Interrupt) -> None:
        """Do nothing for args["milliseconds"]; ends early on interrupt."""
        milliseconds = args.get("milliseconds")
        if not isinstance(milliseconds, (int, float)) or milliseconds < 0:
            raise ActionFailed(code="invalid_args", details={"milliseconds": milliseconds})

        woken = asyncio.Event()
        interrupt.set_on_interrupt(woken.set)
        try:
            await asyncio.wait_for(woken.wait(), timeout=milliseconds / 1000.0)
        except asyncio.TimeoutError:
            pass
        finally:
            interrupt.clear_on_interrupt()
        interrupt.raise_if_interrupted("wait")
