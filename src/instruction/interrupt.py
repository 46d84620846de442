# src/instruction/interrupt.py
"""
Cooperative interrupt token shared by the InstructionManager and the
currently running action.

Protocol (one handshake):

    manager                               running action
    -------                               --------------
    waiter = interrupt.request_interrupt()
        has_interrupt = True
        on_interrupt() (if registered) -->  e.g. navigator.stop()
    await waiter                          ... reaches a checkpoint:
                                          interrupt.raise_if_interrupted("mine_blocks")
    (action settles)
    interrupt.acknowledge()
        has_interrupt = False
        waiter completes  --> next action starts

Interruption is a message, not preemption: an action that never reaches a
checkpoint or an await point will never observe it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from spec.types import StopCallback

from .errors import InstructionInterrupted


log = logging.getLogger(__name__)


class Interrupt:
    """
    Single-use-per-handshake cancellation token, reused across actions.

    Invariant: has_interrupt is True iff request_interrupt() has been called
    and acknowledge() has not been called since.
    """

    def __init__(self) -> None:
        self._has_interrupt: bool = False
        self._on_interrupt: Optional[StopCallback] = None
        self._waiter: Optional[asyncio.Future] = None

    @property
    def has_interrupt(self) -> bool:
        return self._has_interrupt

    @property
    def on_interrupt(self) -> Optional[StopCallback]:
        return self._on_interrupt

    # ------------------------------------------------------------------
    # Running-action side
    # ------------------------------------------------------------------

    def set_on_interrupt(self, fn: StopCallback) -> None:
        """Register the stop callback, replacing any previous one."""
        self._on_interrupt = fn

    def clear_on_interrupt(self) -> None:
        self._on_interrupt = None

    def raise_if_interrupted(self, label: str) -> None:
        """
        Checkpoint: raise InstructionInterrupted(label) if an interrupt is pending.

        Only call this at safe suspension points.
        """
        if self._has_interrupt:
            raise InstructionInterrupted(label)

    # ------------------------------------------------------------------
    # Manager side
    # ------------------------------------------------------------------

    def request_interrupt(self) -> "asyncio.Future[None]":
        """
        Ask the running action to stop.

        Returns a future that completes when acknowledge() is called.

        Precondition: an action is running and no interrupt is outstanding.
        The InstructionManager serializes its dispatches so this holds.
        """
        loop = asyncio.get_running_loop()
        self._waiter = loop.create_future()
        self._has_interrupt = True

        callback = self._on_interrupt
        if callback is not None:
            try:
                callback()
            except Exception:
                # The callback is a best-effort nudge; the checkpoint is authoritative.
                log.exception("Interrupt stop callback raised")

        return self._waiter

    def acknowledge(self) -> None:
        """Clear the pending interrupt and resume the waiter."""
        self._has_interrupt = False
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)
