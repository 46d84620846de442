#tests/test_interrupt.py
"""
Tests for instruction.interrupt.Interrupt

Covers:
- has_interrupt follows request / acknowledge
- request_interrupt waiter only completes on acknowledge
- stop callback invoked synchronously, replace / clear semantics
- raise_if_interrupted label and message
"""

from __future__ import annotations

import asyncio

import pytest

from instruction.errors import InstructionInterrupted
from instruction.interrupt import Interrupt


def test_fresh_token_has_no_interrupt():
    interrupt = Interrupt()

    assert interrupt.has_interrupt is False
    assert interrupt.on_interrupt is None
    # no-op checkpoint
    interrupt.raise_if_interrupted("anything")


@pytest.mark.asyncio
async def test_request_then_acknowledge_completes_waiter():
    interrupt = Interrupt()

    waiter = interrupt.request_interrupt()
    assert interrupt.has_interrupt is True

    await asyncio.sleep(0)
    assert not waiter.done()

    interrupt.acknowledge()
    assert interrupt.has_interrupt is False
    await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_stop_callback_runs_synchronously_on_request():
    interrupt = Interrupt()
    calls = []

    interrupt.set_on_interrupt(lambda: calls.append("first"))
    interrupt.set_on_interrupt(lambda: calls.append("second"))

    interrupt.request_interrupt()
    assert calls == ["second"]

    interrupt.acknowledge()


@pytest.mark.asyncio
async def test_cleared_callback_is_not_invoked():
    interrupt = Interrupt()
    calls = []

    interrupt.set_on_interrupt(lambda: calls.append("stop"))
    interrupt.clear_on_interrupt()
    interrupt.request_interrupt()

    assert calls == []
    interrupt.acknowledge()


@pytest.mark.asyncio
async def test_raising_callback_does_not_break_request():
    interrupt = Interrupt()

    def boom() -> None:
        raise RuntimeError("navigator already gone")

    interrupt.set_on_interrupt(boom)
    waiter = interrupt.request_interrupt()

    assert interrupt.has_interrupt is True
    interrupt.acknowledge()
    await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_raise_if_interrupted_uses_label():
    interrupt = Interrupt()
    interrupt.request_interrupt()

    with pytest.raises(InstructionInterrupted) as excinfo:
        interrupt.raise_if_interrupted("mine_blocks")

    assert excinfo.value.label == "mine_blocks"
    assert str(excinfo.value) == "mine_blocks Interrupted"
    interrupt.acknowledge()


def test_acknowledge_without_request_is_harmless():
    interrupt = Interrupt()
    interrupt.acknowledge()
    assert interrupt.has_interrupt is False
