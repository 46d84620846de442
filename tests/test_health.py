#tests/test_health.py
"""
Tests for modules.health.HealthModule

Covers:
- auto-eat enabled on create, threshold tuned on health events
- auto_eat instruction
- exit_before_death quits once health drops under the threshold,
  interrupting whatever is running
"""

from __future__ import annotations

import asyncio

import pytest

from fakes.agent_fakes import fast_world, make_agent, settle
from instruction.errors import InstructionInterrupted
from modules.health import auto_eat_options
from spec.types import InstructionCall


def health(instruction: str, **args) -> InstructionCall:
    return InstructionCall(module="health", instruction=instruction, args=args)


async def spawned(conn, ui, modules=("agent", "utility", "health")):
    context = make_agent(conn, list(modules), ui=ui)
    await context.create_bot()
    return context


def test_auto_eat_options_threshold():
    assert auto_eat_options(20)["start_at"] == 14
    assert auto_eat_options(18)["start_at"] == 14
    assert auto_eat_options(17.5)["start_at"] == 19


@pytest.mark.asyncio
async def test_auto_eat_enabled_on_create(ui):
    conn = fast_world()
    context = await spawned(conn, ui)

    assert conn.auto_eat_enabled is True
    assert conn.auto_eat_options["start_at"] == 14
    context.quit()


@pytest.mark.asyncio
async def test_health_event_logs_and_retunes(ui):
    conn = fast_world()
    context = await spawned(conn, ui)

    conn.set_health(12)

    assert ui.logs[-1] == "Health: 12"
    assert conn.auto_eat_options["start_at"] == 19
    assert context.connected
    context.quit()


@pytest.mark.asyncio
async def test_auto_eat_instruction(ui):
    conn = fast_world()
    context = await spawned(conn, ui)

    await context.dispatch(health("auto_eat", enabled=False))
    assert conn.auto_eat_enabled is False

    conn.set_health(15)
    assert conn.auto_eat_enabled is False

    await context.dispatch(health("auto_eat", enabled=True))
    assert conn.auto_eat_enabled is True

    await context.dispatch(health("auto_eat", enabled="yes"))
    assert ui.errors[-1].code == "invalid_args"
    context.quit()


@pytest.mark.asyncio
async def test_exit_before_death_quits_under_threshold(ui):
    conn = fast_world()
    context = await spawned(conn, ui)

    await context.dispatch(health("exit_before_death", set=True, threshold=12))
    conn.set_health(12)
    assert context.connected

    conn.set_health(11)
    conn.set_health(9)
    await settle(lambda: not context.connected)

    assert ui.notifications == ["Bot low in health, quitting"]
    assert conn.connected is False


@pytest.mark.asyncio
async def test_exit_before_death_disabled_by_default(ui):
    conn = fast_world()
    context = await spawned(conn, ui)

    conn.set_health(2)
    await asyncio.sleep(0.01)

    assert context.connected
    assert ui.notifications == []
    context.quit()


@pytest.mark.asyncio
async def test_exit_before_death_interrupts_running_action(ui):
    conn = fast_world()
    context = await spawned(conn, ui)
    await context.dispatch(health("exit_before_death", set=True))

    waiting = asyncio.create_task(context.dispatch(
        InstructionCall(module="utility", instruction="wait", args={"milliseconds": 10_000})
    ))
    await settle(lambda: context.instructions.state == "running")

    conn.set_health(4)
    await asyncio.wait_for(waiting, timeout=1.0)
    await settle(lambda: not context.connected)

    assert isinstance(ui.errors[0], InstructionInterrupted)
    assert ui.logs[-1] == "Quit the game"


@pytest.mark.asyncio
async def test_exit_before_death_bad_args(ui):
    conn = fast_world()
    context = await spawned(conn, ui)
    module = context.modules.get("health")

    await context.dispatch(health("exit_before_death", set="on"))
    assert ui.errors[-1].code == "invalid_args"

    await context.dispatch(health("exit_before_death", set=True, threshold="low"))
    assert module.can_exit_before_death is True
    assert module.exit_before_death_threshold == 10.0
    context.quit()
