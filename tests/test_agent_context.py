#tests/test_agent_context.py
"""
Tests for agent.context.AgentContext and the `agent` session module

Covers:
- create_bot: factory call, module hooks, spawn wait, "Spawned" log
- chat / whisper forwarding (own messages ignored)
- quit drops the bot and the forwarding
- failures during create_bot leave the context disconnected
- a new command interrupts a join that is still waiting for spawn
- agent.create_bot / agent.quit instructions
- load_connection_factory parsing
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from agent.context import AgentContext, load_connection_factory
from fakes.agent_fakes import RecordingUI, fast_world, make_agent, make_settings, settle, spawning_factory
from game.offline import create_offline_connection
from instruction.errors import ActionFailed, InstructionInterrupted
from modules.base import ModuleBase, ModuleDependencyError
from modules.session import SessionModule
from modules.utility import UtilityModule
from monitoring.bus import EventBus
from monitoring.events import EventType, MonitoringEvent
from spec.types import InstructionCall


CREATE = InstructionCall(module="agent", instruction="create_bot")
QUIT = InstructionCall(module="agent", instruction="quit")


class HookModule(ModuleBase):
    def __init__(self) -> None:
        super().__init__("hooks")
        self.calls: List[str] = []

    def on_create_bot(self) -> None:
        super().on_create_bot()
        self.calls.append("create_bot")

    def on_spawn(self) -> None:
        # the bot must already be there when on_spawn runs
        self.calls.append(f"spawn:{self.bot.spawned}")


@pytest.mark.asyncio
async def test_create_bot_runs_hooks_and_logs_spawned():
    conn = fast_world(username="mbot")
    bus = EventBus()
    seen: List[MonitoringEvent] = []
    bus.subscribe(seen.append)
    ui = RecordingUI()
    context = make_agent(conn, [], ui=ui, bus=bus)
    hooks = context.modules.mount(HookModule())

    bot = await context.create_bot()

    assert bot is conn
    assert context.connected is True
    assert hooks.calls == ["create_bot", "spawn:True"]
    assert ui.logs == ["Spawned"]
    assert ui.context is context
    assert EventType.BOT_SPAWNED in [evt.event_type for evt in seen]
    context.quit()


@pytest.mark.asyncio
async def test_create_bot_twice_raises():
    conn = fast_world()
    context = make_agent(conn, [])
    await context.create_bot()

    with pytest.raises(RuntimeError):
        await context.create_bot()
    context.quit()


@pytest.mark.asyncio
async def test_chat_and_whisper_forwarded_except_own():
    conn = fast_world(username="mbot")
    ui = RecordingUI()
    context = make_agent(conn, [], ui=ui)
    await context.create_bot()

    conn.receive_chat("alex", "hello bot")
    conn.receive_whisper("steve", "psst")
    context.chat("hello everyone")

    assert ui.chat == [("alex", "hello bot")]
    assert ui.whispers == [("steve", "psst")]
    assert conn.sent_chat == ["hello everyone"]

    context.quit()
    conn.receive_chat("alex", "still there?")
    assert ui.chat == [("alex", "hello bot")]


@pytest.mark.asyncio
async def test_quit_disconnects_and_is_idempotent():
    conn = fast_world()
    bus = EventBus()
    seen: List[MonitoringEvent] = []
    bus.subscribe(seen.append)
    context = make_agent(conn, [], bus=bus)
    await context.create_bot()

    context.quit()
    context.quit()

    assert context.bot is None
    assert conn.connected is False
    assert [evt.event_type for evt in seen].count(EventType.BOT_QUIT) == 1
    with pytest.raises(RuntimeError):
        context.chat("anyone?")


@pytest.mark.asyncio
async def test_missing_dependency_aborts_create_bot():
    conn = fast_world()
    context = make_agent(conn, ["miner"])

    with pytest.raises(ModuleDependencyError):
        await context.create_bot()

    assert context.connected is False
    assert conn.connected is False


@pytest.mark.asyncio
async def test_spawn_timeout_drops_bot():
    conn = fast_world()
    settings = make_settings(spawn_timeout_s=0.01)
    # factory that never spawns
    context = AgentContext(settings, {}, RecordingUI(), connection_factory=lambda options: conn)

    with pytest.raises(asyncio.TimeoutError):
        await context.create_bot()
    assert context.bot is None
    assert conn.connected is False


@pytest.mark.asyncio
async def test_new_command_interrupts_a_pending_join():
    conn = fast_world()
    ui = RecordingUI()
    commands = {"pause": InstructionCall(module="utility", instruction="wait", args={"milliseconds": 1})}
    # never spawns; the join would otherwise wait out the whole timeout
    context = AgentContext(
        make_settings(spawn_timeout_s=30.0), commands, ui, connection_factory=lambda options: conn
    )
    context.modules.mount(SessionModule())
    context.modules.mount(UtilityModule())

    joining = asyncio.create_task(context.dispatch(CREATE))
    await settle(lambda: context.connected)

    await asyncio.wait_for(context.dispatch("pause"), timeout=1.0)
    await asyncio.wait_for(joining, timeout=1.0)

    assert len(ui.errors) == 1
    assert isinstance(ui.errors[0], InstructionInterrupted)
    assert ui.errors[0].label == "create_bot"
    assert context.connected is False
    assert conn.connected is False
    assert context.instructions.interrupt.on_interrupt is None


@pytest.mark.asyncio
async def test_session_instructions():
    conn = fast_world()
    ui = RecordingUI()
    context = make_agent(conn, ["agent"], ui=ui)

    await context.dispatch(CREATE)
    assert context.connected

    await context.dispatch(CREATE)
    assert isinstance(ui.errors[-1], ActionFailed)
    assert ui.errors[-1].code == "already_connected"

    await context.dispatch(QUIT)
    assert context.connected is False
    assert ui.logs[-1] == "Quit the game"

    await context.dispatch(QUIT)
    assert ui.errors[-1].code == "not_connected"


@pytest.mark.asyncio
async def test_provider_from_settings_is_imported():
    settings = make_settings(options={"auto_spawn": True, "tick_interval_s": 0.001})
    context = AgentContext(settings, {}, RecordingUI())

    bot = await context.create_bot()

    assert bot.spawned is True
    context.quit()


def test_load_connection_factory():
    assert load_connection_factory("game.offline:create_offline_connection") is create_offline_connection

    with pytest.raises(ValueError):
        load_connection_factory("game.offline")
    with pytest.raises(AttributeError):
        load_connection_factory("game.offline:nope")


@pytest.mark.asyncio
async def test_factory_receives_connection_options():
    conn = fast_world()
    factory = spawning_factory(conn)
    settings = make_settings(options={"username": "mbot", "seed": 7})
    context = AgentContext(settings, {}, RecordingUI(), connection_factory=factory)

    await context.create_bot()

    assert factory.created == [{"username": "mbot", "seed": 7}]
    context.quit()
