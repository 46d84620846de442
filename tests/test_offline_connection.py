#tests/test_offline_connection.py
"""
Tests for game.offline (OfflineConnection, OfflineNavigator, factories)

Covers:
- World construction from options (blocks, regions, inventory)
- Queries: block_at, find_blocks ordering and predicate, nearest_entity
- dig / stop_digging, drops and pickup
- place_block rules (held item, occupied target, powder hardening)
- Navigator goto / stop / best_harvest_tool
- Events: spawn, physics_tick, chat echo, health
"""

from __future__ import annotations

import asyncio
from typing import List

import pytest

from fakes.agent_fakes import fast_world, settle
from game.emitter import EventEmitter
from game.offline import NavigationError, create_offline_connection
from spec.types import GoalBlock, GoalNear, Item, Vec3


def test_world_built_from_options():
    conn = fast_world(
        username="digger",
        position={"x": 1, "y": 64, "z": 1},
        blocks=[{"name": "gold_ore", "x": 5, "y": 63, "z": 5, "hardness": 3}],
        regions=[{"name": "stone", "from": {"x": 0, "y": 60, "z": 0}, "to": {"x": 1, "y": 61, "z": 1}}],
        inventory=[{"name": "iron_pickaxe"}, {"name": "bread", "count": 4}],
    )

    assert conn.username == "digger"
    assert conn.position() == Vec3(1.0, 64.0, 1.0)
    assert conn.block_at(Vec3(5, 63, 5)).hardness == 3.0
    assert conn.block_at(Vec3(1, 61, 0)).name == "stone"
    assert [(i.name, i.count) for i in conn.inventory_items()] == [("iron_pickaxe", 1), ("bread", 4)]


def test_block_at_missing_is_air():
    conn = fast_world()
    air = conn.block_at(Vec3(0.7, 70.2, 0.1))
    assert air.name == "air"
    assert air.bounding_box == "empty"
    assert air.position == Vec3(0, 70, 0)


def test_find_blocks_nearest_first_with_predicate():
    conn = fast_world()
    conn.add_block("stone", Vec3(5, 64, 0))
    conn.add_block("stone", Vec3(2, 64, 0))
    conn.add_block("stone", Vec3(40, 64, 0))
    conn.add_block("dirt", Vec3(1, 64, 0))

    assert conn.find_blocks(["stone"], max_distance=32, count=5) == [Vec3(2, 64, 0), Vec3(5, 64, 0)]
    assert conn.find_blocks(["stone", "dirt"], count=1) == [Vec3(1, 64, 0)]
    assert conn.find_blocks(["stone"], count=5, predicate=lambda b: b.position.x > 3) == [Vec3(5, 64, 0)]


@pytest.mark.asyncio
async def test_dig_removes_block_and_drops_item():
    conn = fast_world()
    stone = conn.add_block("stone", Vec3(2, 63, 0), hardness=1.5)

    await conn.dig(stone)

    assert conn.block_at(Vec3(2, 63, 0)).name == "air"
    drop = conn.nearest_entity(lambda e: e.dropped_item is not None)
    assert drop.dropped_item.name == "stone"
    assert drop.position == Vec3(2.5, 63.0, 0.5)


@pytest.mark.asyncio
async def test_stop_digging_aborts_dig():
    conn = fast_world(dig_time_per_hardness_s=10.0)
    stone = conn.add_block("stone", Vec3(2, 63, 0))

    task = asyncio.create_task(conn.dig(stone))
    await asyncio.sleep(0.01)
    conn.stop_digging()

    with pytest.raises(RuntimeError, match="Digging aborted"):
        await asyncio.wait_for(task, timeout=1.0)
    assert conn.block_at(Vec3(2, 63, 0)).name == "stone"


@pytest.mark.asyncio
async def test_moving_near_drop_picks_it_up():
    conn = fast_world()
    gone: List[int] = []
    conn.on("entity_gone", lambda entity: gone.append(entity.id))
    drop = conn.add_dropped_item("dirt", Vec3(3.5, 64, 0.5))

    conn.move_to(Vec3(3, 64, 0))

    assert gone == [drop.id]
    assert conn.inventory_items()[0].name == "dirt"
    assert conn.nearest_entity() is None


@pytest.mark.asyncio
async def test_place_block_requires_held_item():
    conn = fast_world()
    reference = conn.add_block("cobblestone", Vec3(0, 63, 0))

    with pytest.raises(RuntimeError, match="must be holding an item"):
        await conn.place_block(reference, Vec3(0, 1, 0))


@pytest.mark.asyncio
async def test_place_block_on_occupied_target_fails():
    conn = fast_world()
    reference = conn.add_block("cobblestone", Vec3(0, 63, 0))
    conn.add_block("dirt", Vec3(0, 64, 0))
    await conn.equip(conn.add_item("stone"), "hand")

    with pytest.raises(RuntimeError, match="occupied"):
        await conn.place_block(reference, Vec3(0, 1, 0))


@pytest.mark.asyncio
async def test_powder_next_to_water_hardens():
    conn = fast_world()
    reference = conn.add_block("cobblestone", Vec3(0, 63, 0))
    conn.add_block("water", Vec3(1, 64, 0))
    powder = conn.add_item("white_concrete_powder", 2)
    await conn.equip(powder, "hand")

    await conn.place_block(reference, Vec3(0, 1, 0))

    assert conn.block_at(Vec3(0, 64, 0)).name == "white_concrete"
    assert powder.count == 1


@pytest.mark.asyncio
async def test_equip_requires_inventory_item():
    conn = fast_world()
    with pytest.raises(RuntimeError):
        await conn.equip(Item(name="diamond_pickaxe"), "hand")


@pytest.mark.asyncio
async def test_navigator_goto_moves_bot():
    conn = fast_world()

    await conn.navigator.goto(GoalBlock(Vec3(3, 64, 2)))

    assert conn.position() == Vec3(3, 64, 2)
    assert len(conn.navigator.goto_calls) == 1


@pytest.mark.asyncio
async def test_navigator_goto_without_standing_spot_fails():
    conn = fast_world()
    conn.add_block("stone", Vec3(5, 64, 5))

    with pytest.raises(NavigationError):
        await conn.navigator.goto(GoalBlock(Vec3(5, 64, 5)))


@pytest.mark.asyncio
async def test_navigator_stop_aborts_goto():
    conn = fast_world(seconds_per_block=10.0)

    task = asyncio.create_task(conn.navigator.goto(GoalNear(Vec3(10, 64, 0), 1.0)))
    await asyncio.sleep(0.01)
    conn.navigator.stop()

    with pytest.raises(NavigationError):
        await asyncio.wait_for(task, timeout=1.0)
    assert conn.position() == Vec3(0, 64, 0)


def test_best_harvest_tool_prefers_matching_kind():
    conn = fast_world(inventory=[{"name": "iron_shovel"}, {"name": "iron_pickaxe"}, {"name": "iron_axe"}])
    stone = conn.add_block("stone", Vec3(1, 63, 0))
    dirt = conn.add_block("dirt", Vec3(2, 63, 0))
    log_block = conn.add_block("oak_log", Vec3(3, 63, 0))

    assert conn.navigator.best_harvest_tool(stone).name == "iron_pickaxe"
    assert conn.navigator.best_harvest_tool(dirt).name == "iron_shovel"
    assert conn.navigator.best_harvest_tool(log_block).name == "iron_axe"


def test_best_harvest_tool_none_without_tools():
    conn = fast_world(inventory=[{"name": "bread"}])
    assert conn.navigator.best_harvest_tool(conn.add_block("stone", Vec3(1, 63, 0))) is None


@pytest.mark.asyncio
async def test_spawn_starts_physics_ticks_until_quit():
    conn = fast_world()
    ticks: List[int] = []
    spawned: List[bool] = []
    conn.once("spawn", lambda: spawned.append(True))
    conn.on("physics_tick", lambda: ticks.append(1))

    conn.spawn()
    await settle(lambda: len(ticks) >= 3)
    conn.quit()
    count = len(ticks)
    await asyncio.sleep(0.01)

    assert spawned == [True]
    assert len(ticks) == count
    assert conn.connected is False
    with pytest.raises(RuntimeError):
        conn.spawn()


@pytest.mark.asyncio
async def test_create_offline_connection_auto_spawns():
    conn = create_offline_connection({"tick_interval_s": 0.001})
    assert conn.spawned is False

    await settle(lambda: conn.spawned)
    conn.quit()


@pytest.mark.asyncio
async def test_create_offline_connection_can_skip_spawn():
    conn = create_offline_connection({"auto_spawn": False})
    await asyncio.sleep(0.01)
    assert conn.spawned is False


def test_chat_echoes_own_message():
    conn = fast_world(username="mbot")
    heard = []
    conn.on("chat", lambda user, msg: heard.append((user, msg)))

    conn.chat("hello")
    conn.receive_chat("alex", "hi")

    assert conn.sent_chat == ["hello"]
    assert heard == [("mbot", "hello"), ("alex", "hi")]


def test_emitter_once_off_and_failing_handler():
    emitter = EventEmitter()
    calls = []

    def boom(*_):
        raise RuntimeError("listener bug")

    def keep(value):
        calls.append(("keep", value))

    emitter.on("evt", boom)
    emitter.on("evt", keep)
    emitter.once("evt", lambda value: calls.append(("once", value)))

    emitter.emit("evt", 1)
    emitter.emit("evt", 2)
    emitter.off("evt", keep)
    emitter.emit("evt", 3)

    assert calls == [("keep", 1), ("once", 1), ("keep", 2)]
    assert emitter.listener_count("evt") == 1
