# src/game/offline.py
"""
In-memory GameConnection used for offline runs and tests.

Nothing here talks to a server. The world is a dict of blocks keyed by
integer coordinates, a dict of entities, and a flat inventory. Timing is
simulated with asyncio sleeps so interrupts and stop callbacks behave the
way they would against a live server:

- dig() takes `hardness * dig_time_per_hardness_s` and is aborted by
  stop_digging().
- navigator.goto() takes `distance * seconds_per_block` and is aborted by
  navigator.stop().
- a "physics_tick" event fires every `tick_interval_s` after spawn.

World options (all optional):

    username: mbot
    position: {x: 0, y: 64, z: 0}
    health: 20
    food: 20
    blocks:
      - {name: stone, x: 3, y: 63, z: 0, hardness: 1.5}
    regions:
      - {name: stone, from: {x: -4, y: 60, z: -4}, to: {x: 4, y: 62, z: 4}}
    inventory:
      - {name: iron_pickaxe, count: 1}
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from spec.types import (
    Block,
    Entity,
    Goal,
    GoalBlock,
    GoalCompositeAll,
    GoalCompositeAny,
    GoalFollow,
    GoalInvert,
    GoalLookAtBlock,
    GoalNear,
    GoalY,
    Item,
    Vec3,
)

from .emitter import EventEmitter, Handler


log = logging.getLogger(__name__)

Coord = Tuple[int, int, int]

# Entities closer than this to the player are picked up.
PICKUP_RANGE = 1.5

# Tool keyword -> block name fragments it harvests best.
_TOOL_KINDS: Dict[str, Tuple[str, ...]] = {
    "shovel": ("dirt", "grass", "sand", "gravel", "clay", "snow", "concrete_powder"),
    "axe": ("log", "planks", "wood", "chest", "crafting_table"),
    "pickaxe": ("stone", "ore", "cobblestone", "concrete", "brick", "obsidian", "deepslate"),
}


class NavigationError(RuntimeError):
    """goto() could not reach its goal or was stopped."""


def _coord(position: Vec3) -> Coord:
    p = position.floored()
    return int(p.x), int(p.y), int(p.z)


def _neighbors(position: Vec3, radius: int = 1) -> Iterable[Vec3]:
    base = position.floored()
    span = range(-radius, radius + 1)
    for dx, dy, dz in itertools.product(span, span, span):
        yield base.offset(dx, dy, dz)


# ---------------------------------------------------------------------------
# Navigator
# ---------------------------------------------------------------------------


class OfflineNavigator:
    """
    Teleport-style navigator: picks a passable standing position near the
    goal's anchor points that satisfies goal.is_end(), then "walks" there by
    sleeping for the travel time.
    """

    def __init__(self, connection: "OfflineConnection", seconds_per_block: float = 0.05) -> None:
        self._conn = connection
        self.seconds_per_block = seconds_per_block
        self.movements: Any = None
        self.goto_calls: List[Goal] = []

        self._stop_event: Optional[asyncio.Event] = None
        self._pursuit: Optional[asyncio.Task] = None

    async def goto(self, goal: Goal) -> None:
        self.goto_calls.append(goal)
        target = self._choose_target(goal)
        if target is None:
            raise NavigationError(f"No path to goal {goal!r}")

        distance = self._conn.position().distance_to(target)
        stop = asyncio.Event()
        self._stop_event = stop
        try:
            try:
                await asyncio.wait_for(stop.wait(), timeout=distance * self.seconds_per_block)
            except asyncio.TimeoutError:
                pass
            else:
                raise NavigationError("Path was stopped before it could be completed")
        finally:
            if self._stop_event is stop:
                self._stop_event = None

        self._conn.move_to(target)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._pursuit is not None and not self._pursuit.done():
            self._pursuit.cancel()
        self._pursuit = None

    def set_goal(self, goal: Optional[Goal]) -> None:
        if self._pursuit is not None and not self._pursuit.done():
            self._pursuit.cancel()
        self._pursuit = None
        if goal is None:
            return
        self._pursuit = asyncio.get_running_loop().create_task(self._pursue(goal))

    def set_movements(self, movements: Any) -> None:
        self.movements = movements

    def best_harvest_tool(self, block: Block) -> Optional[Item]:
        tools = [item for item in self._conn.inventory_items() if _tool_kind(item.name)]
        if not tools:
            return None
        for item in tools:
            kind = _tool_kind(item.name)
            if any(fragment in block.name for fragment in _TOOL_KINDS[kind]):
                return item
        return tools[0]

    # ------------------------------------------------------------------

    async def _pursue(self, goal: Goal) -> None:
        try:
            await self.goto(goal)
        except NavigationError as exc:
            log.debug("Pursuit of %r ended: %s", goal, exc)

    def _choose_target(self, goal: Goal) -> Optional[Vec3]:
        here = self._conn.position()
        candidates = [here]
        for anchor in _anchors(goal, here):
            candidates.extend(_neighbors(anchor, radius=1))
            candidates.append(anchor)

        reachable = [
            pos for pos in candidates
            if goal.is_end(pos) and (pos == here or self._conn.is_passable(pos))
        ]
        if not reachable:
            return None
        return min(reachable, key=here.distance_to)


def _tool_kind(item_name: str) -> Optional[str]:
    # "pickaxe" contains "axe", so check it first
    for kind in ("pickaxe", "shovel", "axe"):
        if item_name.endswith(kind):
            return kind
    return None


def _anchors(goal: Goal, here: Vec3) -> List[Vec3]:
    """Positions worth searching around for a standing spot."""
    if isinstance(goal, (GoalBlock, GoalNear, GoalLookAtBlock)):
        return [goal.position]
    if isinstance(goal, GoalFollow):
        return [goal.entity.position]
    if isinstance(goal, GoalY):
        return [Vec3(here.x, goal.y, here.z)]
    if isinstance(goal, (GoalCompositeAll, GoalCompositeAny)):
        anchors: List[Vec3] = []
        for sub in goal.goals:
            anchors.extend(_anchors(sub, here))
        return anchors
    if isinstance(goal, GoalInvert):
        return [here.offset(d, 0, 0) for d in (-16, -8, 8, 16)] + _anchors(goal.goal, here)
    return []


# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------


class OfflineConnection:
    """GameConnection backed by an in-memory world."""

    def __init__(
        self,
        username: str = "mbot",
        *,
        position: Vec3 = Vec3(0.0, 64.0, 0.0),
        health: float = 20.0,
        food: int = 20,
        tick_interval_s: float = 0.05,
        dig_time_per_hardness_s: float = 0.5,
        seconds_per_block: float = 0.05,
    ) -> None:
        self.username = username
        self.health = health
        self.food = food
        self.navigator = OfflineNavigator(self, seconds_per_block=seconds_per_block)

        self.tick_interval_s = tick_interval_s
        self.dig_time_per_hardness_s = dig_time_per_hardness_s

        self.spawned = False
        self.connected = True
        self.held_item: Optional[Item] = None
        self.looking_at: Optional[Vec3] = None
        self.auto_eat_enabled = False
        self.auto_eat_options: Dict[str, Any] = {}
        self.sent_chat: List[str] = []

        self._position = position
        self._blocks: Dict[Coord, Block] = {}
        self._entities: Dict[int, Entity] = {}
        self._inventory: List[Item] = []
        self._entity_ids = itertools.count(1)

        self._events = EventEmitter()
        self._tick_task: Optional[asyncio.Task] = None
        self._dig_stop: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> None:
        self._events.on(event, handler)

    def once(self, event: str, handler: Handler) -> None:
        self._events.once(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self._events.off(event, handler)

    def spawn(self) -> None:
        """Start ticking and emit "spawn". Must run inside the event loop."""
        if not self.connected:
            raise RuntimeError("Connection has quit")
        self.spawned = True
        if self._tick_task is None:
            self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())
        self._events.emit("spawn")

    async def _tick_loop(self) -> None:
        while self.connected:
            await asyncio.sleep(self.tick_interval_s)
            self._events.emit("physics_tick")

    # ------------------------------------------------------------------
    # World queries
    # ------------------------------------------------------------------

    def position(self) -> Vec3:
        return self._position

    def block_at(self, position: Vec3) -> Optional[Block]:
        block = self._blocks.get(_coord(position))
        if block is None:
            return Block(name="air", position=position.floored(), bounding_box="empty", hardness=0.0)
        return block

    def is_passable(self, position: Vec3) -> bool:
        return _coord(position) not in self._blocks

    def find_blocks(
        self,
        matching: Iterable[str],
        *,
        max_distance: float = 16.0,
        count: int = 1,
        predicate: Optional[Callable[[Block], bool]] = None,
    ) -> List[Vec3]:
        names = set(matching)
        here = self._position
        found = [
            block for block in self._blocks.values()
            if block.name in names
            and block.position.distance_to(here) <= max_distance
            and (predicate is None or predicate(block))
        ]
        found.sort(key=lambda b: b.position.distance_to(here))
        return [block.position for block in found[:count]]

    def nearest_entity(
        self,
        predicate: Optional[Callable[[Entity], bool]] = None,
    ) -> Optional[Entity]:
        candidates = [e for e in self._entities.values() if predicate is None or predicate(e)]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.position.distance_to(self._position))

    def inventory_items(self) -> List[Item]:
        return list(self._inventory)

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    async def equip(self, item: Item, destination: str = "hand") -> None:
        if item not in self._inventory:
            raise RuntimeError(f"{item.name} is not in the inventory")
        await asyncio.sleep(0)
        self.held_item = item

    async def dig(self, block: Block) -> None:
        target = self._blocks.get(_coord(block.position))
        if target is None:
            raise RuntimeError(f"No block to dig at {block.position}")

        stop = asyncio.Event()
        self._dig_stop = stop
        try:
            try:
                await asyncio.wait_for(
                    stop.wait(),
                    timeout=target.hardness * self.dig_time_per_hardness_s,
                )
            except asyncio.TimeoutError:
                pass
            else:
                raise RuntimeError("Digging aborted")
        finally:
            if self._dig_stop is stop:
                self._dig_stop = None

        del self._blocks[_coord(target.position)]
        self.add_dropped_item(target.name, target.position.offset(0.5, 0.0, 0.5))

    def stop_digging(self) -> None:
        if self._dig_stop is not None:
            self._dig_stop.set()

    async def place_block(self, reference: Block, face: Vec3) -> None:
        item = self.held_item
        if item is None or item not in self._inventory:
            raise RuntimeError("must be holding an item to place")

        target = reference.position.floored() + face
        if not self.is_passable(target):
            raise RuntimeError(f"Cannot place {item.name} at {target}: position is occupied")

        await asyncio.sleep(0)
        name = item.name
        # powder next to water sets immediately
        if name.endswith("_concrete_powder") and self._touches(target, "water"):
            name = name[: -len("_powder")]
        self.add_block(name, target)
        self._consume(item)

    async def look_at(self, position: Vec3) -> None:
        await asyncio.sleep(0)
        self.looking_at = position

    def set_auto_eat(self, enabled: bool, options: Optional[Dict[str, Any]] = None) -> None:
        self.auto_eat_enabled = enabled
        if options is not None:
            self.auto_eat_options = dict(options)

    def chat(self, message: str) -> None:
        self.sent_chat.append(message)
        # the server echoes our own messages back
        self._events.emit("chat", self.username, message)

    def quit(self) -> None:
        self.connected = False
        self.navigator.stop()
        self.stop_digging()
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    # ------------------------------------------------------------------
    # Simulation helpers (also used by tests)
    # ------------------------------------------------------------------

    def move_to(self, position: Vec3) -> None:
        self._position = position
        self._pick_up_nearby()

    def add_block(self, name: str, position: Vec3, *, hardness: float = 1.0, **properties: Any) -> Block:
        block = Block(name=name, position=position.floored(), properties=dict(properties), hardness=hardness)
        self._blocks[_coord(position)] = block
        return block

    def remove_block(self, position: Vec3) -> None:
        self._blocks.pop(_coord(position), None)

    def add_item(self, name: str, count: int = 1) -> Item:
        item = Item(name=name, count=count, slot=len(self._inventory))
        self._inventory.append(item)
        return item

    def add_dropped_item(self, name: str, position: Vec3, count: int = 1) -> Entity:
        entity = Entity(
            id=next(self._entity_ids),
            name="item",
            position=position,
            dropped_item=Item(name=name, count=count),
        )
        self._entities[entity.id] = entity
        return entity

    def remove_entity(self, entity: Entity) -> None:
        if self._entities.pop(entity.id, None) is not None:
            self._events.emit("entity_gone", entity)

    def set_health(self, health: float, food: Optional[int] = None) -> None:
        self.health = health
        if food is not None:
            self.food = food
        self._events.emit("health")

    def receive_chat(self, username: str, message: str) -> None:
        self._events.emit("chat", username, message)

    def receive_whisper(self, username: str, message: str) -> None:
        self._events.emit("whisper", username, message)

    def _pick_up_nearby(self) -> None:
        for entity in list(self._entities.values()):
            dropped = entity.dropped_item
            if dropped is None or entity.position.distance_to(self._position) > PICKUP_RANGE:
                continue
            self._stash(dropped)
            self.remove_entity(entity)

    def _stash(self, item: Item) -> None:
        for existing in self._inventory:
            if existing.name == item.name:
                existing.count += item.count
                return
        self.add_item(item.name, item.count)

    def _consume(self, item: Item) -> None:
        item.count -= 1
        if item.count <= 0:
            self._inventory.remove(item)
            if self.held_item is item:
                self.held_item = None

    def _touches(self, position: Vec3, block_name: str) -> bool:
        for face in _FACES:
            neighbor = self._blocks.get(_coord(position + face))
            if neighbor is not None and neighbor.name == block_name:
                return True
        return False


_FACES = (
    Vec3(1, 0, 0), Vec3(-1, 0, 0),
    Vec3(0, 1, 0), Vec3(0, -1, 0),
    Vec3(0, 0, 1), Vec3(0, 0, -1),
)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def _vec(data: Mapping[str, Any]) -> Vec3:
    return Vec3.from_mapping(data)


def build_offline_connection(options: Mapping[str, Any]) -> OfflineConnection:
    """Build an OfflineConnection and its world from settings options."""
    conn = OfflineConnection(
        username=str(options.get("username", "mbot")),
        position=_vec(options.get("position") or {"x": 0, "y": 64, "z": 0}),
        health=float(options.get("health", 20.0)),
        food=int(options.get("food", 20)),
        tick_interval_s=float(options.get("tick_interval_s", 0.05)),
        dig_time_per_hardness_s=float(options.get("dig_time_per_hardness_s", 0.5)),
        seconds_per_block=float(options.get("seconds_per_block", 0.05)),
    )

    for entry in options.get("blocks") or []:
        conn.add_block(entry["name"], _vec(entry), hardness=float(entry.get("hardness", 1.0)))

    for region in options.get("regions") or []:
        low, high = _vec(region["from"]).floored(), _vec(region["to"]).floored()
        xs = range(int(min(low.x, high.x)), int(max(low.x, high.x)) + 1)
        ys = range(int(min(low.y, high.y)), int(max(low.y, high.y)) + 1)
        zs = range(int(min(low.z, high.z)), int(max(low.z, high.z)) + 1)
        for x, y, z in itertools.product(xs, ys, zs):
            conn.add_block(region["name"], Vec3(x, y, z), hardness=float(region.get("hardness", 1.0)))

    for entry in options.get("inventory") or []:
        conn.add_item(entry["name"], int(entry.get("count", 1)))

    return conn


def create_offline_connection(options: Mapping[str, Any]) -> OfflineConnection:
    """
    ConnectionFactory entry point ("game.offline:create_offline_connection").

    Like a real client, the connection spawns on its own shortly after being
    created. Must be called from inside a running event loop.
    """
    conn = build_offline_connection(options)

    def spawn_if_connected() -> None:
        # the session may have been dropped before the loop got here
        if conn.connected:
            conn.spawn()

    if options.get("auto_spawn", True):
        asyncio.get_running_loop().call_soon(spawn_if_connected)
    return conn
