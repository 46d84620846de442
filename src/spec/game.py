# GameConnection / Navigator interface definitions
# src/spec/game.py

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .types import Block, Entity, Goal, Item, Vec3


EventHandler = Callable[..., None]


class Navigator(Protocol):
    """
    Path-following capability of the game connection.

    Path search, movement costs and physics are the navigator's business.
    The agent only hands it goals and movement settings.
    """

    async def goto(self, goal: Goal) -> None:
        """
        Travel until `goal.is_end(position)` holds.

        Raises if the goal is unreachable or if `stop()` is called while
        travelling.
        """
        ...

    def stop(self) -> None:
        """Abort the current goto()/set_goal() as soon as possible."""
        ...

    def set_goal(self, goal: Optional[Goal]) -> None:
        """Set a goal to keep pursuing without awaiting it (None clears)."""
        ...

    def set_movements(self, movements: Any) -> None:
        """Apply a MovementSettings object to subsequent path searches."""
        ...

    def best_harvest_tool(self, block: Block) -> Optional[Item]:
        """Return the best inventory item to dig `block` with, if any."""
        ...


class GameConnection(Protocol):
    """
    Abstract interface for the scripted player's connection to the world.

    The agent core never implements this; concrete providers wrap a real
    client (or the in-memory game.offline.OfflineConnection).

    Events emitted through on()/once():
        "spawn"         ()
        "chat"          (username, message)
        "whisper"       (username, message)
        "health"        ()
        "physics_tick"  ()
        "entity_gone"   (entity)
    """

    username: str
    health: float
    food: int
    navigator: Navigator

    # -- events ---------------------------------------------------------

    def on(self, event: str, handler: EventHandler) -> None:
        ...

    def once(self, event: str, handler: EventHandler) -> None:
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        ...

    # -- world queries --------------------------------------------------

    def position(self) -> Vec3:
        ...

    def block_at(self, position: Vec3) -> Optional[Block]:
        ...

    def find_blocks(
        self,
        matching: Iterable[str],
        *,
        max_distance: float = 16.0,
        count: int = 1,
        predicate: Optional[Callable[[Block], bool]] = None,
    ) -> List[Vec3]:
        """Positions of matching blocks, nearest first."""
        ...

    def nearest_entity(
        self,
        predicate: Optional[Callable[[Entity], bool]] = None,
    ) -> Optional[Entity]:
        ...

    def inventory_items(self) -> List[Item]:
        ...

    # -- interaction ----------------------------------------------------

    async def equip(self, item: Item, destination: str = "hand") -> None:
        ...

    async def dig(self, block: Block) -> None:
        """Dig `block`; raises if stop_digging() is called before it breaks."""
        ...

    def stop_digging(self) -> None:
        ...

    async def place_block(self, reference: Block, face: Vec3) -> None:
        ...

    async def look_at(self, position: Vec3) -> None:
        ...

    def set_auto_eat(self, enabled: bool, options: Optional[Dict[str, Any]] = None) -> None:
        ...

    def chat(self, message: str) -> None:
        ...

    def quit(self) -> None:
        ...


# Plugin entry point: settings.connection.provider names a callable of this shape.
ConnectionFactory = Callable[[Dict[str, Any]], GameConnection]
