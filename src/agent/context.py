# src/agent/context.py
"""
AgentContext: the explicit owner of one agent session.

Every collaborator that used to be reachable "from anywhere" hangs off this
object instead:

    context.settings      resolved AgentSettings
    context.commands      command table (name -> InstructionCall)
    context.ui            UserInterface collaborator
    context.bus           monitoring EventBus (optional)
    context.modules       ModuleRegistry
    context.instructions  InstructionManager
    context.bot           live GameConnection, or None when not connected

Modules receive the context at mount time and reach each other through
context.modules.get(name).
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Any, Callable, Optional

from env.loader import AgentSettings
from instruction.errors import InstructionInterrupted
from instruction.interrupt import Interrupt
from instruction.manager import Dispatchable, InstructionManager
from modules.base import ModuleRegistry
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.game import ConnectionFactory, GameConnection
from spec.types import CommandTable
from spec.ui import UserInterface


log = logging.getLogger(__name__)


def load_connection_factory(provider: str) -> ConnectionFactory:
    """
    Import a "package.module:callable" connection provider.

    Raises:
        ValueError if the provider string is malformed, ImportError / AttributeError if
        it does not resolve.
    """
    module_name, sep, attr = provider.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Connection provider must look like 'package.module:factory', got {provider!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise TypeError(f"Connection provider {provider!r} is not callable")
    return factory


class AgentContext:
    def __init__(
        self,
        settings: AgentSettings,
        commands: CommandTable,
        ui: UserInterface,
        *,
        bus: Optional[EventBus] = None,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self.settings = settings
        self.commands = commands
        self.ui = ui
        self.bus = bus
        self.bot: Optional[GameConnection] = None

        self._connection_factory = connection_factory
        self._chat_handler: Optional[Callable[..., None]] = None
        self._whisper_handler: Optional[Callable[..., None]] = None

        self.modules = ModuleRegistry(self, bus=bus)
        self.instructions = InstructionManager(self.modules, commands, ui, bus=bus)

        ui.mount(self)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.bot is not None

    async def create_bot(self, interrupt: Optional[Interrupt] = None) -> GameConnection:
        """
        Connect, run every module's on_create_bot(), wait for spawn, then run
        on_spawn(). With an interrupt, a request during the spawn wait drops
        the connection and raises InstructionInterrupted("create_bot").

        Raises:
            RuntimeError if already connected, ModuleDependencyError from
            on_create_bot(), asyncio.TimeoutError if the bot never spawns,
            InstructionInterrupted if interrupted while waiting.
        """
        if self.bot is not None:
            raise RuntimeError("Bot already created; quit first")

        factory = self._connection_factory or load_connection_factory(
            self.settings.connection.provider
        )
        bot = factory(dict(self.settings.connection.options))
        self.bot = bot

        loop = asyncio.get_running_loop()
        spawned: "asyncio.Future[None]" = loop.create_future()

        def _on_spawn(*_: Any) -> None:
            if not spawned.done():
                spawned.set_result(None)

        def _stop() -> None:
            if not spawned.done():
                spawned.set_exception(InstructionInterrupted("create_bot"))

        if interrupt is not None:
            interrupt.set_on_interrupt(_stop)
        try:
            bot.once("spawn", _on_spawn)
            self.modules.create_bot()
            self._forward_chat(bot)
            await asyncio.wait_for(spawned, timeout=self.settings.connection.spawn_timeout_s)
            self.modules.spawn()
        except BaseException:
            self._drop_bot()
            raise
        finally:
            if interrupt is not None:
                interrupt.clear_on_interrupt()

        log.info("Bot %s spawned at %s", bot.username, bot.position())
        self.ui.log("Spawned")
        self._emit(EventType.BOT_SPAWNED, "Spawned", {"username": bot.username})
        return bot

    def quit(self) -> None:
        """Disconnect the bot. Safe to call when not connected."""
        if self.bot is None:
            return
        username = self.bot.username
        self._drop_bot()
        log.info("Bot %s quit", username)
        self._emit(EventType.BOT_QUIT, "Quit", {"username": username})

    def chat(self, message: str) -> None:
        if self.bot is None:
            raise RuntimeError("No game connection; run agent.create_bot first")
        self.bot.chat(message)

    async def dispatch(self, command: Dispatchable) -> None:
        """Shortcut for self.instructions.dispatch()."""
        await self.instructions.dispatch(command)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _forward_chat(self, bot: GameConnection) -> None:
        def on_chat(username: str, message: str) -> None:
            if username == bot.username:
                return
            self.ui.log_chat_message(username, message)
            self._emit(EventType.CHAT_MESSAGE, message, {"username": username, "kind": "chat"})

        def on_whisper(username: str, message: str) -> None:
            if username == bot.username:
                return
            self.ui.log_whisper(username, message)
            self._emit(EventType.CHAT_MESSAGE, message, {"username": username, "kind": "whisper"})

        bot.on("chat", on_chat)
        bot.on("whisper", on_whisper)
        self._chat_handler = on_chat
        self._whisper_handler = on_whisper

    def _drop_bot(self) -> None:
        bot, self.bot = self.bot, None
        if bot is None:
            return
        if self._chat_handler is not None:
            bot.off("chat", self._chat_handler)
        if self._whisper_handler is not None:
            bot.off("whisper", self._whisper_handler)
        self._chat_handler = None
        self._whisper_handler = None
        bot.quit()

    def _emit(self, event_type: EventType, message: str, payload: dict) -> None:
        if self.bus is None:
            return
        log_event(
            bus=self.bus,
            module="agent.context",
            event_type=event_type,
            message=message,
            payload=payload,
        )
