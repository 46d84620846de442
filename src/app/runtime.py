# src/app/runtime.py

from __future__ import annotations  # allow forward type hints

import argparse                     # CLI parsing
import asyncio                      # single event loop for the whole agent
import logging
from dataclasses import replace     # settings overrides from the CLI
from pathlib import Path
from typing import Callable, Dict, List, Optional

from agent.context import AgentContext                               # session owner
from agent.logging_config import configure_logging
from env.loader import AgentSettings, load_command_table, load_settings
from modules import (                                                # concrete modules
    ConcreteMixerModule,
    HealthModule,
    MinerModule,
    ModuleBase,
    MoverModule,
    SessionModule,
    UtilityModule,
)
from monitoring.bus import EventBus
from monitoring.logger import JsonFileLogger
from spec.game import ConnectionFactory
from spec.types import CommandTable
from spec.ui import UserInterface
from ui.base import LoggingUserInterface
from ui.console import ConsoleUserInterface


log = logging.getLogger(__name__)

OFFLINE_PROVIDER = "game.offline:create_offline_connection"

# settings.modules entry -> module constructor
MODULE_FACTORIES: Dict[str, Callable[[], ModuleBase]] = {
    "agent": SessionModule,
    "utility": UtilityModule,
    "mover": MoverModule,
    "miner": MinerModule,
    "health": HealthModule,
    "concrete_mixer": ConcreteMixerModule,
}


# ------------------------------
# Assembly
# ------------------------------


def make_ui(settings: AgentSettings) -> UserInterface:
    """Pick the UI named by settings.ui.kind."""
    if settings.ui.kind == "console":
        return ConsoleUserInterface(prompt=settings.ui.prompt)
    return LoggingUserInterface()


def build_agent(
    settings: AgentSettings,
    commands: CommandTable,
    ui: Optional[UserInterface] = None,
    *,
    bus: Optional[EventBus] = None,
    connection_factory: Optional[ConnectionFactory] = None,
) -> AgentContext:
    """
    Wire settings + command table into an AgentContext with every module in
    settings.modules mounted, in order.

    Raises:
        ValueError for a module name with no factory.
    """
    context = AgentContext(                           # owns registry + manager
        settings,
        commands,
        ui or make_ui(settings),
        bus=bus,
        connection_factory=connection_factory,
    )
    for name in settings.modules:
        factory = MODULE_FACTORIES.get(name)
        if factory is None:
            raise ValueError(f"Unknown module {name!r}; known: {sorted(MODULE_FACTORIES)}")
        context.modules.mount(factory())
    return context


async def run_agent(
    context: AgentContext,
    *,
    join: bool = True,
    run: Optional[List[str]] = None,
) -> None:
    """
    Join the game, run any scripted commands, then hand control to the UI's
    input loop (if it has one). Always disconnects on the way out.

    Raises:
        ModuleDependencyError or asyncio.TimeoutError if joining fails; no
        scripted command runs in that case.
    """
    try:
        # 1) Connect and spawn; dependency and spawn errors are fatal here.
        if join:
            await context.create_bot()

        # 2) Scripted commands, one after another.
        for name in run or []:
            await context.dispatch(name)
            context.ui.notify(f"Finished command {name}")

        # 3) Interactive input, if the UI reads any.
        reader = getattr(context.ui, "run", None)
        if reader is not None:
            await reader()
    finally:
        # 4) Always disconnect cleanly.
        context.quit()


# ------------------------------
# CLI
# ------------------------------


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mbot",
        description="Run the mbot game agent.",
    )
    parser.add_argument("--settings", type=str, default=None, help="Path to settings.yaml.")
    parser.add_argument("--commands", type=str, default=None, help="Path to the command table (YAML or JSON).")
    parser.add_argument("--offline", action="store_true", help="Use the in-memory offline world.")
    parser.add_argument("--log-level", type=str, default=None, help="Override settings.log_level.")
    parser.add_argument("--event-log", type=str, default=None, help="Write monitoring events (JSONL) here.")
    parser.add_argument("--headless", action="store_true", help="No console UI; log only.")
    parser.add_argument("--no-join", action="store_true", help="Do not create the bot at startup.")
    parser.add_argument(
        "--run",
        action="append",
        default=[],
        metavar="COMMAND",
        help="Dispatch COMMAND after joining (repeatable).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point: load config, assemble the agent, run it."""
    args = build_arg_parser().parse_args(argv)

    # 1) Resolve settings (CLI flags win over the file).
    settings = load_settings(Path(args.settings) if args.settings else None)
    if args.offline:
        settings = replace(settings, connection=replace(settings.connection, provider=OFFLINE_PROVIDER))
    if args.log_level:
        settings = replace(settings, log_level=args.log_level.upper())
    if args.headless:
        settings = replace(settings, ui=replace(settings.ui, kind="logging"))

    configure_logging(getattr(logging, settings.log_level, logging.INFO))

    # 2) Command table.
    commands = load_command_table(Path(args.commands) if args.commands else Path(settings.commands_path))
    log.info("Loaded %d commands", len(commands))

    # 3) Monitoring.
    bus = EventBus()
    event_log_path = args.event_log or settings.monitoring.event_log_path
    json_logger = JsonFileLogger(Path(event_log_path), bus) if event_log_path else None

    # 4) Assemble and run.
    context = build_agent(settings, commands, bus=bus)
    try:
        asyncio.run(run_agent(context, join=not args.no_join, run=args.run))
    finally:
        if json_logger is not None:
            json_logger.close()


if __name__ == "__main__":
    main()
