# rich-based interactive console
# src/ui/console.py
"""
Interactive terminal UI built on `rich`.

Every line typed at the prompt is one of:

    help            list commands and module instructions
    status          show what the instruction manager is doing
    chat <text>     say <text> in game
    exit            stop reading input
    <command name>  dispatch a command from the command table

Commands are dispatched in the background, so typing a new command while
one is running interrupts it. When a dispatch settles the console replies
"Finished command <name>", or prints the error if the command could not be
resolved.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Set

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from instruction.errors import InvalidInstruction


log = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit!"}


class ConsoleUserInterface:
    def __init__(
        self,
        console: Optional[Console] = None,
        *,
        prompt: str = "> ",
        input_fn: Optional[Callable[[str], str]] = None,
    ) -> None:
        self.console = console or Console()
        self.prompt = prompt
        self._input_fn = input_fn or self.console.input
        self.context: Any = None
        self._pending: Set[asyncio.Task] = set()

    # --------------------------------------------------------
    # UserInterface protocol
    # --------------------------------------------------------

    def mount(self, context: Any) -> None:
        self.context = context

    def notify(self, message: str) -> None:
        self.console.print(f"[bold cyan]{escape(message)}[/bold cyan]")

    def log(self, message: str) -> None:
        log.debug("%s", message)
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def log_error(self, error: BaseException | str) -> None:
        text = f"{type(error).__name__}: {error}" if isinstance(error, BaseException) else str(error)
        log.debug("UI error: %s", text)
        self.console.print(f"[bold red]Error[/bold red] {escape(text)}")

    def log_chat_message(self, username: str, message: str) -> None:
        self.console.print(f"[green]<{escape(username)}>[/green] {escape(message)}")

    def log_whisper(self, username: str, message: str) -> None:
        self.console.print(f"[magenta]{escape(username)} whispers:[/magenta] {escape(message)}")

    # --------------------------------------------------------
    # Input loop
    # --------------------------------------------------------

    async def run(self) -> None:
        """Read lines until EOF or an exit word, then wait for running commands."""
        while True:
            try:
                line = await asyncio.to_thread(self._input_fn, self.prompt)
            except (EOFError, KeyboardInterrupt):
                break
            if not await self.handle_line(line):
                break
        await self.drain()

    async def handle_line(self, line: str) -> bool:
        """Handle one input line. Returns False when the user asked to exit."""
        text = line.strip()
        if not text:
            return True

        if text in EXIT_WORDS:
            return False
        if text == "help":
            self.print_help()
        elif text == "status":
            self.print_status()
        elif text.startswith("chat "):
            self._chat(text[len("chat "):])
        else:
            self.submit(text)
        return True

    def submit(self, command_name: str) -> "asyncio.Task[None]":
        """Dispatch a command in the background."""
        task = asyncio.get_running_loop().create_task(self._run_command(command_name))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background dispatch to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _run_command(self, command_name: str) -> None:
        try:
            await self.context.dispatch(command_name)
        except InvalidInstruction as exc:
            self.log_error(exc)
            return
        self.console.print(f"Finished command {escape(command_name)}")

    def _chat(self, message: str) -> None:
        try:
            self.context.chat(message)
        except RuntimeError as exc:
            self.log_error(exc)

    # --------------------------------------------------------
    # Rendering
    # --------------------------------------------------------

    def print_help(self) -> None:
        table = Table(title="Commands")
        table.add_column("Command", style="bold")
        table.add_column("Instruction")
        table.add_column("Args")
        for name, call in sorted(self.context.commands.items()):
            table.add_row(name, f"{call.module}.{call.instruction}", escape(str(dict(call.args))))
        self.console.print(table)

        modules = Table(title="Modules")
        modules.add_column("Module", style="bold")
        modules.add_column("Instructions")
        for name, instructions in self.context.modules.describe().items():
            modules.add_row(name, ", ".join(instructions))
        self.console.print(modules)
        self.console.print("Also: help, status, chat <text>, exit")

    def print_status(self) -> None:
        status = self.context.instructions.status()
        current = status["current"]
        running = f"{current['module']}.{current['instruction']}" if current else "-"
        connected = "yes" if self.context.connected else "no"
        self.console.print(
            f"state=[bold]{status['state']}[/bold] running={escape(running)} connected={connected}"
        )
