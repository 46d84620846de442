# src/instruction/manager.py
"""
InstructionManager: decode commands into module actions and run them one at
a time, letting a newly arriving command preempt the running one.

Public surface:
    class InstructionManager:
        dispatch(command_name | InstructionCall | mapping) -> None   (async)
        run_command(command_name) -> None                            (async)
        run_instruction(InstructionCall | mapping) -> None           (async)
        resolve(InstructionCall | mapping) -> (InstructionCall, handler)
        doing_instruction / state / current / interrupt / status()

State machine:
    Idle         --dispatch-->            Running
    Running      --dispatch-->            Interrupting --acknowledge--> Running
    Running      --action settles-->      Idle

Failure policy:
    - Resolution errors (InvalidInstruction and subclasses) are raised to
      the caller of dispatch before any state changes.
    - Anything the action raises, including InstructionInterrupted, is
      reported once to ui.log_error() and to the monitoring bus. The
      dispatch call itself still completes normally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.modules import InstructionHandler
from spec.types import CommandTable, InstructionCall
from spec.ui import UserInterface

from .errors import InstructionInterrupted, InvalidInstruction, UnknownCommand
from .interrupt import Interrupt


log = logging.getLogger(__name__)

Dispatchable = Union[str, InstructionCall, Mapping[str, Any]]


class InstructionManager:
    """
    Single-flight executor for module instructions.

    Construction takes explicit references to everything it touches; the
    AgentContext owns the instance and shares the same registry, command
    table and UI with every module.
    """

    def __init__(
        self,
        modules: Any,
        commands: CommandTable,
        ui: UserInterface,
        *,
        bus: Optional[EventBus] = None,
    ) -> None:
        """
        Parameters
        ----------
        modules:
            A modules.base.ModuleRegistry (anything with resolve(module, instruction)).
        commands:
            Command table, command name -> InstructionCall. Read by key only.
        ui:
            Error-reporting collaborator; receives log_error() on action failure.
        bus:
            Optional monitoring EventBus for structured instruction events.
        """
        self._modules = modules
        self._commands = commands
        self._ui = ui
        self._bus = bus

        self._interrupt = Interrupt()
        self._doing_instruction: bool = False
        self._current: Optional[InstructionCall] = None

        # Serializes the interrupt handshake; asyncio.Lock wakes waiters FIFO.
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def doing_instruction(self) -> bool:
        return self._doing_instruction

    @property
    def interrupt(self) -> Interrupt:
        return self._interrupt

    @property
    def current(self) -> Optional[InstructionCall]:
        return self._current

    @property
    def state(self) -> str:
        """'idle', 'running' or 'interrupting'."""
        if not self._doing_instruction:
            return "idle"
        if self._interrupt.has_interrupt:
            return "interrupting"
        return "running"

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "current": self._current.to_dict() if self._current else None,
            "has_interrupt": self._interrupt.has_interrupt,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def dispatch(self, command: Dispatchable) -> None:
        """
        Run a command by name, or an instruction call directly.

        Resolves when the dispatched action settles (or immediately after
        its failure has been reported).
        """
        if isinstance(command, str):
            await self.run_command(command)
        else:
            await self.run_instruction(command)

    async def run_command(self, command_name: str) -> None:
        """Look up `command_name` in the command table and run it."""
        call = self._commands.get(command_name) if isinstance(command_name, str) else None
        if not isinstance(call, InstructionCall):
            raise UnknownCommand(
                code="invalid_command_name",
                details={"command": command_name},
            )
        await self.run_instruction(call)

    async def run_instruction(self, contents: Union[InstructionCall, Mapping[str, Any]]) -> None:
        """Resolve and run one instruction, interrupting the current one if busy."""
        call, handler = self.resolve(contents)

        async with self._lock:
            if self._doing_instruction:
                await self._interrupt_current(call)
            self._doing_instruction = True
            self._current = call

        await self._execute(call, handler)

    def resolve(
        self,
        contents: Union[InstructionCall, Mapping[str, Any]],
    ) -> Tuple[InstructionCall, InstructionHandler]:
        """
        Validate `contents` and look up the handler it names.

        Raises:
            InvalidInstruction / UnknownModule / UnknownAction
        """
        call = self._to_call(contents)
        handler = self._modules.resolve(call.module, call.instruction)
        return call, handler

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _to_call(contents: Union[InstructionCall, Mapping[str, Any]]) -> InstructionCall:
        if isinstance(contents, InstructionCall):
            module_name = contents.module
            instruction_name = contents.instruction
            args: Any = contents.args
        elif isinstance(contents, Mapping):
            module_name = contents.get("module")
            instruction_name = contents.get("instruction")
            args = contents.get("args")
        else:
            raise InvalidInstruction(
                code="invalid_contents",
                details={"contents_type": type(contents).__name__},
            )

        if not isinstance(module_name, str):
            raise InvalidInstruction(code="invalid_module_name", details={"module": module_name})
        if not isinstance(instruction_name, str):
            raise InvalidInstruction(
                code="invalid_instruction_name",
                details={"instruction": instruction_name},
            )

        if args is None:
            args = {}
        if not isinstance(args, Mapping):
            raise InvalidInstruction(
                code="invalid_args",
                details={"module": module_name, "instruction": instruction_name},
            )

        if isinstance(contents, InstructionCall) and args is contents.args:
            return contents
        return InstructionCall(module=module_name, instruction=instruction_name, args=args)

    async def _interrupt_current(self, incoming: InstructionCall) -> None:
        running = self._current
        log.info(
            "Interrupting %s for %s.%s",
            f"{running.module}.{running.instruction}" if running else "<unknown>",
            incoming.module,
            incoming.instruction,
        )
        self._emit(
            EventType.INTERRUPT_REQUESTED,
            "Interrupt requested",
            {
                "running": running.to_dict() if running else None,
                "incoming": incoming.to_dict(),
            },
        )
        await self._interrupt.request_interrupt()

    async def _execute(self, call: InstructionCall, handler: InstructionHandler) -> None:
        label = f"{call.module}.{call.instruction}"
        log.debug("Instruction start %s args=%r", label, dict(call.args))
        self._emit(EventType.INSTRUCTION_STARTED, f"Started {label}", call.to_dict())

        try:
            # Actions may mutate their args; never hand out the command table's mapping.
            await handler(dict(call.args), self._interrupt)
        except Exception as exc:
            interrupted = isinstance(exc, InstructionInterrupted) or self._interrupt.has_interrupt
            if interrupted:
                log.info("Instruction %s interrupted: %s", label, exc)
                event_type = EventType.INSTRUCTION_INTERRUPTED
            else:
                log.warning("Instruction %s failed: %r", label, exc)
                event_type = EventType.INSTRUCTION_FAILED
            self._emit(
                event_type,
                f"{label}: {exc}",
                {**call.to_dict(), "exception": repr(exc)},
            )
            self._report_error(exc)
        else:
            log.debug("Instruction end %s", label)
            self._emit(EventType.INSTRUCTION_FINISHED, f"Finished {label}", call.to_dict())
        finally:
            self._interrupt.clear_on_interrupt()
            self._current = None
            self._doing_instruction = False
            # A waiter exists whenever has_interrupt is set, even if the
            # action finished without noticing it.
            if self._interrupt.has_interrupt:
                self._interrupt.acknowledge()
                self._emit(EventType.INTERRUPT_ACKNOWLEDGED, "Interrupt acknowledged", call.to_dict())

    def _report_error(self, exc: BaseException) -> None:
        try:
            self._ui.log_error(exc)
        except Exception:
            # Error reporting must never break the manager.
            log.exception("UserInterface.log_error raised")

    def _emit(self, event_type: EventType, message: str, payload: Dict[str, Any]) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="instruction.manager",
            event_type=event_type,
            message=message,
            payload=payload,
        )
