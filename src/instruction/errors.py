# src/instruction/errors.py
"""
Error taxonomy for instruction execution.

- InvalidInstruction (and subclasses): the request could not be resolved to
  a module action. Raised to the dispatcher before any state changes.
- InstructionInterrupted: a running action observed an interrupt request at
  one of its checkpoints. Expected control flow.
- ActionFailed: recoverable, action-level failure (no path, no tool, ...).
  Reported to the user interface; the agent stays responsive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class InvalidInstruction(ValueError):
    """
    Raised when a command / instruction call cannot be resolved.

    Codes:
        invalid_command_name, invalid_contents, invalid_module_name,
        invalid_module, invalid_instruction_name, invalid_instruction,
        invalid_args
    """

    code: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, details={self.details!r})"


@dataclass
class UnknownCommand(InvalidInstruction):
    """No entry with that name in the command table."""


@dataclass
class UnknownModule(InvalidInstruction):
    """No module mounted under that name."""


@dataclass
class UnknownAction(InvalidInstruction):
    """The module exists but has no @instruction with that name."""


class InstructionInterrupted(RuntimeError):
    """Raised by Interrupt.raise_if_interrupted() at an action checkpoint."""

    def __init__(self, label: str) -> None:
        super().__init__(f"{label} Interrupted")
        self.label = label


@dataclass
class ActionFailed(RuntimeError):
    """
    Domain-level failure raised by module actions.

    Examples:
        - no_blocks_found: nothing matching within range
        - no_harvest_tool: no inventory item can dig the target
        - invalid_args: argument payload does not fit the action
    """

    code: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"ActionFailed(code={self.code!r}, details={self.details!r})"
