# instruction package
# src/instruction/__init__.py
"""
Instruction execution & interrupt coordination.

Exports:
    - InstructionManager: single-flight dispatcher with cooperative preemption
    - Interrupt: cancellation / rendezvous token handed to every action
    - InvalidInstruction, UnknownCommand, UnknownModule, UnknownAction,
      InstructionInterrupted, ActionFailed: error taxonomy
"""

from __future__ import annotations

from .errors import (
    ActionFailed,
    InstructionInterrupted,
    InvalidInstruction,
    UnknownAction,
    UnknownCommand,
    UnknownModule,
)
from .interrupt import Interrupt
from .manager import InstructionManager

__all__ = [
    "InstructionManager",
    "Interrupt",
    "InvalidInstruction",
    "UnknownCommand",
    "UnknownModule",
    "UnknownAction",
    "InstructionInterrupted",
    "ActionFailed",
]
