# path: src/monitoring/events.py
"""
Event schemas for monitoring.

This module defines:
- EventType enum
- MonitoringEvent (structured system events)

All events are JSON-serializable via `.to_dict()` and are intended for use
with monitoring.bus.EventBus and monitoring.logger.JsonFileLogger.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum, auto
from typing import Any, Dict, Optional


# ============================================================
# Event Types
# ============================================================

class EventType(Enum):
    """Typed monitoring events emitted throughout the agent."""

    # Instruction lifecycle (InstructionManager)
    INSTRUCTION_STARTED = auto()
    INSTRUCTION_FINISHED = auto()
    INSTRUCTION_FAILED = auto()
    INSTRUCTION_INTERRUPTED = auto()

    # Interrupt handshake
    INTERRUPT_REQUESTED = auto()
    INTERRUPT_ACKNOWLEDGED = auto()

    # Module lifecycle hooks (mount / create_bot / spawn)
    MODULE_LIFECYCLE = auto()

    # Agent session
    BOT_SPAWNED = auto()
    BOT_QUIT = auto()

    # In-game chat and whispers forwarded to the UI
    CHAT_MESSAGE = auto()

    # Generic log messages
    LOG = auto()


# ============================================================
# Monitoring Event Structure
# ============================================================

@dataclass
class MonitoringEvent:
    """
    Runtime event emitted by the instruction manager, modules, the agent
    session or a user interface.

    All fields must be JSON-safe.
    """

    ts: float                   # UNIX timestamp (seconds)
    module: str                 # Source module string ("instruction.manager", "modules.health", ...)
    event_type: EventType       # Enum describing the event class
    message: str                # Short human-readable description
    payload: Dict[str, Any]     # Structured data (instruction call, exception repr, ...)
    correlation_id: Optional[str] = None  # Used for grouping events per session

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for loggers."""
        data = asdict(self)
        data["event_type"] = self.event_type.name  # store name, not enum
        return data
