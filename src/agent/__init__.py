# src/agent/__init__.py
"""Agent session wiring: AgentContext and logging setup."""

from __future__ import annotations

from .context import AgentContext, load_connection_factory
from .logging_config import configure_logging

__all__ = [
    "AgentContext",
    "configure_logging",
    "load_connection_factory",
]
