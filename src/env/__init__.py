# src/env/__init__.py
"""Settings and command-table loading."""

from __future__ import annotations

from .loader import (
    AgentSettings,
    ConnectionConfig,
    MonitoringConfig,
    UiConfig,
    load_command_table,
    load_settings,
    parse_command_table,
)

__all__ = [
    "AgentSettings",
    "ConnectionConfig",
    "MonitoringConfig",
    "UiConfig",
    "load_command_table",
    "load_settings",
    "parse_command_table",
]
