# AgentSettings, ConnectionConfig, UiConfig, MonitoringConfig dataclasses
# src/env/schema.py

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ConnectionConfig:
    """How to reach the game world."""
    # "package.module:factory" returning a spec.game.GameConnection
    provider: str = "game.offline:create_offline_connection"
    options: Dict[str, Any] = field(default_factory=dict)  # passed to the factory as-is
    spawn_timeout_s: Optional[float] = 30.0                 # None waits forever


@dataclass
class UiConfig:
    """Which user interface fronts the agent."""
    kind: str = "console"  # "console" or "logging"
    prompt: str = "> "


@dataclass
class MonitoringConfig:
    """Where structured monitoring events go, if anywhere."""
    event_log_path: Optional[str] = None


@dataclass
class AgentSettings:
    """Top-level resolved agent settings."""
    name: str
    connection: ConnectionConfig
    ui: UiConfig
    monitoring: MonitoringConfig
    modules: List[str]      # module names mounted in this order
    commands_path: str      # absolute path of the command table file
    log_level: str = "INFO"
