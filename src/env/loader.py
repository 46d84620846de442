# load settings.yaml / commands.yaml and resolve them into typed config
# src/env/loader.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from spec.types import CommandTable, InstructionCall

from .schema import AgentSettings, ConnectionConfig, MonitoringConfig, UiConfig


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"

# MBOT_CONFIG overrides where the default settings file is read from.
SETTINGS_ENV_VAR = "MBOT_CONFIG"

DEFAULT_MODULES = ["agent", "utility", "mover", "miner", "health", "concrete_mixer"]
UI_KINDS = ("console", "logging")


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML (or JSON) mapping from `path`."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _resolve_relative(path_str: str, base: Path) -> Path:
    path = Path(path_str)
    if not path.is_absolute():
        path = base / path
    return path


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_settings_path() -> Path:
    override = os.getenv(SETTINGS_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_ROOT / "settings.yaml"


def load_settings(path: Optional[Path] = None) -> AgentSettings:
    """Main entry point: returns fully resolved AgentSettings."""
    settings_path = Path(path) if path is not None else default_settings_path()
    raw = _load_yaml(settings_path)

    conn_raw = raw.get("connection") or {}
    if not isinstance(conn_raw, dict):
        raise ValueError("settings 'connection' must be a mapping.")
    connection = ConnectionConfig(
        provider=conn_raw.get("provider", ConnectionConfig.provider),
        options=dict(conn_raw.get("options") or {}),
        spawn_timeout_s=conn_raw.get("spawn_timeout_s", 30.0),
    )

    ui_raw = raw.get("ui") or {}
    ui = UiConfig(
        kind=ui_raw.get("kind", "console"),
        prompt=ui_raw.get("prompt", "> "),
    )

    mon_raw = raw.get("monitoring") or {}
    monitoring = MonitoringConfig(event_log_path=mon_raw.get("event_log_path"))

    modules = raw.get("modules", DEFAULT_MODULES)
    if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
        raise ValueError("settings 'modules' must be a list of module names.")

    # commands path is relative to the settings file, not the CWD
    commands_path = _resolve_relative(
        raw.get("commands", "commands.yaml"),
        settings_path.resolve().parent,
    )

    settings = AgentSettings(
        name=raw.get("name", "mbot"),
        connection=connection,
        ui=ui,
        monitoring=monitoring,
        modules=list(modules),
        commands_path=str(commands_path),
        log_level=str(raw.get("log_level", "INFO")).upper(),
    )

    _validate_settings(settings)
    return settings


def load_command_table(path: Optional[Path] = None) -> CommandTable:
    """
    Load a command table file.

    Shape (JSON or YAML):
        { "<name>": {"module": str, "instruction": str, "args": object} }
    """
    table_path = Path(path) if path is not None else CONFIG_ROOT / "commands.yaml"
    return parse_command_table(_load_yaml(table_path), source=str(table_path))


def parse_command_table(raw: Mapping[str, Any], *, source: str = "<memory>") -> CommandTable:
    """Validate a raw command mapping and convert it to InstructionCalls."""
    table: CommandTable = {}
    for name, entry in raw.items():
        if not isinstance(name, str) or not name:
            raise ValueError(f"{source}: command names must be non-empty strings, got {name!r}")
        if not isinstance(entry, dict):
            raise ValueError(f"{source}: command {name!r} must be a mapping")

        module = entry.get("module")
        instruction = entry.get("instruction")
        if not isinstance(module, str) or not isinstance(instruction, str):
            raise ValueError(
                f"{source}: command {name!r} needs string 'module' and 'instruction'"
            )

        args = entry.get("args")
        if args is None:
            args = {}
        if not isinstance(args, dict):
            raise ValueError(f"{source}: command {name!r} 'args' must be a mapping")

        table[name] = InstructionCall(module=module, instruction=instruction, args=args)
    return table


def _validate_settings(settings: AgentSettings) -> None:
    """Minimal sanity checks for the settings."""
    if ":" not in settings.connection.provider:
        raise ValueError(
            f"connection.provider must look like 'package.module:factory', "
            f"got {settings.connection.provider!r}"
        )

    if settings.ui.kind not in UI_KINDS:
        raise ValueError(f"Invalid ui.kind: {settings.ui.kind}")

    timeout = settings.connection.spawn_timeout_s
    if timeout is not None and timeout <= 0:
        raise ValueError("connection.spawn_timeout_s must be positive or null.")

    if len(set(settings.modules)) != len(settings.modules):
        raise ValueError("settings 'modules' lists a module more than once.")
