# src/modules/__init__.py
"""
Agent modules.

Exports:
    - ModuleBase, ModuleRegistry, instruction: the module contract
    - SessionModule ("agent"), UtilityModule ("utility"), MoverModule ("mover"),
      MinerModule ("miner"), HealthModule ("health"),
      ConcreteMixerModule ("concrete_mixer")
    - MovementSettings: navigator configuration owned by the mover
"""

from __future__ import annotations

from .base import ModuleBase, ModuleDependencyError, ModuleRegistry, instruction
from .concrete_mixer import ConcreteMixerModule
from .health import HealthModule
from .miner import MinerModule
from .movements import MovementSettings
from .mover import MoverModule
from .session import SessionModule
from .utility import UtilityModule

__all__ = [
    "ModuleBase",
    "ModuleDependencyError",
    "ModuleRegistry",
    "instruction",
    "SessionModule",
    "UtilityModule",
    "MoverModule",
    "MinerModule",
    "HealthModule",
    "ConcreteMixerModule",
    "MovementSettings",
]
