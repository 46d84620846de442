# src/spec/__init__.py

from __future__ import annotations

"""
Public spec surface for the mbot agent.

This module re-exports *interfaces and data types* shared across packages:
  - world primitives and navigation goals (Vec3, Block, Item, Entity, Goal*)
  - instruction records (InstructionCall, CommandTable)
  - collaborator protocols (GameConnection, Navigator, UserInterface)
  - the module capability protocol (AgentModule)

Deliberately does NOT export concrete implementations; wiring lives in
src/agent/ and src/app/.
"""

from .types import (
    Vec3,
    Block,
    Item,
    Entity,
    Goal,
    GoalBlock,
    GoalNear,
    GoalY,
    GoalLookAtBlock,
    GoalFollow,
    GoalInvert,
    GoalCompositeAll,
    GoalCompositeAny,
    InstructionCall,
    CommandTable,
    StopCallback,
)
from .game import GameConnection, Navigator, ConnectionFactory
from .ui import UserInterface
from .modules import AgentModule, InstructionHandler

__all__ = [
    "Vec3",
    "Block",
    "Item",
    "Entity",
    "Goal",
    "GoalBlock",
    "GoalNear",
    "GoalY",
    "GoalLookAtBlock",
    "GoalFollow",
    "GoalInvert",
    "GoalCompositeAll",
    "GoalCompositeAny",
    "InstructionCall",
    "CommandTable",
    "StopCallback",
    "GameConnection",
    "Navigator",
    "ConnectionFactory",
    "UserInterface",
    "AgentModule",
    "InstructionHandler",
]
