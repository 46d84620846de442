# src/game/__init__.py
"""
Game connection providers.

Exports:
    - OfflineConnection / OfflineNavigator: in-memory world for offline runs and tests
    - create_offline_connection: the default "game.offline:create_offline_connection" provider
"""

from __future__ import annotations

from .emitter import EventEmitter
from .offline import (
    NavigationError,
    OfflineConnection,
    OfflineNavigator,
    build_offline_connection,
    create_offline_connection,
)

__all__ = [
    "EventEmitter",
    "NavigationError",
    "OfflineConnection",
    "OfflineNavigator",
    "build_offline_connection",
    "create_offline_connection",
]
