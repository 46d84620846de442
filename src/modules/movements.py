# src/modules/movements.py
"""
Movement settings handed to the navigator.

Settings are modified with a two-part mapping:

    {
        "set": {"can_dig": false, "blocks_cant_break": ["chest"]},
        "add": {"scaffolding_blocks": ["dirt"]},
    }

"set" replaces a field (lists are converted to sets for set-typed fields);
"add" extends collection fields only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Set

from spec.types import Block


# Blocks the bot must never dig through.
DEFAULT_BLOCKS_CANT_BREAK = {"bedrock", "chest", "barrier", "end_portal_frame"}

# Never worth digging: fluids flood the path, air is nothing.
_UNBREAKABLE_KINDS = {"air", "water", "lava"}


@dataclass
class MovementSettings:
    can_dig: bool = True
    can_move_diagonally: bool = True
    allow_parkour: bool = True
    allow_sprinting: bool = True
    max_drop_down: int = 4
    blocks_cant_break: Set[str] = field(default_factory=lambda: set(DEFAULT_BLOCKS_CANT_BREAK))
    blocks_to_avoid: Set[str] = field(default_factory=lambda: {"lava", "fire", "cactus"})
    scaffolding_blocks: List[str] = field(default_factory=lambda: ["dirt", "cobblestone"])

    # ------------------------------------------------------------------

    def apply(self, modifications: Optional[Mapping[str, Any]]) -> "MovementSettings":
        """
        Apply {"set": {...}, "add": {...}} in place and return self.

        Raises:
            ValueError for unknown fields, or "add" on a non-collection field.
        """
        if not modifications:
            return self

        for key, value in (modifications.get("set") or {}).items():
            self.set_field(key, value)
        for key, values in (modifications.get("add") or {}).items():
            self.add_to_field(key, values)
        return self

    def set_field(self, key: str, value: Any) -> None:
        current = self._current(key)
        if isinstance(current, set) and isinstance(value, (list, tuple, set)):
            value = set(value)
        elif isinstance(current, list) and isinstance(value, (tuple, set)):
            value = list(value)
        setattr(self, key, value)

    def add_to_field(self, key: str, values: Any) -> None:
        current = self._current(key)
        if isinstance(values, str) or not isinstance(values, (list, tuple, set)):
            raise ValueError(f"Values added to {key!r} must be a list")
        if isinstance(current, set):
            current.update(values)
        elif isinstance(current, list):
            current.extend(values)
        else:
            raise ValueError(f"Cannot add to {key!r}: only list and set fields support 'add'")

    def _current(self, key: str) -> Any:
        if key not in _FIELD_NAMES:
            raise ValueError(f"Unknown movement setting {key!r}")
        return getattr(self, key)

    # ------------------------------------------------------------------

    def safe_to_break(self, block: Block) -> bool:
        if not self.can_dig:
            return False
        if block.name in _UNBREAKABLE_KINDS:
            return False
        return block.name not in self.blocks_cant_break

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, set):
                value = sorted(value)
            elif isinstance(value, list):
                value = list(value)
            data[f.name] = value
        return data


_FIELD_NAMES = {f.name for f in fields(MovementSettings)}
