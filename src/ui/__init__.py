# src/ui/__init__.py
"""
User interfaces.

Exports:
    - LoggingUserInterface: headless, logging-only
    - ConsoleUserInterface: interactive rich console
"""

from __future__ import annotations

from .base import LoggingUserInterface
from .console import ConsoleUserInterface

__all__ = [
    "LoggingUserInterface",
    "ConsoleUserInterface",
]
