# src/app/__init__.py
"""
Application entrypoints for the mbot agent.

Exposes:
- build_agent: wire settings + command table into an AgentContext with modules mounted
- run_agent: join, run scripted commands, then the UI input loop
- main: CLI entry
"""

from __future__ import annotations

from .runtime import build_agent, main, run_agent

__all__ = [
    "build_agent",
    "run_agent",
    "main",
]
