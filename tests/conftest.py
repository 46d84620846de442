# tests/conftest.py

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure src/ is on sys.path for test imports like `import modules`, `import spec`.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
TESTS_ROOT = PROJECT_ROOT / "tests"

for path in (SRC_ROOT, TESTS_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes.agent_fakes import RecordingUI, ScriptedModule, make_settings  # noqa: E402


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def scripted() -> ScriptedModule:
    return ScriptedModule()


@pytest.fixture
def settings():
    return make_settings()
