"""Pytest configuration and fixtures."""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add the src directory to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_CLI = FIXTURES_DIR / "fake_cli.py"


@pytest.fixture
def fake_cli(tmp_path: Path) -> str:
    """An executable that runs the fake CLI with the current interpreter.

    The provider puts cli_path first on the command line, so tests need a
    single executable rather than `python fake_cli.py`.
    """
    if sys.platform == "win32":
        pytest.skip("fake CLI wrapper needs a POSIX shell")
    wrapper = tmp_path / "fake-claude"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_CLI}" "$@"\n')
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(wrapper)


@pytest.fixture
def fake_env():
    """Build the env setting that selects a fake CLI scenario."""

    def _env(scenario: str, **extra: str) -> dict[str, str]:
        env = {"FAKE_CLI_SCENARIO": scenario}
        env.update({f"FAKE_CLI_{key.upper()}": value for key, value in extra.items()})
        return env

    return _env

