"""Pytest configuration for wslenv tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fakes import FIXED_NOW, FakeRegistry
from wslenv.domain.install_layout import InstallLayout
from wslenv.infrastructure.state_store import FileStateStore


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch):
    """Host settings must not leak into config resolution."""
    for key in ("WSLENV_CONFIG", "WSLENV_BASE_NAME", "WSLENV_MAX_NAME_ATTEMPTS", "WSLENV_WSL_EXECUTABLE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def layout(tmp_path: Path) -> InstallLayout:
    return InstallLayout(install_root=tmp_path / "App")


@pytest.fixture
def store(layout: InstallLayout) -> FileStateStore:
    return FileStateStore(layout.state_file, clock=lambda: FIXED_NOW)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()
