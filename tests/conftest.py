"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from prism_switch.providers.store import ProviderStore
from prism_switch.server import build_service
from prism_switch.sync.service import ReconciliationService


@pytest.fixture()
def claude_dir(tmp_path: Path) -> Path:
    directory = tmp_path / ".claude"
    directory.mkdir()
    return directory


@pytest.fixture()
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture()
def settings_file(claude_dir: Path) -> Path:
    return claude_dir / "settings.json"


@pytest.fixture()
def store(state_dir: Path) -> ProviderStore:
    return ProviderStore(state_dir)


@pytest.fixture()
def service(claude_dir: Path, state_dir: Path) -> ReconciliationService:
    svc, _ = build_service(settings_dir=claude_dir, state_dir=state_dir, sandboxed=False)
    return svc
