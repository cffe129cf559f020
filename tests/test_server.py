"""Tests for server.py -- composition root and lifespan."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from prism_switch.config.access import GrantedAccess
from prism_switch.connection.checker import BaseURLReachabilityChecker
from prism_switch.server import app_lifespan, build_service, mcp


@pytest.fixture()
def isolated_env(
    monkeypatch: pytest.MonkeyPatch, claude_dir: Path, state_dir: Path
) -> Path:
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(claude_dir))
    monkeypatch.setenv("PRISM_SWITCH_HOME", str(state_dir))
    monkeypatch.delenv("PRISM_SWITCH_SANDBOX", raising=False)
    monkeypatch.delenv("PRISM_SWITCH_CATALOG", raising=False)
    return claude_dir


class TestAppLifespan:
    async def test_http_client_configuration(self, isolated_env: Path):
        async with app_lifespan(MagicMock()) as ctx:
            client = ctx.http_client
            assert isinstance(client, httpx.AsyncClient)
            assert client.timeout.read == 15.0
            assert client.timeout.connect == 10.0
            assert client.follow_redirects is True
            assert isinstance(ctx.reachability, BaseURLReachabilityChecker)
            assert ctx.grant_path is None

    async def test_client_closed_after_lifespan(self, isolated_env: Path):
        async with app_lifespan(MagicMock()) as ctx:
            client = ctx.http_client
            assert not client.is_closed
        assert client.is_closed

    async def test_startup_sync_adopts_settings(self, isolated_env: Path):
        (isolated_env / "settings.json").write_text(
            json.dumps(
                {"env": {"ANTHROPIC_BASE_URL": "https://llm.corp", "ANTHROPIC_AUTH_TOKEN": "t"}}
            ),
            encoding="utf-8",
        )

        async with app_lifespan(MagicMock()) as ctx:
            active = ctx.service.active_provider
            assert active is not None
            assert active.name == "Other"

    async def test_startup_survives_missing_grant(
        self, isolated_env: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("PRISM_SWITCH_SANDBOX", "1")
        async with app_lifespan(MagicMock()) as ctx:
            assert ctx.grant_path is not None
            assert ctx.service.providers == []

    async def test_startup_survives_invalid_utf8(self, isolated_env: Path):
        (isolated_env / "settings.json").write_bytes(
            b'{"env": {"ANTHROPIC_AUTH_TOKEN": "\xff\xfe"}}'
        )
        async with app_lifespan(MagicMock()) as ctx:
            assert ctx.service.providers == []


class TestBuildService:
    def test_sandboxed_uses_grant(self, state_dir: Path):
        service, grant_path = build_service(state_dir=state_dir, sandboxed=True)
        assert grant_path == state_dir / "settings-access.json"
        assert isinstance(service._gateway._access, GrantedAccess)

    def test_custom_catalog(self, tmp_path: Path, claude_dir: Path, state_dir: Path):
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text("templates:\n  - name: Only\n", encoding="utf-8")
        service, _ = build_service(
            settings_dir=claude_dir, state_dir=state_dir, sandboxed=False, catalog_path=catalog
        )
        assert [t.name for t in service.catalog.all_templates()] == ["Only"]


class TestToolRegistration:
    async def test_tools_registered(self):
        names = {tool.name for tool in await mcp.list_tools()}
        assert {
            "list_providers",
            "list_templates",
            "check_token",
            "export_provider",
            "check_provider",
            "sync_config",
            "activate_provider",
            "activate_default",
            "add_provider",
            "update_provider",
            "delete_provider",
            "import_provider",
            "grant_settings_access",
        } <= names

    async def test_read_only_annotations(self):
        tools = {tool.name: tool for tool in await mcp.list_tools()}
        assert tools["list_providers"].annotations.readOnlyHint is True
        assert tools["activate_provider"].annotations.destructiveHint is True
