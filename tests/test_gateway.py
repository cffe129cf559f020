"""Tests for the settings.json gateway (config/gateway.py)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from prism_switch.config.access import DirectAccess, GrantedAccess
from prism_switch.config.gateway import SettingsGateway
from prism_switch.errors import ConfigReadError, ConfigWriteError, PermissionDeniedError
from prism_switch.models import EnvValue, EnvValueType


def _write(path: Path, data: object) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def _read(path: Path) -> dict[str, object]:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture()
def gateway(claude_dir: Path) -> SettingsGateway:
    return SettingsGateway(DirectAccess(claude_dir))


class TestRead:
    def test_missing_file_is_created_empty(self, gateway: SettingsGateway, settings_file: Path):
        assert gateway.read() == {}
        assert settings_file.exists()
        assert _read(settings_file) == {}

    def test_missing_directory_is_created(self, tmp_path: Path):
        directory = tmp_path / "nested" / ".claude"
        gw = SettingsGateway(DirectAccess(directory))
        assert gw.read() == {}
        assert (directory / "settings.json").exists()

    def test_empty_file_reads_as_empty_object(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        settings_file.write_text("", encoding="utf-8")
        assert gateway.read() == {}

    def test_invalid_json_raises(self, gateway: SettingsGateway, settings_file: Path):
        settings_file.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigReadError, match="Invalid JSON"):
            gateway.read()

    def test_non_object_root_raises(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, [1, 2])
        with pytest.raises(ConfigReadError, match="JSON object"):
            gateway.read()

    def test_invalid_utf8_raises(self, gateway: SettingsGateway, settings_file: Path):
        settings_file.write_bytes(b'{"env": {"ANTHROPIC_AUTH_TOKEN": "\xff\xfe"}}')
        with pytest.raises(ConfigReadError, match="UTF-8"):
            gateway.read()

    def test_invalid_utf8_current_env_is_empty(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        settings_file.write_bytes(b"\xff")
        assert gateway.current_env() == {}

    def test_read_or_empty_recovers(self, gateway: SettingsGateway, settings_file: Path):
        settings_file.write_text("{not json", encoding="utf-8")
        assert gateway.read_or_empty() == {}

    def test_current_env_is_typed(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, {"env": {"API_TIMEOUT_MS": 600000}})
        assert gateway.current_env() == {
            "API_TIMEOUT_MS": EnvValue("600000", EnvValueType.INTEGER)
        }

    def test_current_env_without_env_block(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, {"model": "opus"})
        assert gateway.current_env() == {}


class TestWrite:
    def test_write_creates_backup_of_previous(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        _write(settings_file, {"model": "opus"})
        gateway.write({"model": "sonnet"})

        assert _read(settings_file) == {"model": "sonnet"}
        backup = settings_file.with_name("settings.json.backup")
        assert _read(backup) == {"model": "opus"}

    def test_write_uses_two_space_indent(self, gateway: SettingsGateway, settings_file: Path):
        gateway.write({"env": {"A": "b"}})
        assert settings_file.read_text(encoding="utf-8").startswith('{\n  "env"')

    def test_failed_write_restores_backup(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, {"model": "opus"})

        def _corrupt_then_fail(path: Path, data: object) -> None:
            path.write_text("garbage", encoding="utf-8")
            raise OSError("disk full")

        with (
            patch("prism_switch.config.gateway._atomic_write", side_effect=_corrupt_then_fail),
            pytest.raises(ConfigWriteError, match="disk full"),
        ):
            gateway.write({"model": "sonnet"})

        assert _read(settings_file) == {"model": "opus"}

    def test_no_temp_files_left(self, gateway: SettingsGateway, claude_dir: Path):
        gateway.write({"a": 1})
        gateway.write({"a": 2})
        leftovers = [p.name for p in claude_dir.iterdir() if p.name.endswith(".tmp")]
        assert leftovers == []


class TestUpdateEnv:
    def test_preserves_unrelated_settings(self, gateway: SettingsGateway, settings_file: Path):
        _write(
            settings_file,
            {
                "model": "opus",
                "permissions": {"allow": ["Bash"]},
                "env": {"ANTHROPIC_BASE_URL": "https://old", "MY_OWN": "keep"},
            },
        )
        ok = gateway.update_env(
            {
                "ANTHROPIC_BASE_URL": EnvValue("https://new"),
                "API_TIMEOUT_MS": EnvValue("3000000", EnvValueType.INTEGER),
            },
            previous_keys={"ANTHROPIC_BASE_URL", "ANTHROPIC_AUTH_TOKEN"},
        )

        assert ok is True
        data = _read(settings_file)
        assert data["model"] == "opus"
        assert data["permissions"] == {"allow": ["Bash"]}
        assert data["env"] == {
            "ANTHROPIC_BASE_URL": "https://new",
            "API_TIMEOUT_MS": 3000000,
            "MY_OWN": "keep",
        }

    def test_remove_env_only_drops_given_keys(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        _write(settings_file, {"env": {"ANTHROPIC_AUTH_TOKEN": "t", "MY_OWN": "keep"}})
        assert gateway.remove_env({"ANTHROPIC_AUTH_TOKEN", "NOT_THERE"}) is True
        assert _read(settings_file)["env"] == {"MY_OWN": "keep"}

    def test_unreadable_file_is_not_overwritten(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        raw = b'{"model": "\xff"}'
        settings_file.write_bytes(raw)

        ok = gateway.update_env({"ANTHROPIC_AUTH_TOKEN": EnvValue("t")}, set())

        assert ok is False
        assert settings_file.read_bytes() == raw

    def test_invalid_json_is_not_overwritten(
        self, gateway: SettingsGateway, settings_file: Path
    ):
        settings_file.write_text("{oops", encoding="utf-8")
        assert gateway.remove_env({"ANTHROPIC_AUTH_TOKEN"}) is False
        assert settings_file.read_text(encoding="utf-8") == "{oops"

    def test_write_failure_returns_false(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, {"env": {}})
        with patch(
            "prism_switch.config.gateway._atomic_write", side_effect=OSError("read-only")
        ):
            ok = gateway.update_env({"ANTHROPIC_AUTH_TOKEN": EnvValue("t")}, set())
        assert ok is False
        assert _read(settings_file) == {"env": {}}


class TestRequireWritable:
    def test_parsable_file(self, gateway: SettingsGateway, settings_file: Path):
        _write(settings_file, {"model": "opus"})
        gateway.require_writable()

    def test_invalid_utf8(self, gateway: SettingsGateway, settings_file: Path):
        settings_file.write_bytes(b"\xff")
        with pytest.raises(ConfigReadError):
            gateway.require_writable()


class TestAccess:
    def test_ungranted_read_raises_permission_denied(self, tmp_path: Path):
        gw = SettingsGateway(GrantedAccess(tmp_path / "grant.json"))
        with pytest.raises(PermissionDeniedError):
            gw.read()
        assert gw.has_access() is False

    def test_ungranted_require_writable_raises(self, tmp_path: Path):
        gw = SettingsGateway(GrantedAccess(tmp_path / "grant.json"))
        with pytest.raises(PermissionDeniedError):
            gw.require_writable()

    def test_access_released_after_write(self, tmp_path: Path, claude_dir: Path):
        grant = tmp_path / "grant.json"
        _write(grant, {"directory": str(claude_dir)})
        access = GrantedAccess(grant)
        gw = SettingsGateway(access)

        gw.write({"a": 1})
        gw.read()

        assert access.held == 0
