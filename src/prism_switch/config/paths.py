"""Locate the Claude settings file and prism-switch's own state directory."""

from __future__ import annotations

import os
from pathlib import Path

SETTINGS_FILENAME = "settings.json"
BACKUP_SUFFIX = ".backup"
STATE_DIRNAME = "prism-switch"


def claude_config_dir() -> Path:
    """Directory holding Claude Code's settings.json.

    Honors CLAUDE_CONFIG_DIR the same way Claude Code does, else ~/.claude.
    """
    override = os.environ.get("CLAUDE_CONFIG_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude"


def backup_path_for(path: Path) -> Path:
    """Rolling one-generation backup next to *path* (settings.json.backup)."""
    return path.with_name(path.name + BACKUP_SUFFIX)


def state_dir() -> Path:
    """Where the provider list and active provider id are persisted."""
    override = os.environ.get("PRISM_SWITCH_HOME", "").strip()
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / STATE_DIRNAME


def catalog_override() -> Path | None:
    """Optional user-supplied template catalog (PRISM_SWITCH_CATALOG)."""
    override = os.environ.get("PRISM_SWITCH_CATALOG", "").strip()
    return Path(override).expanduser() if override else None


def sandbox_enabled() -> bool:
    """True when access to the settings directory must go through a stored grant."""
    return os.environ.get("PRISM_SWITCH_SANDBOX", "").strip().lower() in {"1", "true", "yes"}
