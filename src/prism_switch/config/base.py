"""Ports: settings directory access and settings.json reading/writing."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from prism_switch.models import EnvValue


class AccessGrantPort(Protocol):
    """Capability to open the Claude settings directory.

    ``acquire`` returns the directory to use for the duration of one
    read or write, or raises PermissionDeniedError. Every successful
    ``acquire`` must be paired with ``release``.
    """

    def acquire(self) -> Path:
        """Start accessing the settings directory."""
        ...

    def release(self, directory: Path) -> None:
        """Stop accessing a directory returned by ``acquire``."""
        ...

    def has_access(self) -> bool:
        """Check whether ``acquire`` would currently succeed."""
        ...


class SettingsGatewayPort(Protocol):
    """Port for reading and writing Claude's settings.json."""

    def has_access(self) -> bool:
        """Check whether the settings directory can currently be opened."""
        ...

    def require_writable(self) -> None:
        """Raise PermissionDeniedError or ConfigReadError unless settings.json can be rewritten."""
        ...

    def read(self) -> dict[str, object]:
        """Read the whole settings object."""
        ...

    def write(self, config: dict[str, object]) -> None:
        """Replace the settings object, keeping a backup of the previous file."""
        ...

    def current_env(self) -> dict[str, EnvValue]:
        """Typed view of the ``env`` object."""
        ...

    def update_env(self, env_vars: dict[str, EnvValue], previous_keys: set[str]) -> bool:
        """Drop *previous_keys* from ``env`` and merge in *env_vars*."""
        ...

    def remove_env(self, previous_keys: set[str]) -> bool:
        """Drop *previous_keys* from ``env``."""
        ...
