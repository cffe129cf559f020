"""Scoped access to the Claude settings directory.

Outside a sandbox the settings directory is opened directly. Sandboxed
hosts only reach ~/.claude through a grant the user approved once; the grant
is persisted as a small JSON file and resolved again for every operation.
Access is taken right before a read or write and released right after.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

from prism_switch.config.base import AccessGrantPort
from prism_switch.errors import PermissionDeniedError

logger = logging.getLogger(__name__)

GRANT_FILENAME = "settings-access.json"
_EXPECTED_DIRNAME = ".claude"


class DirectAccess:
    """No sandbox: the directory is usable whenever the OS allows it."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def acquire(self) -> Path:
        parent = self._directory if self._directory.exists() else self._directory.parent
        if parent.exists() and not os.access(parent, os.R_OK | os.W_OK):
            raise PermissionDeniedError(
                f"Permission denied for {self._directory}. "
                "Check the directory's ownership and mode."
            )
        return self._directory

    def release(self, directory: Path) -> None:
        return None

    def has_access(self) -> bool:
        try:
            self.release(self.acquire())
        except PermissionDeniedError:
            return False
        return True


class GrantedAccess:
    """Access through a persisted, user-approved directory grant."""

    def __init__(self, grant_path: Path) -> None:
        self._grant_path = grant_path
        self._active: set[str] = set()

    @property
    def grant_path(self) -> Path:
        return self._grant_path

    def _resolve(self) -> Path:
        if not self._grant_path.exists():
            raise PermissionDeniedError(
                "No access grant for the Claude settings directory. "
                "Run grant_settings_access with the path to your .claude directory."
            )
        try:
            data = json.loads(self._grant_path.read_text(encoding="utf-8"))
            directory = Path(str(data["directory"]))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise PermissionDeniedError(
                f"Access grant at {self._grant_path} is unreadable: {exc}. "
                "Run grant_settings_access again."
            ) from exc
        if not directory.is_dir():
            raise PermissionDeniedError(
                f"Access grant for {directory} is stale (directory is gone). "
                "Run grant_settings_access again."
            )
        return directory

    def acquire(self) -> Path:
        directory = self._resolve()
        if not os.access(directory, os.R_OK | os.W_OK):
            raise PermissionDeniedError(f"Permission denied for granted directory {directory}.")
        self._active.add(str(directory))
        logger.debug("Acquired access to %s", directory)
        return directory

    def release(self, directory: Path) -> None:
        self._active.discard(str(directory))
        logger.debug("Released access to %s", directory)

    def has_access(self) -> bool:
        try:
            self.release(self.acquire())
        except PermissionDeniedError:
            return False
        return True

    @property
    def held(self) -> int:
        """Number of acquisitions not yet released."""
        return len(self._active)


def request_access(grant_path: Path, directory: Path | str) -> Path:
    """Record the user's approval for *directory* (must be a ``.claude`` dir)."""
    target = Path(directory).expanduser()
    if target.name != _EXPECTED_DIRNAME:
        raise PermissionDeniedError(
            f"{target} is not a .claude directory. Select your .claude directory."
        )
    if not target.is_dir():
        raise PermissionDeniedError(f"{target} does not exist or is not a directory.")

    grant_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "directory": str(target.resolve()),
        "granted_at": datetime.now(tz=UTC).isoformat().replace("+00:00", "Z"),
    }
    grant_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    logger.info("Saved access grant for %s", target)
    return target


@contextlib.contextmanager
def scoped_access(grant: AccessGrantPort) -> Iterator[Path]:
    """Hold access for one operation; released on every exit path."""
    directory = grant.acquire()
    try:
        yield directory
    finally:
        grant.release(directory)
