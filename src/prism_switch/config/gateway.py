"""Read and write Claude's settings.json with backup-and-restore semantics.

Invariants:
  1. Only the ``env`` object is edited; every other top-level key round-trips.
  2. Every write is preceded by a copy to settings.json.backup (one generation).
  3. A failed write restores the backup; restore failures are logged, not raised.
  4. Writes are atomic (unique temp file, then os.replace()) and serialized
     via threading.Lock (in-process) + fcntl.flock (cooperating processes).
  5. Directory access is acquired per operation and always released.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path

from prism_switch.config.access import scoped_access
from prism_switch.config.base import AccessGrantPort
from prism_switch.config.envcodec import decode_env, encode_value, mask_token
from prism_switch.config.paths import SETTINGS_FILENAME, backup_path_for
from prism_switch.errors import ConfigReadError, ConfigWriteError
from prism_switch.models import EnvKey, EnvValue

logger = logging.getLogger(__name__)

_ENV_KEY = "env"

_path_locks: dict[str, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _get_path_lock(path: Path) -> threading.Lock:
    """Get or create an in-process threading.Lock for *path*."""
    key = str(path.resolve())
    with _path_locks_guard:
        if key not in _path_locks:
            _path_locks[key] = threading.Lock()
        return _path_locks[key]


def _dump(data: dict[str, object]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _atomic_write(path: Path, data: dict[str, object]) -> None:
    """Write JSON atomically: write to unique temp file then rename."""
    fd = None
    tmp_path: str | None = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            suffix=".tmp",
            prefix=f".{path.stem}_",
        )
        os.write(fd, _dump(data).encode("utf-8"))
        os.close(fd)
        fd = None
        os.replace(tmp_path, str(path))
        tmp_path = None
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)


def _ensure_settings_file(path: Path) -> None:
    """Create the settings directory and an empty ``{}`` file when missing."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.write_text(_dump({}), encoding="utf-8")
            logger.info("Created empty %s", path)
    except PermissionError as exc:
        raise ConfigReadError(f"Permission denied creating {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigReadError(f"Cannot create {path}: {exc}") from exc


def _read_json_object(path: Path) -> dict[str, object]:
    try:
        text = path.read_text(encoding="utf-8")
    except PermissionError as exc:
        raise ConfigReadError(f"Permission denied reading {path}: {exc}") from exc
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise ConfigReadError(f"Cannot read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigReadError(
            f"{path} is not valid UTF-8: {exc}. "
            "Fix the encoding or delete the file to start fresh."
        ) from exc

    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigReadError(
            f"Invalid JSON in {path}: {exc}. Fix the JSON syntax or delete the file to start fresh."
        ) from exc
    if not isinstance(data, dict):
        raise ConfigReadError(f"{path} must contain a JSON object, got {type(data).__name__}.")
    return data


class SettingsGateway:
    """The only component that touches settings.json on disk."""

    def __init__(self, access: AccessGrantPort, filename: str = SETTINGS_FILENAME) -> None:
        self._access = access
        self._filename = filename

    def has_access(self) -> bool:
        return self._access.has_access()

    def require_writable(self) -> None:
        """Raise unless settings.json can be safely rewritten.

        PermissionDeniedError when the directory is not accessible,
        ConfigReadError when the existing file does not parse.
        """
        self.read()

    # ─── Raw object I/O ───────────────────────────────────────

    def read(self) -> dict[str, object]:
        """Read the full settings object.

        Creates the directory and an empty file when absent. Raises
        ConfigReadError for unreadable or malformed files and
        PermissionDeniedError when no directory access is granted.
        """
        with scoped_access(self._access) as directory:
            path = directory / self._filename
            _ensure_settings_file(path)
            return _read_json_object(path)

    def read_or_empty(self) -> dict[str, object]:
        """Like ``read`` but recovers read failures as an empty object."""
        try:
            return self.read()
        except ConfigReadError as exc:
            logger.warning("Failed to read Claude settings: %s", exc)
            return {}

    def write(self, config: dict[str, object]) -> None:
        """Replace settings.json with *config*.

        Raises ConfigWriteError after restoring the backup when the write fails.
        """
        with scoped_access(self._access) as directory:
            path = directory / self._filename
            lock = _get_path_lock(path)
            with lock:
                self._locked_write(path, config)

    def _locked_write(self, path: Path, config: dict[str, object]) -> None:
        lock_path = path.with_suffix(".lock")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = open(lock_path, "w")  # noqa: SIM115
        except OSError as exc:
            raise ConfigWriteError(f"Cannot prepare {path} for writing: {exc}") from exc

        with lock_file as lock_fd:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            try:
                backup = self._create_backup(path)
                try:
                    _atomic_write(path, config)
                except (OSError, TypeError, ValueError) as exc:
                    logger.error("Failed to write %s: %s", path, exc)
                    if backup is not None:
                        self._restore_backup(path, backup)
                    raise ConfigWriteError(f"Failed to write {path}: {exc}") from exc
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)

    @staticmethod
    def _create_backup(path: Path) -> Path | None:
        if not path.exists():
            return None
        backup = backup_path_for(path)
        try:
            shutil.copyfile(path, backup)
        except OSError as exc:
            logger.warning("Failed to create backup %s: %s", backup, exc)
            return None
        return backup

    @staticmethod
    def _restore_backup(path: Path, backup: Path) -> None:
        try:
            shutil.copyfile(backup, path)
            logger.info("Restored %s from %s", path, backup)
        except OSError as exc:
            logger.error("Failed to restore %s from backup: %s", path, exc)

    # ─── env view ─────────────────────────────────────────────

    def current_env(self) -> dict[str, EnvValue]:
        """Typed view of the current ``env`` object ({} on read failure)."""
        return decode_env(self.read_or_empty().get(_ENV_KEY))

    def update_env(self, env_vars: dict[str, EnvValue], previous_keys: set[str]) -> bool:
        """Remove *previous_keys* from ``env``, then insert *env_vars*.

        Keys in ``env`` that are in neither set are left untouched.
        Returns False (after logging) when the file cannot be read or written.
        """
        for key, env_value in sorted(env_vars.items()):
            shown = mask_token(env_value.value) if key == EnvKey.AUTH_TOKEN else env_value.value
            logger.debug("Writing %s = %s (%s)", key, shown, env_value.type)
        return self._rewrite_env(env_vars, previous_keys)

    def remove_env(self, previous_keys: set[str]) -> bool:
        """Remove *previous_keys* from ``env``. Returns False when the write fails."""
        return self._rewrite_env({}, previous_keys)

    def _rewrite_env(self, env_vars: dict[str, EnvValue], previous_keys: set[str]) -> bool:
        try:
            config = self.read()
        except ConfigReadError as exc:
            # Never overwrite a file that did not parse.
            logger.error("Not updating Claude settings: %s", exc)
            return False
        raw_env = config.get(_ENV_KEY)
        existing = dict(raw_env) if isinstance(raw_env, dict) else {}

        logger.info("Clearing previously managed keys: %s", sorted(previous_keys))
        for key in previous_keys:
            existing.pop(key, None)
        for key, env_value in env_vars.items():
            existing[key] = encode_value(key, env_value)

        config[_ENV_KEY] = existing
        try:
            self.write(config)
        except ConfigWriteError as exc:
            logger.error("Failed to apply env to Claude settings: %s", exc)
            return False
        return True
