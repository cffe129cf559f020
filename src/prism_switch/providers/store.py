"""Persisted provider profiles (providers.json) and the last active provider id.

Invariants:
  1. At most one provider has ``is_active`` set. ``activate`` enforces it and
     loading keeps only the saved active id when a file flags several.
  2. ``add`` never activates and never touches settings.json.
  3. Missing ids on ``update`` / ``activate`` are logged no-ops, not errors.
  4. Files are written atomically; a corrupt providers.json loads as [].
"""

from __future__ import annotations

import contextlib
import dataclasses
import json
import logging
import os
import tempfile
from pathlib import Path

from prism_switch.errors import StoreError
from prism_switch.models import Provider, TokenCheckResult, TokenCheckStatus

logger = logging.getLogger(__name__)

PROVIDERS_FILENAME = "providers.json"
ACTIVE_ID_FILENAME = "active_provider_id"


def _atomic_write_text(path: Path, content: str) -> None:
    """Write text atomically via tempfile + os.replace."""
    fd = None
    tmp_path: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), suffix=".tmp", prefix=f".{path.stem}_"
        )
        os.write(fd, content.encode("utf-8"))
        os.close(fd)
        fd = None
        os.replace(tmp_path, str(path))
        tmp_path = None
    except OSError as exc:
        raise StoreError(f"Failed to save {path}: {exc}") from exc
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_path is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)


class ProviderStore:
    """The user's provider profiles, kept in memory and written through to disk."""

    def __init__(self, state_dir: Path) -> None:
        self._providers_path = state_dir / PROVIDERS_FILENAME
        self._active_id_path = state_dir / ACTIVE_ID_FILENAME
        self._active_id = self._load_active_id()
        self._providers = self._single_active(self._load_providers())
        active = self.active_provider
        logger.debug(
            "Loaded %d providers (active: %s)",
            len(self._providers),
            active.name if active else "none",
        )

    # ─── Loading / saving ───────────────────────────────────────

    def _load_providers(self) -> list[Provider]:
        if not self._providers_path.exists():
            return []
        try:
            raw = json.loads(self._providers_path.read_text(encoding="utf-8") or "[]")
            if not isinstance(raw, list):
                raise ValueError("expected a JSON list")
            return [Provider.from_dict(entry) for entry in raw if isinstance(entry, dict)]
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Failed to decode providers from %s: %s", self._providers_path, exc)
            return []

    def _load_active_id(self) -> str:
        try:
            return self._active_id_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read %s: %s", self._active_id_path, exc)
            return ""

    def _single_active(self, providers: list[Provider]) -> list[Provider]:
        """Keep only the saved active provider active when the file flags several."""
        if sum(p.is_active for p in providers) <= 1:
            return providers
        logger.warning(
            "%s marks several providers active; keeping only %r",
            self._providers_path,
            self._active_id or "none",
        )
        return [
            dataclasses.replace(p, is_active=p.is_active and p.id == self._active_id)
            for p in providers
        ]

    def _save_providers(self, providers: list[Provider]) -> None:
        payload = json.dumps([p.to_dict() for p in providers], indent=2, ensure_ascii=False)
        _atomic_write_text(self._providers_path, payload + "\n")
        self._providers = providers

    def _save_active_id(self, provider_id: str) -> None:
        _atomic_write_text(self._active_id_path, provider_id)
        self._active_id = provider_id

    # ─── Queries ────────────────────────────────────────────────

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers)

    @property
    def active_provider(self) -> Provider | None:
        return next((p for p in self._providers if p.is_active), None)

    @property
    def saved_active_provider_id(self) -> str:
        return self._active_id

    def get(self, provider_id: str) -> Provider | None:
        return next((p for p in self._providers if p.id == provider_id), None)

    def find(self, id_or_name: str) -> Provider | None:
        """Look up by id, then by exact name, then by case-insensitive name."""
        wanted = id_or_name.strip()
        found = self.get(wanted) or self.get(wanted.upper())
        if found is not None:
            return found
        by_name = [p for p in self._providers if p.name == wanted]
        if not by_name:
            by_name = [p for p in self._providers if p.name.lower() == wanted.lower()]
        return by_name[0] if by_name else None

    def check_token_duplicate(
        self, token: str, base_url: str, excluding_id: str | None = None
    ) -> TokenCheckResult:
        """Find another provider using *token*.

        Same token and same URL is likely the same account added twice; same
        token with a different URL is likely a copy/paste mistake.
        """
        if not token:
            return TokenCheckResult(status=TokenCheckStatus.UNIQUE)

        for provider in self._providers:
            if excluding_id is not None and provider.id == excluding_id:
                continue
            if provider.auth_token == token:
                status = (
                    TokenCheckStatus.DUPLICATE_SAME_URL
                    if provider.base_url == base_url
                    else TokenCheckStatus.DUPLICATE_DIFFERENT_URL
                )
                return TokenCheckResult(status=status, provider=provider)

        return TokenCheckResult(status=TokenCheckStatus.UNIQUE)

    # ─── Mutations ──────────────────────────────────────────────

    def add(self, provider: Provider) -> Provider:
        """Append *provider* as inactive. Returns the stored copy."""
        stored = dataclasses.replace(provider, is_active=False)
        self._save_providers([*self._providers, stored])
        logger.info("Added provider %s (total: %d)", stored.name, len(self._providers))
        return stored

    def update(self, provider: Provider) -> bool:
        """Replace the entry with the same id. Returns False if there is none."""
        for index, existing in enumerate(self._providers):
            if existing.id == provider.id:
                updated = list(self._providers)
                # Activation state only changes through activate/deactivate_all.
                updated[index] = dataclasses.replace(provider, is_active=existing.is_active)
                self._save_providers(updated)
                logger.info("Updated provider %r -> %r", existing.name, provider.name)
                return True
        logger.error("Provider with id %s not found for update", provider.id)
        return False

    def delete(self, provider: Provider) -> bool:
        """Remove the entry with the same id. Never activates a replacement."""
        remaining = [p for p in self._providers if p.id != provider.id]
        if len(remaining) == len(self._providers):
            logger.warning("Provider with id %s not found for delete", provider.id)
            return False
        self._save_providers(remaining)
        logger.info("Deleted provider %s", provider.name)
        return True

    def activate(self, provider: Provider) -> bool:
        """Flag *provider* active and every other provider inactive."""
        if self.get(provider.id) is None:
            logger.error("Provider not found for activation: %s", provider.name)
            return False
        updated = [dataclasses.replace(p, is_active=p.id == provider.id) for p in self._providers]
        self._save_providers(updated)
        self._save_active_id(provider.id)
        logger.info("Activated provider %s (id: %s)", provider.name, provider.id)
        return True

    def deactivate_all(self) -> None:
        """Clear every active flag and the saved active id."""
        self._save_providers([dataclasses.replace(p, is_active=False) for p in self._providers])
        self._save_active_id("")
        logger.info("Deactivated all providers")
