"""Keep the provider store and Claude's settings.json in agreement.

Three sources can disagree: the store's ``is_active`` flags, the saved
active provider id, and the live ``env`` in settings.json (which Claude Code
or the user may edit at any time). This service reconciles them at startup,
whenever the caller asks for a sync (e.g. a menu being opened), and on every
mutation it performs.

Ordering rule for writes: the managed key set of the provider that is active
*before* a switch is captured first and removed from the file, then the new
provider's keys are written. Capturing after the switch would leave keys that
only the old provider defined behind in settings.json.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from prism_switch.config.base import SettingsGatewayPort
from prism_switch.config.envcodec import mask_token
from prism_switch.models import (
    OTHER_ICON,
    EnvKey,
    EnvValue,
    Provider,
    SyncAction,
    SyncResult,
    env_string,
)
from prism_switch.providers.base import ProviderStorePort
from prism_switch.templates.catalog import TemplateCatalog

logger = logging.getLogger(__name__)

FALLBACK_PROVIDER_NAME = "Other"

Listener = Callable[[], None]

_NO_CHANGE = SyncResult(changed=False)


def _base_keys() -> set[str]:
    return {key.value for key in EnvKey}


class ReconciliationService:
    """Reconciles the provider store with settings.json."""

    def __init__(
        self,
        store: ProviderStorePort,
        gateway: SettingsGatewayPort,
        catalog: TemplateCatalog,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._catalog = catalog
        self._listeners: list[Listener] = []

    # ─── Observable state ─────────────────────────────────────

    @property
    def store(self) -> ProviderStorePort:
        return self._store

    @property
    def catalog(self) -> TemplateCatalog:
        return self._catalog

    @property
    def providers(self) -> list[Provider]:
        return self._store.providers

    @property
    def active_provider(self) -> Provider | None:
        return self._store.active_provider

    @property
    def has_settings_access(self) -> bool:
        """False when the settings directory cannot be opened (e.g. no sandbox grant)."""
        return self._gateway.has_access()

    @property
    def is_default_active(self) -> bool:
        """True when settings.json carries neither a base URL nor a token."""
        env = self._gateway.current_env()
        return not env_string(env, EnvKey.BASE_URL) and not env_string(env, EnvKey.AUTH_TOKEN)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* after every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("State change listener failed")

    # ─── Reconciliation triggers ──────────────────────────────

    def sync_on_startup(self) -> SyncResult:
        """Adopt whatever settings.json currently holds.

        Does nothing when the file has no auth token.
        """
        env = self._gateway.current_env()
        token = env_string(env, EnvKey.AUTH_TOKEN)
        if not token:
            logger.info("No auth token in Claude settings, nothing to reconcile")
            return _NO_CHANGE

        logger.info(
            "Found Claude settings: base URL %s, token %s",
            env_string(env, EnvKey.BASE_URL) or "(none)",
            mask_token(token),
        )
        return self._finish(self._reconcile(env, token))

    def sync_on_open(self) -> SyncResult:
        """Detect changes made to settings.json by other processes.

        Same precedence as startup, except that a file whose token was
        cleared while a provider is active deactivates every provider.
        """
        env = self._gateway.current_env()
        token = env_string(env, EnvKey.AUTH_TOKEN)
        if not token:
            if self._store.active_provider is None:
                return _NO_CHANGE
            logger.info("Claude settings have no token, deactivating all providers")
            self._store.deactivate_all()
            return self._finish(SyncResult(changed=True, action=SyncAction.DEACTIVATED))
        return self._finish(self._reconcile(env, token))

    def _finish(self, result: SyncResult) -> SyncResult:
        if result.changed:
            self._notify()
        return result

    def _reconcile(self, env: dict[str, EnvValue], token: str) -> SyncResult:
        # Phase 1: the provider we last activated still owns the token.
        saved_id = self._store.saved_active_provider_id
        if saved_id:
            saved = self._store.get(saved_id)
            if saved is None:
                logger.info("Saved active provider %s no longer exists", saved_id)
            elif saved.auth_token == token:
                return self._ensure_active(saved)
            else:
                logger.info("Token changed externally since %s was activated", saved.name)

        # Phase 2: some other stored provider owns the token.
        for provider in self._store.providers:
            if provider.auth_token == token:
                logger.info("Settings token belongs to provider %s", provider.name)
                return self._ensure_active(provider)

        # Phase 3: nothing owns it; import the file as a new provider.
        return self._import_current(env)

    def _ensure_active(self, provider: Provider) -> SyncResult:
        if provider.is_active:
            return SyncResult(changed=False, provider=provider)
        self._store.activate(provider)
        return SyncResult(
            changed=True,
            action=SyncAction.ACTIVATED,
            provider=self._store.get(provider.id),
        )

    def _import_current(self, env: dict[str, EnvValue]) -> SyncResult:
        base_url = env_string(env, EnvKey.BASE_URL)
        if not base_url:
            logger.info("No base URL in Claude settings, cannot create a provider")
            return _NO_CHANGE

        template = self._catalog.match_template(base_url, env)
        if template is not None:
            candidate = Provider(name=template.name, env_variables=dict(env), icon=template.icon)
        else:
            candidate = Provider(
                name=FALLBACK_PROVIDER_NAME, env_variables=dict(env), icon=OTHER_ICON
            )

        stored = self._store.add(candidate)
        self._store.activate(stored)
        logger.info("Created and activated provider %s from Claude settings", stored.name)
        return SyncResult(
            changed=True,
            action=SyncAction.CREATED,
            provider=self._store.get(stored.id),
        )

    # ─── User-initiated mutations ─────────────────────────────

    def _captured_keys(self) -> set[str]:
        """Managed keys of the provider active right now (base keys if none)."""
        active = self._store.active_provider
        return active.managed_keys() if active is not None else _base_keys()

    def activate_provider(self, provider: Provider) -> bool:
        """Make *provider* active and write its env into settings.json.

        Raises PermissionDeniedError or ConfigReadError before touching the
        store when settings.json cannot be rewritten. Returns False when the
        provider is unknown or the file write failed; the store is not
        rolled back on a failed write.
        """
        stored = self._store.get(provider.id)
        if stored is None:
            logger.error("Cannot activate unknown provider %s", provider.name)
            return False

        self._gateway.require_writable()
        previous_keys = self._captured_keys()
        self._store.activate(stored)
        written = self._gateway.update_env(stored.env_variables, previous_keys)
        if not written:
            logger.error("Failed to apply provider %s to Claude settings", stored.name)
        self._notify()
        return written

    def activate_default(self) -> bool:
        """Deactivate every provider and clear the managed keys from settings.json."""
        self._gateway.require_writable()
        previous_keys = self._captured_keys()
        self._store.deactivate_all()
        cleared = self._gateway.remove_env(previous_keys)
        if not cleared:
            logger.error("Failed to clear managed env variables")
        self._notify()
        return cleared

    def add_provider(self, provider: Provider) -> Provider:
        """Store *provider* inactive. settings.json is not touched."""
        stored = self._store.add(provider)
        self._notify()
        return stored

    def update_provider(self, provider: Provider) -> bool:
        """Save edits to *provider*; re-apply it to settings.json if it is active."""
        before = self._store.get(provider.id)
        if before is None:
            logger.error("Cannot update unknown provider %s", provider.name)
            return False

        if not before.is_active:
            updated = self._store.update(provider)
            self._notify()
            return updated

        self._gateway.require_writable()
        # Pre-edit keys include ones the edit may have dropped.
        previous_keys = before.managed_keys()
        self._store.update(provider)
        current = self._store.get(provider.id) or provider
        written = self._gateway.update_env(current.env_variables, previous_keys)
        if not written:
            logger.error("Failed to sync edited provider %s to Claude settings", current.name)
        self._notify()
        return written

    def delete_provider(self, provider: Provider) -> bool:
        """Remove *provider*; if it was active, fall back to the default state."""
        stored = self._store.get(provider.id)
        if stored is None:
            logger.warning("Cannot delete unknown provider %s", provider.name)
            return False

        if not stored.is_active:
            self._store.delete(stored)
            self._notify()
            return True

        self._gateway.require_writable()
        previous_keys = stored.managed_keys()
        self._store.delete(stored)
        logger.info("Deleted active provider %s, switching to default", stored.name)
        self._store.deactivate_all()
        cleared = self._gateway.remove_env(previous_keys)
        if not cleared:
            logger.error("Failed to clear managed env variables")
        self._notify()
        return cleared
