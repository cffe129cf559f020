"""Port: persisted provider profiles and the active provider."""

from __future__ import annotations

from typing import Protocol

from prism_switch.models import Provider, TokenCheckResult


class ProviderStorePort(Protocol):
    """Port for the persisted provider list."""

    @property
    def providers(self) -> list[Provider]:
        """All providers in display order."""
        ...

    @property
    def active_provider(self) -> Provider | None:
        """The provider flagged active, if any."""
        ...

    @property
    def saved_active_provider_id(self) -> str:
        """Last activated provider id ("" when cleared)."""
        ...

    def get(self, provider_id: str) -> Provider | None: ...

    def find(self, id_or_name: str) -> Provider | None: ...

    def add(self, provider: Provider) -> Provider: ...

    def update(self, provider: Provider) -> bool: ...

    def delete(self, provider: Provider) -> bool: ...

    def activate(self, provider: Provider) -> bool: ...

    def deactivate_all(self) -> None: ...

    def check_token_duplicate(
        self, token: str, base_url: str, excluding_id: str | None = None
    ) -> TokenCheckResult: ...
