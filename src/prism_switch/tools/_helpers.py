"""Helpers shared by the MCP tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context

from prism_switch.config.envcodec import mask_token
from prism_switch.errors import PermissionDeniedError, ProviderNotFoundError
from prism_switch.models import EnvValue, Provider

if TYPE_CHECKING:
    from prism_switch.server import AppContext
    from prism_switch.sync.service import ReconciliationService

# Key name fragments whose values are never shown in tool output.
_SECRET_KEY_HINTS: frozenset[str] = frozenset(
    {
        "auth_token",
        "api_key",
        "apikey",
        "oauth_token",
        "secret",
        "password",
        "passphrase",
        "client_key",
    }
)

PERMISSION_HINT = (
    "Run grant_settings_access with the path to your .claude directory, then retry."
)


def get_context(ctx: Context) -> AppContext:
    """Extract AppContext from FastMCP's lifespan context.

    Raises TypeError if the lifespan context is not an AppContext instance.
    """
    from prism_switch.server import AppContext

    app = ctx.request_context.lifespan_context
    if not isinstance(app, AppContext):
        msg = (
            f"Expected AppContext in lifespan_context, got {type(app).__name__}. "
            "Is the server configured with app_lifespan?"
        )
        raise TypeError(msg)
    return app


def is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(hint in lowered for hint in _SECRET_KEY_HINTS)


def masked_env(env: dict[str, EnvValue]) -> dict[str, str]:
    """String view of *env* with secret-looking values masked."""
    return {
        key: mask_token(value.value) if is_secret_key(key) else value.value
        for key, value in sorted(env.items())
    }


def provider_summary(provider: Provider) -> dict[str, object]:
    return {
        "id": provider.id,
        "name": provider.name,
        "icon": provider.icon,
        "is_active": provider.is_active,
        "base_url": provider.base_url,
        "env": masked_env(provider.env_variables),
    }


def resolve_provider(service: ReconciliationService, provider: str) -> Provider:
    """Find a stored provider by id or name."""
    found = service.store.find(provider)
    if found is None:
        raise ProviderNotFoundError(
            f"Provider '{provider}' not found. Use list_providers to see ids and names."
        )
    return found


def failure(message: str, **extra: object) -> dict[str, object]:
    return {"success": False, "message": message, **extra}


def permission_failure(exc: PermissionDeniedError) -> dict[str, object]:
    """Result telling the caller to grant settings access before retrying."""
    return failure(str(exc), needs_access=True, hint=PERMISSION_HINT)
