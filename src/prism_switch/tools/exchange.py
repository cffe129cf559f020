"""import_provider / export_provider tools -- share profiles as JSON."""

from __future__ import annotations

import dataclasses

from mcp.server.fastmcp import Context

from prism_switch.errors import PrismError
from prism_switch.sync.exchange import export_provider as export_provider_json
from prism_switch.sync.exchange import parse_import
from prism_switch.tools._helpers import (
    failure,
    get_context,
    provider_summary,
    resolve_provider,
)


async def import_provider(payload: str, ctx: Context, name: str = "") -> dict[str, object]:
    """Add a provider from a pasted ``{"env": {...}}`` JSON blob.

    The blob must include non-empty ANTHROPIC_AUTH_TOKEN and
    ANTHROPIC_BASE_URL. Known endpoints are named after their template;
    others are named "Custom". The imported provider is not activated.

    Args:
        payload: JSON text as exported by export_provider or copied from a
            settings.json ``env`` block wrapped in {"env": ...}.
        name: Optional display name overriding the detected one.
    """
    try:
        service = get_context(ctx).service
        provider = parse_import(payload, service.catalog)
        if provider is None:
            return failure(
                "Import rejected. Expected JSON like "
                '{"env": {"ANTHROPIC_BASE_URL": "...", "ANTHROPIC_AUTH_TOKEN": "..."}}.'
            )
        if name:
            provider = dataclasses.replace(provider, name=name)
        check = service.store.check_token_duplicate(provider.auth_token, provider.base_url)
        stored = service.add_provider(provider)
        result: dict[str, object] = {
            "success": True,
            "provider": provider_summary(stored),
            "message": f"Imported provider '{stored.name}'.",
        }
        if check.provider is not None:
            result["warning"] = (
                f"Provider '{check.provider.name}' already uses this token "
                f"({check.status.value.replace('_', ' ')})."
            )
        return result
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in import_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def export_provider(provider: str, ctx: Context) -> dict[str, object]:
    """Export a provider as ``{"env": {...}}`` JSON for sharing or backup.

    The output contains the unmasked auth token.

    Args:
        provider: Id or name of the provider to export.
    """
    try:
        service = get_context(ctx).service
        target = resolve_provider(service, provider)
        return {
            "success": True,
            "provider_id": target.id,
            "name": target.name,
            "payload": export_provider_json(target),
        }
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in export_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
