"""sync_config tool -- pick up changes other programs made to settings.json."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from prism_switch.errors import PermissionDeniedError, PrismError
from prism_switch.tools._helpers import (
    failure,
    get_context,
    permission_failure,
    provider_summary,
)

_ACTION_MESSAGES = {
    "none": "Provider list already matches Claude settings.",
    "activated": "Switched the active provider to match Claude settings.",
    "created": "Claude settings use an unknown provider; it was added and activated.",
    "deactivated": "Claude settings no longer carry a token; all providers were deactivated.",
}


async def sync_config(ctx: Context) -> dict[str, object]:
    """Reconcile stored providers with the current ~/.claude/settings.json.

    Call this before showing provider state if Claude Code or the user may
    have edited settings.json directly. Only the provider list changes;
    settings.json is never written by a sync.

    Returns:
        Whether anything changed, what was done, and the affected provider.
    """
    try:
        service = get_context(ctx).service
        result = service.sync_on_open()
        return {
            "success": True,
            "changed": result.changed,
            "action": result.action.value,
            "provider": provider_summary(result.provider) if result.provider else None,
            "message": _ACTION_MESSAGES[result.action.value],
        }
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in sync_config: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
