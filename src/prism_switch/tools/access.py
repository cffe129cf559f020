"""grant_settings_access tool -- approve access to the .claude directory."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from prism_switch.config.access import request_access
from prism_switch.errors import PermissionDeniedError, PrismError
from prism_switch.tools._helpers import failure, get_context


async def grant_settings_access(directory: str, ctx: Context) -> dict[str, object]:
    """Grant prism-switch access to your .claude directory.

    Needed once in sandboxed setups (PRISM_SWITCH_SANDBOX=1) before any
    provider can be activated. The grant is stored and reused until the
    directory disappears.

    Args:
        directory: Path to the .claude directory, e.g. "~/.claude".
    """
    try:
        app = get_context(ctx)
        if app.grant_path is None:
            return {
                "success": True,
                "message": "Sandbox mode is off; settings.json is accessed directly.",
            }
        granted = request_access(app.grant_path, directory)
        result = app.service.sync_on_open()
        return {
            "success": True,
            "directory": str(granted),
            "providers_changed": result.changed,
            "message": f"Access granted to {granted}.",
        }
    except PermissionDeniedError as exc:
        return failure(str(exc), needs_access=True)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in grant_settings_access: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
