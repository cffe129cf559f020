"""list_templates tool -- show the built-in provider templates."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from prism_switch.tools._helpers import failure, get_context


async def list_templates(ctx: Context) -> dict[str, object]:
    """List provider templates that add_provider can start from.

    Returns:
        Each template's key, name, base URL, default env and documentation link.
    """
    try:
        catalog = get_context(ctx).service.catalog
        return {
            "success": True,
            "templates": [
                {
                    "key": t.key,
                    "name": t.name,
                    "icon": t.icon,
                    "base_url": t.base_url,
                    "env": {k: v.value for k, v in sorted(t.env_variables.items())},
                    "doc_link": t.doc_link or "",
                }
                for t in catalog.all_templates()
            ],
        }
    except Exception as exc:
        await ctx.error(f"Unexpected error in list_templates: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
