"""check_provider tool -- check a provider's base URL."""

from __future__ import annotations

from dataclasses import asdict

from mcp.server.fastmcp import Context

from prism_switch.errors import PrismError
from prism_switch.tools._helpers import failure, get_context, resolve_provider


async def check_provider(
    provider: str,
    ctx: Context,
    timeout_seconds: float = 10.0,
) -> dict[str, object]:
    """Check that a provider's ANTHROPIC_BASE_URL answers HTTP.

    Sends a HEAD request only; the auth token is not sent.

    Args:
        provider: Id or name of the provider to check.
        timeout_seconds: Request timeout.
    """
    try:
        app = get_context(ctx)
        target = resolve_provider(app.service, provider)
        result = await app.reachability.check(target, timeout_seconds=timeout_seconds)
        return asdict(result)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in check_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
