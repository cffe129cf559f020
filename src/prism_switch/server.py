"""MCP server that switches Claude Code between API provider profiles."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from prism_switch.config import paths
from prism_switch.config.access import GRANT_FILENAME, DirectAccess, GrantedAccess
from prism_switch.config.base import AccessGrantPort
from prism_switch.config.gateway import SettingsGateway
from prism_switch.connection.base import ReachabilityPort
from prism_switch.connection.checker import BaseURLReachabilityChecker
from prism_switch.errors import PrismError
from prism_switch.providers.store import ProviderStore
from prism_switch.sync.service import ReconciliationService
from prism_switch.templates.catalog import load_catalog
from prism_switch.tools.access import grant_settings_access
from prism_switch.tools.check import check_provider
from prism_switch.tools.exchange import export_provider, import_provider
from prism_switch.tools.providers import (
    activate_default,
    activate_provider,
    add_provider,
    check_token,
    delete_provider,
    list_providers,
    update_provider,
)
from prism_switch.tools.sync import sync_config
from prism_switch.tools.templates import list_templates

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared state across all tool invocations.

    Built once per server lifetime; tools reach the core only through here.
    ``grant_path`` is None unless sandboxed access is enabled.
    """

    http_client: httpx.AsyncClient
    service: ReconciliationService
    reachability: ReachabilityPort
    grant_path: Path | None = None


def build_service(
    *,
    settings_dir: Path | None = None,
    state_dir: Path | None = None,
    sandboxed: bool | None = None,
    catalog_path: Path | None = None,
) -> tuple[ReconciliationService, Path | None]:
    """Wire gateway, store and catalog into a ReconciliationService.

    Defaults come from the environment (see ``prism_switch.config.paths``).
    Returns the service and the access grant path (None without a sandbox).
    """
    state = state_dir or paths.state_dir()
    sandboxed = paths.sandbox_enabled() if sandboxed is None else sandboxed

    grant_path: Path | None = None
    access: AccessGrantPort
    if sandboxed:
        grant_path = state / GRANT_FILENAME
        access = GrantedAccess(grant_path)
    else:
        access = DirectAccess(settings_dir or paths.claude_config_dir())

    service = ReconciliationService(
        store=ProviderStore(state),
        gateway=SettingsGateway(access),
        catalog=load_catalog(catalog_path or paths.catalog_override()),
    )
    return service, grant_path


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Manage shared adapter lifecycle -- the composition root."""
    service, grant_path = build_service()
    try:
        result = service.sync_on_startup()
        if result.changed and result.provider is not None:
            logger.info("Startup sync %s provider %s", result.action, result.provider.name)
    except PrismError as exc:
        logger.warning("Startup sync skipped: %s", exc)

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(15.0, connect=10.0),
        follow_redirects=True,
        transport=httpx.AsyncHTTPTransport(retries=2),
    ) as http_client:
        yield AppContext(
            http_client=http_client,
            service=service,
            reachability=BaseURLReachabilityChecker(http_client),
            grant_path=grant_path,
        )


mcp = FastMCP(
    "prism-switch",
    instructions=(
        "prism-switch manages which API provider Claude Code talks to by editing the "
        "env block of ~/.claude/settings.json. Other settings are always preserved.\n\n"
        "### Workflow\n"
        "1. **sync_config** -- run first if settings.json may have been edited by hand "
        "or by Claude Code; it adopts the current file state.\n"
        "2. **list_providers** -- show stored profiles (tokens masked) and the active one.\n"
        "3. **activate_provider** / **activate_default** -- switch providers. Running "
        "Claude Code sessions must be restarted to pick up the change.\n\n"
        "### Managing profiles\n"
        "- **list_templates** then **add_provider** with template=<key> and the user's token.\n"
        "- **import_provider** / **export_provider** exchange {\"env\": {...}} JSON.\n"
        "- **update_provider**, **delete_provider**, **check_token**, **check_provider**.\n\n"
        "### Access\n"
        "If a tool returns needs_access=true, ask the user for their .claude directory and "
        "call **grant_settings_access** before retrying.\n\n"
        "Never echo auth tokens back to the user; tool output masks them on purpose."
    ),
    lifespan=app_lifespan,
)

# ─── Read-only tools ──────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_providers)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(list_templates)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(check_token)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(export_provider)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))(check_provider)

# ─── Destructive tools ────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(sync_config)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(activate_provider)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(activate_default)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(add_provider)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(update_provider)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(delete_provider)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(import_provider)
mcp.tool(annotations=ToolAnnotations(destructiveHint=True))(grant_settings_access)
