"""Provider tools -- list, add, edit, delete and switch provider profiles."""

from __future__ import annotations

import dataclasses

from mcp.server.fastmcp import Context

from prism_switch.config.envcodec import decode_env, is_valid_value, normalize_value
from prism_switch.errors import PermissionDeniedError, PrismError
from prism_switch.models import (
    EnvKey,
    EnvValue,
    Provider,
    TokenCheckResult,
    TokenCheckStatus,
    env_string,
    provider_from_template,
)
from prism_switch.providers.icons import infer_icon
from prism_switch.tools._helpers import (
    PERMISSION_HINT,
    failure,
    get_context,
    permission_failure,
    provider_summary,
    resolve_provider,
)

EnvInput = dict[str, str | int | bool]


def _decode_input(env: EnvInput | None) -> dict[str, EnvValue]:
    decoded = {key: normalize_value(value) for key, value in decode_env(env or {}).items()}
    invalid = [key for key, value in decoded.items() if not is_valid_value(value)]
    if invalid:
        raise PrismError(
            f"Invalid value for {', '.join(sorted(invalid))}: "
            "integers must be whole numbers and booleans 0/1/true/false."
        )
    return decoded


def _token_warning(check: TokenCheckResult) -> str:
    if check.status is TokenCheckStatus.DUPLICATE_SAME_URL and check.provider is not None:
        return (
            f"Provider '{check.provider.name}' already uses this token with the same "
            "base URL. This may be a duplicate of the same account."
        )
    if check.status is TokenCheckStatus.DUPLICATE_DIFFERENT_URL and check.provider is not None:
        return (
            f"Provider '{check.provider.name}' uses this token with a different base URL "
            f"({check.provider.base_url}). Check that the token belongs to this endpoint."
        )
    return ""


async def list_providers(ctx: Context) -> dict[str, object]:
    """List stored provider profiles and which one is active.

    Secrets such as auth tokens are masked.

    Returns:
        Providers in display order, the active provider id (empty when
        Claude Code uses its built-in credentials), whether settings.json
        is accessible, and whether the default state is active (null when
        settings.json is not accessible).
    """
    try:
        service = get_context(ctx).service
        active = service.active_provider
        has_access = service.has_settings_access
        result: dict[str, object] = {
            "success": True,
            "providers": [provider_summary(p) for p in service.providers],
            "active_provider_id": active.id if active else "",
            "settings_access": has_access,
            "is_default_active": service.is_default_active if has_access else None,
        }
        if not has_access:
            result["hint"] = PERMISSION_HINT
        return result
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in list_providers: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def check_token(
    token: str,
    base_url: str,
    ctx: Context,
    exclude_provider: str = "",
) -> dict[str, object]:
    """Check whether another stored provider already uses an auth token.

    Duplicates are warnings, not errors: the caller may still save.

    Args:
        token: The auth token to look for.
        base_url: The base URL the token will be used with.
        exclude_provider: Id or name of the provider being edited, so it
            is not reported as its own duplicate.
    """
    try:
        service = get_context(ctx).service
        excluding_id = resolve_provider(service, exclude_provider).id if exclude_provider else None
        check = service.store.check_token_duplicate(token, base_url, excluding_id)
        return {
            "success": True,
            "status": check.status.value,
            "provider": provider_summary(check.provider) if check.provider else None,
            "warning": _token_warning(check),
        }
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in check_token: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def add_provider(
    ctx: Context,
    template: str = "",
    name: str = "",
    env: EnvInput | None = None,
    activate: bool = False,
) -> dict[str, object]:
    """Add a provider profile, optionally seeded from a template.

    Adding does not change Claude's settings.json unless activate=True.

    Args:
        template: Template key or name from list_templates (e.g. "deepseek").
            Empty starts from a blank profile.
        name: Display name. Defaults to the template name, or "Custom".
        env: Env variables to set on top of the template, e.g.
            {"ANTHROPIC_AUTH_TOKEN": "sk-...", "API_TIMEOUT_MS": 600000}.
        activate: Also make the new provider active.

    Returns:
        The stored provider (token masked) and any duplicate-token warning.
    """
    try:
        service = get_context(ctx).service

        seed = Provider(name=name or "Custom")
        if template:
            found = service.catalog.get_template(template)
            if found is None:
                return failure(
                    f"Unknown template '{template}'. Use list_templates to see available templates."
                )
            seed = provider_from_template(found)

        env_vars = {**seed.env_variables, **_decode_input(env)}
        icon = seed.icon if template else infer_icon(env_vars, service.catalog)
        candidate = dataclasses.replace(
            seed, name=name or seed.name, env_variables=env_vars, icon=icon
        )

        check = service.store.check_token_duplicate(candidate.auth_token, candidate.base_url)
        stored = service.add_provider(candidate)

        applied = None
        if activate:
            applied = service.activate_provider(stored)
            stored = service.store.get(stored.id) or stored

        result: dict[str, object] = {
            "success": True,
            "provider": provider_summary(stored),
            "message": f"Added provider '{stored.name}'.",
        }
        if applied is not None:
            result["settings_written"] = applied
        warning = _token_warning(check)
        if warning:
            result["warning"] = warning
        return result
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in add_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def update_provider(
    provider: str,
    ctx: Context,
    name: str = "",
    env: EnvInput | None = None,
    unset: list[str] | None = None,
    icon: str = "",
) -> dict[str, object]:
    """Edit a provider profile.

    If the provider is active, settings.json is rewritten to match the edit:
    keys the edit removed are removed from the file too.

    Args:
        provider: Id or name of the provider to edit.
        name: New display name (empty keeps the current one).
        env: Env variables to set or overwrite.
        unset: Env variable names to remove from the profile.
        icon: Icon identifier. Empty re-infers it when the base URL changes.
    """
    try:
        service = get_context(ctx).service
        current = resolve_provider(service, provider)

        env_vars = dict(current.env_variables)
        env_vars.update(_decode_input(env))
        for key in unset or []:
            env_vars.pop(key, None)

        new_icon = icon or current.icon
        if not icon and env_string(env_vars, EnvKey.BASE_URL) != current.base_url:
            new_icon = infer_icon(env_vars, service.catalog)

        edited = dataclasses.replace(
            current, name=name or current.name, env_variables=env_vars, icon=new_icon
        )
        check = service.store.check_token_duplicate(
            edited.auth_token, edited.base_url, excluding_id=edited.id
        )
        ok = service.update_provider(edited)
        stored = service.store.get(edited.id) or edited

        result: dict[str, object] = {
            "success": ok,
            "provider": provider_summary(stored),
            "message": (
                f"Updated provider '{stored.name}'."
                if ok
                else f"Provider '{stored.name}' was saved but settings.json could not be updated."
            ),
        }
        warning = _token_warning(check)
        if warning:
            result["warning"] = warning
        return result
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in update_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def delete_provider(provider: str, ctx: Context) -> dict[str, object]:
    """Delete a provider profile.

    Deleting the active provider switches Claude Code back to its default
    credentials by clearing the managed keys from settings.json.

    Args:
        provider: Id or name of the provider to delete.
    """
    try:
        service = get_context(ctx).service
        target = resolve_provider(service, provider)
        was_active = target.is_active
        ok = service.delete_provider(target)
        message = f"Deleted provider '{target.name}'."
        if was_active:
            message += " It was active; Claude Code now uses its default credentials."
        return {
            "success": ok,
            "provider_id": target.id,
            "was_active": was_active,
            "message": message if ok else f"Failed to fully delete '{target.name}'.",
        }
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in delete_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def activate_provider(provider: str, ctx: Context) -> dict[str, object]:
    """Switch Claude Code to a stored provider.

    Removes the previous provider's keys from ~/.claude/settings.json and
    writes this provider's env. Other settings are preserved. Restart
    running Claude Code sessions to pick up the change.

    Args:
        provider: Id or name of the provider to activate.
    """
    try:
        service = get_context(ctx).service
        target = resolve_provider(service, provider)
        ok = service.activate_provider(target)
        stored = service.store.get(target.id) or target
        return {
            "success": ok,
            "provider": provider_summary(stored),
            "message": (
                f"Activated '{stored.name}'. Restart Claude Code sessions to apply."
                if ok
                else f"'{stored.name}' is marked active but settings.json could not be written."
            ),
        }
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in activate_provider: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")


async def activate_default(ctx: Context) -> dict[str, object]:
    """Switch Claude Code back to its built-in default credentials.

    Clears the active provider's keys from settings.json and deactivates
    every stored provider.
    """
    try:
        service = get_context(ctx).service
        ok = service.activate_default()
        return {
            "success": ok,
            "message": (
                "Claude Code now uses its default credentials."
                if ok
                else "Providers were deactivated but settings.json could not be written."
            ),
        }
    except PermissionDeniedError as exc:
        return permission_failure(exc)
    except PrismError as exc:
        return failure(str(exc))
    except Exception as exc:
        await ctx.error(f"Unexpected error in activate_default: {exc}")
        return failure(f"Internal error: {type(exc).__name__}")
