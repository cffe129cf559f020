"""Clipboard import/export of provider profiles as ``{"env": {...}}`` JSON."""

from __future__ import annotations

import json
import logging

from prism_switch.config.envcodec import decode_env, encode_env
from prism_switch.models import EnvKey, Provider, env_string
from prism_switch.providers.icons import infer_icon
from prism_switch.templates.catalog import TemplateCatalog

logger = logging.getLogger(__name__)

CUSTOM_PROVIDER_NAME = "Custom"
_REQUIRED_KEYS = (EnvKey.AUTH_TOKEN, EnvKey.BASE_URL)


def parse_import(text: str, catalog: TemplateCatalog) -> Provider | None:
    """Build an inactive provider from pasted JSON, or None if it is unusable.

    The payload must be an object with an ``env`` object that carries a
    non-empty auth token and base URL. The name and icon come from the
    matching template when there is one.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning("Import rejected: not valid JSON (%s)", exc)
        return None
    if not isinstance(data, dict) or not isinstance(data.get("env"), dict):
        logger.warning("Import rejected: expected an object with an 'env' object")
        return None

    env = decode_env(data["env"])
    missing = [key.value for key in _REQUIRED_KEYS if not env_string(env, key).strip()]
    if missing:
        logger.warning("Import rejected: missing %s", ", ".join(missing))
        return None

    base_url = env_string(env, EnvKey.BASE_URL)
    template = catalog.match_template(base_url, env)
    if template is not None:
        return Provider(name=template.name, env_variables=env, icon=template.icon)
    return Provider(
        name=CUSTOM_PROVIDER_NAME,
        env_variables=env,
        icon=infer_icon(env, catalog),
    )


def export_provider(provider: Provider) -> str:
    """Serialize *provider* for the clipboard (sorted keys, 4-space indent)."""
    payload = {"env": encode_env(provider.env_variables)}
    return json.dumps(payload, indent=4, sort_keys=True, ensure_ascii=False)
