"""Infer a provider icon from its base URL."""

from __future__ import annotations

from prism_switch.models import DEFAULT_ICON, OTHER_ICON, EnvKey, EnvValue, env_string
from prism_switch.templates.catalog import TemplateCatalog, builtin_catalog, extract_host

# Checked in order after template hosts; substring of the URL host -> icon.
_HOST_ICONS: tuple[tuple[str, str], ...] = (
    ("anthropic.com", "ClaudeLogo"),
    ("bigmodel.cn", "ZhipuLogo"),
    ("z.ai", "ZaiLogo"),
    ("moonshot.cn", "MoonshotLogo"),
    ("streamlakeapi.com", "StreamLakeLogo"),
    ("deepseek.com", "DeepSeekLogo"),
)


def infer_icon(
    env_variables: dict[str, EnvValue],
    catalog: TemplateCatalog | None = None,
) -> str:
    """Pick an icon for a provider from ``ANTHROPIC_BASE_URL``.

    Template hosts win, then the fixed host table. No URL (or no host)
    means the default Claude icon; an unknown host gets the generic one.
    """
    base_url = env_string(env_variables, EnvKey.BASE_URL)
    if not base_url:
        return DEFAULT_ICON
    host = extract_host(base_url)
    if not host:
        return DEFAULT_ICON

    template = (catalog or builtin_catalog()).match_template_host(base_url)
    if template is not None:
        return template.icon

    for fragment, icon in _HOST_ICONS:
        if fragment in host:
            return icon
    return OTHER_ICON
