"""Provider template catalog: load templates from YAML and classify base URLs."""

from __future__ import annotations

import functools
import importlib.resources
import logging
import re
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlsplit

import yaml

from prism_switch.config.envcodec import decode_env
from prism_switch.errors import CatalogError
from prism_switch.models import (
    EnvKey,
    EnvValue,
    ProviderTemplate,
    TemplateMatcher,
    TemplateValidation,
    env_string,
)

logger = logging.getLogger(__name__)

_BUILTIN_RESOURCE = "catalog.yaml"

# ─── URL matchers ───────────────────────────────────────────────

UrlMatcher = Callable[[ProviderTemplate, str], bool]


def _exact_match(template: ProviderTemplate, base_url: str) -> bool:
    return bool(template.base_url) and template.base_url == base_url


def _pattern_match(template: ProviderTemplate, base_url: str) -> bool:
    """Substitute the dynamic segment of *base_url* with the template placeholder."""
    matcher = template.matcher
    if not matcher.regex or matcher.placeholder not in template.base_url:
        return False
    normalized = re.sub(matcher.regex, matcher.placeholder, base_url)
    logger.debug("Normalized %s -> %s for %s", base_url, normalized, template.name)
    return normalized == template.base_url


MATCHERS: dict[str, UrlMatcher] = {
    "exact": _exact_match,
    "pattern": _pattern_match,
}


def register_matcher(kind: str, matcher: UrlMatcher) -> None:
    """Make a new ``match.kind`` available to catalog entries."""
    MATCHERS[kind] = matcher


def extract_host(url: str) -> str:
    """Host of *url* in lowercase without a leading ``www.``; "" if none."""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


def _passes_validation(template: ProviderTemplate, base_url: str, env: dict[str, EnvValue]) -> bool:
    rules = template.validation
    if any(fragment not in base_url for fragment in rules.url_contains):
        return False
    if rules.min_token_length:
        return len(env_string(env, EnvKey.AUTH_TOKEN)) >= rules.min_token_length
    return True


# ─── Catalog ────────────────────────────────────────────────────


class TemplateCatalog:
    """Ordered, read-only list of provider templates."""

    def __init__(self, templates: list[ProviderTemplate]) -> None:
        self._templates = list(templates)

    def all_templates(self) -> list[ProviderTemplate]:
        return list(self._templates)

    def get_template(self, key: str) -> ProviderTemplate | None:
        """Find a template by key or (case-insensitive) display name."""
        wanted = key.strip().lower()
        for template in self._templates:
            if template.key == wanted or template.name.lower() == wanted:
                return template
        return None

    def match_template(
        self, base_url: str, env: dict[str, EnvValue]
    ) -> ProviderTemplate | None:
        """Classify *base_url* against the catalog.

        A template matches when its URL matcher accepts *base_url* and the
        template's validation rules accept the URL and token in *env*.
        """
        if not base_url:
            return None
        for template in self._templates:
            if not template.base_url:
                continue
            candidates = [MATCHERS["exact"]]
            if template.matcher.kind != "exact":
                kind_matcher = MATCHERS.get(template.matcher.kind)
                if kind_matcher is None:
                    logger.warning(
                        "Template %s uses unknown matcher %r", template.name, template.matcher.kind
                    )
                else:
                    candidates.append(kind_matcher)
            for url_matcher in candidates:
                if not url_matcher(template, base_url):
                    continue
                if _passes_validation(template, base_url, env):
                    logger.info("Matched template %s for %s", template.name, base_url)
                    return template
                logger.info(
                    "URL matched %s but configuration failed its validation", template.name
                )
        logger.info("No template matched %s", base_url)
        return None

    def match_template_host(self, base_url: str) -> ProviderTemplate | None:
        """Lower-confidence match on the URL host only (used for icons)."""
        host = extract_host(base_url)
        if not host:
            return None
        for template in self._templates:
            template_host = extract_host(template.base_url)
            if template_host and template_host == host:
                return template
        return None


# ─── Loading ────────────────────────────────────────────────────


def _parse_template(entry: dict[str, object], source: str) -> ProviderTemplate:
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise CatalogError(f"Invalid template in {source}: every template needs a 'name'.")
    env = entry.get("env", {})
    if not isinstance(env, dict):
        raise CatalogError(f"Invalid template '{name}' in {source}: 'env' must be a mapping.")

    match = entry.get("match") or {}
    validation = entry.get("validation") or {}
    if not isinstance(match, dict) or not isinstance(validation, dict):
        raise CatalogError(
            f"Invalid template '{name}' in {source}: 'match' and 'validation' must be mappings."
        )

    doc_link = entry.get("doc_link")
    return ProviderTemplate(
        key=str(entry.get("key") or name).strip().lower(),
        name=name,
        env_variables=decode_env(env),
        icon=str(entry.get("icon") or "OtherLogo"),
        doc_link=str(doc_link) if doc_link else None,
        matcher=TemplateMatcher(
            kind=str(match.get("kind", "exact")),
            regex=str(match.get("regex", "")),
            placeholder=str(match.get("placeholder", "")),
        ),
        validation=TemplateValidation(
            min_token_length=int(validation.get("min_token_length", 0)),
            url_contains=[str(v) for v in validation.get("url_contains", [])],
        ),
    )


def parse_catalog(text: str, source: str = "") -> TemplateCatalog:
    """Parse catalog YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(data, dict):
        raise CatalogError(f"Invalid catalog format in {source}: expected a YAML mapping.")

    entries = data.get("templates", [])
    if not isinstance(entries, list):
        raise CatalogError(f"Invalid catalog format in {source}: 'templates' must be a list.")

    templates = [
        _parse_template(entry, source) for entry in entries if isinstance(entry, dict)
    ]
    return TemplateCatalog(templates)


@functools.cache
def builtin_catalog() -> TemplateCatalog:
    """The packaged catalog, parsed once."""
    ref = importlib.resources.files("prism_switch.templates") / _BUILTIN_RESOURCE
    return parse_catalog(ref.read_text(encoding="utf-8"), source="builtin")


def load_catalog(path: Path | None = None) -> TemplateCatalog:
    """Load a catalog from *path*, or the built-in one when *path* is None."""
    if path is None:
        return builtin_catalog()
    if not path.exists():
        raise CatalogError(f"Template catalog not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogError(f"Failed to read template catalog '{path}': {exc}") from exc
    return parse_catalog(text, source=str(path))
