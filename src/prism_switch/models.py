"""Domain models for prism-switch. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum

DEFAULT_ICON = "ClaudeLogo"
OTHER_ICON = "OtherLogo"

# ─── Enumerations ─────────────────────────────────────────────


class EnvValueType(StrEnum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"


class EnvKey(StrEnum):
    """Env variables every provider profile may own in settings.json."""

    BASE_URL = "ANTHROPIC_BASE_URL"
    AUTH_TOKEN = "ANTHROPIC_AUTH_TOKEN"
    HAIKU_MODEL = "ANTHROPIC_DEFAULT_HAIKU_MODEL"
    SONNET_MODEL = "ANTHROPIC_DEFAULT_SONNET_MODEL"
    OPUS_MODEL = "ANTHROPIC_DEFAULT_OPUS_MODEL"
    API_TIMEOUT = "API_TIMEOUT_MS"
    MAX_OUTPUT_TOKENS = "CLAUDE_CODE_MAX_OUTPUT_TOKENS"
    DISABLE_TRAFFIC = "CLAUDE_CODE_DISABLE_NONESSENTIAL_TRAFFIC"

    @property
    def value_type(self) -> EnvValueType:
        if self in (EnvKey.API_TIMEOUT, EnvKey.MAX_OUTPUT_TOKENS):
            return EnvValueType.INTEGER
        if self is EnvKey.DISABLE_TRAFFIC:
            return EnvValueType.BOOLEAN
        return EnvValueType.STRING


class TokenCheckStatus(StrEnum):
    UNIQUE = "unique"
    DUPLICATE_SAME_URL = "duplicate_same_url"
    DUPLICATE_DIFFERENT_URL = "duplicate_different_url"


class SyncAction(StrEnum):
    NONE = "none"
    ACTIVATED = "activated"
    CREATED = "created"
    DEACTIVATED = "deactivated"


# ─── Env Values ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class EnvValue:
    """A typed env scalar. ``value`` is always the string form of the payload."""

    value: str
    type: EnvValueType = EnvValueType.STRING

    def to_dict(self) -> dict[str, str]:
        return {"value": self.value, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> EnvValue:
        raw_type = str(data.get("type", EnvValueType.STRING))
        try:
            value_type = EnvValueType(raw_type)
        except ValueError:
            value_type = EnvValueType.STRING
        return cls(value=str(data.get("value", "")), type=value_type)


def env_string(env: dict[str, EnvValue], key: str) -> str:
    """Return the string value of *key* in *env*, or "" when absent."""
    entry = env.get(key)
    return entry.value if entry is not None else ""


# ─── Providers ────────────────────────────────────────────────


def new_provider_id() -> str:
    return str(uuid.uuid4()).upper()


@dataclass(frozen=True, slots=True)
class Provider:
    """A named bundle of env variables for one API backend."""

    name: str
    env_variables: dict[str, EnvValue] = field(default_factory=dict)
    icon: str = DEFAULT_ICON
    is_active: bool = False
    id: str = field(default_factory=new_provider_id)

    @property
    def auth_token(self) -> str:
        return env_string(self.env_variables, EnvKey.AUTH_TOKEN)

    @property
    def base_url(self) -> str:
        return env_string(self.env_variables, EnvKey.BASE_URL)

    def managed_keys(self) -> set[str]:
        """Keys this provider owns in settings.json: base keys plus its own."""
        return {key.value for key in EnvKey} | set(self.env_variables)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "envVariables": {k: v.to_dict() for k, v in self.env_variables.items()},
            "isActive": self.is_active,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Provider:
        """Build a Provider from its persisted form.

        Older stores kept ``envVariables`` as a flat ``{key: "value"}`` map;
        those entries are migrated to string-typed EnvValues.
        """
        raw_env = data.get("envVariables", {})
        env: dict[str, EnvValue] = {}
        if isinstance(raw_env, dict):
            for key, entry in raw_env.items():
                if isinstance(entry, dict):
                    env[str(key)] = EnvValue.from_dict(entry)
                else:
                    env[str(key)] = EnvValue(value=str(entry))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            env_variables=env,
            icon=str(data.get("icon") or DEFAULT_ICON),
            is_active=bool(data.get("isActive", False)),
        )


# ─── Templates ────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TemplateMatcher:
    """How a template's base URL is compared against a candidate URL.

    ``kind`` selects an entry in the catalog's matcher registry. Pattern
    matchers replace ``regex`` hits in the candidate with ``placeholder``.
    """

    kind: str = "exact"
    regex: str = ""
    placeholder: str = ""


@dataclass(frozen=True, slots=True)
class TemplateValidation:
    """Extra shape checks a template requires before a URL match is accepted."""

    min_token_length: int = 0
    url_contains: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ProviderTemplate:
    """A built-in, read-only catalog entry."""

    key: str
    name: str
    env_variables: dict[str, EnvValue] = field(default_factory=dict)
    icon: str = OTHER_ICON
    doc_link: str | None = None
    matcher: TemplateMatcher = field(default_factory=TemplateMatcher)
    validation: TemplateValidation = field(default_factory=TemplateValidation)

    @property
    def base_url(self) -> str:
        return env_string(self.env_variables, EnvKey.BASE_URL)


def provider_from_template(template: ProviderTemplate) -> Provider:
    """Seed a new, inactive provider from a template."""
    return Provider(
        name=template.name,
        env_variables=dict(template.env_variables),
        icon=template.icon,
    )


# ─── Results ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TokenCheckResult:
    status: TokenCheckStatus
    provider: Provider | None = None

    @property
    def is_unique(self) -> bool:
        return self.status is TokenCheckStatus.UNIQUE


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of reconciling the store with settings.json."""

    changed: bool
    action: SyncAction = SyncAction.NONE
    provider: Provider | None = None


@dataclass(frozen=True, slots=True)
class ReachabilityResult:
    success: bool
    provider_name: str
    base_url: str
    status_code: int | None = None
    error: str = ""
