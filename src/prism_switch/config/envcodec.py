"""Convert settings.json ``env`` objects to and from typed EnvValues.

On disk Claude Code stores env values as native JSON scalars. In memory every
value is a string tagged with its type, so provider profiles can be edited
and compared without caring how the file happened to spell them.
"""

from __future__ import annotations

import logging

from prism_switch.models import EnvKey, EnvValue, EnvValueType

logger = logging.getLogger(__name__)

_S = EnvValueType.STRING
_I = EnvValueType.INTEGER
_B = EnvValueType.BOOLEAN

MANAGED_KEYS: dict[str, EnvValueType] = {key.value: key.value_type for key in EnvKey}

# Other env variables Claude Code understands. Consulted after MANAGED_KEYS
# and before falling back to the JSON type of the value.
KNOWN_KEYS: dict[str, EnvValueType] = {
    "ANTHROPIC_API_KEY": _S,
    "ANTHROPIC_CUSTOM_HEADERS": _S,
    "ANTHROPIC_MODEL": _S,
    "ANTHROPIC_SMALL_FAST_MODEL": _S,
    "ANTHROPIC_SMALL_FAST_MODEL_AWS_REGION": _S,
    "ANTHROPIC_DEFAULT_HAIKU_MODEL_NAME": _S,
    "ANTHROPIC_BEDROCK_BASE_URL": _S,
    "ANTHROPIC_VERTEX_BASE_URL": _S,
    "ANTHROPIC_VERTEX_PROJECT_ID": _S,
    "ANTHROPIC_BETAS": _S,
    "ANTHROPIC_LOG": _S,
    "AWS_BEARER_TOKEN_BEDROCK": _S,
    "AWS_REGION": _S,
    "AWS_PROFILE": _S,
    "CLOUD_ML_REGION": _S,
    "VERTEX_REGION_CLAUDE_3_5_HAIKU": _S,
    "VERTEX_REGION_CLAUDE_3_7_SONNET": _S,
    "VERTEX_REGION_CLAUDE_4_0_OPUS": _S,
    "VERTEX_REGION_CLAUDE_4_0_SONNET": _S,
    "VERTEX_REGION_CLAUDE_4_1_OPUS": _S,
    "BASH_DEFAULT_TIMEOUT_MS": _I,
    "BASH_MAX_TIMEOUT_MS": _I,
    "BASH_MAX_OUTPUT_LENGTH": _I,
    "CLAUDE_BASH_MAINTAIN_PROJECT_WORKING_DIR": _B,
    "CLAUDE_CODE_API_KEY_HELPER_TTL_MS": _I,
    "CLAUDE_CODE_CLIENT_CERT": _S,
    "CLAUDE_CODE_CLIENT_KEY": _S,
    "CLAUDE_CODE_CLIENT_KEY_PASSPHRASE": _S,
    "CLAUDE_CODE_DISABLE_TERMINAL_TITLE": _B,
    "CLAUDE_CODE_DISABLE_AUTOUPDATER": _B,
    "CLAUDE_CODE_DISABLE_BUG_COMMAND": _B,
    "CLAUDE_CODE_DISABLE_ERROR_REPORTING": _B,
    "CLAUDE_CODE_DISABLE_TELEMETRY": _B,
    "CLAUDE_CODE_DISABLE_COST_WARNINGS": _B,
    "CLAUDE_CODE_DISABLE_EXPERIMENTAL_BETAS": _B,
    "CLAUDE_CODE_ENABLE_TELEMETRY": _B,
    "CLAUDE_CODE_IDE_SKIP_AUTO_INSTALL": _B,
    "CLAUDE_CODE_MAX_RETRIES": _I,
    "CLAUDE_CODE_MAX_TOOL_USE_CONCURRENCY": _I,
    "CLAUDE_CODE_SKIP_BEDROCK_AUTH": _B,
    "CLAUDE_CODE_SKIP_VERTEX_AUTH": _B,
    "CLAUDE_CODE_SUBAGENT_MODEL": _S,
    "CLAUDE_CODE_USE_BEDROCK": _B,
    "CLAUDE_CODE_USE_VERTEX": _B,
    "CLAUDE_CODE_OAUTH_TOKEN": _S,
    "CLAUDE_CODE_SHELL_PREFIX": _S,
    "CLAUDE_CONFIG_DIR": _S,
    "DISABLE_AUTOUPDATER": _B,
    "DISABLE_BUG_COMMAND": _B,
    "DISABLE_COST_WARNINGS": _B,
    "DISABLE_ERROR_REPORTING": _B,
    "DISABLE_INTERLEAVED_THINKING": _B,
    "DISABLE_MICROCOMPACT": _B,
    "DISABLE_NON_ESSENTIAL_MODEL_CALLS": _B,
    "DISABLE_PROMPT_CACHING": _B,
    "DISABLE_PROMPT_CACHING_HAIKU": _B,
    "DISABLE_PROMPT_CACHING_SONNET": _B,
    "DISABLE_PROMPT_CACHING_OPUS": _B,
    "DISABLE_TELEMETRY": _B,
    "HTTP_PROXY": _S,
    "HTTPS_PROXY": _S,
    "NO_PROXY": _S,
    "MAX_MCP_OUTPUT_TOKENS": _I,
    "MAX_THINKING_TOKENS": _I,
    "MCP_TIMEOUT": _I,
    "MCP_TOOL_TIMEOUT": _I,
    "SLASH_COMMAND_TOOL_CHAR_BUDGET": _I,
    "USE_BUILTIN_RIPGREP": _B,
    "NODE_EXTRA_CA_CERTS": _S,
}

_TRUE_STRINGS = frozenset({"1", "true"})


def value_type_for(key: str, raw: object) -> EnvValueType:
    """Pick the type for *key*: managed table, known table, then JSON type."""
    if key in MANAGED_KEYS:
        return MANAGED_KEYS[key]
    if key in KNOWN_KEYS:
        return KNOWN_KEYS[key]
    # bool is a subclass of int -- check it first.
    if isinstance(raw, bool):
        return EnvValueType.BOOLEAN
    if isinstance(raw, int) or (isinstance(raw, float) and raw.is_integer()):
        return EnvValueType.INTEGER
    return EnvValueType.STRING


def _stringify(raw: object) -> str:
    if isinstance(raw, bool):
        return "1" if raw else "0"
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    if raw is None:
        return ""
    return str(raw)


def decode_env(env: object) -> dict[str, EnvValue]:
    """Decode a settings.json ``env`` object. Non-objects decode to {}."""
    if not isinstance(env, dict):
        return {}
    return {
        str(key): EnvValue(value=_stringify(raw), type=value_type_for(str(key), raw))
        for key, raw in env.items()
    }


def parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_STRINGS


def parse_int(value: str) -> int | None:
    try:
        return int(value.strip(), 10)
    except ValueError:
        return None


def encode_value(key: str, env_value: EnvValue) -> object:
    """Native JSON form of a single EnvValue.

    Integers become JSON numbers. Booleans on managed and known keys are
    written as 1/0, which is how Claude Code reads them. Booleans on custom
    keys are written as JSON true/false, so they decode back as booleans
    and ``decode_env(encode_env(env)) == env`` holds.
    """
    if env_value.type is EnvValueType.INTEGER:
        parsed = parse_int(env_value.value)
        if parsed is None:
            logger.warning(
                "Cannot convert %r to integer for key %s, storing as string",
                env_value.value,
                key,
            )
            return env_value.value
        return parsed
    if env_value.type is EnvValueType.BOOLEAN:
        flag = parse_bool(env_value.value)
        if key in MANAGED_KEYS or key in KNOWN_KEYS:
            # Claude Code reads these flags as 0/1.
            return 1 if flag else 0
        return flag
    return env_value.value


def encode_env(env_vars: dict[str, EnvValue]) -> dict[str, object]:
    """Encode typed EnvValues to a settings.json ``env`` object."""
    return {key: encode_value(key, env_value) for key, env_value in env_vars.items()}


def normalize_value(env_value: EnvValue) -> EnvValue:
    """Canonical form: booleans as "0"/"1", integers without padding."""
    if env_value.type is EnvValueType.BOOLEAN:
        return EnvValue(value="1" if parse_bool(env_value.value) else "0", type=env_value.type)
    if env_value.type is EnvValueType.INTEGER:
        parsed = parse_int(env_value.value)
        if parsed is not None:
            return EnvValue(value=str(parsed), type=env_value.type)
    return env_value


def is_valid_value(env_value: EnvValue) -> bool:
    """True when ``value`` parses as the declared type."""
    if env_value.type is EnvValueType.INTEGER:
        return parse_int(env_value.value) is not None
    if env_value.type is EnvValueType.BOOLEAN:
        return env_value.value.strip().lower() in {"0", "1", "true", "false"}
    return True


def mask_token(token: str) -> str:
    """Mask a secret for logs and tool output."""
    if not token:
        return ""
    visible = token[:4] if len(token) > 8 else ""
    return visible + "*" * min(max(len(token) - len(visible), 1), 16)
