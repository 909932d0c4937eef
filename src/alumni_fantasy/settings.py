import copy
import os
import re
from dataclasses import is_dataclass
from typing import Any, Dict, Mapping, Optional

from .alumni_types import AppSettings
from .errors import ConfigurationError


_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# environment variable -> (section, field, caster)
ENV_FIELDS = {
    "KV_REST_API_URL": ("storage", "kv_url", str),
    "KV_REST_API_TOKEN": ("storage", "kv_token", str),
    "BLOB_READ_WRITE_TOKEN": ("storage", "blob_token", str),
    "BLOB_URL": ("storage", "blob_base_url", str),
    "CACHE_SECONDS": ("storage", "default_ttl_seconds", int),
    "NFLVERSE_CACHE_DIR": ("runtime", "cache_dir", str),
    "NFLVERSE_CACHE_TTL_SECONDS": ("runtime", "cache_ttl_seconds", int),
    "FETCH_TIMEOUT_SECONDS": ("runtime", "timeout_seconds", float),
    "FETCH_RETRIES": ("runtime", "retries", int),
    "CFBD_API_KEY": (None, "cfbd_api_key", str),
}


def _expand_env_string(value: Any, environ: Mapping[str, str]) -> Any:
    if not isinstance(value, str):
        return value
    return _ENV_PATTERN.sub(lambda match: environ.get(match.group(1), match.group(0)), value)


def _is_unresolved_placeholder(value: Any) -> bool:
    text = str(value or "").strip()
    return text.startswith("${") and text.endswith("}")


def _coerce_dataclass(instance: Any, values: Dict[str, Any], environ: Mapping[str, str]) -> Any:
    if not isinstance(values, dict):
        return instance

    for key, value in values.items():
        if not hasattr(instance, key):
            continue

        current = getattr(instance, key)
        if is_dataclass(current) and isinstance(value, dict):
            _coerce_dataclass(current, value, environ)
            continue

        value = _expand_env_string(value, environ)
        if _is_unresolved_placeholder(value):
            value = None
        setattr(instance, key, value)

    return instance


def _cast(name: str, raw: str, caster: Any) -> Any:
    try:
        return caster(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be {caster.__name__}, got {raw!r}") from exc


def load_settings(overrides: Optional[Dict[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Build settings from the environment, then apply explicit overrides.

    Override strings may reference environment variables as ``${NAME}``;
    a reference that does not resolve leaves the field unset.
    """
    environ = os.environ if environ is None else environ
    settings = AppSettings()

    for name, (section, field_name, caster) in ENV_FIELDS.items():
        raw = str(environ.get(name, "") or "").strip()
        if not raw:
            continue
        target = getattr(settings, section) if section else settings
        setattr(target, field_name, _cast(name, raw, caster))

    if overrides:
        _coerce_dataclass(settings, copy.deepcopy(overrides), environ)

    if settings.runtime.retries is not None and int(settings.runtime.retries) < 0:
        raise ConfigurationError("FETCH_RETRIES must not be negative")
    if settings.runtime.timeout_seconds is not None and float(settings.runtime.timeout_seconds) <= 0:
        raise ConfigurationError("FETCH_TIMEOUT_SECONDS must be positive")
    return settings
