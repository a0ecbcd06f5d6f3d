"""Configuration resolution.

``Config`` is a frozen snapshot built by merging three partial sources, in
increasing priority:

1. ``DEFAULT_CONFIG`` compiled into the package.
2. Host-global overrides (a mapping, usually loaded from ``mermaid-bridge.yaml``).
3. Request-scoped overrides (the query string of the embedding URL).

Each field of each source is validated on its own. An invalid value is
dropped and the next lower-priority value for that field wins; the rest of
the source still applies. Nothing here mutates ``DEFAULT_CONFIG``; callers
that need fresh settings call ``resolve_config`` again.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import parse_qs

import yaml
from pydantic import BaseModel, ConfigDict

from mermaid_bridge.io.fileops import read_text_safe

CONFIG_FILENAME = "mermaid-bridge.yaml"

DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024
DEFAULT_PARSE_TIMEOUT_MS = 10_000
WILDCARD_ORIGIN = "*"


class ConfigError(Exception):
    """Raised when a configuration file cannot be read as a mapping."""


class Config(BaseModel):
    """Immutable configuration snapshot."""

    model_config = ConfigDict(frozen=True)

    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE
    parse_timeout_ms: float = DEFAULT_PARSE_TIMEOUT_MS
    debug_mode: bool = False
    allowed_origins: tuple[str, ...] = (WILDCARD_ORIGIN,)

    @property
    def allows_any_origin(self) -> bool:
        return self.allowed_origins == (WILDCARD_ORIGIN,)

    def to_public_dict(self) -> dict[str, Any]:
        """Camel-case view matching the external configuration keys."""
        return {
            "maxMessageSize": self.max_message_size,
            "parseTimeout": self.parse_timeout_ms,
            "debugMode": self.debug_mode,
            "allowedOrigins": list(self.allowed_origins),
        }


DEFAULT_CONFIG = Config()


def _positive_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _origin_list(value: Any) -> tuple[str, ...] | None:
    """Trimmed, non-empty string entries of a list; anything but a list is ignored."""
    if not isinstance(value, (list, tuple)):
        return None
    origins = tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return origins or None


def read_global_config(data: Mapping[str, Any] | None) -> dict[str, Any]:
    """Extract valid overrides from a host-global mapping (native types)."""
    overrides: dict[str, Any] = {}
    if not isinstance(data, Mapping):
        return overrides

    size = _positive_number(data.get("maxMessageSize"))
    if size is not None and int(size) > 0:
        overrides["max_message_size"] = int(size)

    timeout = _positive_number(data.get("parseTimeout"))
    if timeout is not None:
        overrides["parse_timeout_ms"] = timeout

    debug = data.get("debugMode")
    if isinstance(debug, bool):
        overrides["debug_mode"] = debug

    origins = _origin_list(data.get("allowedOrigins"))
    if origins is not None:
        overrides["allowed_origins"] = origins

    return overrides


def _positive_int_text(text: str) -> int | None:
    try:
        value = int(text.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def read_query_config(query: str | None) -> dict[str, Any]:
    """Extract valid overrides from a URL query string (every value is text)."""
    overrides: dict[str, Any] = {}
    if not query:
        return overrides
    params = parse_qs(query.lstrip("?"), keep_blank_values=True)

    def first(key: str) -> str | None:
        values = params.get(key)
        return values[0] if values else None

    size = first("maxMessageSize")
    if size is not None:
        parsed = _positive_int_text(size)
        if parsed is not None:
            overrides["max_message_size"] = parsed

    timeout = first("parseTimeout")
    if timeout is not None:
        parsed = _positive_int_text(timeout)
        if parsed is not None:
            overrides["parse_timeout_ms"] = parsed

    debug = first("debugMode")
    if debug is not None:
        overrides["debug_mode"] = debug.strip().lower() in ("true", "1")

    origins = first("allowedOrigins")
    if origins is not None:
        parsed_origins = _origin_list(origins.split(","))
        if parsed_origins is not None:
            overrides["allowed_origins"] = parsed_origins

    return overrides


def load_global_config(path: str | Path) -> dict[str, Any]:
    """Load host-global overrides from a YAML file."""
    try:
        data = yaml.safe_load(read_text_safe(path))
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return read_global_config(data)


def load_global_config_from_dir(directory: str | Path) -> dict[str, Any]:
    """Try to load ``mermaid-bridge.yaml`` from a directory. Returns ``{}`` if absent."""
    path = Path(directory) / CONFIG_FILENAME
    if path.exists():
        return load_global_config(path)
    return {}


def resolve_config(
    global_override: Mapping[str, Any] | None = None,
    request_override: Mapping[str, Any] | None = None,
    *,
    base: Config = DEFAULT_CONFIG,
) -> Config:
    """Merge default < global < request-scoped overrides into a new snapshot.

    Overrides are dicts keyed by ``Config`` field names, as returned by
    ``read_global_config`` / ``read_query_config``.
    """
    merged = base.model_dump()
    for layer in (global_override or {}, request_override or {}):
        for key, value in layer.items():
            if key in merged:
                merged[key] = value
    return Config(**merged)


def resolve_config_from_sources(
    global_data: Mapping[str, Any] | None = None,
    query: str | None = None,
) -> Config:
    """Convenience wrapper taking raw sources instead of pre-validated overrides."""
    return resolve_config(read_global_config(global_data), read_query_config(query))
