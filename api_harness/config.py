"""Harness configuration with layered resolution."""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://jsonplaceholder.typicode.com"
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_MS = 1_000
DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}

ENV_PREFIX = "API_HARNESS_"
_ENV_FIELDS = {
    "BASE_URL": "base_url",
    "TIMEOUT_MS": "timeout_ms",
    "MAX_ATTEMPTS": "max_attempts",
    "BASE_DELAY_MS": "base_delay_ms",
    "PARALLELISM": "parallelism",
    "RUN_TIMEOUT_MS": "run_timeout_ms",
}


class HarnessConfig(BaseModel):
    """Options recognized by the client, retry policy and runner."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    base_url: str = Field(default=DEFAULT_BASE_URL, alias="baseURL", min_length=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, alias="timeoutMs", gt=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, alias="maxAttempts", ge=1)
    base_delay_ms: int = Field(default=DEFAULT_BASE_DELAY_MS, alias="baseDelayMs", ge=0)
    parallelism: int = Field(default=1, ge=1)
    run_timeout_ms: Optional[int] = Field(default=None, alias="runTimeoutMs", gt=0)
    headers: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_HEADERS))


def _from_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        raw = environ.get(f"{ENV_PREFIX}{suffix}")
        if raw:
            values[field_name] = raw
    return values


def _normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases onto field names so layers merge by field."""

    aliases = {
        field.alias: name for name, field in HarnessConfig.model_fields.items() if field.alias
    }
    return {aliases.get(key, key): value for key, value in raw.items()}


def resolve_config(
    file_config: Mapping[str, Any] | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> HarnessConfig:
    """
    Build the effective configuration with priority:
    CLI overrides > environment variables > scenario file > defaults.

    Headers are merged across layers rather than replaced, so a CLI
    ``--header`` adds to the defaults instead of discarding them.
    """
    environ = os.environ if environ is None else environ
    layers = [
        _normalize_keys(file_config or {}),
        _from_environ(environ),
        _normalize_keys({key: value for key, value in (overrides or {}).items() if value is not None}),
    ]

    merged: dict[str, Any] = {}
    headers = dict(DEFAULT_HEADERS)
    for layer in layers:
        layer_headers = layer.pop("headers", None)
        if layer_headers is not None:
            if not isinstance(layer_headers, Mapping):
                raise ConfigurationError("headers must be a mapping of name to value")
            headers.update({str(key): str(value) for key, value in layer_headers.items()})
        merged.update(layer)
    merged["headers"] = headers

    try:
        return HarnessConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid harness configuration: {exc}") from exc


def parse_header_pairs(pairs: list[str]) -> dict[str, str]:
    """Parse ``Name=value`` (or ``Name: value``) CLI pairs into a header mapping."""

    headers: dict[str, str] = {}
    for item in pairs:
        separator = "=" if "=" in item else ":"
        if separator not in item:
            raise ConfigurationError(f"Header '{item}' must use Name=value format")
        name, value = item.split(separator, 1)
        name = name.strip()
        if not name:
            raise ConfigurationError("Header name cannot be empty")
        headers[name] = value.strip()
    return headers
