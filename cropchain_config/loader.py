"""
Configuration loader (``cropchain_config.loader``).

Responsibility
--------------
Reads a YAML settings file, applies environment overrides and builds a
``CropChainSettings``.  Callers go through ``cropchain_config.get_settings()``;
``load_settings()`` is exposed for tests and tooling that need an explicit
file.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from cropchain_config.schema import CropChainSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# Environment variable -> settings field, first match wins per field.
ENV_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("CROPCHAIN_DATABASE_URL", "database_url"),
    ("DATABASE_URL", "database_url"),
    ("CROPCHAIN_LOG_LEVEL", "log_level"),
)

_TRUE = {"1", "true", "yes", "on"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    env = os.environ if environ is None else environ
    result = dict(data)
    seen: set[str] = set()
    for var, field_name in ENV_OVERRIDES:
        if field_name in seen:
            continue
        value = env.get(var)
        if value:
            result[field_name] = value
            seen.add(field_name)
    return result


def _coerce(name: str, value: Any) -> Any:
    if name in ("echo_sql",) and isinstance(value, str):
        return value.strip().lower() in _TRUE
    if name in ("pool_size", "max_overflow", "max_creation_attempts"):
        return int(value)
    if name == "identifier_year":
        return None if value in (None, "") else int(value)
    if name in ("sqlite_busy_timeout", "creation_deadline_seconds"):
        return float(value)
    if name == "log_level":
        return str(value).upper()
    return value


def parse_settings(data: dict[str, Any]) -> CropChainSettings:
    """
    Build settings from a plain mapping.

    Raises:
        ValueError: unknown keys, uncoercible or out-of-range values.
    """
    known = {f.name for f in fields(CropChainSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings: {', '.join(unknown)}")
    if not data.get("database_url"):
        raise ValueError("Invalid CropChain settings: database_url is required")
    try:
        kwargs = {name: _coerce(name, value) for name, value in data.items()}
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid CropChain settings: {exc}") from exc
    return CropChainSettings(**kwargs)


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> CropChainSettings:
    """Load settings from ``path`` (default: packaged defaults.yaml)."""
    data = load_yaml_file(path or DEFAULTS_PATH)
    return parse_settings(apply_env_overrides(data, environ))
