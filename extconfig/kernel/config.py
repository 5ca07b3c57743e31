"""Configuration loading, merging, and validation."""

from __future__ import annotations

import json
import os
from copy import deepcopy
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .errors import ConfigError
from .paths import default_extensions_home, load_json, resolve_dir


DEFAULT_CONFIG_PATH = "config/default.json"
CONFIG_SCHEMA_PATH = "contracts/config_schema.json"

_ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "EXTCONFIG_HOME": ("extensions", "home"),
    "EXTCONFIG_DATA_DIR": ("storage", "data_dir"),
    "EXTCONFIG_NODE": ("schema", "node_executable"),
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            continue
        overrides.setdefault(section, {})[key] = raw.strip()
    return overrides


def load_default_config() -> dict[str, Any]:
    try:
        return load_json(DEFAULT_CONFIG_PATH)
    except FileNotFoundError:
        raise ConfigError(f"Missing default config: {DEFAULT_CONFIG_PATH}")


def load_user_config(path: str | Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    user_path = Path(path)
    if not user_path.exists():
        raise ConfigError(f"Missing config file: {user_path}")
    try:
        data = json.loads(user_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {user_path}: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {user_path} must contain a JSON object")
    return data


def validate_config(data: dict[str, Any]) -> None:
    schema = load_json(CONFIG_SCHEMA_PATH)
    errors = sorted(
        Draft202012Validator(schema).iter_errors(data),
        key=lambda err: (list(map(str, err.absolute_path)), err.message),
    )
    if errors:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.absolute_path) or '$'}: {err.message}" for err in errors
        )
        raise ConfigError(f"Invalid configuration: {details}")


def _normalize_paths(config: dict[str, Any]) -> dict[str, Any]:
    updated = deepcopy(config)
    extensions = updated.setdefault("extensions", {})
    home = extensions.get("home") or ""
    home_abs = resolve_dir(home) if home else default_extensions_home()
    extensions["home"] = str(home_abs)
    extensions["search_paths"] = [
        str(resolve_dir(p, base=home_abs)) for p in extensions.get("search_paths", []) or []
    ]
    storage = updated.setdefault("storage", {})
    if storage.get("data_dir"):
        storage["data_dir"] = str(resolve_dir(storage["data_dir"]))
    return updated


def load_config(user_path: str | Path | None = None) -> dict[str, Any]:
    """Return the effective configuration: defaults, user file, then environment."""
    config = deep_merge(load_default_config(), load_user_config(user_path))
    config = deep_merge(config, env_overrides())
    validate_config(config)
    return _normalize_paths(config)
