"""Path resolution helpers that avoid CWD dependence."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import importlib.resources as resources

from platformdirs import PlatformDirs


_HOME_ENV = "EXTCONFIG_HOME"
_DATA_ENV = "EXTCONFIG_DATA_DIR"
_APP_NAME = "extconfig"
_PACKAGE = "extconfig"


def package_root() -> Path:
    return Path(__file__).absolute().parent.parent


def default_extensions_home() -> Path:
    override = os.getenv(_HOME_ENV)
    if override:
        return Path(override).expanduser().absolute()
    return Path(PlatformDirs(_APP_NAME, appauthor=False).user_data_dir) / "extensions"


def default_data_dir() -> Path:
    override = os.getenv(_DATA_ENV)
    if override:
        return Path(override).expanduser().absolute()
    return Path(PlatformDirs(_APP_NAME, appauthor=False).user_state_dir)


def resolve_dir(value: str | Path, *, base: Path | None = None) -> Path:
    path = Path(value).expanduser()
    if path.is_absolute():
        return path
    return (base or Path.cwd()) / path


def _resource_text(rel_path: str) -> str | None:
    try:
        target = resources.files(_PACKAGE).joinpath(rel_path)
    except Exception:
        return None
    if target.is_file():
        return target.read_text(encoding="utf-8")
    return None


def load_text(path: str | Path) -> str:
    """Read ``path`` from disk, or from the installed package when relative."""
    candidate = Path(path)
    if candidate.is_absolute():
        if candidate.exists():
            return candidate.read_text(encoding="utf-8")
        raise FileNotFoundError(f"Missing resource: {candidate}")
    local = package_root() / candidate
    if local.exists():
        return local.read_text(encoding="utf-8")
    text = _resource_text(candidate.as_posix())
    if text is not None:
        return text
    raise FileNotFoundError(f"Missing resource: {candidate}")


def load_json(path: str | Path) -> Any:
    return json.loads(load_text(path))
