"""Installed-extension manifest models.

The manifest store itself lives outside this package; ``Manifest`` is the
read-only view the config facades consume.
"""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from extconfig.kernel.errors import ExtensionError, InvariantViolation


PLUGIN_TYPE = "plugin"
DRIVER_TYPE = "driver"
EXTENSION_TYPES = (DRIVER_TYPE, PLUGIN_TYPE)

_SECTIONS = {DRIVER_TYPE: "drivers", PLUGIN_TYPE: "plugins"}


class InstallType(str, Enum):
    REGISTRY_PACKAGE = "registry-package"
    LOCAL_PATH = "local-path"
    VERSION_CONTROL = "version-control"
    ARCHIVE = "archive"

    @classmethod
    def parse(cls, value: Any) -> "InstallType | None":
        for member in cls:
            if member.value == value:
                return member
        return None


@dataclass(frozen=True)
class ExtensionDescriptor:
    name: str
    pkg_name: str
    version: str
    main_class: str
    install_type: InstallType | None
    install_spec: str
    schema: Any = None
    install_path: str = ""
    automation_name: str = ""
    platform_names: tuple[str, ...] = ()

    @property
    def has_schema(self) -> bool:
        return self.schema is not None

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "ExtensionDescriptor":
        platforms = data.get("platform_names", []) or []
        return cls(
            name=str(name),
            pkg_name=str(data.get("pkg_name", "")),
            version=str(data.get("version", "")),
            main_class=str(data.get("main_class", "")),
            install_type=InstallType.parse(data.get("install_type")),
            install_spec=str(data.get("install_spec", "")),
            schema=deepcopy(data.get("schema")),
            install_path=str(data.get("install_path", "")),
            automation_name=str(data.get("automation_name", "")),
            platform_names=tuple(str(p) for p in platforms) if isinstance(platforms, list) else (),
        )

    def to_dict(self) -> dict[str, Any]:
        """Manifest-shaped entry for this descriptor; unset fields are left out."""
        data: dict[str, Any] = {
            "pkg_name": self.pkg_name,
            "version": self.version,
            "main_class": self.main_class,
            "install_type": self.install_type.value if self.install_type is not None else None,
            "install_spec": self.install_spec,
            "install_path": self.install_path,
            "automation_name": self.automation_name,
            "platform_names": list(self.platform_names),
        }
        data = {key: value for key, value in data.items() if value not in (None, "", [])}
        if self.schema is not None:
            data["schema"] = deepcopy(self.schema)
        return data


def _check_kind(kind: str) -> str:
    if kind not in _SECTIONS:
        raise InvariantViolation(f"Unknown extension type {kind!r}; expected one of {list(EXTENSION_TYPES)}")
    return kind


class Manifest:
    """Read-only view over installed extensions, grouped by kind."""

    def __init__(
        self,
        extensions: dict[str, dict[str, dict[str, Any]]] | None = None,
        *,
        home: str | Path | None = None,
        path: Path | None = None,
    ) -> None:
        raw = extensions or {}
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        for kind, section in _SECTIONS.items():
            entries = raw.get(section, raw.get(kind, {}))
            self._data[kind] = deepcopy(entries) if isinstance(entries, dict) else {}
        self._path = path
        if home is not None:
            self._home = Path(home)
        elif path is not None:
            self._home = path.parent
        else:
            self._home = Path.cwd()

    @classmethod
    def load(cls, path: str | Path) -> "Manifest":
        manifest_path = Path(path)
        if not manifest_path.exists():
            raise ExtensionError(f"Missing extension manifest: {manifest_path}")
        try:
            payload = json.loads(manifest_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ExtensionError(f"Invalid JSON in extension manifest {manifest_path}: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise ExtensionError(f"Extension manifest {manifest_path} must contain a JSON object")
        home = payload.get("home")
        if isinstance(home, str) and home:
            home_path = Path(home)
            if not home_path.is_absolute():
                home_path = manifest_path.parent / home_path
        else:
            home_path = manifest_path.parent
        return cls(payload, home=home_path, path=manifest_path)

    @property
    def home(self) -> Path:
        return self._home

    @property
    def path(self) -> Path | None:
        return self._path

    def get_extension_data(self, kind: str) -> dict[str, dict[str, Any]]:
        return deepcopy(self._data[_check_kind(kind)])

    def names(self, kind: str) -> list[str]:
        return sorted(self._data[_check_kind(kind)])

    def descriptors(self, kind: str) -> list[ExtensionDescriptor]:
        section = self._data[_check_kind(kind)]
        return [
            ExtensionDescriptor.from_dict(name, data)
            for name, data in sorted(section.items())
            if isinstance(data, dict)
        ]
