"""Locate files inside installed extension packages."""

from __future__ import annotations

import importlib.util
from pathlib import Path
from typing import Iterable


def _is_package_name(pkg_name: str) -> bool:
    """Accept ``name`` or ``@scope/name``; never a path that walks elsewhere."""
    if not pkg_name or "\\" in pkg_name:
        return False
    parts = pkg_name.split("/")
    if len(parts) == 2 and not parts[0].startswith("@"):
        return False
    if len(parts) > 2:
        return False
    return all(part and part not in {".", ".."} for part in parts)


class PackageResolver:
    """Resolve ``<package>/<relative path>`` against the extension search paths.

    Each search path is a directory holding one sub-directory per installed
    package. When no search path has the package, an importable top-level
    Python package of the same name is tried. Lookups never import modules.
    """

    def __init__(self, search_paths: Iterable[str | Path] = ()) -> None:
        self._search_paths = [Path(p) for p in search_paths]

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def _importable_root(self, pkg_name: str) -> Path | None:
        # Dotted names would import their parent package.
        if not pkg_name.isidentifier():
            return None
        try:
            spec = importlib.util.find_spec(pkg_name)
        except (ImportError, ValueError):
            return None
        if spec is None or not spec.submodule_search_locations:
            return None
        for location in spec.submodule_search_locations:
            return Path(location).resolve()
        return None

    def package_root(self, pkg_name: str) -> Path:
        if not pkg_name:
            raise FileNotFoundError("Package name is empty")
        if not _is_package_name(pkg_name):
            raise FileNotFoundError(f"Invalid package name {pkg_name!r}")
        for root in self._search_paths:
            candidate = root / pkg_name
            if candidate.is_dir():
                return candidate.resolve()
        importable = self._importable_root(pkg_name)
        if importable is not None:
            return importable
        searched = ", ".join(str(p) for p in self._search_paths) or "<none>"
        raise FileNotFoundError(f"Package {pkg_name!r} is not installed (searched: {searched})")

    def locate(self, pkg_name: str, relative_path: str) -> Path:
        root = self.package_root(pkg_name)
        candidate = (root / relative_path).resolve()
        if not candidate.is_relative_to(root):
            raise FileNotFoundError(f"Schema path {relative_path!r} escapes package {pkg_name!r} at {root}")
        if not candidate.is_file():
            raise FileNotFoundError(f"No file {relative_path!r} in package {pkg_name!r} at {root}")
        return candidate
