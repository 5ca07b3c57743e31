"""Schema reference resolution and schema file loaders."""

from __future__ import annotations

import json
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from extconfig.kernel.errors import (
    MalformedSchemaReference,
    SchemaFileNotFound,
    SchemaLoadError,
    UnsupportedSchemaExtension,
)

from .packages import PackageResolver


ALLOWED_SCHEMA_EXTENSIONS = (".json", ".js", ".cjs")

MALFORMED_SCHEMA_MESSAGE = (
    "Incorrectly formatted schema field; must be a path to a schema file or a schema object."
)
UNSUPPORTED_EXTENSION_MESSAGE = (
    f"Schema file has unsupported extension. Allowed: {', '.join(ALLOWED_SCHEMA_EXTENSIONS)}"
)


def is_allowed_schema_file(path: str) -> bool:
    return Path(path).suffix in ALLOWED_SCHEMA_EXTENSIONS


@dataclass(frozen=True)
class ResolvedSchema:
    value: Any
    source_path: Path | None = None


class SchemaFileLoader(Protocol):
    def load(self, path: Path) -> Any:
        ...


class JsonSchemaLoader:
    def load(self, path: Path) -> Any:
        return json.loads(path.read_text(encoding="utf-8"))


_ESM_SCRIPT = """
import { pathToFileURL } from 'node:url';
const mod = await import(pathToFileURL(process.env.EXTCONFIG_SCHEMA_PATH).href);
process.stdout.write(JSON.stringify(mod.default ?? null));
"""

_CJS_SCRIPT = """
const mod = require(process.env.EXTCONFIG_SCHEMA_PATH);
const value = mod && mod.__esModule && 'default' in mod ? mod.default : mod;
process.stdout.write(JSON.stringify(value ?? null));
"""


class NodeModuleSchemaLoader:
    """Evaluate a JavaScript schema module with Node.js and read its export as JSON.

    ``module_type`` is ``"module"`` (loaded with ``import()``, which also accepts
    CommonJS files) or ``"commonjs"`` (loaded with ``require``).
    """

    def __init__(self, module_type: str, *, node_executable: str = "node") -> None:
        if module_type not in {"module", "commonjs"}:
            raise ValueError(f"Unknown module type: {module_type}")
        self.module_type = module_type
        self.node_executable = node_executable

    def _command(self) -> list[str]:
        if self.module_type == "module":
            return [self.node_executable, "--input-type=module", "-e", _ESM_SCRIPT]
        return [self.node_executable, "-e", _CJS_SCRIPT]

    def load(self, path: Path) -> Any:
        env = os.environ.copy()
        env["EXTCONFIG_SCHEMA_PATH"] = str(path)
        try:
            proc = subprocess.run(
                self._command(),
                env=env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise SchemaLoadError(
                f"Could not run {self.node_executable!r} to evaluate schema module {path}: {exc}",
                val=str(path),
            ) from exc
        if proc.returncode != 0:
            stderr_tail = str(proc.stderr or "").strip()[-2000:]
            raise SchemaLoadError(
                f"Evaluating schema module {path} exited with {proc.returncode}: {stderr_tail}",
                val=str(path),
            )
        return json.loads(proc.stdout or "null")


def default_loaders(*, node_executable: str = "node") -> dict[str, SchemaFileLoader]:
    return {
        ".json": JsonSchemaLoader(),
        ".js": NodeModuleSchemaLoader("module", node_executable=node_executable),
        ".cjs": NodeModuleSchemaLoader("commonjs", node_executable=node_executable),
    }


class SchemaResolver:
    def __init__(
        self,
        package_resolver: PackageResolver,
        loaders: Mapping[str, SchemaFileLoader] | None = None,
    ) -> None:
        self._packages = package_resolver
        self._loaders = dict(loaders) if loaders is not None else default_loaders()

    @property
    def package_resolver(self) -> PackageResolver:
        return self._packages

    def resolve(self, pkg_name: str, reference: Any) -> ResolvedSchema:
        if isinstance(reference, Mapping):
            return ResolvedSchema(value=reference, source_path=None)
        if not isinstance(reference, str):
            raise MalformedSchemaReference(MALFORMED_SCHEMA_MESSAGE, val=reference)

        suffix = Path(reference).suffix
        loader = self._loaders.get(suffix) if suffix in ALLOWED_SCHEMA_EXTENSIONS else None
        if loader is None:
            raise UnsupportedSchemaExtension(UNSUPPORTED_EXTENSION_MESSAGE, val=reference)

        try:
            resolved = self._packages.locate(pkg_name, reference)
        except (OSError, ValueError) as exc:
            raise SchemaFileNotFound(
                f"Could not find schema file {reference} in package {pkg_name!r}: {exc}",
                val=reference,
            ) from exc

        try:
            value = loader.load(resolved)
        except SchemaLoadError:
            raise
        except Exception as exc:
            raise SchemaLoadError(
                f"Failed to load schema file {resolved}: {type(exc).__name__}: {exc}",
                val=reference,
            ) from exc
        return ResolvedSchema(value=value, source_path=resolved)
