"""Per-kind extension config: schema registration and problem collection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from extconfig.kernel.config import load_config
from extconfig.kernel.errors import (
    ExtensionError,
    InvalidSchema,
    InvariantViolation,
    MalformedSchemaReference,
    SchemaError,
    UnsupportedSchemaExtension,
)
from extconfig.kernel.logging import JsonlLogger
from extconfig.kernel.paths import load_json

from .manifest import ExtensionDescriptor, InstallType, Manifest
from .packages import PackageResolver
from .schema_files import SchemaResolver, default_loaders
from .schema_registry import ExtensionSchemaRegistry, default_registry
from .schema_validator import SchemaValidator


DESCRIPTOR_SCHEMA_PATH = "contracts/extension_descriptor.schema.json"

# Errors whose own message is the user-facing problem text.
_VERBATIM_ERRORS = (MalformedSchemaReference, UnsupportedSchemaExtension, InvalidSchema)


@dataclass(frozen=True)
class ProblemRecord:
    err: str
    val: Any = None

    def as_dict(self) -> dict[str, Any]:
        return {"err": self.err, "val": self.val}


def _field(ext_data: Any, key: str) -> Any:
    if isinstance(ext_data, Mapping):
        return ext_data.get(key)
    if isinstance(ext_data, ExtensionDescriptor):
        return getattr(ext_data, key, None)
    return None


def descriptor_data(ext_data: Any) -> Any:
    if isinstance(ext_data, ExtensionDescriptor):
        return ext_data.to_dict()
    return ext_data


def _path_to_str(path: Any) -> str:
    parts = ["$"]
    for part in path:
        if isinstance(part, int):
            parts.append(f"[{part}]")
        else:
            parts.append(f".{part}")
    return "".join(parts)


class ExtensionConfig:
    """Validates and registers the declared metadata of one extension kind."""

    kind: str = ""
    extra_descriptor_schema_paths: tuple[str, ...] = ()

    def __init__(
        self,
        manifest: Manifest,
        *,
        config: dict[str, Any] | None = None,
        registry: ExtensionSchemaRegistry | None = None,
        resolver: SchemaResolver | None = None,
        logger: JsonlLogger | None = None,
    ) -> None:
        if not self.kind:
            raise InvariantViolation(f"{type(self).__name__} does not declare an extension kind")
        self.manifest = manifest
        self.config = config if config is not None else load_config()
        self._registry = registry if registry is not None else default_registry(self.kind)
        self._resolver = resolver if resolver is not None else self._default_resolver()
        self._validator = SchemaValidator(self.kind)
        self._logger = logger
        self._descriptor_schemas: list[dict[str, Any]] | None = None
        self._load_report: dict[str, Any] = {"valid": [], "invalid": {}, "warnings": {}}

    @classmethod
    def create(cls, manifest: Manifest, **kwargs: Any) -> "ExtensionConfig":
        return cls(manifest, **kwargs)

    def _default_resolver(self) -> SchemaResolver:
        ext_cfg = self.config.get("extensions", {})
        search_paths: list[Path] = [Path(p) for p in ext_cfg.get("search_paths", []) or []]
        for candidate in (self.manifest.home, ext_cfg.get("home")):
            if candidate and Path(candidate) not in search_paths:
                search_paths.append(Path(candidate))
        node = str(self.config.get("schema", {}).get("node_executable") or "node")
        return SchemaResolver(PackageResolver(search_paths), default_loaders(node_executable=node))

    @property
    def registry(self) -> ExtensionSchemaRegistry:
        return self._registry

    @property
    def resolver(self) -> SchemaResolver:
        return self._resolver

    def _log(self, *, event: str, ext_name: str | None = None, level: str = "info", **fields: Any) -> None:
        if self._logger is None:
            return
        self._logger.event(event=event, kind=self.kind, ext_name=ext_name, level=level, **fields)

    # Descriptors

    @property
    def installed_extensions(self) -> dict[str, dict[str, Any]]:
        return self.manifest.get_extension_data(self.kind)

    def is_installed(self, ext_name: str) -> bool:
        return ext_name in self.installed_extensions

    def get_install_path(self, ext_name: str) -> Path:
        ext_data = self.installed_extensions.get(ext_name)
        if ext_data is None:
            raise ExtensionError(f"No {self.kind} named {ext_name!r} is installed")
        explicit = ext_data.get("install_path")
        if isinstance(explicit, str) and explicit:
            return Path(explicit)
        try:
            return self._resolver.package_resolver.package_root(str(ext_data.get("pkg_name") or ""))
        except FileNotFoundError as exc:
            raise ExtensionError(f"Cannot locate the package of {self.kind} {ext_name!r}: {exc}") from exc

    def extension_desc(self, ext_name: str, ext_data: Any) -> str:
        return f"{ext_name}@{_field(ext_data, 'version')}"

    # Schema registration

    def read_extension_schema(self, ext_name: str, ext_data: Any) -> None:
        """Resolve, check and register the schema declared by an extension.

        Raises:
            InvariantViolation: ``ext_data`` declares no schema.
            SchemaError: the first failure while resolving, validating or
                registering; the registry is left untouched.
        """
        schema_ref = _field(ext_data, "schema")
        if schema_ref is None:
            raise InvariantViolation(
                f"Why is this function being called? {self.kind} {ext_name!r} does not declare a schema"
            )
        pkg_name = str(_field(ext_data, "pkg_name") or "")
        resolved = self._resolver.resolve(pkg_name, schema_ref)
        self._validator.validate(resolved.value, ext_name=ext_name)
        if self._registry.register(ext_name, resolved.value):
            self._log(
                event="extension.schema.registered",
                ext_name=ext_name,
                level="debug",
                schema_id=self._registry.schema_id(ext_name),
                source_path=str(resolved.source_path) if resolved.source_path else None,
            )

    def _problem_from_error(self, exc: SchemaError, ext_name: str, schema_ref: Any) -> ProblemRecord:
        if isinstance(exc, _VERBATIM_ERRORS):
            return ProblemRecord(err=str(exc), val=exc.val)
        if isinstance(schema_ref, str):
            return ProblemRecord(err=f"Unable to register schema at path {schema_ref}; {exc}", val=schema_ref)
        return ProblemRecord(
            err=f"Unable to register schema for {self.kind} {ext_name!r}; {exc}",
            val=schema_ref,
        )

    def get_schema_problems(self, ext_data: Any = None, ext_name: str | None = None) -> list[ProblemRecord]:
        schema_ref = _field(ext_data, "schema")
        if schema_ref is None:
            return []
        if not isinstance(ext_name, str) or not ext_name:
            return [ProblemRecord(err=f"Cannot register a {self.kind} schema without an extension name", val=ext_name)]
        try:
            self.read_extension_schema(ext_name, ext_data)
        except SchemaError as exc:
            return [self._problem_from_error(exc, ext_name, schema_ref)]
        return []

    # Descriptor validation

    def descriptor_schemas(self) -> list[dict[str, Any]]:
        if self._descriptor_schemas is None:
            base = load_json(DESCRIPTOR_SCHEMA_PATH)
            required = self.config.get("descriptor", {}).get("required_fields")
            if required is not None:
                base["required"] = list(required)
            schemas = [base]
            schemas.extend(load_json(path) for path in self.extra_descriptor_schema_paths)
            self._descriptor_schemas = schemas
        return self._descriptor_schemas

    def get_config_problems(self, ext_data: Any = None, ext_name: str | None = None) -> list[ProblemRecord]:
        ext_data = descriptor_data(ext_data)
        problems: list[ProblemRecord] = []
        schemas = self.descriptor_schemas()
        if not isinstance(ext_data, Mapping):
            # Only report the shape once; kind-specific schemas add nothing here.
            schemas = schemas[:1]
        for schema in schemas:
            errors = sorted(
                Draft202012Validator(schema).iter_errors(ext_data),
                key=lambda err: (_path_to_str(err.absolute_path), err.message),
            )
            for error in errors:
                val = None if error.validator == "required" else error.instance
                problems.append(ProblemRecord(err=f"{_path_to_str(error.absolute_path)}: {error.message}", val=val))
        return problems

    def get_problems(self, ext_data: Any = None, ext_name: str | None = None) -> list[ProblemRecord]:
        return [*self.get_config_problems(ext_data, ext_name), *self.get_schema_problems(ext_data, ext_name)]

    def get_warnings(self, ext_data: Any = None, ext_name: str | None = None) -> list[str]:
        ext_data = descriptor_data(ext_data)
        if not isinstance(ext_data, Mapping):
            return []
        desc = self.extension_desc(str(ext_name), ext_data)
        warnings: list[str] = []
        install_type = ext_data.get("install_type")
        if install_type is None:
            warnings.append(f"{self.kind} {desc} is missing install_type")
        elif InstallType.parse(install_type) is None:
            allowed = ", ".join(member.value for member in InstallType)
            warnings.append(f"{self.kind} {desc} has unknown install_type {install_type!r}; expected one of {allowed}")
        if not ext_data.get("install_spec"):
            warnings.append(f"{self.kind} {desc} is missing install_spec")
        return warnings

    # Batch

    def validate(self, exts: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Check every extension of this kind and return the valid ones.

        An invalid extension is reported and dropped; the rest of the batch
        carries on. The outcome is kept in ``load_report()``.
        """
        candidates = dict(exts) if exts is not None else self.installed_extensions
        report: dict[str, Any] = {"valid": [], "invalid": {}, "warnings": {}}
        valid: dict[str, Any] = {}
        for ext_name, ext_data in sorted(candidates.items()):
            warnings = self.get_warnings(ext_data, ext_name)
            if warnings:
                report["warnings"][ext_name] = warnings
                self._log(event="extension.warning", ext_name=ext_name, level="warning", warnings=warnings)
            problems = self.get_problems(ext_data, ext_name)
            if problems:
                report["invalid"][ext_name] = [problem.as_dict() for problem in problems]
                self._log(
                    event="extension.invalid",
                    ext_name=ext_name,
                    level="error",
                    problems=report["invalid"][ext_name],
                )
                continue
            valid[ext_name] = ext_data
            report["valid"].append(ext_name)
        self._load_report = report
        self._log(
            event="extension.validated",
            valid=len(report["valid"]),
            invalid=len(report["invalid"]),
            warned=len(report["warnings"]),
        )
        return valid

    def load_report(self) -> dict[str, Any]:
        return dict(self._load_report)
