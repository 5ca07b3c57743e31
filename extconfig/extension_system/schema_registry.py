"""Per-kind registry of extension-provided JSON schemas."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.protocols import Validator
from jsonschema.validators import validator_for
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from extconfig.kernel.errors import InvariantViolation, SchemaConflict
from extconfig.kernel.structural import deep_equal


_WORD_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def kebab_case(value: str) -> str:
    spaced = _WORD_BOUNDARY.sub(r"\1-\2", value)
    return _NON_ALNUM.sub("-", spaced).strip("-").lower()


class ExtensionSchemaRegistry:
    """Schemas registered by the extensions of one kind.

    Each schema is stored as given and added to a ``referencing.Registry`` under
    ``<kind>-<kebab name>.json`` (and its own ``$id``, if any), so schemas of the
    same kind can ``$ref`` each other. A name holds at most one schema.
    """

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._schemas: dict[str, Any] = {}
        self._uri_owners: dict[str, str] = {}
        self._resources: Registry = Registry()

    def schema_id(self, ext_name: str) -> str:
        return f"{self.kind}-{kebab_case(ext_name)}.json"

    def register(self, ext_name: str, schema: Any) -> bool:
        """Register ``schema`` for ``ext_name``.

        Returns False when a structurally equal schema is already registered.

        Raises:
            SchemaConflict: a different schema is registered under the name, or
                one of its URIs belongs to another extension.
        """
        if not isinstance(ext_name, str) or not ext_name or schema is None:
            raise InvariantViolation(
                f"Expected an extension name and a defined schema for {self.kind}, got {ext_name!r}"
            )
        if ext_name in self._schemas:
            if deep_equal(self._schemas[ext_name], schema):
                return False
            raise SchemaConflict(
                f"Schema for {self.kind} {ext_name!r} conflicts with an existing schema",
                val=schema,
            )

        uris = [self.schema_id(ext_name)]
        own_id = schema.get("$id") if isinstance(schema, Mapping) else None
        if isinstance(own_id, str) and own_id and own_id not in uris:
            uris.append(own_id)
        for uri in uris:
            owner = self._uri_owners.get(uri)
            if owner is not None and owner != ext_name:
                raise SchemaConflict(
                    f"Schema id {uri!r} for {self.kind} {ext_name!r} conflicts with an existing schema "
                    f"registered by {owner!r}",
                    val=schema,
                )

        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        resources = self._resources.with_resources((uri, resource) for uri in uris)

        self._resources = resources
        self._schemas[ext_name] = schema
        for uri in uris:
            self._uri_owners[uri] = ext_name
        return True

    def get(self, ext_name: str) -> Any:
        return self._schemas.get(ext_name)

    def has(self, ext_name: str) -> bool:
        return ext_name in self._schemas

    def names(self) -> list[str]:
        return sorted(self._schemas)

    def compiled(self, ext_name: str) -> Validator | None:
        """Return a validator for the named schema bound to this kind's resources."""
        if ext_name not in self._schemas:
            return None
        schema = self._schemas[ext_name]
        dialect = validator_for(schema, default=Draft202012Validator)
        return dialect(schema, registry=self._resources)

    def extension_for_uri(self, uri: str) -> str | None:
        return self._uri_owners.get(uri)

    @property
    def resources(self) -> Registry:
        return self._resources

    def reset(self) -> None:
        self._schemas.clear()
        self._uri_owners.clear()
        self._resources = Registry()


_DEFAULT_REGISTRIES: dict[str, ExtensionSchemaRegistry] = {}


def default_registry(kind: str) -> ExtensionSchemaRegistry:
    """Return the process-wide registry for ``kind``."""
    registry = _DEFAULT_REGISTRIES.get(kind)
    if registry is None:
        registry = ExtensionSchemaRegistry(kind)
        _DEFAULT_REGISTRIES[kind] = registry
    return registry


def reset_schemas() -> None:
    """Clear every process-wide registry. Never call mid-batch."""
    for registry in _DEFAULT_REGISTRIES.values():
        registry.reset()
