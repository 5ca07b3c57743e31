"""Structural checks for extension-provided JSON schemas."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterator

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError as JsonSchemaError
from jsonschema.validators import validator_for

from extconfig.kernel.errors import InvalidSchema


DISALLOWED_KEYWORDS = ("$async",)


def _walk(node: Any, path: tuple[Any, ...] = ()) -> Iterator[tuple[tuple[Any, ...], Mapping[str, Any]]]:
    if isinstance(node, Mapping):
        yield path, node
        for key, value in node.items():
            yield from _walk(value, path + (key,))
    elif isinstance(node, list):
        for idx, value in enumerate(node):
            yield from _walk(value, path + (idx,))


def _pointer(path: tuple[Any, ...]) -> str:
    return "/" + "/".join(str(part) for part in path) if path else "/"


class SchemaValidator:
    """Check that a schema compiles under its declared JSON-Schema dialect.

    One validator exists per extension kind; it never resolves ``$ref``s, so
    only the schema document itself is judged.
    """

    def __init__(self, kind: str, *, default_dialect: type = Draft202012Validator) -> None:
        self.kind = kind
        self._default_dialect = default_dialect

    def _owner(self, ext_name: str | None) -> str:
        return f"{self.kind} {ext_name!r}" if ext_name else self.kind

    def validate(self, schema: Any, *, ext_name: str | None = None) -> None:
        owner = self._owner(ext_name)
        if not isinstance(schema, Mapping):
            raise InvalidSchema(
                f"Unsupported schema from {owner}: schema must be an object, got {type(schema).__name__}",
                val=schema,
            )
        for path, node in _walk(schema):
            for keyword in DISALLOWED_KEYWORDS:
                if node.get(keyword) is True:
                    raise InvalidSchema(
                        f"Unsupported schema from {owner}: keyword {keyword!r} is not allowed "
                        f"(at {_pointer(path)})",
                        val=schema,
                    )
        if "$schema" in schema and not isinstance(schema["$schema"], str):
            raise InvalidSchema(f"Unsupported schema from {owner}: $schema must be a URI string", val=schema)
        try:
            dialect = validator_for(schema, default=self._default_dialect)
            dialect.check_schema(schema)
        except JsonSchemaError as exc:
            location = _pointer(tuple(exc.absolute_path))
            raise InvalidSchema(
                f"Unsupported schema from {owner}: {exc.message} (at {location})",
                val=schema,
            ) from exc
        except Exception as exc:
            raise InvalidSchema(
                f"Unsupported schema from {owner}: schema could not be checked: {type(exc).__name__}: {exc}",
                val=schema,
            ) from exc
