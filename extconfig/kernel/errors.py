"""Kernel error types."""

from __future__ import annotations

from typing import Any


class ExtConfigError(Exception):
    """Base error for extconfig."""


class ConfigError(ExtConfigError):
    """Raised when configuration validation or loading fails."""


class ExtensionError(ExtConfigError):
    """Raised when extension metadata cannot be processed."""


class InvariantViolation(ExtensionError, TypeError):
    """Raised when a caller breaks a documented precondition."""


class SchemaError(ExtensionError):
    """Base for failures while resolving or registering an extension schema.

    ``val`` holds the offending value (schema reference or schema object).
    """

    def __init__(self, message: str, *, val: Any = None) -> None:
        super().__init__(message)
        self.val = val

    @property
    def kind(self) -> str:
        return type(self).__name__


class MalformedSchemaReference(SchemaError):
    """Raised when the ``schema`` field is neither a path nor an object."""


class UnsupportedSchemaExtension(SchemaError):
    """Raised when a schema file path has a suffix outside the allow-list."""


class SchemaFileNotFound(SchemaError):
    """Raised when a schema file cannot be located in its package."""


class SchemaLoadError(SchemaError):
    """Raised when a located schema file cannot be loaded."""


class InvalidSchema(SchemaError):
    """Raised when a schema is not structurally acceptable."""


class SchemaConflict(SchemaError):
    """Raised when a different schema is already registered under a name."""
