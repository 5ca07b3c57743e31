"""Extension descriptors, schema resolution and registration."""

from .driver_config import DriverConfig
from .extension_config import ExtensionConfig, ProblemRecord
from .manifest import DRIVER_TYPE, PLUGIN_TYPE, ExtensionDescriptor, InstallType, Manifest
from .plugin_config import PluginConfig
from .schema_registry import ExtensionSchemaRegistry, default_registry, reset_schemas

__all__ = [
    "DRIVER_TYPE",
    "PLUGIN_TYPE",
    "DriverConfig",
    "ExtensionConfig",
    "ExtensionDescriptor",
    "ExtensionSchemaRegistry",
    "InstallType",
    "Manifest",
    "PluginConfig",
    "ProblemRecord",
    "default_registry",
    "reset_schemas",
]
