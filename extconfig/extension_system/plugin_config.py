"""Config facade for installed plugins."""

from __future__ import annotations

from .extension_config import ExtensionConfig
from .manifest import PLUGIN_TYPE


class PluginConfig(ExtensionConfig):
    kind = PLUGIN_TYPE
