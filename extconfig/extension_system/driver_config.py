"""Config facade for installed drivers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .extension_config import ExtensionConfig, ProblemRecord, descriptor_data
from .manifest import DRIVER_TYPE


class DriverConfig(ExtensionConfig):
    """Drivers also declare the automation they provide and its platforms.

    An ``automation_name`` identifies one driver; two installed drivers may not
    claim the same one (compared case-insensitively).
    """

    kind = DRIVER_TYPE
    extra_descriptor_schema_paths = ("contracts/driver_descriptor.schema.json",)

    def automation_name_owners(self) -> dict[str, str]:
        owners: dict[str, str] = {}
        for ext_name, ext_data in sorted(self.installed_extensions.items()):
            if not isinstance(ext_data, Mapping):
                continue
            automation_name = ext_data.get("automation_name")
            if isinstance(automation_name, str) and automation_name:
                owners.setdefault(automation_name.casefold(), ext_name)
        return owners

    def get_config_problems(self, ext_data: Any = None, ext_name: str | None = None) -> list[ProblemRecord]:
        problems = super().get_config_problems(ext_data, ext_name)
        ext_data = descriptor_data(ext_data)
        if not isinstance(ext_data, Mapping):
            return problems
        automation_name = ext_data.get("automation_name")
        if not isinstance(automation_name, str) or not automation_name:
            return problems
        owner = self.automation_name_owners().get(automation_name.casefold())
        if owner is not None and owner != ext_name:
            problems.append(
                ProblemRecord(
                    err=(
                        f"Multiple drivers claim support for the same automation_name {automation_name!r}; "
                        f"it is already claimed by driver {owner!r}"
                    ),
                    val=automation_name,
                )
            )
        return problems
