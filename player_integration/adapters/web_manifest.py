"""Web package manifest adapter (``package.json``).

The manifest is never edited directly: the package manager is authoritative
for version resolution, so a missing dependency is handed to the injected
installer when the descriptor is committed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from player_integration.errors import DescriptorParseError, ExternalProcessError
from player_integration.installers import PackageInstaller
from player_integration.models import DependencyReference
from player_integration.utils import read_text
from player_integration.adapters.base import BuildDescriptor, FormatAdapter

DEPENDENCIES_KEY = "dependencies"


class WebManifestAdapter(FormatAdapter[dict[str, Any]]):
    """Checks production dependencies and installs missing ones."""

    name = "package manifest"

    def __init__(self, installer: PackageInstaller) -> None:
        self.installer = installer
        self._pending: dict[Path, list[DependencyReference]] = {}

    def parse(self, source: str, path: Path) -> dict[str, Any]:
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise DescriptorParseError(path, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DescriptorParseError(path, "the manifest must be a JSON object")
        dependencies = data.get(DEPENDENCIES_KEY, {})
        if not isinstance(dependencies, dict):
            raise DescriptorParseError(path, f"'{DEPENDENCIES_KEY}' must be an object")
        return data

    def render(self, descriptor: BuildDescriptor[dict[str, Any]]) -> str:
        return descriptor.source

    def has_dependency(
        self, descriptor: BuildDescriptor[dict[str, Any]], dependency: DependencyReference
    ) -> bool:
        return dependency.identifier in descriptor.document.get(DEPENDENCIES_KEY, {})

    def ensure_dependency(
        self, descriptor: BuildDescriptor[dict[str, Any]], dependency: DependencyReference
    ) -> bool:
        """Schedule an install of *dependency* unless it is already declared."""
        if self.has_dependency(descriptor, dependency):
            return False
        pending = self._pending.setdefault(descriptor.path, [])
        if all(p.identifier != dependency.identifier for p in pending):
            pending.append(dependency)
        descriptor.schedule_write()
        return True

    async def commit(self, descriptor: BuildDescriptor[dict[str, Any]]) -> bool:
        """Run the installer for every scheduled dependency, then re-read the manifest.

        Raises:
            ExternalProcessError: If the installer fails or the package is
                still missing from the manifest afterwards.
        """
        pending = self._pending.pop(descriptor.path, [])
        descriptor.dirty = False
        if not pending:
            return False

        for dependency in pending:
            await self.installer.ensure_package(dependency, descriptor.path.parent)

        descriptor.source = read_text(descriptor.path)
        descriptor.document = self.parse(descriptor.source, descriptor.path)
        for dependency in pending:
            if not self.has_dependency(descriptor, dependency):
                raise ExternalProcessError(
                    f"{dependency.identifier} is still missing from {descriptor.path} "
                    "after installation"
                )
        return True
