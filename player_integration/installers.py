"""Package installers invoked by the dependency adapters.

The installers are the only place the engine waits on an external process.
Adapters receive an installer as an injected capability, so tests substitute
an in-process fake.  No timeout is imposed: an install either completes or
fails.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from player_integration.errors import ExternalProcessError
from player_integration.models import DependencyReference
from player_integration.utils import run_command


class PackageInstaller(Protocol):
    """Capability that makes a package present in a project."""

    async def ensure_package(self, dependency: DependencyReference, cwd: Path) -> None:
        ...


async def _run_installer(cmd: list[str], cwd: Path) -> str:
    """Run an installer command and raise ``ExternalProcessError`` on failure."""
    cmd_str = " ".join(cmd)
    returncode, stdout, stderr = await run_command(cmd, cwd=cwd, timeout=None)
    if returncode != 0:
        raise ExternalProcessError(
            f"{cmd_str} failed (exit {returncode})\n{stderr}",
            command=cmd_str,
            returncode=returncode,
            stderr=stderr,
        )
    return stdout


class NpmInstaller:
    """Installs a package with ``npm install``; npm records it in ``package.json``."""

    def __init__(self, executable: str = "npm") -> None:
        self.executable = executable

    async def ensure_package(self, dependency: DependencyReference, cwd: Path) -> None:
        spec = dependency.identifier
        if dependency.version:
            spec = f"{spec}@{dependency.version}"
        await _run_installer([self.executable, "install", spec], cwd)


class CocoaPodsInstaller:
    """Runs ``pod install`` once the Podfile declares the dependency."""

    def __init__(self, executable: str = "pod") -> None:
        self.executable = executable

    async def ensure_package(self, dependency: DependencyReference, cwd: Path) -> None:
        await _run_installer([self.executable, "install"], cwd)
