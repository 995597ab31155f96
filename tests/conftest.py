"""Shared pytest fixtures for the player integration test suite.

Provides reusable fixtures for:
- Sample iOS, Android and web projects built from ``tests/fixtures``
- Fake package installers standing in for ``npm`` and ``pod``
- A quiet ``Reporter`` whose output can be inspected
- Integration configurations for each platform
"""

from __future__ import annotations

import io
import json
import shutil
from pathlib import Path
from typing import Any, Callable

import pytest
from rich.console import Console

from player_integration.config import IntegrationConfig
from player_integration.models import DependencyReference
from player_integration.reporter import Reporter

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ENDPOINT = "https://cdn.example/stream.m3u8"
IVS_ENDPOINT = "https://fcc3ddae59ed.us-west-2.playback.live-video.net/api/video/v1/channel.m3u8"


# ---------------------------------------------------------------------------
# Paths & sample projects
# ---------------------------------------------------------------------------

@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the sample build descriptors."""
    return FIXTURES_DIR


@pytest.fixture
def pbxproj_text() -> str:
    """Raw text of the sample Xcode project file."""
    with open(FIXTURES_DIR / "ios" / "project.pbxproj", encoding="utf-8", newline="") as handle:
        return handle.read()


@pytest.fixture
def ios_project(tmp_path: Path) -> Path:
    """An Xcode project named ``HelloWorld`` with a Podfile."""
    root = tmp_path / "ios-app"
    (root / "HelloWorld").mkdir(parents=True)
    (root / "HelloWorld.xcodeproj").mkdir()
    shutil.copyfile(FIXTURES_DIR / "ios" / "project.pbxproj", root / "HelloWorld.xcodeproj" / "project.pbxproj")
    shutil.copyfile(FIXTURES_DIR / "ios" / "Podfile", root / "Podfile")
    yield root


@pytest.fixture
def android_project(tmp_path: Path) -> Path:
    """An Android Studio project whose app package is ``com.example.app``."""
    root = tmp_path / "android-app"
    main = root / "app" / "src" / "main"
    (main / "java" / "com" / "example" / "app").mkdir(parents=True)
    (main / "res" / "layout").mkdir(parents=True)
    shutil.copyfile(FIXTURES_DIR / "android" / "AndroidManifest.xml", main / "AndroidManifest.xml")
    shutil.copyfile(FIXTURES_DIR / "android" / "build.gradle", root / "app" / "build.gradle")
    yield root


@pytest.fixture
def web_project(tmp_path: Path) -> Path:
    """A web project with ``package.json`` and the usual ``index.html`` locations."""
    root = tmp_path / "web-app"
    for directory in ("src", "public", "app"):
        (root / directory).mkdir(parents=True)
    shutil.copyfile(FIXTURES_DIR / "web" / "package.json", root / "package.json")
    for index in ("public/index.html", "src/index.html", "app/index.html"):
        shutil.copyfile(FIXTURES_DIR / "web" / "index.html", root / index)
    yield root


# ---------------------------------------------------------------------------
# Fake installers
# ---------------------------------------------------------------------------

class FakeInstaller:
    """Records ``ensure_package`` calls instead of spawning a package manager.

    ``on_install`` runs for every call and can simulate what the real tool
    does to the project (for example ``npm`` updating ``package.json``).
    """

    def __init__(self, on_install: Callable[[DependencyReference, Path], None] | None = None) -> None:
        self.calls: list[tuple[DependencyReference, Path]] = []
        self.on_install = on_install

    async def ensure_package(self, dependency: DependencyReference, cwd: Path) -> None:
        self.calls.append((dependency, Path(cwd)))
        if self.on_install is not None:
            self.on_install(dependency, Path(cwd))

    @property
    def installed(self) -> list[str]:
        return [dependency.identifier for dependency, _ in self.calls]


def _npm_like_install(dependency: DependencyReference, cwd: Path) -> None:
    manifest = cwd / "package.json"
    data: dict[str, Any] = json.loads(manifest.read_text(encoding="utf-8"))
    data.setdefault("dependencies", {})[dependency.identifier] = f"^{dependency.version or '7.11.4'}"
    manifest.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


@pytest.fixture
def npm_installer() -> FakeInstaller:
    """Installer that adds the package to ``package.json`` like ``npm install``."""
    return FakeInstaller(on_install=_npm_like_install)


@pytest.fixture
def pod_installer() -> FakeInstaller:
    """Installer that only records ``pod install`` runs."""
    return FakeInstaller()


# ---------------------------------------------------------------------------
# Reporter
# ---------------------------------------------------------------------------

@pytest.fixture
def reporter() -> Reporter:
    """Reporter printing to an in-memory console."""
    return Reporter(console=Console(file=io.StringIO(), width=200, color_system=None))


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------

@pytest.fixture
def android_config(android_project: Path) -> IntegrationConfig:
    return IntegrationConfig(
        project_root=android_project,
        frontend="android",
        service={"service_type": "generic-stream", "output_endpoint": ENDPOINT},
    )


@pytest.fixture
def ios_config(ios_project: Path) -> IntegrationConfig:
    return IntegrationConfig(
        project_root=ios_project,
        frontend="ios",
        project_name="HelloWorld",
        service={"service_type": "generic-stream", "output_endpoint": ENDPOINT},
    )


@pytest.fixture
def make_web_config(web_project: Path) -> Callable[..., IntegrationConfig]:
    """Factory for web configurations: ``make_web_config("react", "ivs")``."""

    def _make(framework: str | None, service_type: str = "generic-stream", **service: Any) -> IntegrationConfig:
        endpoint = IVS_ENDPOINT if service_type in ("ivs", "low-latency-stream") else ENDPOINT
        return IntegrationConfig(
            project_root=web_project,
            frontend="javascript",
            framework=framework,
            service={"service_type": service_type, "output_endpoint": endpoint, **service},
        )

    return _make
