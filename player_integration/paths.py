"""Filesystem locations of source trees and build descriptors per platform.

``PathResolver`` derives every path an integration run touches before any
file is written, so that a project with a missing directory fails up front
instead of halfway through.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path

from player_integration.errors import ProjectStructureError
from player_integration.models import Platform, PlatformTarget, WebFramework

# Descriptor roles
PBXPROJ = "pbxproj"
PODFILE = "podfile"
ANDROID_MANIFEST = "manifest"
GRADLE = "gradle"
PACKAGE_JSON = "package_json"
INDEX_HTML = "index_html"

_PACKAGE_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


@dataclass(frozen=True)
class PlatformPaths:
    """Resolved locations for one platform.

    Attributes:
        source_dir: Directory receiving generated source files.  For Android
            this is only known after ``PathResolver.resolve_package_dir``.
        resource_dir: Directory receiving resource files (Android layouts).
        descriptors: Build descriptor path per role.
    """

    project_root: Path
    source_dir: Path | None = None
    resource_dir: Path | None = None
    descriptors: dict[str, Path] = field(default_factory=dict)

    def descriptor(self, role: str) -> Path:
        """Return the path of the descriptor playing *role*."""
        try:
            return self.descriptors[role]
        except KeyError:
            raise ProjectStructureError(
                f"No {role} descriptor is defined for project {self.project_root}"
            ) from None


class PathResolver:
    """Computes platform paths from a project root and a platform target."""

    def resolve(
        self,
        target: PlatformTarget,
        project_root: str | Path,
        *,
        project_name: str | None = None,
        source_dir: str | None = None,
    ) -> PlatformPaths:
        root = Path(project_root)
        if not root.is_dir():
            raise ProjectStructureError(f"Project root does not exist: {root}")

        if target.platform is Platform.IOS:
            return self._resolve_ios(root, project_name)
        if target.platform is Platform.ANDROID:
            return self._resolve_android(root)
        return self._resolve_web(root, target, source_dir or "src")

    # -- iOS ---------------------------------------------------------------

    def _resolve_ios(self, root: Path, project_name: str | None) -> PlatformPaths:
        if not project_name:
            raise ProjectStructureError("An iOS integration requires the project name")
        source_dir = root / project_name
        pbxproj = root / f"{project_name}.xcodeproj" / "project.pbxproj"
        if not source_dir.is_dir():
            raise ProjectStructureError(f"iOS source directory not found: {source_dir}")
        if not pbxproj.is_file():
            raise ProjectStructureError(f"Xcode project file not found: {pbxproj}")
        return PlatformPaths(
            project_root=root,
            source_dir=source_dir,
            resource_dir=source_dir,
            descriptors={PBXPROJ: pbxproj, PODFILE: root / "Podfile"},
        )

    # -- Android -----------------------------------------------------------

    def _resolve_android(self, root: Path) -> PlatformPaths:
        main_dir = root / "app" / "src" / "main"
        if not main_dir.is_dir():
            raise ProjectStructureError(f"Android main source set not found: {main_dir}")
        manifest = main_dir / "AndroidManifest.xml"
        if not manifest.is_file():
            raise ProjectStructureError(f"Android manifest not found: {manifest}")

        gradle = root / "app" / "build.gradle"
        kotlin_gradle = root / "app" / "build.gradle.kts"
        if not gradle.is_file() and kotlin_gradle.is_file():
            gradle = kotlin_gradle
        if not gradle.is_file():
            raise ProjectStructureError(f"App module build file not found: {gradle}")

        return PlatformPaths(
            project_root=root,
            resource_dir=main_dir / "res" / "layout",
            descriptors={ANDROID_MANIFEST: manifest, GRADLE: gradle},
        )

    def resolve_package_dir(self, paths: PlatformPaths, package_id: str) -> PlatformPaths:
        """Return *paths* with ``source_dir`` set to the package's directory.

        An existing ``kotlin/`` source root wins over ``java/``; when neither
        holds the package yet the ``java/`` location is used.
        """
        if not package_id or not _PACKAGE_ID_RE.match(package_id):
            raise ProjectStructureError(
                f"Cannot derive a source directory from package identifier {package_id!r}"
            )
        main_dir = paths.project_root / "app" / "src" / "main"
        relative = Path(*package_id.split("."))
        kotlin_dir = main_dir / "kotlin" / relative
        source_dir = kotlin_dir if kotlin_dir.is_dir() else main_dir / "java" / relative
        return replace(paths, source_dir=source_dir)

    # -- Web ---------------------------------------------------------------

    def _resolve_web(self, root: Path, target: PlatformTarget, source_dir: str) -> PlatformPaths:
        descriptors: dict[str, Path] = {}
        # A plain HTML page (no framework) installs nothing and may have no manifest.
        if target.framework is not WebFramework.NONE:
            package_json = root / "package.json"
            if not package_json.is_file():
                raise ProjectStructureError(f"package.json not found in {root}")
            descriptors[PACKAGE_JSON] = package_json

        src = root / source_dir
        if target.framework is WebFramework.ANGULAR:
            index_html = src / "index.html"
        elif target.framework is WebFramework.EMBER:
            index_html = root / "app" / "index.html"
        else:
            index_html = root / "public" / "index.html"
        descriptors[INDEX_HTML] = index_html

        return PlatformPaths(
            project_root=root,
            source_dir=src,
            descriptors=descriptors,
        )
