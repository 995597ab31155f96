"""Integration orchestrator.

Drives one integration run through its stages:

ResolvingPlatform     -- turn the configuration into a ``PlatformTarget``.
ResolvingParameters   -- resolve paths, load every build descriptor and locate
                         every anchor the run will need.
RenderingTemplates    -- render player components and the usage snippet.
WritingArtifacts      -- write generated files into the project.
MutatingDescriptors   -- ensure dependencies and build settings, then commit.
Reporting             -- print the summary and the follow-up guidance.

Nothing is written before ResolvingParameters has finished, so a malformed
descriptor or a missing anchor aborts the run with the project untouched.

Usage::

    config = IntegrationConfig.load(Path("player.json"))
    result = asyncio.run(IntegrationOrchestrator(config).run())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable

from player_integration.adapters.android import AndroidBuildAdapter
from player_integration.adapters.markup import BODY, MarkupAdapter
from player_integration.adapters.podfile import PodfileAdapter
from player_integration.adapters.web_manifest import WebManifestAdapter
from player_integration.adapters.xcode import NativeProjectGraphAdapter
from player_integration.config import IntegrationConfig
from player_integration.installers import CocoaPodsInstaller, NpmInstaller, PackageInstaller
from player_integration.models import (
    DependencyReference,
    InsertionPoint,
    IntegrationParameters,
    Platform,
    PlatformTarget,
    WebFramework,
)
from player_integration.paths import (
    ANDROID_MANIFEST,
    GRADLE,
    INDEX_HTML,
    PACKAGE_JSON,
    PBXPROJ,
    PODFILE,
    PathResolver,
)
from player_integration.reporter import IntegrationResult, Reporter
from player_integration.templates import TemplateRenderer

# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    """Stages of an integration run, in execution order."""
    RESOLVING_PLATFORM = "resolving-platform"
    RESOLVING_PARAMETERS = "resolving-parameters"
    RENDERING_TEMPLATES = "rendering-templates"
    WRITING_ARTIFACTS = "writing-artifacts"
    MUTATING_DESCRIPTORS = "mutating-descriptors"
    REPORTING = "reporting"
    DONE = "done"


_STAGE_ORDER: list[Stage] = list(Stage)

# ---------------------------------------------------------------------------
# Dependencies and constants
# ---------------------------------------------------------------------------

IVS_POD = DependencyReference(identifier="AmazonIVSPlayer")
VLC_POD = DependencyReference(identifier="MobileVLCKit", version="3.3.0", platform_version="8.4")
EXOPLAYER = DependencyReference(identifier="com.google.android.exoplayer:exoplayer", version="2.13.2")
VIDEOJS = DependencyReference(identifier="video.js")
IVS_WEB_TECH = DependencyReference(
    identifier="https://player.live-video.net/1.3.1/amazon-ivs-videojs-tech.min.js"
)

BRIDGING_HEADER_SETTING = "SWIFT_OBJC_BRIDGING_HEADER"
BUILD_CONFIGURATIONS = ("Debug", "Release")

ANDROID_ACTIVITY = "VideoPlayerActivity.kt"
ANDROID_LAYOUT = "activity_video_player.xml"

IVS_TECH_ORDER = '["AmazonIVS"]'
IVS_TECH_SETUP = "registerIVSTech(videojs);"
HTML5_TECH_ORDER = '["html5"]'
HTML5_TECH_SETUP = "// HLS is played by the http-streaming engine bundled with video.js"
DEFAULT_CHANNEL_LATENCY = "NORMAL"

# Component file extension per framework name; anything else gets ``js``.
FILE_EXTENSIONS: dict[str, str] = {
    "ios": "swift",
    "angular": "ts",
    "vue": "vue",
    "ember": "js",
    "react": "jsx",
}


def file_extension(target: PlatformTarget) -> str:
    """Extension of the generated player component for *target*."""
    if target.platform is Platform.IOS:
        return FILE_EXTENSIONS["ios"]
    return FILE_EXTENSIONS.get(target.framework_name, "js")


# ---------------------------------------------------------------------------
# Web dispatch table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WebDestination:
    """Where a web framework's player component goes.

    ``path`` is relative to the source directory and may contain ``{ext}``.
    A destination without a template writes no component at all.  Generated
    components import video.js, so a destination with a template installs
    packages and is the only kind that reads ``package.json``.
    """

    template: str | None = None
    path: str | None = None
    stylesheet: str | None = None
    install_packages: bool = True
    guidance: tuple[str, ...] = field(default_factory=tuple)


ANGULAR_MODULE_GUIDANCE = "Don't forget to add the component to your angular module"
EMBER_STYLESHEET_GUIDANCE = (
    "Add the following statement in your ember-cli-build.js: "
    "app.import('node_modules/video.js/dist/video-js.css');"
)

WEB_DESTINATIONS: dict[WebFramework, WebDestination] = {
    WebFramework.ANGULAR: WebDestination(
        template="web/angular/video-player.component.ts.j2",
        path="app/video-player/video-player.component.ts",
        stylesheet="app/video-player/video-player.component.scss",
        guidance=(ANGULAR_MODULE_GUIDANCE,),
    ),
    WebFramework.VUE: WebDestination(
        template="web/vue/VideoPlayer.vue.j2",
        path="components/VideoPlayer.vue",
    ),
    WebFramework.EMBER: WebDestination(
        template="web/ember/video-player.js.j2",
        path="app/components/video-player.js",
        guidance=(EMBER_STYLESHEET_GUIDANCE,),
    ),
    WebFramework.NONE: WebDestination(install_packages=False),
    # Frameworks without their own arm (react included) share this layout.
    WebFramework.OTHER: WebDestination(
        template="web/default/VideoPlayer.j2",
        path="VideoPlayer.{ext}",
    ),
}

SNIPPET_TEMPLATES: dict[WebFramework, str] = {
    WebFramework.ANGULAR: "web/snippets/angular.j2",
    WebFramework.VUE: "web/snippets/vue.j2",
    WebFramework.EMBER: "web/snippets/ember.j2",
    WebFramework.NONE: "web/snippets/none.j2",
    WebFramework.OTHER: "web/snippets/default.j2",
}


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class IntegrationOrchestrator:
    """Runs one integration of the video player into a host project.

    An orchestrator performs a single run; the stage only moves forward and a
    failure leaves ``state`` at the stage that raised.

    Attributes:
        config: The run's configuration.
        state: Current ``Stage``.
        target: Resolved platform target (set once ResolvingPlatform is done).
    """

    def __init__(
        self,
        config: IntegrationConfig,
        *,
        renderer: TemplateRenderer | None = None,
        resolver: PathResolver | None = None,
        reporter: Reporter | None = None,
        npm_installer: PackageInstaller | None = None,
        pod_installer: PackageInstaller | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.renderer = renderer or TemplateRenderer()
        self.resolver = resolver or PathResolver()
        self.reporter = reporter or Reporter()
        self.npm_installer = npm_installer or NpmInstaller()
        self.pod_installer = pod_installer or CocoaPodsInstaller()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.state = Stage.RESOLVING_PLATFORM
        self.target: PlatformTarget | None = None
        self._started = False

    def _enter(self, stage: Stage) -> None:
        if _STAGE_ORDER.index(stage) < _STAGE_ORDER.index(self.state):
            raise RuntimeError(f"Stage {stage.value} cannot follow {self.state.value}")
        self.state = stage

    async def run(self) -> IntegrationResult:
        """Execute the integration and return what it did.

        Raises:
            IntegrationError: On any structural, parse or installer failure.
            ValueError: If the configured frontend is not supported.
            RuntimeError: If the orchestrator has already been run.
        """
        if self._started:
            raise RuntimeError("An orchestrator performs a single run")
        self._started = True

        self._enter(Stage.RESOLVING_PLATFORM)
        target = self.config.target
        self.target = target
        self.reporter.info(f"Integrating the video player into a {target.label} project")

        if target.platform is Platform.IOS:
            result = await self._integrate_ios(target)
        elif target.platform is Platform.ANDROID:
            result = await self._integrate_android(target)
        else:
            result = await self._integrate_web(target)

        self._enter(Stage.REPORTING)
        self.reporter.report(result, Path(self.config.project_root))
        self._enter(Stage.DONE)
        return result

    # ------------------------------------------------------------------
    # Shared parameters
    # ------------------------------------------------------------------

    def _template_parameters(self) -> IntegrationParameters:
        service = self.config.service
        if service.is_low_latency:
            tech_order, tech_setup = IVS_TECH_ORDER, IVS_TECH_SETUP
        else:
            tech_order, tech_setup = HTML5_TECH_ORDER, HTML5_TECH_SETUP
        return {
            "src": service.output_endpoint,
            "channel_latency": service.channel_latency or DEFAULT_CHANNEL_LATENCY,
            "tech_order": tech_order,
            "tech_setup": tech_setup,
            "creation_date": self._clock().strftime("%Y-%m-%d"),
        }

    # ------------------------------------------------------------------
    # iOS
    # ------------------------------------------------------------------

    async def _integrate_ios(self, target: PlatformTarget) -> IntegrationResult:
        self._enter(Stage.RESOLVING_PARAMETERS)
        name = self.config.project_name or ""
        paths = self.resolver.resolve(target, self.config.project_root, project_name=name)
        xcode = NativeProjectGraphAdapter()
        podfile = PodfileAdapter(self.pod_installer, target_name=name)
        project = xcode.load(paths.descriptor(PBXPROJ))
        pods = podfile.load(paths.descriptor(PODFILE))
        xcode.check_anchor(project, name)
        podfile.find_target(pods)

        low_latency = self.config.service.is_low_latency
        dependency = IVS_POD if low_latency else VLC_POD
        params = self._template_parameters()
        params["project_name"] = name
        result = IntegrationResult(target=target)

        self._enter(Stage.RENDERING_TEMPLATES)
        player = "ios/VideoPlayer-ivs.swift.j2" if low_latency else "ios/VideoPlayer-vlc.swift.j2"
        artifacts: list[tuple[Path, str]] = [
            (paths.source_dir / f"VideoPlayer.{file_extension(target)}", self.renderer.render(player, params)),
        ]
        if not low_latency:
            # VLCKit is Objective-C++; the app needs a C++ unit and a bridging header.
            artifacts.extend([
                (paths.source_dir / "empty.cpp", self.renderer.render("ios/empty.cpp.j2", params)),
                (paths.source_dir / "empty.hpp", self.renderer.render("ios/empty.hpp.j2", params)),
                (
                    paths.source_dir / f"{name}-Bridging-Header.h",
                    self.renderer.render("ios/Bridging-Header.h.j2", params),
                ),
            ])
        result.snippet = self.renderer.render("ios/ios-video-component.j2", params)

        self._enter(Stage.WRITING_ARTIFACTS)
        anchor = InsertionPoint(anchor=name)
        for path, content in artifacts:
            await xcode.insert_source_artifact(project, path, content, anchor)
            result.files_created.append(path)

        self._enter(Stage.MUTATING_DESCRIPTORS)
        if not low_latency:
            header = f"{name}/{name}-Bridging-Header.h"
            for configuration in BUILD_CONFIGURATIONS:
                xcode.set_build_property(project, BRIDGING_HEADER_SETTING, header, configuration)
        if await xcode.commit(project):
            result.files_modified.append(project.path)

        # pod install rewrites the project file, so it runs after the graph is committed.
        if podfile.has_dependency(pods, dependency):
            self.reporter.info(f"{dependency.identifier} is already declared in the Podfile")
        else:
            self.reporter.info(f"Adding {dependency.identifier} to the Podfile and running pod install")
        created = not pods.source
        podfile.ensure_dependency(pods, dependency)
        if await podfile.commit(pods):
            (result.files_created if created else result.files_modified).append(pods.path)

        result.guidance.append("Import and add the following ios component to your view:")
        return result

    # ------------------------------------------------------------------
    # Android
    # ------------------------------------------------------------------

    async def _integrate_android(self, target: PlatformTarget) -> IntegrationResult:
        self._enter(Stage.RESOLVING_PARAMETERS)
        paths = self.resolver.resolve(target, self.config.project_root)
        android = AndroidBuildAdapter()
        gradle = android.load(paths.descriptor(GRADLE))
        android.dependencies_block(gradle)
        package = android.read_package_identifier(paths.descriptor(ANDROID_MANIFEST), gradle)
        paths = self.resolver.resolve_package_dir(paths, package)

        params = self._template_parameters()
        params["package_name"] = package
        result = IntegrationResult(target=target)

        self._enter(Stage.RENDERING_TEMPLATES)
        activity = self.renderer.render(f"android/{ANDROID_ACTIVITY}.j2", params)

        self._enter(Stage.WRITING_ARTIFACTS)
        activity_path = paths.source_dir / ANDROID_ACTIVITY
        await android.insert_source_artifact(
            gradle, activity_path, activity, InsertionPoint(anchor=package)
        )
        result.files_created.append(activity_path)
        layout_path = await self.renderer.copy_static(
            f"android/{ANDROID_LAYOUT}", paths.resource_dir / ANDROID_LAYOUT
        )
        result.files_created.append(layout_path)

        self._enter(Stage.MUTATING_DESCRIPTORS)
        if android.ensure_dependency(gradle, EXOPLAYER):
            self.reporter.info(f"Adding {EXOPLAYER.coordinate} to {gradle.path.name}")
        else:
            self.reporter.info("ExoPlayer is already declared in the build file")
        if await android.commit(gradle):
            result.files_modified.append(gradle.path)

        result.guidance.append("Configuration complete, please reload your gradle dependencies.")
        result.guidance.append(f"A new Android Activity has been created: {activity_path}")
        return result

    # ------------------------------------------------------------------
    # Web
    # ------------------------------------------------------------------

    async def _integrate_web(self, target: PlatformTarget) -> IntegrationResult:
        self._enter(Stage.RESOLVING_PARAMETERS)
        paths = self.resolver.resolve(
            target, self.config.project_root, source_dir=self.config.source_dir
        )
        framework = target.framework or WebFramework.NONE
        destination = WEB_DESTINATIONS[framework]
        low_latency = self.config.service.is_low_latency

        manifest_adapter = WebManifestAdapter(self.npm_installer)
        markup_adapter = MarkupAdapter()
        manifest = None
        if destination.install_packages:
            manifest = manifest_adapter.load(paths.descriptor(PACKAGE_JSON))
        markup = None
        if low_latency:
            markup = markup_adapter.load(paths.descriptor(INDEX_HTML))
            markup_adapter.locate(markup, BODY)

        params = self._template_parameters()
        params["framework"] = target.framework_name
        result = IntegrationResult(target=target)

        self._enter(Stage.RENDERING_TEMPLATES)
        component = None
        if destination.template:
            component = self.renderer.render(destination.template, params)
        result.snippet = self.renderer.render(SNIPPET_TEMPLATES[framework], params)

        self._enter(Stage.WRITING_ARTIFACTS)
        if component is not None and destination.path:
            component_path = paths.source_dir / destination.path.format(ext=file_extension(target))
            await manifest_adapter.insert_source_artifact(
                manifest, component_path, component, InsertionPoint(anchor=self.config.source_dir)
            )
            result.files_created.append(component_path)
        if destination.stylesheet:
            stylesheet = await self.renderer.copy_static(
                "web/video-player.component.scss", paths.source_dir / destination.stylesheet
            )
            result.files_created.append(stylesheet)

        self._enter(Stage.MUTATING_DESCRIPTORS)
        if markup is not None:
            if markup_adapter.ensure_dependency(markup, IVS_WEB_TECH):
                self.reporter.info(f"Adding the Amazon IVS player tech to {markup.path.name}")
            if await markup_adapter.commit(markup):
                result.files_modified.append(markup.path)
        if manifest is not None:
            if manifest_adapter.ensure_dependency(manifest, VIDEOJS):
                self.reporter.info(f"Installing {VIDEOJS.identifier}")
            else:
                self.reporter.info(f"{VIDEOJS.identifier} is already installed")
            if await manifest_adapter.commit(manifest):
                result.files_modified.append(manifest.path)

        result.guidance.extend(destination.guidance)
        if framework is WebFramework.NONE:
            result.guidance.append("Copy and paste the following snippet of code:")
        else:
            result.guidance.append(
                f"Import and add the following {target.framework_name} component:"
            )
        return result
