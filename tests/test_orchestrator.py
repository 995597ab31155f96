"""Unit tests for the IntegrationOrchestrator (player_integration.orchestrator).

Every run uses the fake installers from conftest, so no package manager is
spawned; the project files themselves are real copies of the fixtures.
"""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import ENDPOINT, FIXTURES_DIR, FakeInstaller
from player_integration.config import IntegrationConfig
from player_integration.errors import AnchorNotFoundError, DescriptorParseError
from player_integration.models import PlatformTarget, WebFramework
from player_integration.orchestrator import (
    ANGULAR_MODULE_GUIDANCE,
    EMBER_STYLESHEET_GUIDANCE,
    IntegrationOrchestrator,
    Stage,
    file_extension,
)

FIXED_NOW = datetime(2021, 3, 4, 12, 0, tzinfo=timezone.utc)
IVS_SCRIPT = "amazon-ivs-videojs-tech.min.js"


def _orchestrator(config, reporter, npm_installer=None, pod_installer=None):
    return IntegrationOrchestrator(
        config,
        reporter=reporter,
        npm_installer=npm_installer or FakeInstaller(),
        pod_installer=pod_installer or FakeInstaller(),
        clock=lambda: FIXED_NOW,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestFileExtension:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("frontend", "framework", "expected"),
        [
            ("ios", None, "swift"),
            ("javascript", "angular", "ts"),
            ("javascript", "vue", "vue"),
            ("javascript", "ember", "js"),
            ("javascript", "react", "jsx"),
            ("javascript", "svelte", "js"),
        ],
    )
    def test_extension(self, frontend, framework, expected):
        assert file_extension(PlatformTarget.resolve(frontend, framework)) == expected


# ---------------------------------------------------------------------------
# iOS
# ---------------------------------------------------------------------------

class TestIosIntegration:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generic_stream_uses_vlc(self, ios_config, ios_project: Path, reporter, pod_installer):
        orchestrator = _orchestrator(ios_config, reporter, pod_installer=pod_installer)
        result = await orchestrator.run()

        source_dir = ios_project / "HelloWorld"
        for name in ("VideoPlayer.swift", "empty.cpp", "empty.hpp", "HelloWorld-Bridging-Header.h"):
            assert (source_dir / name).is_file()
            assert source_dir / name in result.files_created
        assert "Created on 2021-03-04." in (source_dir / "VideoPlayer.swift").read_text(encoding="utf-8")

        pbxproj = (ios_project / "HelloWorld.xcodeproj" / "project.pbxproj").read_text(encoding="utf-8")
        assert "VideoPlayer.swift" in pbxproj
        assert "empty.cpp" in pbxproj
        assert pbxproj.count("HelloWorld/HelloWorld-Bridging-Header.h") >= 2

        podfile = (ios_project / "Podfile").read_text(encoding="utf-8")
        assert "pod 'MobileVLCKit', '3.3.0'" in podfile
        assert "\nplatform :ios, '8.4'\n" in podfile
        assert "AmazonIVSPlayer" not in podfile
        assert pod_installer.installed == ["MobileVLCKit"]

        assert orchestrator.state is Stage.DONE
        assert result.snippet.startswith("VideoPlayer()")
        assert result.guidance == ["Import and add the following ios component to your view:"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_low_latency_uses_ivs(self, ios_project: Path, reporter, pod_installer):
        config = IntegrationConfig(
            project_root=ios_project,
            frontend="ios",
            project_name="HelloWorld",
            service={"service_type": "ivs", "output_endpoint": ENDPOINT},
        )
        result = await _orchestrator(config, reporter, pod_installer=pod_installer).run()

        source_dir = ios_project / "HelloWorld"
        assert (source_dir / "VideoPlayer.swift").is_file()
        assert not (source_dir / "HelloWorld-Bridging-Header.h").exists()
        assert not (source_dir / "empty.cpp").exists()

        pbxproj = (ios_project / "HelloWorld.xcodeproj" / "project.pbxproj").read_text(encoding="utf-8")
        assert "SWIFT_OBJC_BRIDGING_HEADER" not in pbxproj

        podfile = (ios_project / "Podfile").read_text(encoding="utf-8")
        assert "pod 'AmazonIVSPlayer'" in podfile
        assert "MobileVLCKit" not in podfile
        assert "# platform :ios, '9.0'" in podfile
        assert pod_installer.installed == ["AmazonIVSPlayer"]
        assert ios_project / "Podfile" in result.files_modified

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_podfile_is_created(self, ios_config, ios_project: Path, reporter):
        (ios_project / "Podfile").unlink()
        result = await _orchestrator(ios_config, reporter).run()

        podfile = (ios_project / "Podfile").read_text(encoding="utf-8")
        assert "target 'HelloWorld' do" in podfile
        assert "pod 'MobileVLCKit', '3.3.0'" in podfile
        assert ios_project / "Podfile" in result.files_created

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_group_writes_nothing(self, tmp_path: Path, reporter):
        root = tmp_path / "other-app"
        (root / "Other").mkdir(parents=True)
        (root / "Other.xcodeproj").mkdir()
        project_file = root / "Other.xcodeproj" / "project.pbxproj"
        shutil.copyfile(FIXTURES_DIR / "ios" / "project.pbxproj", project_file)
        shutil.copyfile(FIXTURES_DIR / "ios" / "Podfile", root / "Podfile")
        before = project_file.read_bytes()

        config = IntegrationConfig(
            project_root=root,
            frontend="ios",
            project_name="Other",
            service={"service_type": "generic-stream", "output_endpoint": ENDPOINT},
        )
        orchestrator = _orchestrator(config, reporter)
        with pytest.raises(AnchorNotFoundError):
            await orchestrator.run()

        assert orchestrator.state is Stage.RESOLVING_PARAMETERS
        assert list((root / "Other").iterdir()) == []
        assert project_file.read_bytes() == before

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, ios_config, ios_project: Path, reporter):
        await _orchestrator(ios_config, reporter).run()
        project_file = ios_project / "HelloWorld.xcodeproj" / "project.pbxproj"
        pbxproj_after_first = project_file.read_bytes()
        podfile_after_first = (ios_project / "Podfile").read_bytes()

        result = await _orchestrator(ios_config, reporter).run()

        assert project_file.read_bytes() == pbxproj_after_first
        assert (ios_project / "Podfile").read_bytes() == podfile_after_first
        assert result.files_modified == []


# ---------------------------------------------------------------------------
# Android
# ---------------------------------------------------------------------------

class TestAndroidIntegration:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_activity_layout_and_dependency(self, android_config, android_project: Path, reporter):
        orchestrator = _orchestrator(android_config, reporter)
        result = await orchestrator.run()

        main = android_project / "app" / "src" / "main"
        activity = main / "java" / "com" / "example" / "app" / "VideoPlayerActivity.kt"
        assert activity.read_text(encoding="utf-8").startswith("package com.example.app")
        assert ENDPOINT in activity.read_text(encoding="utf-8")
        assert (main / "res" / "layout" / "activity_video_player.xml").is_file()

        gradle = (android_project / "app" / "build.gradle").read_text(encoding="utf-8")
        assert "implementation 'com.google.android.exoplayer:exoplayer:2.13.2'" in gradle
        assert result.files_modified == [android_project / "app" / "build.gradle"]
        assert result.guidance[0] == "Configuration complete, please reload your gradle dependencies."
        assert result.guidance[1] == f"A new Android Activity has been created: {activity}"
        assert orchestrator.state is Stage.DONE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_dependencies_block_fails_before_writing(
        self, android_config, android_project: Path, reporter
    ):
        gradle = android_project / "app" / "build.gradle"
        gradle.write_text("plugins {\n    id 'com.android.application'\n}\n", encoding="utf-8")

        orchestrator = _orchestrator(android_config, reporter)
        with pytest.raises(DescriptorParseError):
            await orchestrator.run()

        assert orchestrator.state is Stage.RESOLVING_PARAMETERS
        package_dir = android_project / "app" / "src" / "main" / "java" / "com" / "example" / "app"
        assert list(package_dir.iterdir()) == []


# ---------------------------------------------------------------------------
# Web
# ---------------------------------------------------------------------------

class TestWebIntegration:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_react_component(self, make_web_config, web_project: Path, reporter, npm_installer):
        index_before = (web_project / "public" / "index.html").read_bytes()
        result = await _orchestrator(make_web_config("react"), reporter, npm_installer).run()

        component = web_project / "src" / "VideoPlayer.jsx"
        assert component.is_file()
        assert "techOrder: [\"html5\"]" in component.read_text(encoding="utf-8")
        assert npm_installer.installed == ["video.js"]
        assert result.files_modified == [web_project / "package.json"]
        # Only low-latency streams need the IVS tech script.
        assert (web_project / "public" / "index.html").read_bytes() == index_before
        assert result.guidance == ["Import and add the following react component:"]
        assert ENDPOINT in result.snippet

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_angular_low_latency(self, make_web_config, web_project: Path, reporter, npm_installer):
        result = await _orchestrator(make_web_config("angular", "ivs"), reporter, npm_installer).run()

        component_dir = web_project / "src" / "app" / "video-player"
        component = component_dir / "video-player.component.ts"
        assert component.is_file()
        assert "registerIVSTech(videojs);" in component.read_text(encoding="utf-8")
        assert (component_dir / "video-player.component.scss").is_file()

        index = (web_project / "src" / "index.html").read_text(encoding="utf-8")
        assert IVS_SCRIPT in index
        assert IVS_SCRIPT not in (web_project / "public" / "index.html").read_text(encoding="utf-8")
        assert web_project / "src" / "index.html" in result.files_modified
        assert result.guidance[0] == ANGULAR_MODULE_GUIDANCE
        assert result.guidance[-1] == "Import and add the following angular component:"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_vue_component(self, make_web_config, web_project: Path, reporter, npm_installer):
        result = await _orchestrator(make_web_config("vue"), reporter, npm_installer).run()

        assert (web_project / "src" / "components" / "VideoPlayer.vue").is_file()
        assert result.target.framework is WebFramework.VUE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ember_low_latency(self, make_web_config, web_project: Path, reporter, npm_installer):
        result = await _orchestrator(make_web_config("ember", "ivs"), reporter, npm_installer).run()

        assert (web_project / "src" / "app" / "components" / "video-player.js").is_file()
        assert IVS_SCRIPT in (web_project / "app" / "index.html").read_text(encoding="utf-8")
        assert EMBER_STYLESHEET_GUIDANCE in result.guidance
        assert result.snippet.startswith("{{video-player")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_framework_only_prints_snippet(self, make_web_config, web_project: Path, reporter, npm_installer):
        result = await _orchestrator(make_web_config("none", "ivs"), reporter, npm_installer).run()

        assert npm_installer.calls == []
        assert result.files_created == []
        assert IVS_SCRIPT in (web_project / "public" / "index.html").read_text(encoding="utf-8")
        assert "registerIVSTech(videojs);" in result.snippet
        assert result.guidance == ["Copy and paste the following snippet of code:"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_plain_page_without_manifest(self, tmp_path: Path, reporter, npm_installer):
        root = tmp_path / "plain"
        (root / "public").mkdir(parents=True)
        shutil.copyfile(FIXTURES_DIR / "web" / "index.html", root / "public" / "index.html")
        config = IntegrationConfig(
            project_root=root,
            frontend="javascript",
            framework="none",
            service={"service_type": "generic-stream", "output_endpoint": ENDPOINT},
        )

        orchestrator = _orchestrator(config, reporter, npm_installer)
        result = await orchestrator.run()

        assert orchestrator.state is Stage.DONE
        assert not (root / "package.json").exists()
        assert npm_installer.calls == []
        assert result.files_created == []
        assert result.files_modified == []
        assert ENDPOINT in result.snippet
        assert result.guidance == ["Copy and paste the following snippet of code:"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_body_fails_before_writing(self, make_web_config, web_project: Path, reporter, npm_installer):
        (web_project / "public" / "index.html").write_text("<html><head></head></html>\n", encoding="utf-8")

        orchestrator = _orchestrator(make_web_config("react", "ivs"), reporter, npm_installer)
        with pytest.raises(AnchorNotFoundError):
            await orchestrator.run()

        assert orchestrator.state is Stage.RESOLVING_PARAMETERS
        assert not (web_project / "src" / "VideoPlayer.jsx").exists()
        assert npm_installer.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, make_web_config, web_project: Path, reporter, npm_installer):
        config = make_web_config("react", "ivs")
        await _orchestrator(config, reporter, npm_installer).run()
        index_after_first = (web_project / "public" / "index.html").read_bytes()
        manifest_after_first = (web_project / "package.json").read_bytes()

        result = await _orchestrator(config, reporter, npm_installer).run()

        assert (web_project / "public" / "index.html").read_bytes() == index_after_first
        assert (web_project / "package.json").read_bytes() == manifest_after_first
        assert npm_installer.installed == ["video.js"]
        assert result.files_modified == []
        assert "video.js is already installed" in reporter.messages


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_run(self, android_config, reporter):
        orchestrator = _orchestrator(android_config, reporter)
        await orchestrator.run()
        with pytest.raises(RuntimeError):
            await orchestrator.run()

    @pytest.mark.unit
    def test_initial_state(self, android_config, reporter):
        orchestrator = _orchestrator(android_config, reporter)
        assert orchestrator.state is Stage.RESOLVING_PLATFORM
        assert orchestrator.target is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_frontend(self, tmp_path: Path, reporter):
        config = IntegrationConfig(
            project_root=tmp_path,
            frontend="windows",
            service={"service_type": "generic-stream", "output_endpoint": ENDPOINT},
        )
        orchestrator = _orchestrator(config, reporter)
        with pytest.raises(ValueError):
            await orchestrator.run()
        assert orchestrator.state is Stage.RESOLVING_PLATFORM

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_lists_created_files(self, android_config, reporter):
        await _orchestrator(android_config, reporter).run()
        output = reporter.console.file.getvalue()
        assert "VideoPlayerActivity.kt" in output
        assert "Platform: android" in reporter.messages[-3]
