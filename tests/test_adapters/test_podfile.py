"""Unit tests for PodfileAdapter (player_integration.adapters.podfile)."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeInstaller
from player_integration.adapters.base import BuildDescriptor
from player_integration.adapters.podfile import PodfileAdapter
from player_integration.errors import AnchorNotFoundError, DescriptorParseError
from player_integration.models import DependencyReference

IVS = DependencyReference(identifier="AmazonIVSPlayer")
VLC = DependencyReference(identifier="MobileVLCKit", version="3.3.0", platform_version="8.4")


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def adapter(installer: FakeInstaller) -> PodfileAdapter:
    return PodfileAdapter(installer, target_name="HelloWorld")


def _descriptor(adapter: PodfileAdapter, text: str) -> BuildDescriptor[str]:
    path = Path("Podfile")
    return BuildDescriptor(path=path, source=text, document=adapter.parse(text, path))


class TestTargets:
    @pytest.mark.unit
    def test_find_named_target(self, adapter, fixtures_dir):
        descriptor = adapter.load(fixtures_dir / "ios" / "Podfile")
        block = adapter.find_target(descriptor)
        assert block.name == "HelloWorld"
        assert block.depth == 0
        assert descriptor.document.splitlines()[block.end_line] == "end"

    @pytest.mark.unit
    def test_single_target_without_name(self, installer, fixtures_dir):
        adapter = PodfileAdapter(installer)
        descriptor = adapter.load(fixtures_dir / "ios" / "Podfile")
        assert adapter.find_target(descriptor).name == "HelloWorld"

    @pytest.mark.unit
    def test_ambiguous_targets_without_name(self, installer):
        adapter = PodfileAdapter(installer)
        descriptor = _descriptor(adapter, "target 'A' do\nend\n\ntarget 'B' do\nend\n")
        with pytest.raises(AnchorNotFoundError) as exc_info:
            adapter.find_target(descriptor)
        assert exc_info.value.matches == 2

    @pytest.mark.unit
    def test_missing_named_target(self, installer):
        adapter = PodfileAdapter(installer, target_name="Other")
        descriptor = _descriptor(adapter, "target 'A' do\nend\n")
        with pytest.raises(AnchorNotFoundError):
            adapter.find_target(descriptor)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            "target 'A' do\n",
            "end\n",
            "target 'A' do\n  if ENV['CI']\n    pod 'X'\nend\n",
        ],
    )
    def test_unbalanced_blocks(self, adapter, text):
        with pytest.raises(DescriptorParseError):
            adapter.parse(text, Path("Podfile"))

    @pytest.mark.unit
    def test_trailing_comments(self, installer, tmp_path):
        podfile = tmp_path / "Podfile"
        podfile.write_text(
            "platform :ios, '12.0'\n"
            "\n"
            "target 'App' do # main app\n"
            "  use_frameworks!\n"
            "  pod 'Charts', :git => 'https://example.com/charts.git#v4' # pinned fork, do not bump\n"
            "end # App\n",
            encoding="utf-8",
        )
        adapter = PodfileAdapter(installer, target_name="App")
        descriptor = adapter.load(podfile)

        block = adapter.find_target(descriptor)
        assert (block.start_line, block.end_line) == (2, 5)

        assert adapter.ensure_dependency(descriptor, IVS)
        lines = descriptor.document.splitlines()
        assert lines[5] == "  pod 'AmazonIVSPlayer'"
        assert lines[6] == "end # App"

    @pytest.mark.unit
    def test_missing_podfile_starts_from_skeleton(self, adapter, tmp_path):
        descriptor = adapter.load(tmp_path / "Podfile")
        assert descriptor.source == ""
        assert descriptor.dirty
        assert "target 'HelloWorld' do" in descriptor.document

    @pytest.mark.unit
    def test_missing_podfile_without_target_name(self, installer, tmp_path):
        with pytest.raises(AnchorNotFoundError):
            PodfileAdapter(installer).load(tmp_path / "Podfile")


class TestDependencies:
    @pytest.mark.unit
    def test_vlc_pod_and_platform_floor(self, adapter, fixtures_dir):
        descriptor = adapter.load(fixtures_dir / "ios" / "Podfile")
        assert adapter.ensure_dependency(descriptor, VLC)
        lines = descriptor.document.splitlines()
        assert lines[1] == "platform :ios, '8.4'"
        alamofire = lines.index("  pod 'Alamofire', '~> 5.4'")
        assert lines[alamofire + 1] == "  pod 'MobileVLCKit', '3.3.0'"
        # The nested test target is left alone.
        assert "    pod 'Quick'" in lines

    @pytest.mark.unit
    def test_ivs_pod_without_platform(self, adapter, fixtures_dir):
        descriptor = adapter.load(fixtures_dir / "ios" / "Podfile")
        adapter.ensure_dependency(descriptor, IVS)
        assert "  pod 'AmazonIVSPlayer'\n" in descriptor.document
        assert "# platform :ios, '9.0'" in descriptor.document

    @pytest.mark.unit
    def test_idempotent(self, adapter, fixtures_dir):
        descriptor = adapter.load(fixtures_dir / "ios" / "Podfile")
        adapter.ensure_dependency(descriptor, VLC)
        once = descriptor.document
        assert not adapter.ensure_dependency(descriptor, VLC)
        assert descriptor.document == once

    @pytest.mark.unit
    def test_higher_platform_is_kept(self, adapter):
        descriptor = _descriptor(adapter, "platform :ios, '12.0'\n\ntarget 'HelloWorld' do\nend\n")
        adapter.ensure_dependency(descriptor, VLC)
        assert descriptor.document.startswith("platform :ios, '12.0'\n")

    @pytest.mark.unit
    def test_lower_platform_is_raised(self, adapter):
        descriptor = _descriptor(adapter, "platform :ios, '8.0'\ntarget 'HelloWorld' do\nend\n")
        adapter.ensure_dependency(descriptor, VLC)
        assert descriptor.document == (
            "platform :ios, '8.4'\ntarget 'HelloWorld' do\n  pod 'MobileVLCKit', '3.3.0'\nend\n"
        )

    @pytest.mark.unit
    def test_platform_added_when_absent(self, adapter):
        descriptor = _descriptor(adapter, "target 'HelloWorld' do\nend\n")
        adapter.ensure_dependency(descriptor, VLC)
        assert descriptor.document.startswith("platform :ios, '8.4'\n\ntarget 'HelloWorld' do\n")

    @pytest.mark.unit
    def test_subspec_and_comments(self, adapter):
        descriptor = _descriptor(
            adapter,
            "target 'HelloWorld' do\n  # pod 'MobileVLCKit'\n  pod 'AmazonIVSPlayer/Core'\nend\n",
        )
        assert adapter.has_dependency(descriptor, IVS)
        assert not adapter.has_dependency(descriptor, VLC)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_commit_writes_then_installs(self, adapter, installer, ios_project):
        podfile = ios_project / "Podfile"
        descriptor = adapter.load(podfile)
        adapter.ensure_dependency(descriptor, IVS)
        assert await adapter.commit(descriptor)
        assert "pod 'AmazonIVSPlayer'" in podfile.read_text(encoding="utf-8")
        assert installer.calls == [(IVS, ios_project)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_commit_creates_missing_podfile(self, adapter, installer, tmp_path):
        descriptor = adapter.load(tmp_path / "Podfile")
        adapter.ensure_dependency(descriptor, IVS)
        assert await adapter.commit(descriptor)
        text = (tmp_path / "Podfile").read_text(encoding="utf-8")
        assert "  use_frameworks!\n  pod 'AmazonIVSPlayer'\n" in text
        assert installer.installed == ["AmazonIVSPlayer"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unchanged_podfile_still_installs(self, adapter, installer, ios_project):
        podfile = ios_project / "Podfile"
        descriptor = adapter.load(podfile)
        adapter.ensure_dependency(descriptor, IVS)
        await adapter.commit(descriptor)

        again = adapter.load(podfile)
        assert not adapter.ensure_dependency(again, IVS)
        assert not await adapter.commit(again)
        assert len(installer.calls) == 2
