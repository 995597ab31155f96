"""Native project graph adapter (Xcode ``project.pbxproj``).

All insertions attach to the *anchor group*: the single ``PBXGroup`` whose
declared ``path`` equals the application name.  An ambiguous or missing
anchor is a hard error; picking the wrong group would silently break the
build.
"""

from __future__ import annotations

from pathlib import Path

from player_integration.errors import AnchorNotFoundError
from player_integration.models import DependencyReference, InsertionPoint, Position
from player_integration.adapters import pbxproj
from player_integration.adapters.base import BuildDescriptor, FormatAdapter
from player_integration.adapters.pbxproj import BuildPhaseView, GroupView, NativeTargetView, PBXProjectGraph

APPLICATION_PRODUCT = "com.apple.product-type.application"

FILE_TYPES: dict[str, str] = {
    ".swift": "sourcecode.swift",
    ".m": "sourcecode.c.objc",
    ".mm": "sourcecode.cpp.objcpp",
    ".c": "sourcecode.c.c",
    ".cpp": "sourcecode.cpp.cpp",
    ".cc": "sourcecode.cpp.cpp",
    ".h": "sourcecode.c.h",
    ".hpp": "sourcecode.cpp.h",
    ".framework": "wrapper.framework",
}

# Files compiled by the Sources build phase.  Everything else (headers
# included) is only referenced from the group.
SOURCE_EXTENSIONS = frozenset({".swift", ".m", ".mm", ".c", ".cpp", ".cc"})


class NativeProjectGraphAdapter(FormatAdapter[PBXProjectGraph]):
    """Idempotent mutations of an Xcode project object graph."""

    name = "Xcode project"

    def parse(self, source: str, path: Path) -> PBXProjectGraph:
        return pbxproj.loads(source, path)

    def render(self, descriptor: BuildDescriptor[PBXProjectGraph]) -> str:
        return pbxproj.dumps(descriptor.document)

    # -- Anchors -----------------------------------------------------------

    def find_anchor_group(self, descriptor: BuildDescriptor[PBXProjectGraph], anchor: str) -> GroupView:
        """Return the unique group whose ``path`` equals *anchor*."""
        matches = [group for group in descriptor.document.groups() if group.path == anchor]
        if len(matches) != 1:
            problem = "no group" if not matches else f"{len(matches)} groups"
            raise AnchorNotFoundError(
                f"{descriptor.path}: expected exactly one group with path {anchor!r}, found {problem}",
                anchor=anchor,
                matches=len(matches),
            )
        return matches[0]

    def find_target(
        self, descriptor: BuildDescriptor[PBXProjectGraph], name: str | None = None
    ) -> NativeTargetView:
        """Return the target named *name*, falling back to the only application target."""
        targets = descriptor.document.native_targets()
        if name:
            named = [t for t in targets if t.name == name]
            if len(named) == 1:
                return named[0]
        apps = [t for t in targets if t.props.get("productType") == APPLICATION_PRODUCT]
        if len(apps) == 1:
            return apps[0]
        if len(targets) == 1:
            return targets[0]
        raise AnchorNotFoundError(
            f"{descriptor.path}: cannot determine the application target "
            f"({len(targets)} native targets)",
            anchor=name or "",
            matches=len(targets),
        )

    def check_anchor(self, descriptor: BuildDescriptor[PBXProjectGraph], anchor: str) -> None:
        """Locate everything a source insertion at *anchor* needs, without mutating."""
        self.find_anchor_group(descriptor, anchor)
        self._phase(descriptor, self.find_target(descriptor, anchor), "PBXSourcesBuildPhase")

    def _phase(
        self, descriptor: BuildDescriptor[PBXProjectGraph], target: NativeTargetView, kind: str
    ) -> BuildPhaseView:
        phase = target.phase(kind)
        if phase is None:
            raise AnchorNotFoundError(
                f"{descriptor.path}: target {target.name!r} has no {kind}",
                anchor=kind,
            )
        return phase

    # -- Source artifacts --------------------------------------------------

    async def insert_source_artifact(
        self,
        descriptor: BuildDescriptor[PBXProjectGraph],
        path: str | Path,
        content: str,
        insertion_point: InsertionPoint,
    ) -> Path:
        """Write the file, then register it in the anchor group (and Sources phase)."""
        self.check_anchor(descriptor, insertion_point.anchor)
        written = await super().insert_source_artifact(descriptor, path, content, insertion_point)
        self.register_file(descriptor, Path(path).name, insertion_point)
        return written

    def register_file(
        self,
        descriptor: BuildDescriptor[PBXProjectGraph],
        file_name: str,
        insertion_point: InsertionPoint,
    ) -> bool:
        """Register *file_name* under the anchor group.  Returns whether anything changed."""
        graph = descriptor.document
        group = self.find_anchor_group(descriptor, insertion_point.anchor)
        changed = False

        ref_id = _find_child(group, file_name)
        if ref_id is None:
            ref_id = graph.add_object(
                {
                    "isa": "PBXFileReference",
                    "fileEncoding": "4",
                    "lastKnownFileType": file_type(file_name),
                    "path": file_name,
                    "sourceTree": "<group>",
                },
                comment=file_name,
            )
            index = 0 if insertion_point.position is Position.BEFORE else None
            group.add_child(ref_id, index)
            changed = True

        if Path(file_name).suffix in SOURCE_EXTENSIONS:
            target = self.find_target(descriptor, insertion_point.anchor)
            phase = self._phase(descriptor, target, "PBXSourcesBuildPhase")
            if ref_id not in phase.file_refs():
                build_id = graph.add_object(
                    {"isa": "PBXBuildFile", "fileRef": ref_id},
                    comment=f"{file_name} in {phase.display_name}",
                )
                phase.add_file(build_id)
                changed = True

        if changed:
            descriptor.schedule_write()
        return changed

    # -- Build settings ----------------------------------------------------

    def set_build_property(
        self,
        descriptor: BuildDescriptor[PBXProjectGraph],
        key: str,
        value: str,
        configuration: str,
    ) -> bool:
        """Set *key* to *value* in every build configuration named *configuration*."""
        configs = [c for c in descriptor.document.build_configurations() if c.name == configuration]
        if not configs:
            raise AnchorNotFoundError(
                f"{descriptor.path}: no build configuration named {configuration!r}",
                anchor=configuration,
            )
        changed = False
        for config in configs:
            changed = config.set_setting(key, value) or changed
        if changed:
            descriptor.schedule_write()
        return changed

    # -- Linked frameworks -------------------------------------------------

    def has_dependency(
        self, descriptor: BuildDescriptor[PBXProjectGraph], dependency: DependencyReference
    ) -> bool:
        """A dependency is present when ``<identifier>.framework`` is linked by the app target."""
        target = self.find_target(descriptor)
        phase = target.phase("PBXFrameworksBuildPhase")
        if phase is None:
            return False
        wanted = _framework_name(dependency)
        graph = descriptor.document
        for ref_id in phase.file_refs():
            ref = graph.file_reference(ref_id)
            if ref is not None and ref.file_name == wanted:
                return True
        return False

    def ensure_dependency(
        self, descriptor: BuildDescriptor[PBXProjectGraph], dependency: DependencyReference
    ) -> bool:
        if self.has_dependency(descriptor, dependency):
            return False
        graph = descriptor.document
        target = self.find_target(descriptor)
        phase = self._phase(descriptor, target, "PBXFrameworksBuildPhase")
        framework = _framework_name(dependency)

        ref_id = graph.add_object(
            {
                "isa": "PBXFileReference",
                "lastKnownFileType": FILE_TYPES[".framework"],
                "path": framework,
                "sourceTree": "BUILT_PRODUCTS_DIR",
            },
            comment=framework,
        )
        self._frameworks_group(descriptor).add_child(ref_id)
        build_id = graph.add_object(
            {"isa": "PBXBuildFile", "fileRef": ref_id},
            comment=f"{framework} in {phase.display_name}",
        )
        phase.add_file(build_id)
        descriptor.schedule_write()
        return True

    def _frameworks_group(self, descriptor: BuildDescriptor[PBXProjectGraph]) -> GroupView:
        graph = descriptor.document
        for group in graph.groups():
            if group.name == "Frameworks" and not group.path:
                return group
        main_group = graph.get(graph.root_object).get("mainGroup") if graph.root_object in graph.objects else None
        if not isinstance(main_group, str) or graph.isa(main_group) != "PBXGroup":
            raise AnchorNotFoundError(f"{descriptor.path}: project has no main group", anchor="mainGroup")
        return GroupView(graph, main_group)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def file_type(file_name: str) -> str:
    """Xcode ``lastKnownFileType`` for *file_name*."""
    return FILE_TYPES.get(Path(file_name).suffix, "text")


def _framework_name(dependency: DependencyReference) -> str:
    identifier = dependency.identifier
    return identifier if identifier.endswith(".framework") else f"{identifier}.framework"


def _find_child(group: GroupView, file_name: str) -> str | None:
    for ref in group.child_references():
        if ref.path == file_name or ref.name == file_name:
            return ref.id
    return None
