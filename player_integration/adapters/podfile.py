"""CocoaPods ``Podfile`` adapter.

The Podfile is Ruby, handled here as lines: ``target 'Name' do`` blocks are
located by pairing block openers with ``end`` lines, and ``pod`` declarations
are inserted into the application's target block.  After the Podfile is
written, ``pod install`` (through the injected installer) integrates the
library into the Xcode workspace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from player_integration.errors import AnchorNotFoundError, DescriptorParseError
from player_integration.installers import PackageInstaller
from player_integration.models import DependencyReference
from player_integration.adapters.base import BuildDescriptor, FormatAdapter

_TARGET_RE = re.compile(r"""^(\s*)target\s+['"]([^'"]+)['"]\s+do\b""")
_POD_RE = re.compile(r"""^\s*pod\s+['"]([^'"]+)['"]""")
_PLATFORM_RE = re.compile(r"""^(\s*)(#\s*)?platform\s+:ios\b(?:\s*,\s*['"]([^'"]*)['"])?""")
_USE_FRAMEWORKS_RE = re.compile(r"^\s*use_frameworks!")
_BLOCK_OPENER_RE = re.compile(
    r"(\bdo(\s*\|[^|]*\|)?\s*$)|(^\s*(if|unless|def|case|begin|while|until|class|module)\b)"
)
_END_RE = re.compile(r"^\s*end\b")

# What ``pod init`` generates for a single-target application.
SKELETON = """\
# Uncomment the next line to define a global platform for your project
# platform :ios, '9.0'

target '{target}' do
  # Comment the next line if you don't want to use dynamic frameworks
  use_frameworks!

end
"""


@dataclass(frozen=True)
class TargetBlock:
    """Line indexes of a ``target ... do`` block (``end_line`` holds ``end``)."""

    name: str
    start_line: int
    end_line: int
    depth: int


class PodfileAdapter(FormatAdapter[str]):
    """Ensures ``pod`` declarations and the iOS platform floor."""

    name = "Podfile"

    def __init__(self, installer: PackageInstaller, target_name: str | None = None) -> None:
        self.installer = installer
        self.target_name = target_name
        self._requested: dict[Path, list[DependencyReference]] = {}

    # -- Loading -----------------------------------------------------------

    def load(self, path: str | Path) -> BuildDescriptor[str]:
        """Read the Podfile, or start from the ``pod init`` skeleton when there is none."""
        file_path = Path(path)
        if file_path.is_file():
            return super().load(file_path)
        if not self.target_name:
            raise AnchorNotFoundError(
                f"{file_path} does not exist and no target name was given", anchor="target"
            )
        text = SKELETON.format(target=self.target_name)
        return BuildDescriptor(path=file_path, source="", document=self.parse(text, file_path), dirty=True)

    def parse(self, source: str, path: Path) -> str:
        _target_blocks(source, path)
        return source

    def render(self, descriptor: BuildDescriptor[str]) -> str:
        return descriptor.document

    # -- Lookup ------------------------------------------------------------

    def find_target(self, descriptor: BuildDescriptor[str]) -> TargetBlock:
        """Return the application's target block."""
        blocks = _target_blocks(descriptor.document, descriptor.path)
        if self.target_name:
            named = [b for b in blocks if b.name == self.target_name]
            if len(named) == 1:
                return named[0]
            raise AnchorNotFoundError(
                f"{descriptor.path}: expected one target {self.target_name!r}, found {len(named)}",
                anchor=self.target_name,
                matches=len(named),
            )
        top_level = [b for b in blocks if b.depth == 0]
        if len(top_level) != 1:
            raise AnchorNotFoundError(
                f"{descriptor.path}: cannot choose among {len(top_level)} targets",
                anchor="target",
                matches=len(top_level),
            )
        return top_level[0]

    # -- Dependency contract -----------------------------------------------

    def has_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        for line in descriptor.document.splitlines():
            match = _POD_RE.match(line)
            if match and match.group(1).split("/")[0] == dependency.identifier:
                return True
        return False

    def ensure_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        """Declare the pod in the target block and raise the platform floor if needed."""
        requested = self._requested.setdefault(descriptor.path, [])
        if dependency not in requested:
            requested.append(dependency)

        changed = False
        if not self.has_dependency(descriptor, dependency):
            self._insert_pod(descriptor, dependency)
            changed = True
        if dependency.platform_version:
            changed = self._ensure_platform(descriptor, dependency.platform_version) or changed
        if changed:
            descriptor.schedule_write()
        return changed

    def _insert_pod(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> None:
        block = self.find_target(descriptor)
        lines = descriptor.document.splitlines(keepends=True)
        target_indent = _TARGET_RE.match(lines[block.start_line]).group(1)

        anchor_line: int | None = None
        for index in _direct_children(lines, block):
            if _POD_RE.match(lines[index]):
                anchor_line = index
        if anchor_line is None:
            for index in _direct_children(lines, block):
                if _USE_FRAMEWORKS_RE.match(lines[index]):
                    anchor_line = index
                    break

        if anchor_line is None:
            anchor_line = block.start_line
            indent = target_indent + "  "
        else:
            line = lines[anchor_line]
            indent = line[: len(line) - len(line.lstrip())]

        declaration = f"{indent}pod '{dependency.identifier}'"
        if dependency.version:
            declaration += f", '{dependency.version}'"
        if not lines[anchor_line].endswith("\n"):
            lines[anchor_line] += "\n"
        lines.insert(anchor_line + 1, declaration + "\n")
        descriptor.document = "".join(lines)

    def _ensure_platform(self, descriptor: BuildDescriptor[str], floor: str) -> bool:
        lines = descriptor.document.splitlines(keepends=True)
        active: int | None = None
        commented: int | None = None
        for index, line in enumerate(lines):
            match = _PLATFORM_RE.match(line)
            if not match:
                continue
            if match.group(2):
                commented = index if commented is None else commented
            elif active is None:
                active = index

        wanted = f"platform :ios, '{floor}'\n"
        if active is not None:
            current = _PLATFORM_RE.match(lines[active]).group(3) or ""
            if current and _version_key(current) >= _version_key(floor):
                return False
            indent = _PLATFORM_RE.match(lines[active]).group(1)
            lines[active] = indent + wanted
        elif commented is not None:
            lines[commented] = _PLATFORM_RE.match(lines[commented]).group(1) + wanted
        else:
            lines.insert(0, wanted + "\n")
        descriptor.document = "".join(lines)
        return True

    # -- Write-back --------------------------------------------------------

    async def commit(self, descriptor: BuildDescriptor[str]) -> bool:
        """Write the Podfile, then run the installer for the requested pods."""
        written = await super().commit(descriptor)
        for dependency in self._requested.pop(descriptor.path, []):
            await self.installer.ensure_package(dependency, descriptor.path.parent)
        return written


# ---------------------------------------------------------------------------
# Block scanning
# ---------------------------------------------------------------------------

def _target_blocks(text: str, path: Path) -> list[TargetBlock]:
    """Pair block openers with ``end`` lines and return every target block."""
    blocks: list[TargetBlock] = []
    stack: list[tuple[int, str | None]] = []
    for index, line in enumerate(text.splitlines()):
        code = _code(line)
        if not code.strip():
            continue
        if _END_RE.match(code):
            if not stack:
                raise DescriptorParseError(path, f"line {index + 1}: 'end' without an open block")
            start, name = stack.pop()
            if name is not None:
                depth = sum(1 for _, n in stack if n is not None)
                blocks.append(TargetBlock(name, start, index, depth))
            continue
        if _BLOCK_OPENER_RE.search(code):
            target = _TARGET_RE.match(code)
            stack.append((index, target.group(2) if target else None))
    if stack:
        raise DescriptorParseError(path, f"line {stack[-1][0] + 1}: block is never closed")
    return sorted(blocks, key=lambda b: b.start_line)


def _direct_children(lines: list[str], block: TargetBlock) -> list[int]:
    """Indexes of the lines directly inside *block* (not inside nested blocks)."""
    children: list[int] = []
    depth = 0
    for index in range(block.start_line + 1, block.end_line):
        code = _code(lines[index])
        if not code.strip():
            continue
        if _END_RE.match(code):
            depth -= 1
            continue
        if depth == 0:
            children.append(index)
        if _BLOCK_OPENER_RE.search(code):
            depth += 1
    return children


def _code(line: str) -> str:
    """The line without its comment; a ``#`` inside a string literal is kept."""
    quote = ""
    escaped = False
    for index, char in enumerate(line):
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
        elif char in "'\"":
            quote = char
        elif char == "#":
            return line[:index].rstrip()
    return line


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))
