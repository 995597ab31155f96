"""Android build adapter: ``AndroidManifest.xml`` and the app module's Gradle file.

The manifest is only read, to learn the application package.  The Gradle file
is treated as line-oriented text; the single structural thing located in it
is the top-level ``dependencies { }`` block, found with a brace scanner that
ignores braces inside strings and comments.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ElementTree
from pathlib import Path

from player_integration.errors import DescriptorParseError, ProjectStructureError
from player_integration.models import DependencyReference
from player_integration.adapters.base import BuildDescriptor, FormatAdapter

_NAMESPACE_RE = re.compile(r"""^\s*namespace\s*=?\s*["']([\w.]+)["']""", re.M)
_DEPENDENCIES_KEYWORD = re.compile(r"\bdependencies\s*$")


class AndroidBuildAdapter(FormatAdapter[str]):
    """Reads the manifest package and ensures Gradle dependency declarations."""

    name = "Gradle build file"

    # -- Manifest ----------------------------------------------------------

    def read_package_identifier(
        self,
        manifest_path: str | Path,
        gradle: BuildDescriptor[str] | None = None,
    ) -> str:
        """Return the application package declared by the manifest.

        Projects that moved the package to the Gradle ``namespace`` setting
        have no ``package`` attribute; *gradle* is consulted in that case.
        """
        path = Path(manifest_path)
        if not path.is_file():
            raise ProjectStructureError(f"Android manifest not found: {path}")
        try:
            root = ElementTree.parse(path).getroot()
        except ElementTree.ParseError as exc:
            raise DescriptorParseError(path, f"invalid XML: {exc}") from exc
        if root.tag != "manifest":
            raise DescriptorParseError(path, f"root element is <{root.tag}>, expected <manifest>")

        package = (root.get("package") or "").strip()
        if not package and gradle is not None:
            match = _NAMESPACE_RE.search(gradle.document)
            if match:
                package = match.group(1)
        if not package:
            raise ProjectStructureError(
                f"{path} declares no package and the build file declares no namespace"
            )
        return package

    # -- Gradle ------------------------------------------------------------

    def parse(self, source: str, path: Path) -> str:
        _scan_blocks(source, path)
        return source

    def render(self, descriptor: BuildDescriptor[str]) -> str:
        return descriptor.document

    def dependencies_block(self, descriptor: BuildDescriptor[str]) -> tuple[int, int]:
        """Offsets of the braces of the top-level ``dependencies { }`` block."""
        block = _dependencies_block(descriptor.document, descriptor.path)
        if block is None:
            raise DescriptorParseError(descriptor.path, "no top-level dependencies { } block")
        return block

    def has_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        """Substring match of ``group:artifact`` on uncommented lines, ignoring versions."""
        for line in descriptor.document.splitlines():
            if line.lstrip().startswith("//"):
                continue
            if dependency.identifier in line:
                return True
        return False

    def ensure_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        """Append an ``implementation`` line at the end of the dependencies block."""
        if self.has_dependency(descriptor, dependency):
            return False

        text = descriptor.document
        open_index, close_index = self.dependencies_block(descriptor)

        coordinate = dependency.coordinate
        if descriptor.path.suffix == ".kts":
            declaration = f'implementation("{coordinate}")'
        else:
            declaration = f"implementation '{coordinate}'"

        indent = _child_indent(text[open_index + 1:close_index]) or "    "
        line_start = text.rfind("\n", 0, close_index) + 1
        if text[line_start:close_index].strip():
            # Closing brace shares its line with other content.
            insertion = f"\n{indent}{declaration}\n"
            position = close_index
        else:
            insertion = f"{indent}{declaration}\n"
            position = line_start

        descriptor.document = text[:position] + insertion + text[position:]
        descriptor.schedule_write()
        return True


# ---------------------------------------------------------------------------
# Brace scanning
# ---------------------------------------------------------------------------

def _scan_blocks(text: str, path: Path) -> list[tuple[int, int, int]]:
    """Return ``(open, close, depth)`` for every brace pair outside strings and comments."""
    blocks: list[tuple[int, int, int]] = []
    stack: list[int] = []
    index = 0
    size = len(text)
    while index < size:
        char = text[index]
        if text.startswith("//", index):
            end = text.find("\n", index)
            index = size if end == -1 else end
            continue
        if text.startswith("/*", index):
            end = text.find("*/", index + 2)
            if end == -1:
                raise DescriptorParseError(path, "unterminated block comment")
            index = end + 2
            continue
        if char in "'\"":
            index = _skip_string(text, index, path)
            continue
        if char == "{":
            stack.append(index)
        elif char == "}":
            if not stack:
                raise DescriptorParseError(path, f"unbalanced '}}' at offset {index}")
            opened = stack.pop()
            blocks.append((opened, index, len(stack)))
        index += 1
    if stack:
        raise DescriptorParseError(path, f"unclosed '{{' at offset {stack[-1]}")
    return blocks


def _skip_string(text: str, index: int, path: Path) -> int:
    quote = text[index]
    if text.startswith(quote * 3, index):
        end = text.find(quote * 3, index + 3)
        if end == -1:
            raise DescriptorParseError(path, "unterminated string")
        return end + 3
    cursor = index + 1
    while cursor < len(text):
        char = text[cursor]
        if char == "\\":
            cursor += 2
            continue
        if char == quote:
            return cursor + 1
        if char == "\n":
            break
        cursor += 1
    raise DescriptorParseError(path, f"unterminated string at offset {index}")


def _dependencies_block(text: str, path: Path) -> tuple[int, int] | None:
    for open_index, close_index, depth in sorted(_scan_blocks(text, path)):
        if depth == 0 and _DEPENDENCIES_KEYWORD.search(text[max(0, open_index - 64):open_index]):
            return open_index, close_index
    return None


def _child_indent(body: str) -> str:
    """Smallest indentation among the non-blank lines of a block body."""
    indents = [
        line[: len(line) - len(line.lstrip())]
        for line in body.splitlines()
        if line.strip()
    ]
    indents = [indent for indent in indents if indent]
    return min(indents, key=len) if indents else ""
