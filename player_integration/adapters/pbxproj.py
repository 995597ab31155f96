"""Reader and writer for Xcode ``project.pbxproj`` files.

A project file is an old-style (OpenStep) property list whose ``objects``
dictionary holds every project object keyed by a 24-digit hexadecimal
identifier.  Objects reference each other by identifier only, so the graph is
kept as an arena (``PBXProjectGraph.objects``) with thin typed views on top
instead of objects pointing at each other.

Writing is span-based: the parser remembers where every object entry starts
and ends, and ``dumps`` only re-serialises objects that were modified or
added.  A graph loaded and dumped without mutation reproduces its source
byte for byte.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Iterator

from player_integration.errors import DescriptorParseError


# ---------------------------------------------------------------------------
# Lexical rules
# ---------------------------------------------------------------------------

_UNQUOTED = re.compile(r"[A-Za-z0-9_$+/:.\-]+")
_PLAIN_STRING = re.compile(r"^[A-Za-z0-9_$/.]+$")
_ANNOTATION = re.compile(r"[ \t]*/\*[ \t]*(.*?)[ \t]*\*/")
_BEGIN_SECTION = re.compile(r"^/\* Begin (\S+) section \*/", re.M)
_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t", "'": "'"}

# Object kinds Xcode writes on a single line.
SINGLE_LINE_ISAS = frozenset({"PBXBuildFile", "PBXFileReference"})

PHASE_NAMES: dict[str, str] = {
    "PBXSourcesBuildPhase": "Sources",
    "PBXFrameworksBuildPhase": "Frameworks",
    "PBXResourcesBuildPhase": "Resources",
    "PBXHeadersBuildPhase": "Headers",
    "PBXCopyFilesBuildPhase": "CopyFiles",
    "PBXShellScriptBuildPhase": "ShellScript",
}


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    single_line: bool


# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------


class PBXProjectGraph:
    """Arena of project objects indexed by identifier.

    Attributes:
        source: The text the graph was parsed from.
        root: Top-level dictionary; ``root["objects"] is objects``.
        objects: Identifier -> property dictionary.
        comments: Identifier -> annotation (``/* ... */``) seen in the source
            or registered for new objects.
    """

    def __init__(
        self,
        source: str,
        root: dict[str, Any],
        spans: dict[str, _Span],
        comments: dict[str, str],
        objects_close: int,
    ) -> None:
        self.source = source
        self.root = root
        self.objects: dict[str, dict[str, Any]] = root["objects"]
        self.comments = comments
        self._spans = spans
        self._objects_close = objects_close
        self._dirty: set[str] = set()
        self._added: list[str] = []

    # -- Arena access ------------------------------------------------------

    def get(self, object_id: str) -> dict[str, Any]:
        return self.objects[object_id]

    def isa(self, object_id: str) -> str:
        return str(self.objects.get(object_id, {}).get("isa", ""))

    def objects_of(self, isa: str) -> Iterator[str]:
        """Yield the identifiers of every object of kind *isa*, in file order."""
        for object_id, props in self.objects.items():
            if isinstance(props, dict) and props.get("isa") == isa:
                yield object_id

    def comment_for(self, object_id: str) -> str | None:
        return self.comments.get(object_id)

    @property
    def root_object(self) -> str:
        return str(self.root.get("rootObject", ""))

    # -- Mutation ----------------------------------------------------------

    def touch(self, object_id: str) -> None:
        """Mark an existing object as modified so ``dumps`` re-serialises it."""
        if object_id not in self._added:
            self._dirty.add(object_id)

    def add_object(self, props: dict[str, Any], comment: str | None = None) -> str:
        """Add a new object to the arena and return its identifier."""
        object_id = self.new_id()
        self.objects[object_id] = props
        if comment:
            self.comments[object_id] = comment
        self._added.append(object_id)
        return object_id

    def new_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex[:24].upper()
            if candidate not in self.objects:
                return candidate

    @property
    def changed(self) -> bool:
        return bool(self._dirty or self._added)

    # -- Typed views -------------------------------------------------------

    def groups(self) -> list["GroupView"]:
        return [GroupView(self, oid) for oid in self.objects_of("PBXGroup")]

    def native_targets(self) -> list["NativeTargetView"]:
        return [NativeTargetView(self, oid) for oid in self.objects_of("PBXNativeTarget")]

    def build_configurations(self) -> list["BuildConfigurationView"]:
        return [
            BuildConfigurationView(self, oid)
            for oid in self.objects_of("XCBuildConfiguration")
        ]

    def file_reference(self, object_id: str) -> FileReferenceView | None:
        if self.isa(object_id) != "PBXFileReference":
            return None
        return FileReferenceView(self, object_id)

    def build_file(self, object_id: str) -> BuildFileView | None:
        if self.isa(object_id) != "PBXBuildFile":
            return None
        return BuildFileView(self, object_id)


class ObjectView:
    """Typed window over one arena entry."""

    isa: ClassVar[str] = ""

    def __init__(self, graph: PBXProjectGraph, object_id: str) -> None:
        self.graph = graph
        self.id = object_id

    @property
    def props(self) -> dict[str, Any]:
        return self.graph.objects[self.id]

    def _str(self, key: str) -> str | None:
        value = self.props.get(key)
        return value if isinstance(value, str) else None

    def _ids(self, key: str) -> list[str]:
        value = self.props.get(key)
        return list(value) if isinstance(value, list) else []

    def _append(self, key: str, object_id: str, index: int | None = None) -> None:
        items = self.props.setdefault(key, [])
        if index is None:
            items.append(object_id)
        else:
            items.insert(index, object_id)
        self.graph.touch(self.id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ObjectView) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"


class FileReferenceView(ObjectView):
    isa = "PBXFileReference"

    @property
    def path(self) -> str | None:
        return self._str("path")

    @property
    def name(self) -> str | None:
        return self._str("name")

    @property
    def file_name(self) -> str:
        if self.name:
            return self.name
        return Path(self.path or "").name


class BuildFileView(ObjectView):
    isa = "PBXBuildFile"

    @property
    def file_ref(self) -> str | None:
        return self._str("fileRef")


class GroupView(ObjectView):
    isa = "PBXGroup"

    @property
    def path(self) -> str | None:
        return self._str("path")

    @property
    def name(self) -> str | None:
        return self._str("name")

    @property
    def children(self) -> list[str]:
        return self._ids("children")

    def add_child(self, object_id: str, index: int | None = None) -> None:
        self._append("children", object_id, index)

    def child_references(self) -> list[FileReferenceView]:
        refs = (self.graph.file_reference(oid) for oid in self.children)
        return [ref for ref in refs if ref is not None]


class BuildPhaseView(ObjectView):
    """Any ``PBX*BuildPhase`` object."""

    @property
    def kind(self) -> str:
        return self.graph.isa(self.id)

    @property
    def display_name(self) -> str:
        return self._str("name") or PHASE_NAMES.get(self.kind, self.kind)

    @property
    def files(self) -> list[str]:
        return self._ids("files")

    def add_file(self, build_file_id: str) -> None:
        self._append("files", build_file_id)

    def file_refs(self) -> list[str]:
        """Identifiers of the file references built by this phase."""
        refs = []
        for oid in self.files:
            build_file = self.graph.build_file(oid)
            if build_file is not None and build_file.file_ref:
                refs.append(build_file.file_ref)
        return refs


class NativeTargetView(ObjectView):
    isa = "PBXNativeTarget"

    @property
    def name(self) -> str | None:
        return self._str("name")

    @property
    def build_phases(self) -> list[BuildPhaseView]:
        return [BuildPhaseView(self.graph, oid) for oid in self._ids("buildPhases")]

    def phase(self, kind: str) -> BuildPhaseView | None:
        for phase in self.build_phases:
            if phase.kind == kind:
                return phase
        return None


class BuildConfigurationView(ObjectView):
    isa = "XCBuildConfiguration"

    @property
    def name(self) -> str | None:
        return self._str("name")

    @property
    def build_settings(self) -> dict[str, Any]:
        settings = self.props.get("buildSettings")
        return settings if isinstance(settings, dict) else {}

    def set_setting(self, key: str, value: Any) -> bool:
        """Set a build setting.  Returns ``False`` when it already had *value*."""
        settings = self.props.setdefault("buildSettings", {})
        if settings.get(key) == value:
            return False
        settings[key] = value
        self.graph.touch(self.id)
        return True


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, text: str, path: Path) -> None:
        self.text = text
        self.path = path
        self.pos = 0
        self.comments: dict[str, str] = {}
        self.spans: dict[str, _Span] = {}
        self.objects_close = -1

    def error(self, message: str) -> DescriptorParseError:
        line = self.text.count("\n", 0, self.pos) + 1
        return DescriptorParseError(self.path, f"line {line}: {message}")

    def skip(self) -> None:
        """Skip whitespace, ``//`` line comments and ``/* */`` block comments."""
        text = self.text
        size = len(text)
        while self.pos < size:
            if text[self.pos].isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = size if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                end = text.find("*/", self.pos + 2)
                if end == -1:
                    raise self.error("unterminated comment")
                self.pos = end + 2
            else:
                break

    def peek(self) -> str:
        self.skip()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise self.error(f"expected {char!r}")
        self.pos += 1

    def parse_document(self) -> dict[str, Any]:
        root = self.parse_dict(top_level=True)
        if self.peek():
            raise self.error("unexpected content after the root dictionary")
        if not isinstance(root.get("objects"), dict):
            raise self.error("the project has no objects dictionary")
        return root

    def parse_value(self, record_spans: bool = False) -> Any:
        char = self.peek()
        if char == "{":
            return self.parse_dict(record_spans=record_spans)
        if char == "(":
            return self.parse_list()
        if not char:
            raise self.error("unexpected end of file")
        return self.parse_string()

    def parse_dict(self, record_spans: bool = False, top_level: bool = False) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        while True:
            char = self.peek()
            if char == "}":
                if record_spans:
                    self.objects_close = self.pos
                self.pos += 1
                return result
            if not char:
                raise self.error("unterminated dictionary")
            start = self.pos
            key = self.parse_string()
            self.expect("=")
            value = self.parse_value(record_spans=top_level and key == "objects")
            self.expect(";")
            if record_spans:
                entry = self.text[start:self.pos]
                self.spans[key] = _Span(start, self.pos, "\n" not in entry)
            result[key] = value

    def parse_list(self) -> list[Any]:
        self.expect("(")
        items: list[Any] = []
        while True:
            char = self.peek()
            if char == ")":
                self.pos += 1
                return items
            if not char:
                raise self.error("unterminated list")
            items.append(self.parse_value())
            char = self.peek()
            if char == ",":
                self.pos += 1
            elif char != ")":
                raise self.error("expected ',' or ')'")

    def parse_string(self) -> str:
        self.skip()
        text = self.text
        if self.pos < len(text) and text[self.pos] == '"':
            value = self._quoted()
        else:
            match = _UNQUOTED.match(text, self.pos)
            if not match:
                found = repr(text[self.pos]) if self.pos < len(text) else "end of file"
                raise self.error(f"unexpected {found}")
            value = match.group()
            self.pos = match.end()
        annotation = _ANNOTATION.match(text, self.pos)
        if annotation and value not in self.comments:
            self.comments[value] = annotation.group(1)
        return value

    def _quoted(self) -> str:
        text = self.text
        index = self.pos + 1
        chunks: list[str] = []
        while True:
            if index >= len(text):
                raise self.error("unterminated string")
            char = text[index]
            if char == '"':
                break
            if char == "\\" and index + 1 < len(text):
                escaped = text[index + 1]
                chunks.append(_ESCAPES.get(escaped, escaped))
                index += 2
                continue
            chunks.append(char)
            index += 1
        self.pos = index + 1
        return "".join(chunks)


def loads(text: str, path: str | Path = "project.pbxproj") -> PBXProjectGraph:
    """Parse a project file.

    Raises:
        DescriptorParseError: If *text* is not a valid project file.
    """
    parser = _Parser(text, Path(path))
    root = parser.parse_document()
    return PBXProjectGraph(
        source=text,
        root=root,
        spans=parser.spans,
        comments=parser.comments,
        objects_close=parser.objects_close,
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def format_string(value: str) -> str:
    """Quote *value* the way Xcode does when it contains special characters."""
    if value and _PLAIN_STRING.match(value):
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


class _Writer:
    def __init__(self, graph: PBXProjectGraph) -> None:
        self.graph = graph

    def entry(self, object_id: str, single_line: bool) -> str:
        key = self.reference(object_id)
        return f"{key} = {self.dict(self.graph.objects[object_id], 2, single_line)};"

    def reference(self, value: str) -> str:
        text = format_string(value)
        comment = self.graph.comment_for(value) if value in self.graph.objects else None
        return f"{text} /* {comment} */" if comment else text

    def value(self, value: Any, depth: int, inline: bool) -> str:
        if isinstance(value, dict):
            return self.dict(value, depth, inline)
        if isinstance(value, list):
            return self.list(value, depth, inline)
        return self.reference(str(value))

    def dict(self, value: dict[str, Any], depth: int, inline: bool) -> str:
        if inline:
            body = "".join(
                f"{format_string(k)} = {self.value(v, depth, True)}; " for k, v in value.items()
            )
            return "{" + body + "}"
        indent = "\t" * (depth + 1)
        lines = ["{"]
        for key, item in value.items():
            lines.append(f"{indent}{format_string(key)} = {self.value(item, depth + 1, False)};")
        lines.append("\t" * depth + "}")
        return "\n".join(lines)

    def list(self, value: list[Any], depth: int, inline: bool) -> str:
        if inline:
            return "(" + "".join(f"{self.value(v, depth, True)}, " for v in value) + ")"
        indent = "\t" * (depth + 1)
        lines = ["("]
        for item in value:
            lines.append(f"{indent}{self.value(item, depth + 1, False)},")
        lines.append("\t" * depth + ")")
        return "\n".join(lines)


def _next_section_start(text: str, isa: str) -> int | None:
    for match in _BEGIN_SECTION.finditer(text):
        if match.group(1) > isa:
            return match.start()
    return None


def dumps(graph: PBXProjectGraph) -> str:
    """Serialise *graph*, rewriting only modified and added objects."""
    text = graph.source
    if not graph.changed:
        return text

    writer = _Writer(graph)
    # (start, sequence, end, replacement); sequence keeps same-offset inserts ordered.
    edits: list[tuple[int, int, int, str]] = []

    for object_id in graph._dirty:
        span = graph._spans[object_id]
        edits.append((span.start, len(edits), span.end, writer.entry(object_id, span.single_line)))

    added: dict[str, list[str]] = {}
    for object_id in graph._added:
        added.setdefault(graph.isa(object_id), []).append(object_id)

    for isa in sorted(added):
        block = "".join(
            f"\t\t{writer.entry(oid, isa in SINGLE_LINE_ISAS)}\n" for oid in added[isa]
        )
        end_marker = re.search(rf"^/\* End {re.escape(isa)} section \*/", text, re.M)
        if end_marker:
            edits.append((end_marker.start(), len(edits), end_marker.start(), block))
            continue
        section = f"/* Begin {isa} section */\n{block}/* End {isa} section */\n"
        following = _next_section_start(text, isa)
        if following is not None:
            edits.append((following, len(edits), following, section + "\n"))
        else:
            line_start = text.rfind("\n", 0, graph._objects_close) + 1
            edits.append((line_start, len(edits), line_start, "\n" + section))

    chunks: list[str] = []
    cursor = 0
    for start, _, end, replacement in sorted(edits):
        chunks.append(text[cursor:start])
        chunks.append(replacement)
        cursor = end
    chunks.append(text[cursor:])
    return "".join(chunks)
