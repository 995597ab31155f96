"""Markup entry point adapter (``index.html``).

The document is only parsed to find the offsets of a container element; all
edits are literal text insertions, so everything outside the inserted
fragment is preserved exactly.  Presence checks are literal substring
matches of a fragment *signature* (for scripts, the script file name).
"""

from __future__ import annotations

from dataclasses import dataclass
from html.parser import HTMLParser
from pathlib import Path

from player_integration.errors import AnchorNotFoundError, DescriptorParseError
from player_integration.models import DependencyReference, Position
from player_integration.adapters.base import BuildDescriptor, FormatAdapter

BODY = "body"


@dataclass(frozen=True)
class ElementSpan:
    """Character offsets of an element in the document."""

    open_start: int
    open_end: int
    close_start: int
    close_end: int


class _ElementLocator(HTMLParser):
    """Finds the first element named *tag* and its matching end tag."""

    def __init__(self, tag: str) -> None:
        super().__init__(convert_charrefs=True)
        self.tag = tag
        self.start: tuple[int, int] | None = None
        self.start_text = ""
        self.end: tuple[int, int] | None = None
        self._depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag != self.tag or self.end is not None:
            return
        if self.start is None:
            self.start = self.getpos()
            self.start_text = self.get_starttag_text() or ""
        self._depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag != self.tag or self.start is None or self.end is not None:
            return
        self._depth -= 1
        if self._depth == 0:
            self.end = self.getpos()


def script_tag(url: str) -> str:
    return f'<script src="{url}"></script>'


def script_signature(url: str) -> str:
    """Signature identifying a script regardless of the host serving it."""
    return url.rstrip("/").rsplit("/", 1)[-1]


class MarkupAdapter(FormatAdapter[str]):
    """Idempotent insertion of literal fragments into an HTML document."""

    name = "HTML entry point"

    def parse(self, source: str, path: Path) -> str:
        if "<" not in source:
            raise DescriptorParseError(path, "not an HTML document")
        return source

    def render(self, descriptor: BuildDescriptor[str]) -> str:
        return descriptor.document

    # -- Element lookup ----------------------------------------------------

    def locate(self, descriptor: BuildDescriptor[str], container: str) -> ElementSpan:
        """Return the offsets of the first *container* element."""
        text = descriptor.document
        locator = _ElementLocator(container.lower())
        locator.feed(text)
        locator.close()
        if locator.start is None:
            raise AnchorNotFoundError(
                f"{descriptor.path}: no <{container}> element", anchor=container
            )

        line_starts = _line_starts(text)
        open_start = _offset(line_starts, locator.start)
        open_end = open_start + len(locator.start_text)
        if locator.end is not None:
            close_start = _offset(line_starts, locator.end)
            close_end = text.find(">", close_start) + 1 or len(text)
        else:
            # The end tag is optional in HTML; the element then runs to </html>.
            html_end = text.lower().find("</html", open_end)
            close_start = close_end = html_end if html_end != -1 else len(text)
        return ElementSpan(open_start, open_end, close_start, close_end)

    # -- Fragments ---------------------------------------------------------

    def has_fragment(self, descriptor: BuildDescriptor[str], container: str, signature: str) -> bool:
        """Return ``True`` when *signature* occurs inside *container*."""
        span = self.locate(descriptor, container)
        return signature in descriptor.document[span.open_end:span.close_start]

    def insert_fragment(
        self,
        descriptor: BuildDescriptor[str],
        container: str,
        fragment: str,
        position: Position = Position.APPEND,
        signature: str | None = None,
    ) -> bool:
        """Insert *fragment* relative to *container* unless its signature is present.

        ``APPEND`` places the fragment just before the closing tag, on its own
        line, one indentation level inside the element.  ``BEFORE`` and
        ``AFTER`` place it outside the element; for those the whole document
        is checked for the signature.
        """
        signature = signature or fragment
        text = descriptor.document
        newline = "\r\n" if "\r\n" in text else "\n"
        span = self.locate(descriptor, container)

        if position is Position.APPEND:
            if signature in text[span.open_end:span.close_start]:
                return False
            line_start = text.rfind("\n", 0, span.close_start) + 1
            prefix = text[line_start:span.close_start]
            if line_start > span.open_end and not prefix.strip():
                unit = "\t" if "\t" in prefix else "  "
                at, insertion = line_start, f"{prefix}{unit}{fragment}{newline}"
            else:
                at, insertion = span.close_start, fragment
        else:
            if signature in text:
                return False
            line_start = text.rfind("\n", 0, span.open_start) + 1
            prefix = text[line_start:span.open_start]
            indent = prefix if not prefix.strip() else ""
            if position is Position.BEFORE:
                at, insertion = span.open_start, f"{fragment}{newline}{indent}"
            else:
                at, insertion = span.close_end, f"{newline}{indent}{fragment}"

        descriptor.document = text[:at] + insertion + text[at:]
        descriptor.schedule_write()
        return True

    # -- Dependency contract -----------------------------------------------

    def has_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        return self.has_fragment(descriptor, BODY, script_signature(dependency.identifier))

    def ensure_dependency(self, descriptor: BuildDescriptor[str], dependency: DependencyReference) -> bool:
        """Ensure a ``<script>`` tag loading ``dependency.identifier`` ends the body."""
        return self.insert_fragment(
            descriptor,
            BODY,
            script_tag(dependency.identifier),
            Position.APPEND,
            signature=script_signature(dependency.identifier),
        )


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


def _offset(line_starts: list[int], position: tuple[int, int]) -> int:
    line, column = position
    return line_starts[line - 1] + column
