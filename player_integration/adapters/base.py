"""Uniform idempotent-mutation contract shared by every build descriptor format.

An adapter loads a descriptor from disk, answers existence checks, schedules
mutations in memory, and writes the descriptor back atomically on ``commit``.
Mutations never touch the disk directly; only ``commit`` (and
``insert_source_artifact``, which creates a brand new file) write.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from player_integration.errors import ProjectStructureError
from player_integration.models import DependencyReference, InsertionPoint
from player_integration.utils import atomic_write_text, read_text

T = TypeVar("T")


@dataclass
class BuildDescriptor(Generic[T]):
    """In-memory view of one build descriptor file.

    Attributes:
        path: File the descriptor was read from and is written back to.
        source: Exact text read from disk (empty for a file that did not exist).
        document: Format-specific parsed representation.
        dirty: ``True`` once a mutation scheduled a write-back.
    """

    path: Path
    source: str
    document: T
    dirty: bool = False

    def schedule_write(self) -> None:
        self.dirty = True


class FormatAdapter(ABC, Generic[T]):
    """Base class for the per-format adapters."""

    #: Short format name used in messages.
    name: str = "descriptor"

    # -- Loading -----------------------------------------------------------

    def load(self, path: str | Path) -> BuildDescriptor[T]:
        """Read and parse the descriptor at *path*."""
        file_path = Path(path)
        source = self._read(file_path)
        return BuildDescriptor(path=file_path, source=source, document=self.parse(source, file_path))

    @abstractmethod
    def parse(self, source: str, path: Path) -> T:
        """Parse *source*; raise ``DescriptorParseError`` when it is malformed."""

    def render(self, descriptor: BuildDescriptor[T]) -> str:
        """Serialise the document back to text."""
        return str(descriptor.document)

    # -- Dependency contract -----------------------------------------------

    @abstractmethod
    def has_dependency(self, descriptor: BuildDescriptor[T], dependency: DependencyReference) -> bool:
        """Return ``True`` when *dependency* is already declared."""

    @abstractmethod
    def ensure_dependency(self, descriptor: BuildDescriptor[T], dependency: DependencyReference) -> bool:
        """Declare *dependency* unless present.  Returns whether a change was scheduled."""

    # -- Source artifacts --------------------------------------------------

    async def insert_source_artifact(
        self,
        descriptor: BuildDescriptor[T],
        path: str | Path,
        content: str,
        insertion_point: InsertionPoint,
    ) -> Path:
        """Write a new source file.  Formats with explicit file registration extend this."""
        return await asyncio.to_thread(atomic_write_text, Path(path), content)

    # -- Write-back --------------------------------------------------------

    async def commit(self, descriptor: BuildDescriptor[T]) -> bool:
        """Write the descriptor back if a mutation changed it.

        Returns:
            ``True`` when the file on disk was rewritten.
        """
        if not descriptor.dirty:
            return False
        content = self.render(descriptor)
        descriptor.dirty = False
        if content == descriptor.source:
            return False
        await asyncio.to_thread(atomic_write_text, descriptor.path, content)
        descriptor.source = content
        return True

    # -- Helpers -----------------------------------------------------------

    def _read(self, path: Path) -> str:
        if not path.is_file():
            raise ProjectStructureError(f"{self.name} not found: {path}")
        return read_text(path)

