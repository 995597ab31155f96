"""Exception taxonomy for the integration engine.

Every error is propagated to the caller unrecovered.  The engine performs no
retry and no rollback: files written before the failure stay in place and the
operator re-runs the integration once the project is fixed.
"""

from __future__ import annotations

from pathlib import Path


class IntegrationError(Exception):
    """Base class for every failure raised by the integration engine."""


class ProjectStructureError(IntegrationError):
    """Raised when a required directory or file cannot be derived."""


class AnchorNotFoundError(IntegrationError):
    """Raised when an insertion anchor is missing or ambiguous."""

    def __init__(self, message: str, anchor: str = "", matches: int = 0) -> None:
        self.anchor = anchor
        self.matches = matches
        super().__init__(message)


class DescriptorParseError(IntegrationError):
    """Raised when an on-disk build descriptor is not valid for its format."""

    def __init__(self, path: str | Path, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


class ExternalProcessError(IntegrationError):
    """Raised when an external package installation fails."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
