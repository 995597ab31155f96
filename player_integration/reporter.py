"""User-facing reporting for integration runs.

``Reporter`` prints progress and the final summary through Rich and keeps a
plain-text copy of every message so callers (and tests) can inspect what the
operator was told.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from player_integration import utils
from player_integration.models import PlatformTarget


@dataclass
class IntegrationResult:
    """Outcome of one integration run."""

    target: PlatformTarget
    files_created: list[Path] = field(default_factory=list)
    files_modified: list[Path] = field(default_factory=list)
    guidance: list[str] = field(default_factory=list)
    snippet: str = ""

    def summary(self) -> str:
        """Plain-text summary of the run."""
        lines = [
            f"Platform: {self.target.label}",
            f"Files created: {len(self.files_created)}",
            f"Files modified: {len(self.files_modified)}",
        ]
        for path in self.files_created:
            lines.append(f"  + {path}")
        for path in self.files_modified:
            lines.append(f"  ~ {path}")
        if self.guidance:
            lines.append("Follow-up:")
            lines.extend(f"  - {item}" for item in self.guidance)
        return "\n".join(lines)


class Reporter:
    """Prints integration progress and results."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or utils.console
        self.messages: list[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)
        self.console.print(escape(message), highlight=False)

    def success(self, message: str) -> None:
        self.messages.append(message)
        self.console.print(f"[bold green]{escape(message)}[/bold green]")

    def warning(self, message: str) -> None:
        self.messages.append(message)
        self.console.print(f"[bold yellow]{escape(message)}[/bold yellow]")

    def heading(self, message: str) -> None:
        self.messages.append(message)
        self.console.print(f"[underline blue]{escape(message)}[/underline blue]")

    def code(self, snippet: str) -> None:
        self.messages.append(snippet)
        self.console.print(Panel(escape(snippet.rstrip("\n")), expand=False))

    def report(self, result: IntegrationResult, project_root: Path) -> None:
        """Print the summary table followed by guidance and the usage snippet."""
        rows: dict[str, str] = {"Platform": result.target.label}
        for path in result.files_created:
            rows[f"created: {_relative(path, project_root)}"] = "new"
        for path in result.files_modified:
            rows[f"modified: {_relative(path, project_root)}"] = "updated"
        self.console.print(utils.build_summary_table(rows, title="Video player integration"))
        self.messages.append(result.summary())

        for item in result.guidance:
            self.heading(item)
        if result.snippet:
            self.code(result.snippet)


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)
