"""Integration run configuration.

Typed configuration for one integration run.  Settings use Pydantic v2 models
so they are validated at construction time and can be serialised to/from JSON
or read from environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from player_integration.models import PlatformTarget, ServiceDescriptor


class IntegrationConfig(BaseModel):
    """Everything the orchestrator needs to integrate the player into a project.

    Instances are typically created once by the CLI entry point (or loaded
    from a JSON file) and handed to ``IntegrationOrchestrator``.
    """

    project_root: Path = Field(default=Path("."))
    frontend: str = Field(..., description="ios, android or javascript")
    framework: str | None = Field(
        default=None, description="Web UI framework (angular, vue, ember, react, none...)"
    )
    project_name: str | None = Field(
        default=None, description="Xcode project / application display name (iOS)"
    )
    source_dir: str = Field(default="src", description="Web source directory")
    service: ServiceDescriptor

    @property
    def target(self) -> PlatformTarget:
        """The platform target selected by ``frontend`` and ``framework``."""
        return PlatformTarget.resolve(self.frontend, self.framework)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "IntegrationConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "IntegrationConfig":
        """Build a configuration from environment variables.

        Recognised variables:
            PLAYER_PROJECT_ROOT, PLAYER_FRONTEND (required), PLAYER_FRAMEWORK,
            PLAYER_PROJECT_NAME, PLAYER_SOURCE_DIR, PLAYER_SERVICE_TYPE
            (required), PLAYER_ENDPOINT (required), PLAYER_CHANNEL_LATENCY.
        """
        service_kwargs: dict[str, Any] = {
            "service_type": os.environ.get("PLAYER_SERVICE_TYPE", ""),
            "output_endpoint": os.environ.get("PLAYER_ENDPOINT", ""),
        }
        if os.environ.get("PLAYER_CHANNEL_LATENCY"):
            service_kwargs["channel_latency"] = os.environ["PLAYER_CHANNEL_LATENCY"]

        return cls(
            project_root=Path(os.environ.get("PLAYER_PROJECT_ROOT", ".")),
            frontend=os.environ.get("PLAYER_FRONTEND", ""),
            framework=os.environ.get("PLAYER_FRAMEWORK") or None,
            project_name=os.environ.get("PLAYER_PROJECT_NAME") or None,
            source_dir=os.environ.get("PLAYER_SOURCE_DIR", "src"),
            service=ServiceDescriptor(**service_kwargs),
        )
