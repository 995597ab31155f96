"""Video player integration engine.

Wires a video player into an existing iOS, Android or web project: generates
the player component, registers it with the platform's build system and
declares the player library as a dependency.  Every mutation is idempotent,
so running an integration twice leaves the project as the first run did.

Usage::

    from player_integration import IntegrationConfig, IntegrationOrchestrator

    config = IntegrationConfig(
        project_root="./my-app",
        frontend="android",
        service={"service_type": "generic-stream", "output_endpoint": "https://cdn.example/stream.m3u8"},
    )
    result = await IntegrationOrchestrator(config).run()
    print(result.summary())
"""

from player_integration.config import IntegrationConfig
from player_integration.errors import (
    AnchorNotFoundError,
    DescriptorParseError,
    ExternalProcessError,
    IntegrationError,
    ProjectStructureError,
)
from player_integration.models import (
    DependencyReference,
    InsertionPoint,
    Platform,
    PlatformTarget,
    Position,
    ServiceDescriptor,
    ServiceType,
    WebFramework,
)
from player_integration.orchestrator import IntegrationOrchestrator, Stage
from player_integration.reporter import IntegrationResult, Reporter

__all__ = [
    "IntegrationConfig",
    "IntegrationOrchestrator",
    "IntegrationResult",
    "Reporter",
    "Stage",
    # Models
    "DependencyReference",
    "InsertionPoint",
    "Platform",
    "PlatformTarget",
    "Position",
    "ServiceDescriptor",
    "ServiceType",
    "WebFramework",
    # Errors
    "IntegrationError",
    "ProjectStructureError",
    "AnchorNotFoundError",
    "DescriptorParseError",
    "ExternalProcessError",
]
