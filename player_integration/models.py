"""Data model for the video player integration engine.

Platform targets, service descriptors, dependency coordinates and insertion
points.  Value objects are Pydantic v2 models; ``PlatformTarget`` is a frozen
dataclass so it can be used as a dictionary key in dispatch tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Platform(str, Enum):
    """Target ecosystem of the host application."""
    IOS = "ios"
    ANDROID = "android"
    WEB = "javascript"


class WebFramework(str, Enum):
    """Web UI framework.  ``OTHER`` covers every framework without its own arm."""
    ANGULAR = "angular"
    VUE = "vue"
    EMBER = "ember"
    NONE = "none"
    OTHER = "other"


class ServiceType(str, Enum):
    """Kind of video service the player connects to."""
    LOW_LATENCY_STREAM = "low-latency-stream"
    GENERIC_STREAM = "generic-stream"


# Service names used by the cloud video resource metadata.
SERVICE_TYPE_ALIASES: dict[str, ServiceType] = {
    "ivs": ServiceType.LOW_LATENCY_STREAM,
    "livestream": ServiceType.GENERIC_STREAM,
    "video-on-demand": ServiceType.GENERIC_STREAM,
}

_PLATFORM_ALIASES: dict[str, Platform] = {
    "ios": Platform.IOS,
    "android": Platform.ANDROID,
    "javascript": Platform.WEB,
    "web": Platform.WEB,
}


# ---------------------------------------------------------------------------
# Platform target
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlatformTarget:
    """The resolved target of one integration run.

    ``framework`` is only set for web targets.  ``framework_name`` keeps the
    raw framework value (``"react"``, ``"angular"``...) so that file
    extensions can be derived for frameworks folded into ``OTHER``.
    """

    platform: Platform
    framework: WebFramework | None = None
    framework_name: str = ""

    @classmethod
    def resolve(cls, frontend: str, framework: str | None = None) -> "PlatformTarget":
        """Build a target from a frontend name and, for web, a framework name.

        Unknown frontends raise ``ValueError``.  Unknown web frameworks map
        to ``WebFramework.OTHER``.
        """
        key = (frontend or "").strip().lower()
        if key not in _PLATFORM_ALIASES:
            raise ValueError(f"Unsupported frontend: {frontend!r}")
        platform = _PLATFORM_ALIASES[key]
        if platform is not Platform.WEB:
            return cls(platform=platform, framework_name=platform.value)

        name = (framework or "none").strip().lower()
        try:
            web = WebFramework(name)
        except ValueError:
            web = WebFramework.OTHER
        return cls(platform=platform, framework=web, framework_name=name)

    @property
    def is_web(self) -> bool:
        return self.platform is Platform.WEB

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``"javascript/react"``."""
        if self.is_web:
            return f"{self.platform.value}/{self.framework_name}"
        return self.platform.value


# ---------------------------------------------------------------------------
# Service, dependency and insertion models
# ---------------------------------------------------------------------------

class ServiceDescriptor(BaseModel):
    """The video service whose output the player plays back."""
    service_type: ServiceType = Field(..., description="Kind of video service")
    output_endpoint: str = Field(..., min_length=1, description="Playback URL")
    channel_latency: str | None = Field(
        default=None, description="Low-latency channel mode (NORMAL or LOW)"
    )

    @field_validator("service_type", mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        if isinstance(value, str):
            alias = SERVICE_TYPE_ALIASES.get(value.strip().lower())
            if alias is not None:
                return alias
        return value

    @property
    def is_low_latency(self) -> bool:
        return self.service_type is ServiceType.LOW_LATENCY_STREAM


class DependencyReference(BaseModel):
    """A single external library coordinate."""
    identifier: str = Field(..., min_length=1, description="Library identifier")
    version: str | None = Field(default=None, description="Pinned version")
    platform_version: str | None = Field(
        default=None, description="Minimum platform version the library requires"
    )

    @property
    def coordinate(self) -> str:
        """``identifier:version`` when pinned, the bare identifier otherwise."""
        if self.version:
            return f"{self.identifier}:{self.version}"
        return self.identifier


class Position(str, Enum):
    """Where new content attaches relative to an anchor."""
    BEFORE = "before"
    AFTER = "after"
    APPEND = "append"


class InsertionPoint(BaseModel):
    """Attachment point for new content within a build descriptor."""
    anchor: str = Field(..., min_length=1, description="Named container in the descriptor")
    position: Position = Field(default=Position.APPEND)


# Parameters handed to the template renderer.  Built fresh per run.
IntegrationParameters = dict[str, Any]
