"""Format adapters for build descriptors.

Each adapter loads one kind of build descriptor, answers whether a dependency
is already declared, ensures it idempotently and writes the file back only
when its text changed.
"""

from player_integration.adapters.android import AndroidBuildAdapter
from player_integration.adapters.base import BuildDescriptor, FormatAdapter
from player_integration.adapters.markup import MarkupAdapter
from player_integration.adapters.podfile import PodfileAdapter
from player_integration.adapters.web_manifest import WebManifestAdapter
from player_integration.adapters.xcode import NativeProjectGraphAdapter

__all__ = [
    "BuildDescriptor",
    "FormatAdapter",
    "AndroidBuildAdapter",
    "MarkupAdapter",
    "NativeProjectGraphAdapter",
    "PodfileAdapter",
    "WebManifestAdapter",
]
