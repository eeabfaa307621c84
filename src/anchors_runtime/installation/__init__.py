"""Runtime and server jar discovery."""

from .artifact_resolver import ArtifactLocation, ArtifactResolver, is_url
from .runtime_locator import (
    PosixRuntimeLocator,
    RuntimeInfo,
    RuntimeLocator,
    WindowsRuntimeLocator,
    check_java_version,
    default_locator,
)

__all__ = [
    "ArtifactLocation",
    "ArtifactResolver",
    "is_url",
    "RuntimeInfo",
    "RuntimeLocator",
    "PosixRuntimeLocator",
    "WindowsRuntimeLocator",
    "check_java_version",
    "default_locator",
]
