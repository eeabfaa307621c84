"""Client-side runtime manager for the Anchors explanation server."""

from .__version__ import __version__
from .exceptions import (
    AnchorsConnectionError,
    AnchorsError,
    ArtifactUnavailable,
    ConnectionFailed,
    InvalidArgument,
    LaunchError,
    NoActiveConnection,
    NoServerFound,
    RemoteStartUnsupported,
    RuntimeNotFound,
    RuntimeVersionRejected,
    ServerStartFailed,
)
from .management import (
    ConnectionManager,
    ControlChannel,
    LaunchSpec,
    ProcessRecord,
    ProcessRegistry,
    SessionHandle,
)

__all__ = [
    "__version__",
    "ConnectionManager",
    "ControlChannel",
    "LaunchSpec",
    "ProcessRecord",
    "ProcessRegistry",
    "SessionHandle",
    "AnchorsError",
    "AnchorsConnectionError",
    "ArtifactUnavailable",
    "ConnectionFailed",
    "InvalidArgument",
    "LaunchError",
    "NoActiveConnection",
    "NoServerFound",
    "RemoteStartUnsupported",
    "RuntimeNotFound",
    "RuntimeVersionRejected",
    "ServerStartFailed",
]
