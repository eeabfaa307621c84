"""Error hierarchy for the Anchors runtime manager."""

from typing import Any, Dict, Optional

JAVA_DOWNLOAD_URL = (
    "http://www.oracle.com/technetwork/java/javase/downloads/jdk8-downloads-2133151.html"
)


class AnchorsError(Exception):
    """Runtime manager error with user-friendly messages."""

    def __init__(
        self,
        message: str,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error message with details if available."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class InvalidArgument(AnchorsError):
    """Caller input rejected before any I/O happened."""


class RuntimeNotFound(AnchorsError):
    """No Java runtime could be located."""


class RuntimeVersionRejected(AnchorsError):
    """The located Java runtime is not supported."""


class ArtifactUnavailable(AnchorsError):
    """The server jar could not be found, read or downloaded."""


class LaunchError(AnchorsError):
    """The server process could not be started."""


class NoActiveConnection(AnchorsError):
    """A control command was issued without a live connection."""


class AnchorsConnectionError(AnchorsError):
    """Terminal failure of the connection state machine."""


class NoServerFound(AnchorsConnectionError):
    """Nothing is listening and auto start was disabled."""


class RemoteStartUnsupported(AnchorsConnectionError):
    """Auto start was requested for a host that is not the local machine."""


class ConnectionFailed(AnchorsConnectionError):
    """The server was started but never accepted a connection."""


class ServerStartFailed(AnchorsConnectionError):
    """Starting a local server failed; ``cause`` holds the originating error."""

    def __init__(self, message: str, cause: AnchorsError):
        self.cause = cause
        super().__init__(
            message,
            suggestion=cause.suggestion,
            details={"cause": type(cause).__name__, **cause.details},
        )
