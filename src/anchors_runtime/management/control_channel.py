"""Line-based JSON control messages sent to a running server."""

import json
from typing import Any, Dict, Optional

import structlog

from ..exceptions import NoActiveConnection
from .session import SessionHandle

logger = structlog.get_logger(__name__)

QUIT_MESSAGE = {"quit": 1}


def encode_message(message: Dict[str, Any]) -> bytes:
    """Serialize a control message as one compact, newline-terminated line."""
    return (json.dumps(message, separators=(",", ":")) + "\n").encode("utf-8")


class ControlChannel:
    """Sends one-way control messages over a session's socket.

    The channel borrows the socket; ``shutdown`` sends once, closes, and
    invalidates the handle. No reply is read.
    """

    async def shutdown(self, handle: Optional[SessionHandle]) -> None:
        """Ask the server to quit and close the connection.

        Args:
            handle: Session to shut down; invalidated afterwards

        Raises:
            NoActiveConnection: If the handle holds no connection or the
                socket was already gone
        """
        if handle is None or handle.writer is None:
            raise NoActiveConnection(
                "Session does not maintain a connection",
                suggestion="Connect to a server before shutting it down",
            )

        writer = handle.writer
        logger.info("Shutting down Anchors JVM", host=handle.host, port=handle.port)

        try:
            writer.write(encode_message(QUIT_MESSAGE))
            await writer.drain()
        except OSError as e:
            raise NoActiveConnection(
                f"Connection to {handle.host}:{handle.port} was lost before quit could be sent",
                details={"error": str(e)},
            ) from e
        finally:
            writer.close()
            handle.invalidate()

        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error while closing connection", port=handle.port, error=str(e))

        logger.info("Anchors has been successfully terminated", port=handle.port)
