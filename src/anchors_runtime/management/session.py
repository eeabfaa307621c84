"""Client-owned connection to a running Anchors server."""

import asyncio
import random
import re
import string
from dataclasses import dataclass, field
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

SESSION_NAME_PREFIX = "Anchors_started_from_Python"


def generate_session_name(user: str) -> str:
    """Build ``<prefix>_<user>_<abc123>`` for sessions without a name."""
    letters = "".join(random.choices(string.ascii_lowercase, k=3))
    digits = "".join(random.choices(string.digits, k=3))
    user = re.sub(r"\s", "_", user)
    return f"{SESSION_NAME_PREFIX}_{user}_{letters}{digits}"


@dataclass
class SessionHandle:
    """Exclusive owner of one socket connection to one server.

    The socket was connectable when the handle was built; liveness is not
    re-checked afterwards.
    """

    host: str
    port: int
    name: str
    reader: Optional[asyncio.StreamReader] = field(default=None, repr=False)
    writer: Optional[asyncio.StreamWriter] = field(default=None, repr=False)
    started_here: bool = False

    @property
    def connected(self) -> bool:
        return self.writer is not None

    def invalidate(self) -> None:
        """Drop the connection; the handle must not be reused."""
        self.reader = None
        self.writer = None

    async def close(self) -> None:
        """Close the socket without asking the server to quit."""
        writer = self.writer
        self.invalidate()
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error while closing connection", port=self.port, error=str(e))
