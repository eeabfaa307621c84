"""Bookkeeping for servers started by this process."""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import psutil
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ProcessRecord:
    """A server process this process started itself."""

    pid: int
    name: str
    port: int
    host: str = "localhost"
    start_time: float = field(default_factory=time.time)
    stdout_log: Optional[str] = None
    stderr_log: Optional[str] = None
    class_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @property
    def uptime(self) -> float:
        """Get process uptime in seconds."""
        return time.time() - self.start_time


class ProcessRegistry:
    """Explicitly owned registry of self-started servers and live connections.

    One registry belongs to one ConnectionManager; two managers in the same
    process keep separate bookkeeping. Entries are informational only and
    never used to authorize a shutdown.
    """

    def __init__(self):
        self._records: Dict[int, ProcessRecord] = {}
        self._connections: Dict[int, str] = {}

    def register(self, record: ProcessRecord) -> None:
        """Remember a server this process started."""
        self._records[record.port] = record
        logger.debug("Server registered", pid=record.pid, port=record.port, name=record.name)

    def unregister(self, port: int) -> Optional[ProcessRecord]:
        """Forget the server started on ``port``, returning its record."""
        return self._records.pop(port, None)

    def get_by_port(self, port: int) -> Optional[ProcessRecord]:
        return self._records.get(port)

    def get_all(self) -> List[ProcessRecord]:
        return list(self._records.values())

    def owns(self, port: int) -> bool:
        """Whether the server on ``port`` was started by this process."""
        return port in self._records

    def record_connection(self, port: int, name: str) -> None:
        """Remember the port a session connected to, for shutdown."""
        self._connections[port] = name

    def forget_connection(self, port: int) -> None:
        self._connections.pop(port, None)

    @property
    def connected_ports(self) -> List[int]:
        return list(self._connections)

    def is_alive(self, record: ProcessRecord) -> bool:
        """Check if a recorded process is still running."""
        try:
            process = psutil.Process(record.pid)
            return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
