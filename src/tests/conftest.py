"""Pytest configuration and shared fixtures."""

import asyncio
import socket
from pathlib import Path
from typing import List, Optional

import pytest

from anchors_runtime.config.settings import AnchorsSettings
from anchors_runtime.installation.artifact_resolver import ArtifactLocation
from anchors_runtime.installation.runtime_locator import RuntimeInfo

JAR_BYTES = b"PK\x03\x04 fake anchors server jar" * 64


class RecordingServer:
    """Local TCP listener that records every byte its clients send."""

    def __init__(self):
        self.received = bytearray()
        self.port: Optional[int] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: List[asyncio.StreamWriter] = []
        self._finished: Optional[asyncio.Event] = None

    async def start(self, port: int = 0) -> "RecordingServer":
        self._finished = asyncio.Event()
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", port)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _handle(self, reader, writer):
        self._writers.append(writer)
        try:
            self.received.extend(await reader.read())
        finally:
            writer.close()
            self._finished.set()

    async def wait_for_client(self, timeout: float = 5.0) -> None:
        """Wait until a client has disconnected."""
        await asyncio.wait_for(self._finished.wait(), timeout)

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in self._writers:
            writer.close()
        await self._server.wait_closed()


@pytest.fixture
def recording_server() -> RecordingServer:
    return RecordingServer()


@pytest.fixture
def free_port() -> int:
    """A local port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def settings(tmp_path: Path) -> AnchorsSettings:
    """Settings isolated from the developer's environment."""
    return AnchorsSettings(
        java_home=None,
        jar_path=None,
        user="test user",
        cache_dir=tmp_path / "cache",
        temp_dir=tmp_path / "tmp",
        probe_timeout=0.5,
        reconnect_timeout=1.0,
        startup_delay=0.0,
        download_timeout=10.0,
        lock_timeout=5.0,
    )


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """Stand-in for the installed package directory, with a version manifest."""
    directory = tmp_path / "package"
    directory.mkdir()
    (directory / "buildnum.txt").write_text("1.2.3\n")
    return directory


@pytest.fixture
def artifact(tmp_path: Path) -> ArtifactLocation:
    jar = tmp_path / "RemoteModuleExtension.jar"
    jar.write_bytes(JAR_BYTES)
    return ArtifactLocation(path=jar, version="1.2.3")


@pytest.fixture
def runtime() -> RuntimeInfo:
    return RuntimeInfo(
        path=Path("/opt/java/bin/java"),
        version_output=[
            'openjdk version "11.0.2" 2019-01-15',
            "OpenJDK Runtime Environment 18.9 (build 11.0.2+9)",
            "OpenJDK 64-Bit Server VM 18.9 (build 11.0.2+9, mixed mode)",
        ],
    )


@pytest.fixture
def jar_bytes() -> bytes:
    return JAR_BYTES
