"""Connecting to an Anchors server, starting a local one when needed."""

import asyncio
import ipaddress
import math
from dataclasses import replace
from typing import Optional, Tuple

import structlog

from ..config.settings import AnchorsSettings, get_settings
from ..exceptions import (
    AnchorsError,
    ConnectionFailed,
    InvalidArgument,
    NoServerFound,
    RemoteStartUnsupported,
    ServerStartFailed,
)
from ..installation.artifact_resolver import ArtifactResolver
from ..installation.runtime_locator import RuntimeLocator, default_locator
from .control_channel import ControlChannel
from .process_launcher import LaunchSpec, ProcessLauncher
from .process_registry import ProcessRegistry
from .session import SessionHandle, generate_session_name

logger = structlog.get_logger(__name__)

MAX_PORT = 65536

Connection = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


def is_loopback(ip: str) -> bool:
    """Only loopback hosts may have a server started for them."""
    if ip == "localhost":
        return True
    try:
        return ipaddress.ip_address(ip).is_loopback
    except ValueError:
        return False


class ConnectionManager:
    """Connects to a server, starting a local one if nothing is listening.

    Probe with a short timeout; on failure and if allowed, locate Java,
    resolve the jar, launch it, wait briefly and try once more with a longer
    timeout. There is exactly one retry.
    """

    def __init__(
        self,
        settings: Optional[AnchorsSettings] = None,
        registry: Optional[ProcessRegistry] = None,
        locator: Optional[RuntimeLocator] = None,
        resolver: Optional[ArtifactResolver] = None,
        launcher: Optional[ProcessLauncher] = None,
        control: Optional[ControlChannel] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else ProcessRegistry()
        self.locator = locator or default_locator(self.settings)
        self.resolver = resolver or ArtifactResolver(self.settings)
        self.launcher = launcher or ProcessLauncher(self.settings)
        self.control = control or ControlChannel()

    async def connect(
        self,
        ip: str = "localhost",
        port: int = 6666,
        name: Optional[str] = None,
        auto_start: bool = True,
        launch_spec: Optional[LaunchSpec] = None,
        force_refresh: bool = False,
    ) -> SessionHandle:
        """Connect to a server at ``ip:port``.

        Args:
            ip: Server host
            port: Server port, 0 to 65536
            name: Session name, generated when None
            auto_start: Start a local server if none is listening
            launch_spec: Memory and algorithm settings for a started server
            force_refresh: Download the jar again before starting

        Returns:
            SessionHandle: Live connection

        Raises:
            InvalidArgument: If an argument is malformed (before any I/O)
            NoServerFound: If nothing listens and auto_start is False
            RemoteStartUnsupported: If a start is needed on a non-local host
            ServerStartFailed: If locating Java, the jar, or spawning failed
            ConnectionFailed: If the started server never accepted a connection
        """
        self._validate_arguments(ip, port, name, auto_start)
        port = int(port)
        session_name = name or generate_session_name(self.settings.user)

        logger.debug("Probing for running server", ip=ip, port=port)
        connection = await self._open_connection(ip, port, self.settings.probe_timeout)
        started_here = False

        if connection is None:
            if not auto_start:
                raise NoServerFound(
                    "No running instance of Anchors found",
                    suggestion="Set auto_start=True to start an Anchors instance",
                    details={"ip": ip, "port": port},
                )
            if not is_loopback(ip):
                raise RemoteStartUnsupported(
                    f"Cannot start Anchors on remote host {ip}",
                    suggestion="Start the server on that host, or connect to localhost",
                    details={"ip": ip, "port": port},
                )

            logger.info("Anchors is not running yet, starting it now", ip=ip, port=port)
            await self._start_server(ip, port, session_name, launch_spec, force_refresh)
            started_here = True

            logger.info("Starting Anchors JVM and connecting", ip=ip, port=port)
            await asyncio.sleep(self.settings.startup_delay)
            connection = await self._open_connection(
                ip, port, self.settings.reconnect_timeout
            )
            if connection is None:
                raise ConnectionFailed(
                    "Anchors failed to start, stopping execution",
                    suggestion=f"Check the server log at {self.launcher.log_path('stderr')}",
                    details={"ip": ip, "port": port},
                )

        reader, writer = connection
        self.registry.record_connection(port, session_name)
        logger.info("Successfully connected to Anchors", ip=ip, port=port, name=session_name)

        return SessionHandle(
            host=ip,
            port=port,
            name=session_name,
            reader=reader,
            writer=writer,
            started_here=started_here,
        )

    async def shutdown(self, handle: Optional[SessionHandle]) -> None:
        """Send the quit handshake and drop the bookkeeping for its port."""
        try:
            await self.control.shutdown(handle)
        finally:
            if handle is not None:
                self._forget(handle.port)

    def _forget(self, port: int) -> None:
        self.registry.forget_connection(port)
        record = self.registry.unregister(port)
        if record is not None:
            logger.info(
                "Stopped server started by this process",
                pid=record.pid,
                port=record.port,
                still_running=self.registry.is_alive(record),
            )

    def _validate_arguments(self, ip, port, name, auto_start) -> None:
        if not isinstance(ip, str) or not ip:
            raise InvalidArgument(
                "`ip` must be a non-empty character string", details={"ip": ip}
            )
        if (
            isinstance(port, bool)
            or not isinstance(port, (int, float))
            or math.isnan(port)
            or port < 0
            or port > MAX_PORT
        ):
            raise InvalidArgument(
                f"`port` must be an integer ranging from 0 to {MAX_PORT}",
                details={"port": port},
            )
        if name is not None and (not isinstance(name, str) or not name):
            raise InvalidArgument(
                "`name` must be a non-empty character string or None",
                details={"name": name},
            )
        if not isinstance(auto_start, bool):
            raise InvalidArgument(
                "`auto_start` must be True or False", details={"auto_start": auto_start}
            )

    async def _start_server(
        self,
        ip: str,
        port: int,
        name: str,
        launch_spec: Optional[LaunchSpec],
        force_refresh: bool,
    ) -> None:
        spec = replace(launch_spec or LaunchSpec(), ip=ip, port=port, name=name)
        try:
            runtime = await self.locator.inspect(self.locator.locate())
            artifact = await self.resolver.resolve(force_refresh)
            record = self.launcher.launch(spec, artifact, runtime)
        except AnchorsError as e:
            raise ServerStartFailed(f"Could not start Anchors: {e.message}", cause=e) from e

        self.registry.register(record)

    async def _open_connection(
        self, ip: str, port: int, timeout: float
    ) -> Optional[Connection]:
        try:
            return await asyncio.wait_for(asyncio.open_connection(ip, port), timeout=timeout)
        except (OSError, OverflowError, asyncio.TimeoutError) as e:
            logger.debug("Connection attempt failed", ip=ip, port=port, error=str(e))
            return None
