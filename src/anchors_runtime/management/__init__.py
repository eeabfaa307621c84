"""Connection lifecycle management for Anchors servers."""

from .connection_manager import ConnectionManager, is_loopback
from .control_channel import QUIT_MESSAGE, ControlChannel, encode_message
from .process_launcher import SERVER_IDLE_TIMEOUT, LaunchSpec, ProcessLauncher
from .process_registry import ProcessRecord, ProcessRegistry
from .session import SessionHandle, generate_session_name

__all__ = [
    "ConnectionManager",
    "ControlChannel",
    "LaunchSpec",
    "ProcessLauncher",
    "ProcessRecord",
    "ProcessRegistry",
    "SessionHandle",
    "QUIT_MESSAGE",
    "SERVER_IDLE_TIMEOUT",
    "encode_message",
    "generate_session_name",
    "is_loopback",
]
