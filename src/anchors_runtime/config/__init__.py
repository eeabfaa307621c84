"""Configuration and logging for the Anchors runtime manager."""

from .logging import configure_logging, get_logger
from .settings import AnchorsSettings, LoggingConfig, get_settings

__all__ = [
    "AnchorsSettings",
    "LoggingConfig",
    "get_settings",
    "configure_logging",
    "get_logger",
]
