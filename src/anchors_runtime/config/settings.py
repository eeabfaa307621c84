"""Application configuration settings."""

from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    json_format: bool = Field(default=False, description="Use JSON log format")


class AnchorsSettings(BaseSettings):
    """Runtime manager settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="ANCHORS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Well-known variables shared with other tools, read without prefix
    java_home: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("JAVA_HOME", "java_home"),
        description="Java installation directory",
    )
    jar_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ANCHORS_JAR_PATH", "jar_path"),
        description="Path or URL of a server jar to use instead of the cached one",
    )
    user: str = Field(
        default="UnknownUser",
        validation_alias=AliasChoices("USER", "USERNAME", "user"),
        description="User name used to name the temporary log files",
    )

    repository_url: str = Field(
        default="https://repo1.maven.org/maven2/de/viadee/xai/anchor",
        description="Maven repository folder holding RemoteModuleExtension",
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".anchors-runtime",
        description="Directory the downloaded jar is cached in",
    )
    temp_dir: Optional[Path] = Field(
        default=None, description="Directory for server logs (default: system temp)"
    )
    windows_java_roots: List[str] = Field(
        default=["C:/Program Files/Java", "C:/Program Files (x86)/Java"],
        description="Install roots scanned for Java on Windows",
    )

    probe_timeout: float = Field(default=1.0, description="Initial connect timeout")
    reconnect_timeout: float = Field(
        default=10.0, description="Connect timeout after starting a server"
    )
    startup_delay: float = Field(
        default=1.0, description="Pause between launch and reconnect"
    )
    download_timeout: float = Field(
        default=600.0, description="Total timeout for the jar download"
    )
    lock_timeout: float = Field(
        default=900.0, description="Seconds to wait for another process's download"
    )
    verify_checksum: bool = Field(
        default=True, description="Verify downloads against the published .sha1"
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_cache_path(self) -> Path:
        """Get the cached jar file path."""
        return Path(self.cache_dir).expanduser() / "java" / "RemoteModuleExtension.jar"


def get_settings() -> AnchorsSettings:
    """Factory, allows overriding in tests."""
    return AnchorsSettings()
