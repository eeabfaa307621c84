"""Java runtime discovery and version checks."""

import asyncio
import os
import platform
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from ..config.logging import get_logger
from ..config.settings import AnchorsSettings
from ..exceptions import JAVA_DOWNLOAD_URL, RuntimeNotFound, RuntimeVersionRejected

logger = get_logger(__name__)

_UNSUPPORTED_VERSION = re.compile(r'^java version "1\.[1-7]\.')


@dataclass(frozen=True)
class RuntimeInfo:
    """A located Java executable and what ``-version`` reported."""

    path: Path
    version_output: List[str] = field(default_factory=list)

    @property
    def client_vm(self) -> bool:
        """32-bit JVMs report a Client VM and get a lower default heap."""
        return any("Client VM" in line for line in self.version_output)


def check_java_version(version_output: Sequence[str]) -> Optional[str]:
    """Return an error string if the version output is blacklisted.

    Args:
        version_output: Lines printed by ``java -version``

    Returns:
        Optional[str]: Reason the runtime is rejected, None if it is usable
    """
    if any("GNU libgcj" in line for line in version_output):
        return "Sorry, GNU Java is not supported for Anchors."
    for line in version_output:
        if _UNSUPPORTED_VERSION.match(line):
            return f"Your java is not supported: {version_output[0]}"
    return None


class RuntimeLocator(ABC):
    """Finds a Java executable.

    ``JAVA_HOME`` always wins; platform subclasses supply the fallback search.
    """

    executable_name = "java"

    def __init__(self, settings: AnchorsSettings):
        self.settings = settings

    def locate(self) -> Path:
        """Resolve the Java executable.

        Returns:
            Path: Java executable to launch the server with

        Raises:
            RuntimeNotFound: If no candidate exists
        """
        if self.settings.java_home:
            path = Path(self.settings.java_home) / "bin" / self.executable_name
            logger.debug("Using JAVA_HOME", path=str(path))
            return path

        path = self._search()
        if path is None:
            raise RuntimeNotFound(
                "Cannot find Java. Please install the latest JRE",
                suggestion=f"Download it from {JAVA_DOWNLOAD_URL}",
                details={"platform": platform.system().lower()},
            )
        logger.debug("Found Java", path=str(path))
        return path

    @abstractmethod
    def _search(self) -> Optional[Path]:
        """Platform-specific lookup used when JAVA_HOME is not set."""

    async def inspect(self, path: Path) -> RuntimeInfo:
        """Run ``java -version`` and apply the version gate.

        Args:
            path: Java executable

        Returns:
            RuntimeInfo: Executable plus its version output

        Raises:
            RuntimeVersionRejected: If the runtime cannot run or is blacklisted
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                str(path),
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            output, _ = await proc.communicate()
        except OSError as exc:
            raise RuntimeVersionRejected(
                f"Failed to run {path} -version: {exc}",
                suggestion=f"Please download the latest Java SE JDK 8 from {JAVA_DOWNLOAD_URL}",
                details={"path": str(path)},
            ) from exc

        lines = output.decode(errors="replace").splitlines()
        error = check_java_version(lines)
        if error:
            raise RuntimeVersionRejected(
                error,
                suggestion=f"Please download the latest Java SE JDK 8 from {JAVA_DOWNLOAD_URL}",
                details={"path": str(path)},
            )

        info = RuntimeInfo(path=path, version_output=lines)
        if info.client_vm:
            logger.warning(
                "You have a 32-bit version of Java. Anchors works best with 64-bit Java",
                path=str(path),
                download=JAVA_DOWNLOAD_URL,
            )
        return info


class WindowsRuntimeLocator(RuntimeLocator):
    """Scans the usual install roots for ``<version>\\bin\\java.exe``."""

    executable_name = "java.exe"

    def _search(self) -> Optional[Path]:
        for root in self.settings.windows_java_roots:
            root_path = Path(root)
            if not root_path.is_dir():
                continue
            for version_dir in sorted(root_path.iterdir()):
                candidate = version_dir / "bin" / self.executable_name
                if candidate.exists():
                    return candidate
        return None


class PosixRuntimeLocator(RuntimeLocator):
    """Looks ``java`` up on PATH."""

    def _search(self) -> Optional[Path]:
        found = shutil.which(self.executable_name)
        return Path(found) if found else None


def default_locator(settings: AnchorsSettings) -> RuntimeLocator:
    """Pick the locator for the running platform."""
    if os.name == "nt":
        return WindowsRuntimeLocator(settings)
    return PosixRuntimeLocator(settings)
