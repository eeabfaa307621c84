"""Locating, downloading and caching the Anchors server jar."""

import asyncio
import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiohttp
from filelock import AsyncFileLock, Timeout

from ..config.logging import get_logger
from ..config.settings import AnchorsSettings
from ..exceptions import ArtifactUnavailable

logger = get_logger(__name__)

ARTIFACT_NAME = "RemoteModuleExtension"
JAR_NAME = f"{ARTIFACT_NAME}.jar"

_URL_PATTERN = re.compile(r"^(http|ftp)s?://")
_CHUNK_SIZE = 64 * 1024


def is_url(value: str) -> bool:
    """Check whether a jar override points at a remote location."""
    return bool(_URL_PATTERN.match(value))


@dataclass(frozen=True)
class ArtifactLocation:
    """Resolved server jar."""

    path: Path
    version: Optional[str] = None


class ArtifactResolver:
    """Resolves the server jar, downloading it once if needed.

    Lookup order: ``ANCHORS_JAR_PATH`` file, jar bundled with the package,
    jar in the local cache, download. The result is kept on the resolver so
    repeated launches do not resolve again until ``force_refresh`` is passed.
    """

    def __init__(self, settings: AnchorsSettings, package_dir: Optional[Path] = None):
        """Initialize resolver.

        Args:
            settings: Runtime settings
            package_dir: Directory holding buildnum.txt, jar.txt and java/
                (default: the installed package)
        """
        self.settings = settings
        self.package_dir = package_dir or Path(__file__).resolve().parent.parent
        self._resolved: Optional[ArtifactLocation] = None

    @property
    def bundled_path(self) -> Path:
        return self.package_dir / "java" / JAR_NAME

    @property
    def manifest_path(self) -> Path:
        return self.package_dir / "buildnum.txt"

    @property
    def url_manifest_path(self) -> Path:
        return self.package_dir / "jar.txt"

    async def resolve(self, force_refresh: bool = False) -> ArtifactLocation:
        """Return the jar to launch.

        Args:
            force_refresh: Skip bundled and cached jars and download again

        Returns:
            ArtifactLocation: Jar path and declared version

        Raises:
            ArtifactUnavailable: If the jar cannot be found or downloaded
        """
        if self._resolved is not None and not force_refresh:
            return self._resolved

        location = await self._resolve(force_refresh)
        self._resolved = location
        logger.debug("Jar resolved", path=str(location.path), version=location.version)
        return location

    async def _resolve(self, force_refresh: bool) -> ArtifactLocation:
        override = self.settings.jar_path
        if override and not is_url(override):
            path = Path(override).expanduser()
            if not path.exists():
                raise ArtifactUnavailable(
                    f"Environment variable ANCHORS_JAR_PATH is set to '{override}' "
                    "but file does not exist",
                    suggestion="Unset the environment variable or provide a valid path to the jar file",
                    details={"path": override},
                )
            return ArtifactLocation(path=path.resolve())

        if not force_refresh:
            for candidate in (self.bundled_path, self.settings.get_cache_path()):
                if candidate.exists():
                    return ArtifactLocation(path=candidate, version=self._read_version(required=False))

        return await self._download(force_refresh)

    def _read_version(self, required: bool = True) -> Optional[str]:
        if not self.manifest_path.exists():
            if not required:
                return None
            raise ArtifactUnavailable(
                f"Version manifest not found: {self.manifest_path}",
                suggestion="Reinstall the package or set ANCHORS_JAR_PATH",
                details={"path": str(self.manifest_path)},
            )
        return self.manifest_path.read_text(encoding="utf-8").strip()

    def _source_url(self, version: str) -> str:
        override = self.settings.jar_path
        if override and is_url(override):
            return override
        if self.url_manifest_path.exists():
            url = self.url_manifest_path.read_text(encoding="utf-8").strip()
            if url:
                return url

        base_url = self.settings.repository_url.rstrip("/")
        return f"{base_url}/{ARTIFACT_NAME}/{version}/{ARTIFACT_NAME}-{version}-jar-with-dependencies.jar"

    async def _download(self, force_refresh: bool) -> ArtifactLocation:
        # The manifest is required even when the URL comes from an override
        version = self._read_version()
        url = self._source_url(version)
        dest = self.settings.get_cache_path()
        dest.parent.mkdir(parents=True, exist_ok=True)

        lock = AsyncFileLock(f"{dest}.lock", timeout=self.settings.lock_timeout)
        try:
            async with lock:
                # Another process may have finished while we waited
                if not force_refresh and dest.exists():
                    logger.info("Jar downloaded by another process", path=str(dest))
                else:
                    await self._fetch_atomically(url, dest)
        except Timeout as exc:
            raise ArtifactUnavailable(
                f"Timed out waiting for the download lock on {dest}",
                suggestion="Another process is downloading the jar, retry once it finishes",
                details={"lock_file": lock.lock_file},
            ) from exc

        return ArtifactLocation(path=dest, version=version)

    async def _fetch_atomically(self, url: str, dest: Path) -> None:
        """Download to ``<dest>.tmp`` and rename into place once complete."""
        temp_file = dest.with_name(f"{dest.name}.tmp")
        remediation = f"Please download {url} and place {JAR_NAME} in {dest.parent}"

        logger.info(
            f"Performing one-time download of {JAR_NAME}",
            url=url,
            note="This could take a few minutes, please be patient...",
        )

        try:
            timeout = aiohttp.ClientTimeout(total=self.settings.download_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                await self._download_to(session, url, temp_file)

                if not temp_file.exists():
                    raise ArtifactUnavailable(
                        "Transfer failed",
                        suggestion=remediation,
                        details={"url": url, "destination": str(dest.parent)},
                    )

                if self.settings.verify_checksum:
                    await self._verify_checksum(session, url, temp_file)

        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            temp_file.unlink(missing_ok=True)
            raise ArtifactUnavailable(
                f"Transfer failed: {exc}",
                suggestion=remediation,
                details={"url": url, "destination": str(dest.parent)},
            ) from exc
        except ArtifactUnavailable:
            temp_file.unlink(missing_ok=True)
            raise

        os.replace(temp_file, dest)
        logger.info("Jar cached", path=str(dest))

    async def _download_to(
        self, session: aiohttp.ClientSession, url: str, path: Path
    ) -> None:
        async with session.get(url) as response:
            response.raise_for_status()
            async with aiofiles.open(path, "wb") as fh:
                async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                    await fh.write(chunk)

    async def _verify_checksum(
        self, session: aiohttp.ClientSession, url: str, path: Path
    ) -> None:
        checksum_url = f"{url}.sha1"
        async with session.get(checksum_url) as response:
            if response.status != 200:
                logger.warning(
                    "No checksum published, skipping verification",
                    url=checksum_url,
                    status=response.status,
                )
                return
            parts = (await response.text()).split()

        if not parts:
            logger.warning("Empty checksum file, skipping verification", url=checksum_url)
            return

        expected = parts[0].lower()
        actual = await asyncio.to_thread(_sha1_of, path)
        if actual != expected:
            raise ArtifactUnavailable(
                f"SHA-1 checksum of {path.name} does not match {checksum_url}",
                suggestion="Retry the download; if it keeps failing the mirror may be corrupt",
                details={"expected": expected, "actual": actual, "url": url},
            )


def _sha1_of(path: Path) -> str:
    hasher = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()
