"""rcodesign acquisition: release asset selection, download, extraction, and caching."""

from __future__ import annotations

import os
import platform
import shutil
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import httpx
import structlog

from codesign_orchestrator.constants import (
    CACHE_DIR,
    RCODESIGN_EXECUTABLE,
    RELEASE_DOWNLOAD_BASE_URL,
)

if TYPE_CHECKING:
    from codesign_orchestrator.config.schema import ActionInputs

_DOWNLOAD_CHUNK_BYTES: Final[int] = 256 * 1024
_DEFAULT_TIMEOUT_SECONDS: Final[float] = 120.0
_USER_AGENT: Final[str] = "codesign-orchestrator"

_LINUX_TARGETS: Final[dict[str, str]] = {
    "aarch64": "aarch64-unknown-linux-musl",
    "arm64": "aarch64-unknown-linux-musl",
    "x86_64": "x86_64-unknown-linux-musl",
    "amd64": "x86_64-unknown-linux-musl",
}
_WINDOWS_TARGETS: Final[dict[str, str]] = {
    "x86_64": "x86_64-pc-windows-msvc",
    "amd64": "x86_64-pc-windows-msvc",
}


class ToolchainError(RuntimeError):
    """Base error for rcodesign acquisition failures."""


class UnsupportedPlatformError(ToolchainError):
    """Raised when no rcodesign release exists for the host platform."""


class ToolDownloadError(ToolchainError):
    """Raised when the release archive cannot be fetched or unpacked."""


class ArchiveFormat(StrEnum):
    TAR_GZ = "tar.gz"
    ZIP = "zip"


@dataclass(frozen=True, slots=True)
class ReleaseAsset:
    """Download coordinates for one rcodesign release build."""

    version: str
    target: str
    archive_format: ArchiveFormat
    windows: bool = False

    @property
    def directory(self) -> str:
        """Top-level directory inside the archive."""

        return f"apple-codesign-{self.version}-{self.target}"

    @property
    def filename(self) -> str:
        return f"{self.directory}.{self.archive_format.value}"

    @property
    def url(self) -> str:
        return f"{RELEASE_DOWNLOAD_BASE_URL}{self.version}/{self.filename}"

    @property
    def executable_name(self) -> str:
        return f"{RCODESIGN_EXECUTABLE}.exe" if self.windows else RCODESIGN_EXECUTABLE


def resolve_release_asset(
    version: str,
    *,
    system: str | None = None,
    machine: str | None = None,
) -> ReleaseAsset:
    """Map the host (or the given ``system``/``machine``) onto a release asset."""

    normalized_version = version.strip()
    if not normalized_version:
        raise ValueError("version must not be empty")

    system_name = (system if system is not None else platform.system()).strip().lower()
    machine_name = (machine if machine is not None else platform.machine()).strip().lower()

    if system_name == "darwin":
        return ReleaseAsset(normalized_version, "macos-universal", ArchiveFormat.TAR_GZ)

    if system_name == "linux":
        target = _LINUX_TARGETS.get(machine_name)
        if target is None:
            raise UnsupportedPlatformError(f"unsupported Linux architecture: {machine_name}")
        return ReleaseAsset(normalized_version, target, ArchiveFormat.TAR_GZ)

    if system_name == "windows":
        target = _WINDOWS_TARGETS.get(machine_name)
        if target is None:
            raise UnsupportedPlatformError(f"unsupported Windows architecture: {machine_name}")
        return ReleaseAsset(normalized_version, target, ArchiveFormat.ZIP, windows=True)

    raise UnsupportedPlatformError(f"unsupported operating system: {system_name}")


class RcodesignInstaller:
    """Download and cache rcodesign release builds."""

    def __init__(
        self,
        *,
        cache_dir: Path | str = CACHE_DIR,
        client: httpx.Client | None = None,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._cache_dir = Path(cache_dir)
        self._client = client
        self._timeout_seconds = timeout_seconds
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def install(self, asset: ReleaseAsset) -> Path:
        """Return the cached executable for ``asset``, downloading it if needed."""

        install_dir = self._cache_dir / RCODESIGN_EXECUTABLE / asset.version / asset.target
        executable = install_dir / asset.directory / asset.executable_name
        if executable.is_file():
            self._logger.info("rcodesign_cache_hit", path=str(executable), version=asset.version)
            return executable

        staging_dir = install_dir.with_name(f"{install_dir.name}.partial")
        shutil.rmtree(staging_dir, ignore_errors=True)
        staging_dir.mkdir(parents=True)
        try:
            archive_path = staging_dir / asset.filename
            self._download(asset.url, archive_path)
            _extract(archive_path, staging_dir, asset.archive_format)
            archive_path.unlink()

            staged_executable = staging_dir / asset.directory / asset.executable_name
            if not staged_executable.is_file():
                raise ToolDownloadError(
                    f"archive {asset.filename} does not contain "
                    f"{asset.directory}/{asset.executable_name}"
                )
            _mark_executable(staged_executable)

            shutil.rmtree(install_dir, ignore_errors=True)
            staging_dir.rename(install_dir)
        finally:
            shutil.rmtree(staging_dir, ignore_errors=True)

        self._logger.info("rcodesign_installed", path=str(executable), version=asset.version)
        return executable

    def _download(self, url: str, destination: Path) -> None:
        self._logger.info("rcodesign_download_started", url=url)
        client = self._client or httpx.Client(
            timeout=self._timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )
        try:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes(_DOWNLOAD_CHUNK_BYTES):
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            raise ToolDownloadError(f"failed to download {url}: {exc}") from exc
        finally:
            if self._client is None:
                client.close()


def install_rcodesign(
    version: str,
    *,
    cache_dir: Path | str = CACHE_DIR,
    client: httpx.Client | None = None,
    system: str | None = None,
    machine: str | None = None,
) -> Path:
    """Download (or reuse) rcodesign ``version`` for the host and return its path."""

    asset = resolve_release_asset(version, system=system, machine=machine)
    return RcodesignInstaller(cache_dir=cache_dir, client=client).install(asset)


def resolve_rcodesign(
    inputs: ActionInputs,
    *,
    cache_dir: Path | str = CACHE_DIR,
    client: httpx.Client | None = None,
) -> Path:
    """Use ``rcodesign_path`` when configured, else install the configured version."""

    if inputs.rcodesign_path:
        path = Path(inputs.rcodesign_path).expanduser()
        if not path.is_file():
            raise ToolchainError(f"rcodesign_path does not exist: {path}")
        if not os.access(path, os.X_OK):
            raise ToolchainError(f"rcodesign_path is not executable: {path}")
        return path
    return install_rcodesign(inputs.rcodesign_version, cache_dir=cache_dir, client=client)


def _extract(archive_path: Path, destination: Path, archive_format: ArchiveFormat) -> None:
    try:
        if archive_format is ArchiveFormat.TAR_GZ:
            with tarfile.open(archive_path, "r:gz") as archive:
                archive.extractall(destination, filter="data")
        else:
            with zipfile.ZipFile(archive_path) as archive:
                for member in archive.namelist():
                    target = (destination / member).resolve()
                    if not target.is_relative_to(destination.resolve()):
                        raise ToolDownloadError(f"archive member escapes destination: {member}")
                archive.extractall(destination)
    except (tarfile.TarError, zipfile.BadZipFile) as exc:
        raise ToolDownloadError(f"failed to extract {archive_path.name}: {exc}") from exc


def _mark_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


__all__ = [
    "ArchiveFormat",
    "RcodesignInstaller",
    "ReleaseAsset",
    "ToolDownloadError",
    "ToolchainError",
    "UnsupportedPlatformError",
    "install_rcodesign",
    "resolve_rcodesign",
    "resolve_release_asset",
]
