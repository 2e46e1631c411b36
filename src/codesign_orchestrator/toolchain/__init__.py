"""rcodesign tool acquisition."""

from codesign_orchestrator.toolchain.rcodesign import (
    ArchiveFormat,
    RcodesignInstaller,
    ReleaseAsset,
    ToolchainError,
    ToolDownloadError,
    UnsupportedPlatformError,
    install_rcodesign,
    resolve_rcodesign,
    resolve_release_asset,
)

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
