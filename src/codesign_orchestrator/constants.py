"""Stable constants shared across the pipeline, toolchain, and CLI."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# rcodesign release used when no version is configured.
DEFAULT_RCODESIGN_VERSION: Final[str] = "0.29.0"
RCODESIGN_EXECUTABLE: Final[str] = "rcodesign"
RELEASE_DOWNLOAD_BASE_URL: Final[str] = (
    "https://github.com/indygreg/apple-platform-rs/releases/download/apple-codesign%2F"
)

# rcodesign subcommands driven by the pipeline stages.
SIGN_SUBCOMMAND: Final[str] = "sign"
NOTARIZE_SUBCOMMAND: Final[str] = "notary-submit"
STAPLE_SUBCOMMAND: Final[str] = "staple"

# Action outputs.
OUTPUT_PATH: Final[str] = "output_path"
OUTPUT_PATHS: Final[str] = "output_paths"

# Default runtime paths (relative to the working directory unless overridden).
CACHE_DIR: Final[PurePosixPath] = PurePosixPath(".codesign/cache")
LOG_DIR: Final[PurePosixPath] = PurePosixPath(".codesign/logs")

__all__ = [
    "CACHE_DIR",
    "DEFAULT_RCODESIGN_VERSION",
    "LOG_DIR",
    "NOTARIZE_SUBCOMMAND",
    "OUTPUT_PATH",
    "OUTPUT_PATHS",
    "RCODESIGN_EXECUTABLE",
    "RELEASE_DOWNLOAD_BASE_URL",
    "SIGN_SUBCOMMAND",
    "STAPLE_SUBCOMMAND",
]
