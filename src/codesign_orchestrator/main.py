"""Console-script entrypoint and exit-code contract."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    PIPELINE_FAILED = 1
    CONFIG_ERROR = 2
    TOOLCHAIN_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and turn anything that escapes it into an exit code."""

    try:
        from codesign_orchestrator.ui.cli import run_cli

        return run_cli(argv)
    except SystemExit as exc:
        # argparse exits 0 for --help/--version and 2 for usage errors.
        return exc.code if isinstance(exc.code, int) else int(ExitCode.CONFIG_ERROR)
    except Exception as exc:  # noqa: BLE001 - process boundary.
        exit_code = route_exception(exc)
        if exit_code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            print(str(exc).strip() or type(exc).__name__, file=sys.stderr)
        return int(exit_code)


def route_exception(exc: BaseException) -> ExitCode:
    """Map an exception, or the first known error in its cause chain, onto an exit code."""

    from codesign_orchestrator.config import ConfigLoadError, ConfigValidationError
    from codesign_orchestrator.errors import PipelineError
    from codesign_orchestrator.toolchain import ToolchainError

    for error in _causes(exc):
        if isinstance(error, (ConfigLoadError, ConfigValidationError)):
            return ExitCode.CONFIG_ERROR
        if isinstance(error, ToolchainError):
            return ExitCode.TOOLCHAIN_ERROR
        if isinstance(error, PipelineError):
            return ExitCode.PIPELINE_FAILED
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None or current.__suppress_context__:
            current = current.__cause__
        else:
            current = current.__context__


__all__ = ["ExitCode", "cli_entrypoint", "route_exception"]
