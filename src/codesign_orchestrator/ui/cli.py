"""Command-line interface for codesign-orchestrator."""

from __future__ import annotations

import argparse
import asyncio
import os
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from codesign_orchestrator import __version__
from codesign_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    collect_raw_inputs,
    dump_effective_config,
    parse_cli_overrides,
    validate_inputs,
)
from codesign_orchestrator.constants import CACHE_DIR, LOG_DIR, OUTPUT_PATH, OUTPUT_PATHS
from codesign_orchestrator.execution import LocalProcessInvoker
from codesign_orchestrator.main import ExitCode
from codesign_orchestrator.observability import (
    LoggingConfig,
    setup_structured_logging,
    shutdown_logging,
)
from codesign_orchestrator.pipeline import PipelineController
from codesign_orchestrator.toolchain import ToolchainError, resolve_rcodesign
from codesign_orchestrator.ui.reporters import create_reporter

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from typing import TextIO

    from codesign_orchestrator.execution import ProcessInvoker

_REPORTER_CHOICES: Final[tuple[str, ...]] = ("auto", "github", "console")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for a pipeline run."""

    parser = argparse.ArgumentParser(
        prog="codesign-orchestrator",
        description=(
            "Sign, notarize, and staple Apple artifacts with rcodesign.\n\n"
            "Inputs come from INPUT_<NAME> environment variables (GitHub Actions),\n"
            "an optional TOML/YAML config file, and --set overrides, in that\n"
            "order of increasing precedence.\n\n"
            "Examples:\n"
            "  codesign-orchestrator --set input_path=App.app --set p12_file=cert.p12\n"
            "  codesign-orchestrator --config codesign.toml --set notarize=true\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a TOML or YAML input file (default: ./codesign.toml if present).",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override one input; repeat a multiline input to add lines.",
    )
    parser.add_argument(
        "--rcodesign",
        dest="rcodesign_path",
        default=None,
        help="Use this rcodesign executable instead of downloading a release.",
    )
    parser.add_argument(
        "--cache-dir",
        default=str(CACHE_DIR),
        help=f"Directory for downloaded rcodesign releases (default: {CACHE_DIR}).",
    )
    parser.add_argument(
        "--reporter",
        choices=_REPORTER_CHOICES,
        default="auto",
        help="Output style; auto uses workflow commands under GitHub Actions.",
    )
    parser.add_argument(
        "--log-dir",
        default=str(LOG_DIR),
        help=f"Base directory for per-run JSON logs (default: {LOG_DIR}).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Structured log level (default: INFO).",
    )
    parser.add_argument(
        "--no-log-console",
        dest="log_to_console",
        action="store_false",
        default=True,
        help="Write structured logs to the log file only, not to stderr.",
    )
    return parser


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
    invoker: ProcessInvoker | None = None,
) -> int:
    """Parse arguments, load inputs, run the pipeline, and publish its outputs."""

    args = build_parser().parse_args(argv)
    env = os.environ if environ is None else environ
    reporter = create_reporter(args.reporter, environ=env, stream=stream)

    try:
        overrides: dict[str, object] = dict(parse_cli_overrides(args.overrides))
        if args.rcodesign_path:
            overrides["rcodesign_path"] = args.rcodesign_path
        raw_inputs = collect_raw_inputs(args.config_path, cli_overrides=overrides, environ=env)
        inputs = validate_inputs(raw_inputs)
    except (ConfigLoadError, ConfigValidationError) as exc:
        reporter.set_failed(str(exc))
        return int(ExitCode.CONFIG_ERROR)

    handle = setup_structured_logging(
        LoggingConfig(
            run_id=_new_run_id(),
            base_log_dir=args.log_dir,
            level=args.log_level,
            log_to_console=args.log_to_console,
        )
    )
    logger = handle.logger
    try:
        logger.info("effective inputs", extra={"inputs": dump_effective_config(raw_inputs)})

        try:
            executable = resolve_rcodesign(inputs, cache_dir=args.cache_dir)
        except ToolchainError as exc:
            logger.error("rcodesign unavailable", extra={"reason": str(exc)})
            reporter.set_failed(str(exc))
            return int(ExitCode.TOOLCHAIN_ERROR)

        controller = PipelineController(
            invoker if invoker is not None else LocalProcessInvoker(),
            str(executable),
            reporter,
        )
        result = asyncio.run(controller.run(inputs.to_request()))

        if not result.succeeded:
            reporter.set_failed(result.error or "pipeline failed")
            return int(ExitCode.PIPELINE_FAILED)

        reporter.set_output(OUTPUT_PATH, result.output_path or "")
        reporter.set_output(OUTPUT_PATHS, result.output_paths or "")
        logger.info("pipeline finished", extra={"output_paths": list(result.state.artifacts)})
        return int(ExitCode.SUCCESS)
    finally:
        shutdown_logging(handle)


def _new_run_id() -> str:
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


__all__ = ["build_parser", "run_cli"]
