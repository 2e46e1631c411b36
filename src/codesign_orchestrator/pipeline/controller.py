"""Pipeline controller: sequences sign → notarize → staple over an artifact set.

The controller is stateless between runs. Every transition takes a
:class:`PipelineState` and returns the next one; the first
:class:`PipelineError` moves the run to ``FAILED`` and nothing after it runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from codesign_orchestrator.errors import PipelineError, PreconditionError
from codesign_orchestrator.pipeline.stages import (
    NotarizationParameters,
    NotarizeStage,
    SignStage,
    SigningParameters,
    StapleStage,
)
from codesign_orchestrator.utils.concurrency import resolve_concurrency

if TYPE_CHECKING:
    from codesign_orchestrator.execution.invoker import ProcessInvoker
    from codesign_orchestrator.pipeline.reporting import Reporter


class PipelineStatus(StrEnum):
    """States of the pipeline state machine."""

    INIT = "init"
    SIGNED = "signed"
    NOTARIZED = "notarized"
    STAPLED = "stapled"
    FAILED = "failed"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class PipelineRequest:
    """Everything one run needs, already parsed and validated by the caller."""

    artifacts: tuple[str, ...]
    sign: bool = False
    notarize: bool = False
    staple: bool = False
    notarize_concurrency: int = 0
    config_files: tuple[str, ...] = ()
    signing: SigningParameters = field(default_factory=SigningParameters)
    notarization: NotarizationParameters = field(default_factory=NotarizationParameters)


@dataclass(frozen=True, slots=True)
class PipelineState:
    """Artifact set and progress threaded through the stage transitions."""

    artifacts: tuple[str, ...]
    stapled: bool = False
    status: PipelineStatus = PipelineStatus.INIT
    error: str | None = None

    def advance(self, status: PipelineStatus, **changes: Any) -> PipelineState:
        return replace(self, status=status, **changes)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Terminal outcome of a run."""

    state: PipelineState
    exception: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state.status is PipelineStatus.DONE

    @property
    def error(self) -> str | None:
        return self.state.error

    @property
    def output_path(self) -> str | None:
        """First artifact of the final set; ``None`` for a failed run."""

        if not self.succeeded or not self.state.artifacts:
            return None
        return self.state.artifacts[0]

    @property
    def output_paths(self) -> str | None:
        """Newline-joined final artifact set; ``None`` for a failed run."""

        if not self.succeeded:
            return None
        return "\n".join(self.state.artifacts)


class PipelineController:
    """Drive the stages for one request at a time."""

    def __init__(
        self,
        invoker: ProcessInvoker,
        executable: str,
        reporter: Reporter,
        *,
        logger: Any | None = None,
    ) -> None:
        self._invoker = invoker
        self._executable = executable
        self._reporter = reporter
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def run(self, request: PipelineRequest) -> PipelineResult:
        state = PipelineState(artifacts=tuple(request.artifacts))
        try:
            validate_request(request)
            state = await self.sign(state, request)
            state = await self.notarize(state, request)
            state = await self.staple(state, request)
        except PipelineError as exc:
            failed = state.advance(PipelineStatus.FAILED, error=str(exc))
            self._log_transition(state, failed)
            return PipelineResult(state=failed, exception=exc)

        done = state.advance(PipelineStatus.DONE)
        self._log_transition(state, done)
        return PipelineResult(state=done)

    async def sign(self, state: PipelineState, request: PipelineRequest) -> PipelineState:
        """Init → Signed. A no-op passthrough unless signing was requested."""

        if not request.sign:
            return state.advance(PipelineStatus.SIGNED)

        stage = SignStage(request.signing, config_files=request.config_files)
        signed = await stage.run(self._invoker, self._executable, state.artifacts, self._reporter)
        return self._transition(state, PipelineStatus.SIGNED, artifacts=signed)

    async def notarize(self, state: PipelineState, request: PipelineRequest) -> PipelineState:
        """Signed → Notarized. Records whether notarization also stapled."""

        if not request.notarize:
            return state.advance(PipelineStatus.NOTARIZED)

        stage = NotarizeStage(
            request.notarization,
            staple=request.staple,
            config_files=request.config_files,
        )
        await stage.run(
            self._invoker,
            self._executable,
            state.artifacts,
            self._reporter,
            concurrency=resolve_concurrency(request.notarize_concurrency, len(state.artifacts)),
        )
        return self._transition(state, PipelineStatus.NOTARIZED, stapled=stage.staples)

    async def staple(self, state: PipelineState, request: PipelineRequest) -> PipelineState:
        """Notarized → Stapled. Skipped when not requested or already stapled."""

        if not request.staple or state.stapled:
            return state

        stage = StapleStage(config_files=request.config_files)
        await stage.run(
            self._invoker,
            self._executable,
            state.artifacts,
            self._reporter,
            concurrency=resolve_concurrency(request.notarize_concurrency, len(state.artifacts)),
        )
        return self._transition(state, PipelineStatus.STAPLED, stapled=True)

    def _transition(
        self,
        state: PipelineState,
        status: PipelineStatus,
        **changes: Any,
    ) -> PipelineState:
        advanced = state.advance(status, **changes)
        self._log_transition(state, advanced)
        return advanced

    def _log_transition(self, before: PipelineState, after: PipelineState) -> None:
        self._logger.info(
            "pipeline_transition",
            from_status=before.status.value,
            to_status=after.status.value,
            artifacts=list(after.artifacts),
            stapled=after.stapled,
            error=after.error,
        )


def validate_request(request: PipelineRequest) -> None:
    """Reject requests that no stage could run, before any process starts."""

    if not request.artifacts:
        raise PreconditionError("input_path is required")
    if request.notarize_concurrency < 0:
        raise PreconditionError("notarize_concurrency must be a non-negative integer")
    if len(request.artifacts) > 1 and request.signing.output_path:
        raise PreconditionError("output_path cannot be used with multiple input_path values")


__all__ = [
    "PipelineController",
    "PipelineRequest",
    "PipelineResult",
    "PipelineState",
    "PipelineStatus",
    "validate_request",
]
