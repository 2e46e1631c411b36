"""rcodesign pipeline stages: argument building, invocation, and classification.

Each stage shares one shape: it builds the rcodesign arguments for an
artifact, invokes the process, and classifies the result. ``SignStage``
handles exactly one artifact and fails hard on a non-zero exit. The batch
stages (``NotarizeStage``, ``StapleStage``) fan out over the bounded runner,
keep per-artifact failures as data, report every artifact once the batch is
done, and only then raise one aggregated error naming all failures.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from codesign_orchestrator.constants import (
    NOTARIZE_SUBCOMMAND,
    SIGN_SUBCOMMAND,
    STAPLE_SUBCOMMAND,
)
from codesign_orchestrator.errors import (
    AggregatedStageError,
    PreconditionError,
    StageCommandError,
)
from codesign_orchestrator.observability.logging import redact_arguments
from codesign_orchestrator.utils.concurrency import run_bounded

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codesign_orchestrator.execution.invoker import InvocationResult, ProcessInvoker
    from codesign_orchestrator.pipeline.reporting import Reporter


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One artifact submitted to a stage; identity is its position."""

    index: int
    artifact: str


@dataclass(frozen=True, slots=True)
class StageOutcome:
    """Classified result of running a stage against one artifact."""

    index: int
    artifact: str
    result: InvocationResult
    failure: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True, slots=True)
class SigningParameters:
    """Signing material and options passed to ``rcodesign sign``."""

    profile: str | None = None
    pem_files: tuple[str, ...] = ()
    p12_file: str | None = None
    p12_password: str | None = None
    certificate_der_files: tuple[str, ...] = ()
    remote_public_key: tuple[str, ...] = ()
    remote_public_key_pem_file: str | None = None
    remote_shared_secret: str | None = None
    extra_arguments: tuple[str, ...] = ()
    output_path: str | None = None


@dataclass(frozen=True, slots=True)
class NotarizationParameters:
    """App Store Connect API credentials passed to ``rcodesign notary-submit``."""

    api_key_file: str | None = None
    api_issuer: str | None = None
    api_key: str | None = None


class Stage(ABC):
    """Common shape of a pipeline stage."""

    name: ClassVar[str]
    subcommand: ClassVar[str]

    def __init__(self, *, config_files: Sequence[str] = (), logger: Any | None = None) -> None:
        self._config_files = tuple(config_files)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def shared_arguments(self) -> list[str]:
        arguments = [self.subcommand]
        for path in self._config_files:
            arguments.extend(("--config-file", path))
        return arguments

    def build_arguments(self, artifact: str) -> list[str]:
        return [*self.shared_arguments(), artifact]

    def classify(self, result: InvocationResult) -> str | None:
        """Return ``None`` for success, else a short failure detail."""

        if result.exit_code == 0:
            return None
        return f"exit code {result.exit_code}"

    async def _invoke(
        self,
        invoker: ProcessInvoker,
        executable: str,
        item: WorkItem,
    ) -> StageOutcome:
        arguments = self.build_arguments(item.artifact)
        result = await invoker.invoke(executable, arguments)
        outcome = StageOutcome(
            index=item.index,
            artifact=item.artifact,
            result=result,
            failure=self.classify(result),
        )
        self._logger.info(
            "stage_item_finished",
            stage=self.name,
            artifact=item.artifact,
            position=item.index,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            argv=redact_arguments([executable, *arguments]),
            ok=outcome.ok,
        )
        return outcome


class SignStage(Stage):
    """``rcodesign sign`` over exactly one artifact."""

    name = "sign"
    subcommand = SIGN_SUBCOMMAND

    def __init__(
        self,
        parameters: SigningParameters,
        *,
        config_files: Sequence[str] = (),
        logger: Any | None = None,
    ) -> None:
        super().__init__(config_files=config_files, logger=logger)
        self._parameters = parameters

    def shared_arguments(self) -> list[str]:
        params = self._parameters
        arguments = super().shared_arguments()

        if params.profile:
            arguments.extend(("--profile", params.profile))
        for path in params.pem_files:
            arguments.extend(("--pem-file", path))
        if params.p12_file:
            arguments.extend(("--p12-file", params.p12_file))
        if params.p12_password:
            arguments.extend(("--p12-password", params.p12_password))
        for path in params.certificate_der_files:
            arguments.extend(("--certificate-der-file", path))
        if params.remote_public_key:
            arguments.extend(("--remote-public-key", "".join(params.remote_public_key)))
        if params.remote_public_key_pem_file:
            arguments.extend(("--remote-public-key-pem-file", params.remote_public_key_pem_file))
        if params.remote_shared_secret:
            arguments.extend(("--remote-shared-secret", params.remote_shared_secret))

        arguments.extend(params.extra_arguments)
        return arguments

    def build_arguments(self, artifact: str) -> list[str]:
        arguments = super().build_arguments(artifact)
        if self._parameters.output_path:
            arguments.append(self._parameters.output_path)
        return arguments

    async def run(
        self,
        invoker: ProcessInvoker,
        executable: str,
        artifacts: Sequence[str],
        reporter: Reporter,
    ) -> tuple[str, ...]:
        """Sign the single artifact and return the signed artifact set."""

        if len(artifacts) != 1:
            raise PreconditionError(
                "Multiple input_path values are not supported when sign=true"
                if len(artifacts) > 1
                else "input_path is required"
            )

        outcome = await self._invoke(invoker, executable, WorkItem(0, artifacts[0]))
        report_outcome(reporter, self.subcommand, outcome)

        if not outcome.ok:
            raise StageCommandError(
                stage=self.name,
                exit_code=outcome.result.exit_code,
                stdout=outcome.result.stdout,
                stderr=outcome.result.stderr,
            )

        return (self._parameters.output_path or artifacts[0],)


class BatchStage(Stage):
    """Stage that runs once per artifact through the bounded runner."""

    failure_label: ClassVar[str]

    def check_preconditions(self) -> None:
        """Raise :class:`PreconditionError` when the stage cannot start."""

    def announce(self, artifacts: Sequence[str], reporter: Reporter) -> None:
        """Emit a batch-level message before any artifact is submitted."""

    def item_message(self, artifact: str) -> str:
        raise NotImplementedError

    async def run(
        self,
        invoker: ProcessInvoker,
        executable: str,
        artifacts: Sequence[str],
        reporter: Reporter,
        *,
        concurrency: int,
    ) -> tuple[StageOutcome, ...]:
        """Run every artifact, report each one, then fail if any failed."""

        self.check_preconditions()
        self.announce(artifacts, reporter)

        async def operation(item: WorkItem, index: int) -> StageOutcome:
            reporter.info(self.item_message(item.artifact))
            return await self._invoke(invoker, executable, item)

        work_items = [WorkItem(index, artifact) for index, artifact in enumerate(artifacts)]
        outcomes = tuple(await run_bounded(work_items, concurrency, operation))

        for outcome in outcomes:
            report_outcome(reporter, self.subcommand, outcome)

        failures = [outcome.artifact for outcome in outcomes if not outcome.ok]
        if failures:
            self._logger.error(
                "stage_failed",
                stage=self.name,
                failed_artifacts=failures,
                attempted=len(outcomes),
            )
            raise AggregatedStageError(
                stage=self.name,
                label=self.failure_label,
                failed_artifacts=failures,
            )
        return outcomes


class NotarizeStage(BatchStage):
    """``rcodesign notary-submit`` with ``--wait`` or ``--staple``."""

    name = "notarize"
    subcommand = NOTARIZE_SUBCOMMAND
    failure_label = "Notarization"

    def __init__(
        self,
        parameters: NotarizationParameters,
        *,
        staple: bool = False,
        config_files: Sequence[str] = (),
        logger: Any | None = None,
    ) -> None:
        super().__init__(config_files=config_files, logger=logger)
        self._parameters = parameters
        self._staple = staple

    @property
    def staples(self) -> bool:
        """Whether a successful run of this stage has also stapled the tickets."""

        return self._staple

    def check_preconditions(self) -> None:
        if not self._parameters.api_key_file:
            raise PreconditionError("App Store Connect API Key not defined; cannot notarize")

    def shared_arguments(self) -> list[str]:
        params = self._parameters
        arguments = super().shared_arguments()

        if params.api_key_file:
            arguments.extend(("--api-key-file", params.api_key_file))
        if params.api_issuer:
            arguments.extend(("--api-issuer", params.api_issuer))
        if params.api_key:
            arguments.extend(("--api-key", params.api_key))

        arguments.append("--staple" if self._staple else "--wait")
        return arguments

    def announce(self, artifacts: Sequence[str], reporter: Reporter) -> None:
        reporter.info(f"Submitting {len(artifacts)} file(s) for notarization")

    def item_message(self, artifact: str) -> str:
        return f"Starting notarization: {artifact}"


class StapleStage(BatchStage):
    """``rcodesign staple`` for artifacts notarized without ``--staple``."""

    name = "staple"
    subcommand = STAPLE_SUBCOMMAND
    failure_label = "Stapling"

    def item_message(self, artifact: str) -> str:
        return f"Stapling notarization ticket: {artifact}"


def report_outcome(reporter: Reporter, subcommand: str, outcome: StageOutcome) -> None:
    """Emit the collapsible per-artifact report for one stage outcome."""

    if outcome.ok:
        title = f"{subcommand}: {outcome.artifact}"
        emit = reporter.info
    else:
        title = f"{subcommand} failed: {outcome.artifact}"
        emit = reporter.error

    with reporter.group(title):
        if not outcome.ok:
            reporter.error(f"exit code: {outcome.result.exit_code}")
        for stream_text in (outcome.result.stdout, outcome.result.stderr):
            stripped = stream_text.strip()
            if stripped:
                emit(stripped)


__all__ = [
    "BatchStage",
    "NotarizationParameters",
    "NotarizeStage",
    "SignStage",
    "SigningParameters",
    "Stage",
    "StageOutcome",
    "StapleStage",
    "WorkItem",
    "report_outcome",
]
