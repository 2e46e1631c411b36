"""Error hierarchy for pipeline runs.

Every error a run can end with derives from :class:`PipelineError` so the
controller can turn it into the run's single terminal failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class PipelineError(RuntimeError):
    """Base error for pipeline failures."""


class PreconditionError(PipelineError, ValueError):
    """Raised before any subprocess runs when a stage cannot start."""


class ProcessLaunchError(PipelineError):
    """Raised when the external executable cannot be started at all."""

    def __init__(self, executable: str, reason: str) -> None:
        self.executable = executable
        self.reason = reason
        super().__init__(f"failed to start {executable}: {reason}")


class StageCommandError(PipelineError):
    """Raised when a single-artifact stage exits non-zero."""

    def __init__(
        self,
        *,
        stage: str,
        exit_code: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.stage = stage
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"rcodesign {stage} failed with exit code {exit_code}")


class AggregatedStageError(PipelineError):
    """Raised after a batch stage when one or more artifacts failed."""

    def __init__(self, *, stage: str, label: str, failed_artifacts: Sequence[str]) -> None:
        self.stage = stage
        self.failed_artifacts = tuple(failed_artifacts)
        super().__init__(f"{label} failed for: {', '.join(self.failed_artifacts)}")


__all__ = [
    "AggregatedStageError",
    "PipelineError",
    "PreconditionError",
    "ProcessLaunchError",
    "StageCommandError",
]
