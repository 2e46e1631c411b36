"""Orchestration core: stages, the pipeline state machine, and the reporter contract."""

from codesign_orchestrator.pipeline.controller import (
    PipelineController,
    PipelineRequest,
    PipelineResult,
    PipelineState,
    PipelineStatus,
    validate_request,
)
from codesign_orchestrator.pipeline.reporting import Reporter
from codesign_orchestrator.pipeline.stages import (
    BatchStage,
    NotarizationParameters,
    NotarizeStage,
    SignStage,
    SigningParameters,
    Stage,
    StageOutcome,
    StapleStage,
    WorkItem,
    report_outcome,
)

__all__ = [
    "BatchStage",
    "NotarizationParameters",
    "NotarizeStage",
    "PipelineController",
    "PipelineRequest",
    "PipelineResult",
    "PipelineState",
    "PipelineStatus",
    "Reporter",
    "SignStage",
    "SigningParameters",
    "Stage",
    "StageOutcome",
    "StapleStage",
    "WorkItem",
    "report_outcome",
    "validate_request",
]
