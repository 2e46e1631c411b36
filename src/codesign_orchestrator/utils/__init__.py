"""Utility exports for concurrency helpers."""

from codesign_orchestrator.utils.concurrency import resolve_concurrency, run_bounded

__all__ = [
    "resolve_concurrency",
    "run_bounded",
]
