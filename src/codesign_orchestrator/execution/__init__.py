"""Process execution boundary for rcodesign invocations."""

from codesign_orchestrator.execution.invoker import (
    InvocationResult,
    LocalProcessInvoker,
    ProcessInvoker,
)

__all__ = [
    "InvocationResult",
    "LocalProcessInvoker",
    "ProcessInvoker",
]
