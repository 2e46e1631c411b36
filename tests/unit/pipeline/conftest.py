"""Shared fakes for pipeline stage and controller tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

from codesign_orchestrator.errors import ProcessLaunchError
from codesign_orchestrator.execution.invoker import InvocationResult
from codesign_orchestrator.ui.reporters import RecordingReporter

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass
class FakeInvoker:
    """Records calls and answers by ``(subcommand, last argument)``."""

    exit_codes: dict[tuple[str, str], int] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)
    unlaunchable: set[str] = field(default_factory=set)
    calls: list[tuple[str, tuple[str, ...]]] = field(default_factory=list)
    finished: list[str] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    async def invoke(self, executable: str, arguments: Sequence[str]) -> InvocationResult:
        args = tuple(arguments)
        self.calls.append((executable, args))
        subcommand, target = args[0], args[-1]

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(target, 0.001))
        finally:
            self.in_flight -= 1

        if target in self.unlaunchable:
            raise ProcessLaunchError(executable, "No such file or directory")
        self.finished.append(target)
        exit_code = self.exit_codes.get((subcommand, target), 0)
        return InvocationResult(
            exit_code=exit_code,
            stdout=f"{subcommand} stdout {target}\n",
            stderr=f"{subcommand} stderr {target}\n" if exit_code else "",
            argv=(executable, *args),
        )

    def subcommands(self) -> list[str]:
        return [args[0] for _, args in self.calls]

    def calls_for(self, subcommand: str) -> list[tuple[str, ...]]:
        return [args for _, args in self.calls if args[0] == subcommand]


@pytest.fixture
def invoker() -> FakeInvoker:
    return FakeInvoker()


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()
