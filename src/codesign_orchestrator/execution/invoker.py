"""Async process invocation with full stdout/stderr capture."""

from __future__ import annotations

import asyncio
import codecs
import io
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from codesign_orchestrator.errors import ProcessLaunchError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_READ_CHUNK_BYTES: Final[int] = 64 * 1024


@dataclass(frozen=True, slots=True)
class InvocationResult:
    """Exit status and captured streams of one finished process.

    A non-zero ``exit_code`` is an ordinary result, never an exception.
    """

    exit_code: int
    stdout: str
    stderr: str
    argv: tuple[str, ...] = ()
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@runtime_checkable
class ProcessInvoker(Protocol):
    """Pluggable async process launcher used by the pipeline stages."""

    async def invoke(self, executable: str, arguments: Sequence[str]) -> InvocationResult: ...


class LocalProcessInvoker(ProcessInvoker):
    """Run commands as local subprocesses, streaming both pipes into text buffers."""

    def __init__(
        self,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self._env = dict(env) if env is not None else None
        self._cwd = cwd
        self._encoding = encoding

    async def invoke(self, executable: str, arguments: Sequence[str]) -> InvocationResult:
        argv = (executable, *arguments)
        started_ns = time.monotonic_ns()

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self._cwd,
                env=self._env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProcessLaunchError(executable, exc.strerror or str(exc)) from exc

        assert process.stdout is not None
        assert process.stderr is not None

        try:
            stdout_text, stderr_text = await asyncio.gather(
                _drain(process.stdout, self._encoding),
                _drain(process.stderr, self._encoding),
            )
            exit_code = await process.wait()
        finally:
            # Never leave a child running or unreaped, whatever interrupted the drain.
            if process.returncode is None:
                with suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        return InvocationResult(
            exit_code=exit_code,
            stdout=stdout_text,
            stderr=stderr_text,
            argv=argv,
            duration_ms=_elapsed_ms(started_ns),
        )


async def _drain(stream: asyncio.StreamReader, encoding: str) -> str:
    # Chunks are decoded as they arrive so multi-byte sequences split across
    # reads survive and no list of raw chunks is retained.
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    buffer = io.StringIO()
    while True:
        chunk = await stream.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        buffer.write(decoder.decode(chunk))
    buffer.write(decoder.decode(b"", final=True))
    return buffer.getvalue()


def _elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


__all__ = [
    "InvocationResult",
    "LocalProcessInvoker",
    "ProcessInvoker",
]
