"""Reporter implementations: GitHub Actions workflow commands, rich console, in-memory."""

from __future__ import annotations

import os
import sys
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO

from rich.console import Console
from rich.text import Text

from codesign_orchestrator.pipeline.reporting import Reporter

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

ReporterKind = Literal["auto", "github", "console"]


class GitHubActionsReporter(Reporter):
    """Emit GitHub Actions workflow commands and write step outputs."""

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        output_file: Path | str | None = None,
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._output_file = Path(output_file) if output_file else None
        self.failed = False

    def info(self, message: str) -> None:
        self._write(message)

    def error(self, message: str) -> None:
        self._write(f"::error::{escape_data(message)}")

    @contextmanager
    def group(self, title: str) -> Iterator[None]:
        self._write(f"::group::{escape_data(title)}")
        try:
            yield
        finally:
            self._write("::endgroup::")

    def set_output(self, name: str, value: str) -> None:
        if self._output_file is None:
            self._write(f"::set-output name={escape_property(name)}::{escape_data(value)}")
            return

        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        if delimiter in name or delimiter in value:
            raise ValueError("output name or value contains the heredoc delimiter")
        with self._output_file.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def set_failed(self, message: str) -> None:
        self.failed = True
        self.error(message)

    def _write(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()


class ConsoleReporter(Reporter):
    """Render pipeline output for interactive terminals with ``rich``."""

    def __init__(self, *, console: Console | None = None) -> None:
        self._console = console if console is not None else Console(highlight=False)
        self.failed = False

    def info(self, message: str) -> None:
        self._console.print(Text(message))

    def error(self, message: str) -> None:
        self._console.print(Text(message, style="bold red"))

    @contextmanager
    def group(self, title: str) -> Iterator[None]:
        self._console.rule(Text(title, style="bold"), align="left")
        try:
            yield
        finally:
            self._console.rule(style="dim")

    def set_output(self, name: str, value: str) -> None:
        self._console.print(Text.assemble((name, "bold cyan"), ": ", value))

    def set_failed(self, message: str) -> None:
        self.failed = True
        self._console.print(Text.assemble(("Error: ", "bold red"), message))


@dataclass(slots=True)
class ReportGroup:
    """One collapsible section captured by :class:`RecordingReporter`."""

    title: str
    entries: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class RecordingReporter(Reporter):
    """Keep every reported event in memory."""

    events: list[tuple[str, str]] = field(default_factory=list)
    groups: list[ReportGroup] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)
    failure: str | None = None
    _open_group: ReportGroup | None = field(default=None, repr=False)

    def info(self, message: str) -> None:
        self._record("info", message)

    def error(self, message: str) -> None:
        self._record("error", message)

    @contextmanager
    def group(self, title: str) -> Iterator[None]:
        report_group = ReportGroup(title=title)
        self.groups.append(report_group)
        self.events.append(("group", title))
        self._open_group = report_group
        try:
            yield
        finally:
            self._open_group = None
            self.events.append(("endgroup", title))

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value

    def set_failed(self, message: str) -> None:
        self.failure = message
        self._record("error", message)

    def group_titled(self, title: str) -> ReportGroup:
        for report_group in self.groups:
            if report_group.title == title:
                return report_group
        raise KeyError(title)

    def _record(self, level: str, message: str) -> None:
        self.events.append((level, message))
        if self._open_group is not None:
            self._open_group.entries.append((level, message))


def create_reporter(
    kind: ReporterKind = "auto",
    *,
    environ: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
) -> Reporter:
    """Pick a reporter; ``auto`` uses workflow commands when running in GitHub Actions."""

    env = os.environ if environ is None else environ
    if kind == "auto":
        kind = "github" if env.get("GITHUB_ACTIONS", "").lower() == "true" else "console"

    if kind == "github":
        return GitHubActionsReporter(stream=stream, output_file=env.get("GITHUB_OUTPUT") or None)
    if kind == "console":
        return ConsoleReporter(console=Console(file=stream, highlight=False) if stream else None)
    raise ValueError(f"unsupported reporter {kind!r}; expected one of: auto, github, console")


def escape_data(value: str) -> str:
    """Escape a workflow command message."""

    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def escape_property(value: str) -> str:
    """Escape a workflow command property value."""

    return escape_data(value).replace(":", "%3A").replace(",", "%2C")


__all__ = [
    "ConsoleReporter",
    "GitHubActionsReporter",
    "RecordingReporter",
    "ReportGroup",
    "ReporterKind",
    "create_reporter",
    "escape_data",
    "escape_property",
]
