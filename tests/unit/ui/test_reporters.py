"""Tests for workflow-command, console and in-memory reporters."""

from __future__ import annotations

import io
import re
from pathlib import Path

import pytest
from rich.console import Console

from codesign_orchestrator.pipeline import Reporter
from codesign_orchestrator.ui.reporters import (
    ConsoleReporter,
    GitHubActionsReporter,
    RecordingReporter,
    create_reporter,
    escape_data,
    escape_property,
)


def test_github_reporter_emits_workflow_commands() -> None:
    stream = io.StringIO()
    reporter = GitHubActionsReporter(stream=stream)

    reporter.info("Submitting 2 file(s) for notarization")
    with reporter.group("notary-submit failed: b.app"):
        reporter.error("exit code: 1\nsecond line")

    assert stream.getvalue().splitlines() == [
        "Submitting 2 file(s) for notarization",
        "::group::notary-submit failed: b.app",
        "::error::exit code: 1%0Asecond line",
        "::endgroup::",
    ]


def test_github_reporter_closes_group_on_error() -> None:
    stream = io.StringIO()
    reporter = GitHubActionsReporter(stream=stream)

    with pytest.raises(RuntimeError), reporter.group("sign: App.app"):
        raise RuntimeError("boom")

    assert stream.getvalue().splitlines()[-1] == "::endgroup::"


def test_github_reporter_writes_outputs_as_heredoc(tmp_path: Path) -> None:
    output_file = tmp_path / "github_output"
    reporter = GitHubActionsReporter(stream=io.StringIO(), output_file=output_file)

    reporter.set_output("output_path", "a.dmg")
    reporter.set_output("output_paths", "a.dmg\nb.dmg")

    text = output_file.read_text(encoding="utf-8")
    blocks = re.findall(r"^(\w+)<<(ghadelimiter_[0-9a-f-]+)\n(.*?)\n\2$", text, re.M | re.S)
    assert [(name, value) for name, _, value in blocks] == [
        ("output_path", "a.dmg"),
        ("output_paths", "a.dmg\nb.dmg"),
    ]


def test_github_reporter_falls_back_to_set_output_command() -> None:
    stream = io.StringIO()
    reporter = GitHubActionsReporter(stream=stream)

    reporter.set_output("output_paths", "a\nb")

    assert stream.getvalue() == "::set-output name=output_paths::a%0Ab\n"


def test_github_reporter_set_failed_marks_failure() -> None:
    stream = io.StringIO()
    reporter = GitHubActionsReporter(stream=stream)

    reporter.set_failed("Notarization failed for: b")

    assert reporter.failed is True
    assert stream.getvalue() == "::error::Notarization failed for: b\n"


def test_console_reporter_renders_with_rich() -> None:
    buffer = io.StringIO()
    reporter = ConsoleReporter(console=Console(file=buffer, width=80, color_system=None))

    reporter.info("Stapling notarization ticket: a.app")
    with reporter.group("staple: a.app"):
        reporter.info("ok")
    reporter.set_output("output_path", "a.app")
    reporter.set_failed("Stapling failed for: a.app")

    rendered = buffer.getvalue()
    assert "Stapling notarization ticket: a.app" in rendered
    assert "staple: a.app" in rendered
    assert "output_path: a.app" in rendered
    assert "Error: Stapling failed for: a.app" in rendered
    assert reporter.failed is True


def test_recording_reporter_tracks_groups_and_outputs() -> None:
    reporter = RecordingReporter()

    reporter.info("before")
    with reporter.group("sign: App.app"):
        reporter.info("inside")
        reporter.error("problem")
    reporter.set_output("output_path", "App.app")
    reporter.set_failed("done badly")

    assert reporter.events == [
        ("info", "before"),
        ("group", "sign: App.app"),
        ("info", "inside"),
        ("error", "problem"),
        ("endgroup", "sign: App.app"),
        ("error", "done badly"),
    ]
    assert reporter.group_titled("sign: App.app").entries == [
        ("info", "inside"),
        ("error", "problem"),
    ]
    assert reporter.outputs == {"output_path": "App.app"}
    assert reporter.failure == "done badly"
    with pytest.raises(KeyError):
        reporter.group_titled("missing")


def test_create_reporter_auto_detects_github_actions(tmp_path: Path) -> None:
    github = create_reporter(
        "auto",
        environ={"GITHUB_ACTIONS": "true", "GITHUB_OUTPUT": str(tmp_path / "out")},
        stream=io.StringIO(),
    )
    console = create_reporter("auto", environ={}, stream=io.StringIO())

    assert isinstance(github, GitHubActionsReporter)
    assert isinstance(console, ConsoleReporter)
    assert isinstance(github, Reporter)


def test_create_reporter_rejects_unknown_kind() -> None:
    with pytest.raises(ValueError, match="unsupported reporter"):
        create_reporter("fancy", environ={})  # type: ignore[arg-type]


def test_escaping_rules() -> None:
    assert escape_data("50%\r\ndone") == "50%25%0D%0Adone"
    assert escape_property("a:b,c%") == "a%3Ab%2Cc%25"
