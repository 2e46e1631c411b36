"""
codesign-orchestrator — CLI smoke tests

File: tests/smoke/test_cli_end_to_end.py

Purpose
- Drive ``run_cli`` end to end against a fake rcodesign executable, the way a
  GitHub Actions step would: INPUT_* env vars in, workflow commands and
  $GITHUB_OUTPUT out.

What this test file should cover
- Successful sign -> notarize(--staple) run publishing both outputs.
- A partially failing notarization batch reporting every artifact and failing the step.
- Config and toolchain errors mapping onto their exit codes.
"""

from __future__ import annotations

import io
import json
import os
import sys
from pathlib import Path

import pytest

from codesign_orchestrator.main import ExitCode, route_exception
from codesign_orchestrator.toolchain import ToolchainError
from codesign_orchestrator.ui.cli import run_cli

pytestmark = [
    pytest.mark.smoke,
    pytest.mark.skipif(os.name == "nt", reason="fake rcodesign relies on a shebang"),
]

FAKE_RCODESIGN = """#!{python}
import json
import sys

args = sys.argv[1:]
with open({calls_path!r}, "a", encoding="utf-8") as handle:
    handle.write(json.dumps(args) + "\\n")

subcommand, target = args[0], args[-1]
print(f"fake {{subcommand}} {{target}}")
if subcommand == "notary-submit" and target.endswith("broken.app"):
    print("submission rejected", file=sys.stderr)
    sys.exit(1)
"""


def _install_fake_rcodesign(tmp_path: Path) -> tuple[Path, Path]:
    calls_path = tmp_path / "calls.jsonl"
    executable = tmp_path / "bin" / "rcodesign"
    executable.parent.mkdir(parents=True)
    executable.write_text(
        FAKE_RCODESIGN.format(python=sys.executable, calls_path=str(calls_path)),
        encoding="utf-8",
    )
    executable.chmod(0o755)
    return executable, calls_path


def _read_calls(calls_path: Path) -> list[list[str]]:
    return [json.loads(line) for line in calls_path.read_text(encoding="utf-8").splitlines()]


def _read_run_log(log_dir: Path) -> str:
    (log_path,) = log_dir.glob("*/pipeline.jsonl")
    return log_path.read_text(encoding="utf-8")


def _run(tmp_path: Path, environ: dict[str, str], *extra: str) -> tuple[int, str]:
    executable = tmp_path / "bin" / "rcodesign"
    stream = io.StringIO()
    exit_code = run_cli(
        [
            "--rcodesign",
            str(executable),
            "--log-dir",
            str(tmp_path / "logs"),
            "--no-log-console",
            *extra,
        ],
        environ={"GITHUB_ACTIONS": "true", "GITHUB_OUTPUT": str(tmp_path / "out"), **environ},
        stream=stream,
    )
    return exit_code, stream.getvalue()


def test_sign_and_notarize_with_staple_publishes_outputs(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    _, calls_path = _install_fake_rcodesign(tmp_path)

    exit_code, output = _run(
        tmp_path,
        {
            "INPUT_INPUT_PATH": "App.app",
            "INPUT_OUTPUT_PATH": "Signed.app",
            "INPUT_P12_FILE": "cert.p12",
            "INPUT_P12_PASSWORD": "hunter2",
            "INPUT_NOTARIZE": "true",
            "INPUT_STAPLE": "true",
            "INPUT_APP_STORE_CONNECT_API_KEY_JSON_FILE": "key.json",
        },
    )

    assert exit_code == ExitCode.SUCCESS
    assert _read_calls(calls_path) == [
        ["sign", "--p12-file", "cert.p12", "--p12-password", "hunter2", "App.app", "Signed.app"],
        ["notary-submit", "--api-key-file", "key.json", "--staple", "Signed.app"],
    ]
    assert "::group::sign: App.app" in output
    assert "::group::notary-submit: Signed.app" in output
    assert "::error::" not in output

    github_output = (tmp_path / "out").read_text(encoding="utf-8")
    assert "output_path<<ghadelimiter_" in github_output
    assert "\nSigned.app\n" in github_output

    run_log = _read_run_log(tmp_path / "logs")
    assert "pipeline_transition" in run_log
    assert "hunter2" not in run_log


def test_partial_notarization_failure_reports_every_artifact(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    _, calls_path = _install_fake_rcodesign(tmp_path)

    exit_code, output = _run(
        tmp_path,
        {
            "INPUT_INPUT_PATH": "good.app\nbroken.app\nother.app",
            "INPUT_SIGN": "false",
            "INPUT_NOTARIZE": "true",
            "INPUT_STAPLE": "true",
            "INPUT_APP_STORE_CONNECT_API_KEY_JSON_FILE": "key.json",
        },
        "--set",
        "notarize_concurrency=2",
    )

    assert exit_code == ExitCode.PIPELINE_FAILED
    targets = sorted(call[-1] for call in _read_calls(calls_path))
    assert targets == ["broken.app", "good.app", "other.app"]

    lines = output.splitlines()
    assert lines[0] == "Submitting 3 file(s) for notarization"
    group_titles = [line for line in lines if line.startswith("::group::")]
    assert group_titles == [
        "::group::notary-submit: good.app",
        "::group::notary-submit failed: broken.app",
        "::group::notary-submit: other.app",
    ]
    assert "::error::submission rejected" in lines
    assert lines[-1] == "::error::Notarization failed for: broken.app"
    assert not (tmp_path / "out").exists()


def test_invalid_inputs_exit_with_config_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    _install_fake_rcodesign(tmp_path)

    exit_code, output = _run(tmp_path, {"INPUT_INPUT_PATH": "App.app", "INPUT_SIGN": "yes"})

    assert exit_code == ExitCode.CONFIG_ERROR
    assert output.startswith("::error::invalid inputs:%0A- sign: sign does not meet YAML 1.2")


def test_missing_rcodesign_exits_with_toolchain_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    exit_code, output = _run(tmp_path, {"INPUT_INPUT_PATH": "App.app"})

    assert exit_code == ExitCode.TOOLCHAIN_ERROR
    assert "::error::rcodesign_path does not exist" in output


def test_route_exception_follows_cause_chain() -> None:
    try:
        try:
            raise ToolchainError("download failed")
        except ToolchainError as exc:
            raise RuntimeError("wrapped") from exc
    except RuntimeError as wrapped:
        assert route_exception(wrapped) is ExitCode.TOOLCHAIN_ERROR

    assert route_exception(KeyError("x")) is ExitCode.INTERNAL_ERROR
