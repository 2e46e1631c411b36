"""Unit tests for input coercion and validation."""

from __future__ import annotations

import pytest

from codesign_orchestrator.config.schema import (
    ActionInputs,
    ConfigValidationError,
    split_multiline,
    validate_inputs,
)
from codesign_orchestrator.constants import DEFAULT_RCODESIGN_VERSION


def test_defaults_apply_when_only_input_path_is_given() -> None:
    inputs = validate_inputs({"input_path": "App.app"})

    assert inputs == ActionInputs(input_paths=("App.app",))
    assert inputs.sign is True
    assert inputs.notarize is False
    assert inputs.staple is False
    assert inputs.notarize_concurrency == 0
    assert inputs.rcodesign_version == DEFAULT_RCODESIGN_VERSION


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("true", True),
        ("True", True),
        ("TRUE", True),
        ("false", False),
        ("False", False),
        ("FALSE", False),
        (" true ", True),
        (True, True),
        (False, False),
    ],
)
def test_booleans_follow_yaml_core_schema(raw: object, expected: bool) -> None:
    assert validate_inputs({"input_path": "a", "notarize": raw}).notarize is expected


@pytest.mark.parametrize("raw", ["yes", "1", "tRuE", "on", 1])
def test_non_core_schema_booleans_are_rejected(raw: object) -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_inputs({"input_path": "a", "staple": raw})

    assert excinfo.value.issues[0].path == "staple"
    assert 'YAML 1.2 "Core Schema"' in excinfo.value.issues[0].message


@pytest.mark.parametrize(("raw", "expected"), [("3", 3), (" 0 ", 0), ("", 0), (5, 5), ("+2", 2)])
def test_notarize_concurrency_parses_non_negative_integers(raw: object, expected: int) -> None:
    assert validate_inputs({"input_path": "a", "notarize_concurrency": raw}).notarize_concurrency == (
        expected
    )


@pytest.mark.parametrize("raw", ["-1", "two", "1.5", -3, True, 2.0])
def test_notarize_concurrency_rejects_other_values(raw: object) -> None:
    with pytest.raises(
        ConfigValidationError, match="notarize_concurrency must be a non-negative integer"
    ):
        validate_inputs({"input_path": "a", "notarize_concurrency": raw})


def test_missing_input_path_is_reported() -> None:
    with pytest.raises(ConfigValidationError, match="input_path is required"):
        validate_inputs({"input_path": "\n  \n"})


def test_output_path_with_multiple_inputs_is_reported() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_inputs({"input_path": "a\nb", "output_path": "out"})

    assert [issue.path for issue in excinfo.value.issues] == ["output_path"]


def test_all_issues_are_reported_together() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        validate_inputs(
            {
                "input_path": "a",
                "sign": "maybe",
                "notarize_concurrency": "-4",
                "mystery": "x",
            }
        )

    paths = sorted(issue.path for issue in excinfo.value.issues)
    assert paths == ["mystery", "notarize_concurrency", "sign"]
    assert str(excinfo.value).startswith("invalid inputs:\n- mystery: unknown input")


def test_to_request_maps_signing_and_notarization_inputs() -> None:
    inputs = validate_inputs(
        {
            "input_path": "App.app",
            "output_path": "Signed.app",
            "notarize": "true",
            "staple": "true",
            "notarize_concurrency": "2",
            "config_file": "a.toml\nb.toml",
            "p12_file": "cert.p12",
            "p12_password": "pw",
            "remote_sign_public_key": "MIIB\nAQAB\n",
            "sign_args": "--code-signature-flags\nruntime",
            "app_store_connect_api_key_json_file": "key.json",
            "app_store_connect_api_issuer": "issuer",
        }
    )

    request = inputs.to_request()

    assert request.artifacts == ("App.app",)
    assert request.sign and request.notarize and request.staple
    assert request.notarize_concurrency == 2
    assert request.config_files == ("a.toml", "b.toml")
    assert request.signing.output_path == "Signed.app"
    assert request.signing.p12_password == "pw"
    assert request.signing.remote_public_key == ("MIIB", "AQAB")
    assert request.signing.extra_arguments == ("--code-signature-flags", "runtime")
    assert request.notarization.api_key_file == "key.json"
    assert request.notarization.api_issuer == "issuer"
    assert request.notarization.api_key is None


def test_blank_rcodesign_version_falls_back_to_default() -> None:
    assert (
        validate_inputs({"input_path": "a", "rcodesign_version": "  "}).rcodesign_version
        == DEFAULT_RCODESIGN_VERSION
    )


def test_split_multiline_trims_and_drops_blank_lines() -> None:
    assert split_multiline("  a \r\n\r\n b\n\t\nc  ") == ("a", "b", "c")
