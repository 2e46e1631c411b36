"""
codesign-orchestrator — input schema and validation.

File: src/codesign_orchestrator/config/schema.py

Purpose
- Define the accepted pipeline inputs, their kinds and defaults.
- Coerce raw values (strings from the environment, native values from config
  files) into a typed :class:`ActionInputs` and report every problem at once.

Coercion rules
- Plain inputs are trimmed strings; empty means unset.
- Multiline inputs split on ``\\r?\\n``, trim each line and drop blank lines;
  config files may also give a list.
- Boolean inputs follow the YAML 1.2 core schema
  (``true | True | TRUE | false | False | FALSE``).
- ``notarize_concurrency`` is a non-negative integer; ``0`` means one worker
  per artifact.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal

from codesign_orchestrator.constants import DEFAULT_RCODESIGN_VERSION
from codesign_orchestrator.pipeline.controller import PipelineRequest
from codesign_orchestrator.pipeline.stages import NotarizationParameters, SigningParameters

InputKind = Literal["str", "multiline", "bool", "int"]

INPUT_KINDS: Final[dict[str, InputKind]] = {
    "input_path": "multiline",
    "output_path": "str",
    "sign": "bool",
    "notarize": "bool",
    "notarize_concurrency": "int",
    "staple": "bool",
    "config_file": "multiline",
    "profile": "str",
    "pem_file": "multiline",
    "p12_file": "str",
    "p12_password": "str",
    "certificate_der_file": "multiline",
    "remote_sign_public_key": "multiline",
    "remote_sign_public_key_pem_file": "str",
    "remote_sign_shared_secret": "str",
    "app_store_connect_api_key_json_file": "str",
    "app_store_connect_api_issuer": "str",
    "app_store_connect_api_key": "str",
    "sign_args": "multiline",
    "rcodesign_version": "str",
    "rcodesign_path": "str",
}

DEFAULT_INPUTS: Final[dict[str, object]] = {
    "sign": True,
    "notarize": False,
    "notarize_concurrency": 0,
    "staple": False,
    "rcodesign_version": DEFAULT_RCODESIGN_VERSION,
}

SECRET_INPUTS: Final[frozenset[str]] = frozenset(
    {
        "p12_password",
        "remote_sign_shared_secret",
        "app_store_connect_api_key",
    }
)

_REDACTED: Final[str] = "***REDACTED***"
_LINE_SPLIT: Final[re.Pattern[str]] = re.compile(r"\r?\n")
_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"true", "True", "TRUE"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"false", "False", "FALSE"})


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """One validation problem, keyed by input name."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when input validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid inputs:\n{rendered}")


@dataclass(frozen=True, slots=True)
class ActionInputs:
    """Validated, typed pipeline inputs."""

    input_paths: tuple[str, ...]
    output_path: str | None = None
    sign: bool = True
    notarize: bool = False
    notarize_concurrency: int = 0
    staple: bool = False
    config_files: tuple[str, ...] = ()
    profile: str | None = None
    pem_files: tuple[str, ...] = ()
    p12_file: str | None = None
    p12_password: str | None = None
    certificate_der_files: tuple[str, ...] = ()
    remote_sign_public_key: tuple[str, ...] = ()
    remote_sign_public_key_pem_file: str | None = None
    remote_sign_shared_secret: str | None = None
    app_store_connect_api_key_json_file: str | None = None
    app_store_connect_api_issuer: str | None = None
    app_store_connect_api_key: str | None = None
    sign_args: tuple[str, ...] = ()
    rcodesign_version: str = DEFAULT_RCODESIGN_VERSION
    rcodesign_path: str | None = None

    def to_request(self) -> PipelineRequest:
        """Translate inputs into the controller's request value."""

        return PipelineRequest(
            artifacts=self.input_paths,
            sign=self.sign,
            notarize=self.notarize,
            staple=self.staple,
            notarize_concurrency=self.notarize_concurrency,
            config_files=self.config_files,
            signing=SigningParameters(
                profile=self.profile,
                pem_files=self.pem_files,
                p12_file=self.p12_file,
                p12_password=self.p12_password,
                certificate_der_files=self.certificate_der_files,
                remote_public_key=self.remote_sign_public_key,
                remote_public_key_pem_file=self.remote_sign_public_key_pem_file,
                remote_shared_secret=self.remote_sign_shared_secret,
                extra_arguments=self.sign_args,
                output_path=self.output_path,
            ),
            notarization=NotarizationParameters(
                api_key_file=self.app_store_connect_api_key_json_file,
                api_issuer=self.app_store_connect_api_issuer,
                api_key=self.app_store_connect_api_key,
            ),
        )


def validate_inputs(raw: Mapping[str, object]) -> ActionInputs:
    """Coerce merged raw inputs into :class:`ActionInputs` or raise with all issues."""

    issues: list[ConfigValidationIssue] = []
    values: dict[str, Any] = {}

    for name in sorted(raw):
        if name not in INPUT_KINDS:
            issues.append(ConfigValidationIssue(path=name, message="unknown input"))

    for name, kind in INPUT_KINDS.items():
        value = raw.get(name, DEFAULT_INPUTS.get(name))
        try:
            values[name] = _coerce(name, kind, value)
        except ValueError as exc:
            issues.append(ConfigValidationIssue(path=name, message=str(exc)))

    if not issues:
        if not values["input_path"]:
            issues.append(ConfigValidationIssue(path="input_path", message="input_path is required"))
        elif len(values["input_path"]) > 1 and values["output_path"]:
            issues.append(
                ConfigValidationIssue(
                    path="output_path",
                    message="output_path cannot be used with multiple input_path values",
                )
            )

    if issues:
        raise ConfigValidationError(issues)

    return ActionInputs(
        input_paths=values["input_path"],
        output_path=values["output_path"],
        sign=values["sign"],
        notarize=values["notarize"],
        notarize_concurrency=values["notarize_concurrency"],
        staple=values["staple"],
        config_files=values["config_file"],
        profile=values["profile"],
        pem_files=values["pem_file"],
        p12_file=values["p12_file"],
        p12_password=values["p12_password"],
        certificate_der_files=values["certificate_der_file"],
        remote_sign_public_key=values["remote_sign_public_key"],
        remote_sign_public_key_pem_file=values["remote_sign_public_key_pem_file"],
        remote_sign_shared_secret=values["remote_sign_shared_secret"],
        app_store_connect_api_key_json_file=values["app_store_connect_api_key_json_file"],
        app_store_connect_api_issuer=values["app_store_connect_api_issuer"],
        app_store_connect_api_key=values["app_store_connect_api_key"],
        sign_args=values["sign_args"],
        rcodesign_version=values["rcodesign_version"] or DEFAULT_RCODESIGN_VERSION,
        rcodesign_path=values["rcodesign_path"],
    )


def redact_inputs(raw: Mapping[str, object]) -> dict[str, Any]:
    """Return a copy of ``raw`` with secret inputs masked."""

    redacted: dict[str, Any] = {}
    for name in sorted(raw):
        value = raw[name]
        if name in SECRET_INPUTS and value not in (None, ""):
            redacted[name] = _REDACTED
        elif isinstance(value, (list, tuple)):
            redacted[name] = list(value)
        else:
            redacted[name] = value
    return redacted


def split_multiline(value: str) -> tuple[str, ...]:
    """Split a multiline input into trimmed, non-empty lines."""

    return tuple(line.strip() for line in _LINE_SPLIT.split(value) if line.strip())


def _coerce(name: str, kind: InputKind, value: object) -> Any:
    if kind == "str":
        return _coerce_str(value)
    if kind == "multiline":
        return _coerce_multiline(value)
    if kind == "bool":
        return _coerce_bool(name, value)
    return _coerce_non_negative_int(name, value)


def _coerce_str(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"must be a string, got {type(value).__name__}")
    text = str(value).strip()
    return text or None


def _coerce_multiline(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return split_multiline(value)
    if isinstance(value, (list, tuple)):
        lines: list[str] = []
        for index, item in enumerate(value):
            if not isinstance(item, str):
                raise ValueError(f"item {index} must be a string, got {type(item).__name__}")
            lines.extend(split_multiline(item))
        return tuple(lines)
    raise ValueError(f"must be a string or list of strings, got {type(value).__name__}")


def _coerce_bool(name: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text in _BOOLEAN_TRUE:
            return True
        if text in _BOOLEAN_FALSE:
            return False
    raise ValueError(
        f'{name} does not meet YAML 1.2 "Core Schema" specification; '
        "supported values: true | True | TRUE | false | False | FALSE"
    )


def _coerce_non_negative_int(name: str, value: object) -> int:
    parsed: int | None = None
    if isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            parsed = 0
        elif re.fullmatch(r"[+-]?\d+", text):
            parsed = int(text)
    elif value is None:
        parsed = 0

    if parsed is None or parsed < 0:
        raise ValueError(f"{name} must be a non-negative integer")
    return parsed


__all__ = [
    "DEFAULT_INPUTS",
    "INPUT_KINDS",
    "SECRET_INPUTS",
    "ActionInputs",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "InputKind",
    "redact_inputs",
    "split_multiline",
    "validate_inputs",
]
