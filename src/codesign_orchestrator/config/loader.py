"""
codesign-orchestrator — input loader.

File: src/codesign_orchestrator/config/loader.py

Purpose
- Merge pipeline inputs from defaults, a config file, the environment and CLI
  overrides, then validate them into :class:`ActionInputs`.

Precedence
- CLI (``--set key=value``) > env (``INPUT_<NAME>``, the GitHub Actions
  convention) > file > defaults.
- Config files are TOML (``tomllib``) or YAML (PyYAML) chosen by suffix; an
  optional top-level ``inputs`` table is unwrapped.
- Empty environment values count as unset, matching how the Actions runner
  exports inputs that have no value.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

import yaml

from codesign_orchestrator.config.schema import (
    INPUT_KINDS,
    ActionInputs,
    redact_inputs,
    validate_inputs,
)

DEFAULT_CONFIG_FILE: Final[str] = "codesign.toml"
ENV_PREFIX: Final[str] = "INPUT_"
_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})


class ConfigLoadError(ValueError):
    """Raised when inputs cannot be loaded or overrides cannot be parsed."""


def load_inputs(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ActionInputs:
    """Load and validate inputs with precedence CLI > env > file > defaults."""

    return validate_inputs(
        collect_raw_inputs(config_path, cli_overrides=cli_overrides, environ=environ)
    )


def collect_raw_inputs(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Merge raw, uncoerced input values from every source."""

    resolved_path = _resolve_config_path(config_path)
    env_map = os.environ if environ is None else environ

    merged: dict[str, Any] = {}
    merged.update(load_config_file(resolved_path, required=config_path is not None))
    merged.update(_collect_env_inputs(env_map))
    for key, value in (cli_overrides or {}).items():
        merged[normalize_input_name(key)] = value
    return merged


def load_config_file(path: str | Path, *, required: bool = True) -> dict[str, Any]:
    """Read a TOML or YAML input file into a flat mapping of input names."""

    file_path = Path(path)
    if not file_path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {file_path}")
        return {}

    try:
        if file_path.suffix.lower() in _YAML_SUFFIXES:
            with file_path.open("r", encoding="utf-8") as handle:
                parsed = yaml.safe_load(handle)
        else:
            with file_path.open("rb") as handle:
                parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {file_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"invalid YAML in {file_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {file_path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ConfigLoadError(f"config root must be a mapping: {file_path}")

    section = parsed.get("inputs", parsed)
    if not isinstance(section, Mapping):
        raise ConfigLoadError(f"'inputs' must be a mapping: {file_path}")

    return {normalize_input_name(str(key)): value for key, value in section.items()}


def parse_cli_overrides(pairs: Sequence[str]) -> dict[str, str]:
    """Parse repeated ``key=value`` CLI arguments; later pairs win."""

    overrides: dict[str, str] = {}
    for pair in pairs:
        key, separator, value = pair.partition("=")
        if not separator or not key.strip():
            raise ConfigLoadError(f"invalid override {pair!r}; expected KEY=VALUE")
        name = normalize_input_name(key)
        if INPUT_KINDS.get(name) == "multiline" and name in overrides:
            # Repeating a multiline input appends a line.
            overrides[name] = f"{overrides[name]}\n{value}"
        else:
            overrides[name] = value
    return overrides


def normalize_input_name(name: str) -> str:
    """Map ``Input-Path`` / ``input path`` style names onto ``input_path``."""

    return name.strip().lower().replace("-", "_").replace(" ", "_")


def env_name_for_input(name: str) -> str:
    return ENV_PREFIX + name.replace(" ", "_").upper()


def effective_config(raw: Mapping[str, object]) -> dict[str, Any]:
    """Return a redacted raw-input representation suitable for logging."""

    return redact_inputs(raw)


def dump_effective_config(raw: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of redacted raw inputs."""

    return json.dumps(
        effective_config(raw), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _collect_env_inputs(environ: Mapping[str, str]) -> dict[str, str]:
    inputs: dict[str, str] = {}
    for name in INPUT_KINDS:
        for env_name in (env_name_for_input(name), env_name_for_input(name.replace("_", "-"))):
            raw = environ.get(env_name)
            if raw is not None and raw.strip():
                inputs[name] = raw
                break
    return inputs


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "collect_raw_inputs",
    "dump_effective_config",
    "effective_config",
    "env_name_for_input",
    "load_config_file",
    "load_inputs",
    "normalize_input_name",
    "parse_cli_overrides",
]
