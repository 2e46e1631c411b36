"""
codesign-orchestrator config package public API.

File: src/codesign_orchestrator/config/__init__.py

Purpose
- Export input loading/validation entrypoints and public error types.
- No subprocess or network side effects.
"""

from codesign_orchestrator.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    collect_raw_inputs,
    dump_effective_config,
    effective_config,
    env_name_for_input,
    load_config_file,
    load_inputs,
    normalize_input_name,
    parse_cli_overrides,
)
from codesign_orchestrator.config.schema import (
    DEFAULT_INPUTS,
    INPUT_KINDS,
    SECRET_INPUTS,
    ActionInputs,
    ConfigValidationError,
    ConfigValidationIssue,
    redact_inputs,
    split_multiline,
    validate_inputs,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_INPUTS",
    "ENV_PREFIX",
    "INPUT_KINDS",
    "SECRET_INPUTS",
    "ActionInputs",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "collect_raw_inputs",
    "dump_effective_config",
    "effective_config",
    "env_name_for_input",
    "load_config_file",
    "load_inputs",
    "normalize_input_name",
    "parse_cli_overrides",
    "redact_inputs",
    "split_multiline",
    "validate_inputs",
]
