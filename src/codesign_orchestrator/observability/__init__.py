"""Public observability primitives: structured logging and argument redaction."""

from codesign_orchestrator.observability.logging import (
    REDACTED_VALUE,
    LoggingConfig,
    LogRedactor,
    StructuredLoggingHandle,
    configure_structlog,
    default_log_redactor,
    get_active_logging_handle,
    redact_arguments,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "REDACTED_VALUE",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "default_log_redactor",
    "get_active_logging_handle",
    "redact_arguments",
    "setup_structured_logging",
    "shutdown_logging",
]
