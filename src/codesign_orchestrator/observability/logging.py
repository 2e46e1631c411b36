"""Per-run structured logging: JSON lines on disk, structlog on top, secrets masked.

Every pipeline run gets ``<base_log_dir>/<run_id>/pipeline.jsonl``. Records go
through a bounded queue to a background listener so a slow disk never stalls
the event loop driving rcodesign; when the queue is full, records are dropped
rather than blocking.

``structlog`` is configured to hand its key/value events to the same stdlib
logger tree, so ``structlog.get_logger(__name__).info("stage_item_finished",
artifact=...)`` ends up as one JSON object whose ``fields`` hold the keys.
"""

from __future__ import annotations

import atexit
import json
import logging
import logging.handlers
import math
import queue
import re
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from contextlib import suppress
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED_VALUE: Final[str] = "***REDACTED***"

# rcodesign flags whose following argument is a secret.
SECRET_ARGUMENT_FLAGS: Final[frozenset[str]] = frozenset(
    {
        "--api-key",
        "--p12-password",
        "--remote-shared-secret",
    }
)

_SECRET_KEY_MARKERS: Final[tuple[str, ...]] = (
    "secret",
    "password",
    "passphrase",
    "token",
    "private_key",
    "credential",
    "authorization",
)
_INLINE_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(password|secret|shared[_-]secret|token|authorization)\b(\s*[:=]\s*)[^\s,;]+"
)
_INLINE_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/-]+=*")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_active_lock = threading.Lock()
_active_handle: StructuredLoggingHandle | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how one run writes its structured log."""

    run_id: str
    base_log_dir: Path | str = Path(".codesign/logs")
    logger_name: str = "codesign_orchestrator"
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = "pipeline.jsonl"
    log_to_console: bool = True
    redactor: LogRedactor | None = None


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:
        with suppress(queue.Full):
            self.queue.put_nowait(record)


class _RunEventFormatter(logging.Formatter):
    """Render a record as one sorted-key JSON object tagged with the run id."""

    def __init__(self, *, run_id: str, redactor: LogRedactor) -> None:
        super().__init__()
        self._run_id = run_id
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "run_id": self._run_id,
            "message": _as_text(self._redactor(record.getMessage())),
        }

        fields = {
            key: _to_json(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if fields:
            event["fields"] = self._redactor(fields)
        if record.exc_info:
            event["exception"] = _as_text(self._redactor(self.formatException(record.exc_info)))

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class StructuredLoggingHandle:
    """Live logging setup for one run; call :meth:`shutdown` when the run ends."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        run_id: str,
        log_path: Path,
        queue_handler: _DroppingQueueHandler,
        listener: logging.handlers.QueueListener,
        sinks: tuple[logging.Handler, ...],
    ) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_path = log_path
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks = sinks
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            pending = self._queue_handler.queue
            deadline = time.monotonic() + max(timeout_seconds, 0.0)
            while getattr(pending, "unfinished_tasks", 0) and time.monotonic() < deadline:
                time.sleep(0.01)
            # stop() drains whatever is still queued before returning.
            self._listener.stop()
            self.logger.removeHandler(self._queue_handler)
            self._queue_handler.close()
            for sink in self._sinks:
                sink.flush()
                sink.close()
            self._closed = True


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Start logging for one run, replacing any run that is still active."""

    run_id = _require_text(config.run_id, "run_id")
    logger_name = _require_text(config.logger_name, "logger_name")
    log_filename = _require_text(config.log_filename, "log_filename")
    if Path(log_filename).name != log_filename:
        raise ValueError("log_filename must not include path separators")
    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    level = _resolve_level(config.level)

    shutdown_logging()

    log_path = Path(config.base_log_dir) / run_id / log_filename
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = _RunEventFormatter(
        run_id=run_id, redactor=config.redactor or default_log_redactor
    )

    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_console:
        # stderr keeps stdout free for workflow commands.
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _DroppingQueueHandler(log_queue)
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)

    configure_structlog()

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    _set_active(handle)
    return handle


def configure_structlog() -> None:
    """Route ``structlog`` events into the stdlib logger tree as extra fields."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None,
    *,
    timeout_seconds: float = 2.0,
) -> None:
    """Stop ``handle`` (default: the active run) and flush its sinks."""

    global _active_handle
    with _active_lock:
        target = handle if handle is not None else _active_handle
        if target is None:
            return
        if _active_handle is target:
            _active_handle = None
    target.shutdown(timeout_seconds=timeout_seconds)


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active_handle


def redact_arguments(arguments: Sequence[str]) -> list[str]:
    """Mask the values that follow secret rcodesign flags."""

    redacted: list[str] = []
    mask_next = False
    for argument in arguments:
        redacted.append(REDACTED_VALUE if mask_next else argument)
        mask_next = not mask_next and argument in SECRET_ARGUMENT_FLAGS
    return redacted


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask secret-named keys, secret flag values in argv lists, and inline credentials."""

    if isinstance(value, dict):
        return {
            key: REDACTED_VALUE if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        if all(isinstance(item, str) for item in value):
            value = list(redact_arguments(value))  # type: ignore[arg-type]
        return [default_log_redactor(item) for item in value]
    if isinstance(value, str):
        masked = _INLINE_ASSIGNMENT.sub(rf"\1\2{REDACTED_VALUE}", value)
        return _INLINE_BEARER.sub(rf"\1 {REDACTED_VALUE}", masked)
    return value


def _set_active(handle: StructuredLoggingHandle) -> None:
    global _active_handle, _atexit_registered
    with _active_lock:
        _active_handle = handle
        if not _atexit_registered:
            atexit.register(shutdown_logging)
            _atexit_registered = True


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_KEY_MARKERS)


def _require_text(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must not be empty")
    return value.strip()


def _resolve_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return resolved


def _utc_timestamp(epoch_seconds: float) -> str:
    stamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _as_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return "" if value is None else json.dumps(value, sort_keys=True, ensure_ascii=False)


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json(item) for item in value]
    return repr(value)


__all__ = [
    "REDACTED_VALUE",
    "SECRET_ARGUMENT_FLAGS",
    "JSONScalar",
    "JSONValue",
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
