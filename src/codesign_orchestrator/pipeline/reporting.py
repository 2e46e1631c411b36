"""Reporter contract consumed by the pipeline stages."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable


@runtime_checkable
class Reporter(Protocol):
    """Sink for user-visible pipeline output.

    ``group`` opens a labelled, collapsible section; everything reported
    inside the ``with`` block belongs to it.
    """

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def group(self, title: str) -> AbstractContextManager[None]: ...

    def set_output(self, name: str, value: str) -> None: ...

    def set_failed(self, message: str) -> None: ...


__all__ = ["Reporter"]
