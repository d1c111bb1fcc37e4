"""Error taxonomy for the editor core.

Only ``ExportError`` and ``ExportTimeoutError`` are meant to reach a user.
Everything else is recovered where it happens and logged.
"""

from __future__ import annotations


class EditorError(Exception):
    """Base class for all editor errors."""


class ValidationError(EditorError):
    """Malformed, oversized or unsupported input, rejected before the pipeline."""


class FilterError(EditorError):
    def __init__(self, filter_name: str, cause: BaseException | str) -> None:
        self.filter_name = filter_name
        self.cause = cause
        super().__init__(f"filter '{filter_name}' failed: {cause}")


class ExportSizeError(EditorError):
    def __init__(self, size: int, cause: BaseException | str) -> None:
        self.size = size
        self.cause = cause
        super().__init__(f"bundle entry {size}x{size} failed: {cause}")


class WorkerError(EditorError):
    """Worker dispatch or processing fault; recovered by synchronous fallback."""


class ExportError(EditorError):
    """User-visible export failure carrying a sanitized message."""

    def __init__(self, user_message: str) -> None:
        self.user_message = user_message
        super().__init__(user_message)


class ExportBusyError(EditorError):
    """A second export was requested for a document that already has one in flight."""


class ExportTimeoutError(EditorError, TimeoutError):
    """The export ran past its deadline and was abandoned."""

    user_message = "The operation was cancelled because it took too long."


__all__ = [
    "EditorError",
    "ExportBusyError",
    "ExportError",
    "ExportSizeError",
    "ExportTimeoutError",
    "FilterError",
    "ValidationError",
    "WorkerError",
]
