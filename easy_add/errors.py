"""Exceptions raised while fetching and extracting an archive entry.

Every error is fatal to the invocation; the CLI turns them into a logged
diagnostic and a non-zero exit status.
"""
from __future__ import annotations


class EasyAddError(Exception):
    """Base exception for easy-add operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (url, entry path, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class TemplateError(EasyAddError):
    """Template syntax is malformed or references an undefined variable."""


class PlatformError(EasyAddError):
    """Host operating system or CPU architecture could not be determined."""


class UnsupportedFormatError(EasyAddError):
    """Source URL does not end with a supported archive suffix."""


class TransportError(EasyAddError):
    """Archive could not be retrieved (connection failure or non-2xx status)."""

    def __init__(self, message: str, context: dict | None = None, status: int | None = None):
        super().__init__(message, context)
        self.status = status


class FormatError(EasyAddError):
    """Archive envelope or container structure is corrupt."""


class EntryNotFoundError(EasyAddError):
    """Archive is readable but holds no entry with the requested path."""


class MaterializeError(EasyAddError):
    """Extracted entry could not be written to the destination directory."""
