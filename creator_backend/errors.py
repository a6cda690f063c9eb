"""Exceptions raised by the CREator backend components."""

from __future__ import annotations


class CreatorError(Exception):
    """Base exception for backend operations."""

    pass


class ValidationError(CreatorError):
    """Raised when a request carries missing or malformed input."""

    pass


class FileWriteError(CreatorError):
    """Raised when a workflow file could not be written."""

    pass


class EnvFileError(CreatorError):
    """Raised when the orchestrator .env file could not be written."""

    pass
