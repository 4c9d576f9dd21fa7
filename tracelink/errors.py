"""Tracelink error hierarchy and exceptions."""

from __future__ import annotations


class TracelinkError(Exception):
    """Base exception for all tracelink errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(TracelinkError):
    """Raised at startup when configuration is invalid."""
    pass


ConfigError = ConfigurationError


class ValidationError(TracelinkError):
    """Raised when validation fails."""
    pass


class MalformedIdentifier(ValidationError):
    """
    Raised when a trace or span identifier cannot be decoded.

    Propagators recover from this locally by treating the context as absent.
    """
    pass


class ExportError(TracelinkError):
    """Raised when span export fails."""
    pass


class ExportQueueFull(ExportError):
    """Describes a span dropped because the export queue was at capacity."""
    pass


class DownstreamCallFailure(TracelinkError):
    """Transport error or non-success status from a downstream call."""

    def __init__(
        self,
        message: str,
        details: dict = None,
        status_code: int = None,
        cause: BaseException = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.cause = cause


class DoubleFinish(UserWarning):
    """Warning category for finishing the same span twice."""
    pass
