"""Custom exceptions for lxcctl."""

from __future__ import annotations

from typing import Optional, Sequence


class LxcError(RuntimeError):
    """Base class for every error raised by lxcctl."""

    def __init__(self, message: str, ctid: Optional[int] = None, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.ctid = ctid
        self.operation = operation


class ConfigError(LxcError):
    """Raised when environment or policy configuration is unusable."""


class InvalidArgument(LxcError):
    """Missing or malformed input. Never retried."""


class PlatformError(LxcError):
    """A single ``pct`` invocation failed."""


class TransientFailure(LxcError):
    """A start/stop/exec failure that is retried within its policy."""


class RetryExhausted(TransientFailure):
    """Every attempt allowed by a retry policy was consumed."""

    def __init__(
        self,
        ctid: int,
        operation: str,
        attempts: int,
        command: Optional[Sequence[str]] = None,
    ) -> None:
        if command:
            message = f"{operation} of {' '.join(command)!r} failed after {attempts} attempts in container {ctid}"
        else:
            message = f"{operation} failed after {attempts} attempts for container {ctid}"
        super().__init__(message, ctid=ctid, operation=operation)
        self.attempts = attempts
        self.command = list(command) if command else None


class StabilizationFailure(LxcError):
    """Container never reached Running (or never answered) after a start."""
