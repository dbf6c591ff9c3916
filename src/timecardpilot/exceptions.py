"""Custom exception hierarchy for TimecardPilot."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Domain error kinds used for retry and termination decisions."""

    LOGIN_FAILED = "LOGIN_FAILED"
    SESSION_TIMEOUT = "SESSION_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"
    PROCESSING_ERROR = "PROCESSING_ERROR"


class TimecardPilotError(Exception):
    """Base exception for all TimecardPilot errors."""


class DomainError(TimecardPilotError):
    """A failure tagged with an :class:`ErrorKind` and structured context."""

    kind: ErrorKind = ErrorKind.PROCESSING_ERROR

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "context": self.context}


class LoginFailedError(DomainError):
    """Raised when credentials are missing or the login is rejected."""

    kind = ErrorKind.LOGIN_FAILED


class SessionTimeoutError(DomainError):
    """Raised when the remote session expired and could not be restored."""

    kind = ErrorKind.SESSION_TIMEOUT


class NetworkError(DomainError):
    """Raised for transient network or timeout failures."""

    kind = ErrorKind.NETWORK_ERROR


class ElementNotFoundError(DomainError):
    """Raised when an expected page element is missing."""

    kind = ErrorKind.ELEMENT_NOT_FOUND

    def __init__(
        self,
        selector: str,
        step: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        message = f"Element not found: {selector}"
        if step:
            message += f" in {step}"
        merged = dict(context or {})
        merged.update(selector=selector, step=step)
        super().__init__(message, merged)
        self.selector = selector
        self.step = step


class ProcessingError(DomainError):
    """Catch-all for unexpected automation failures."""

    kind = ErrorKind.PROCESSING_ERROR


class BrowserLaunchError(TimecardPilotError):
    """Raised when the browser fails to start."""
