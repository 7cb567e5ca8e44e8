"""
================================================================================
Framework Errors
================================================================================

Error taxonomy for the UI synchronization core.

Hierarchy:
    BrowserAutomationError
        SessionCreationError       - browser/driver could not start
        SessionAlreadyBoundError   - second session requested on one thread
        SessionInvalidError        - session died while it was being used
        WaitTimeoutError           - condition never became true in time
        UnexpectedConditionError   - condition raised a non-transient error
        TransientProtocolError     - expected to resolve on its own
            ElementNotFoundError
            StaleElementError
        EvidenceCaptureError       - best-effort failure capture broke

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Optional


class BrowserAutomationError(Exception):
    """Base class for all UI framework errors."""
    pass


class SessionCreationError(BrowserAutomationError):
    """Raised when the underlying browser or driver cannot be started."""
    pass


class SessionAlreadyBoundError(BrowserAutomationError):
    """Raised when the calling thread already owns a live session."""
    pass


class SessionInvalidError(BrowserAutomationError):
    """Raised when a session is no longer usable (released or crashed)."""
    pass


class WaitTimeoutError(BrowserAutomationError, TimeoutError):
    """
    Raised when a wait condition does not become true within its timeout.

    Attributes:
        description: Human-readable description of the awaited condition
        elapsed: Seconds spent waiting
        last_error: Last transient error swallowed while polling (if any)
    """

    def __init__(
        self,
        description: str,
        elapsed: float,
        last_error: Optional[BaseException] = None,
    ):
        self.description = description
        self.elapsed = elapsed
        self.last_error = last_error
        message = f"Timed out after {elapsed:.2f}s waiting for: {description}"
        if last_error is not None:
            message += f" (last transient error: {last_error})"
        super().__init__(message)


class UnexpectedConditionError(BrowserAutomationError):
    """
    Raised when a wait condition throws an error outside the ignored set.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, description: str, error: BaseException):
        self.description = description
        self.error = error
        super().__init__(
            f"Condition '{description}' failed with "
            f"{type(error).__name__}: {error}"
        )


class TransientProtocolError(BrowserAutomationError):
    """Base class for errors that polling is allowed to swallow."""
    pass


class ElementNotFoundError(TransientProtocolError):
    """Raised when no element matches a locator (yet)."""
    pass


class StaleElementError(TransientProtocolError):
    """Raised when a previously found element was detached from the page."""
    pass


class EvidenceCaptureError(BrowserAutomationError):
    """Raised inside the evidence pipeline; always contained and logged."""
    pass


__all__ = [
    "BrowserAutomationError",
    "SessionCreationError",
    "SessionAlreadyBoundError",
    "SessionInvalidError",
    "WaitTimeoutError",
    "UnexpectedConditionError",
    "TransientProtocolError",
    "ElementNotFoundError",
    "StaleElementError",
    "EvidenceCaptureError",
]
