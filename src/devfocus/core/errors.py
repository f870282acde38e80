# src/devfocus/core/errors.py

"""
Error taxonomy.

None of these terminate a window: controllers catch them at the seam where the
user action entered and leave state at its last-known-good value.
"""

from __future__ import annotations


class DevFocusError(Exception):
    """Base class for all project errors."""


class ValidationError(DevFocusError):
    """Input rejected before any backend call (empty title, missing id, ...)."""


class InvalidTransition(ValidationError):
    """A subtask/session move the state machine does not allow."""

    def __init__(self, action: str, status: str, detail: str | None = None) -> None:
        super().__init__(detail or f"cannot {action} a subtask in status '{status}'")
        self.action = action
        self.status = status


class NotFound(DevFocusError):
    """Backend-side: the referenced id does not exist."""


class BackendCallFailure(DevFocusError):
    """Any failed backend command invocation."""

    def __init__(self, command: str, cause: BaseException | None = None) -> None:
        detail = str(cause) if cause is not None and str(cause) else type(cause).__name__
        super().__init__(f"{command} failed: {detail}" if cause is not None else f"{command} failed")
        self.command = command
        self.cause = cause


class WindowOperationFailure(DevFocusError):
    """Window missing / unreachable / creation race / OS refusal."""

    def __init__(self, label: str, reason: str) -> None:
        super().__init__(f"window '{label}': {reason}")
        self.label = label
        self.reason = reason


class StaleStateRace(DevFocusError):
    """A sync event or response refers to a subject the window has moved away from."""
