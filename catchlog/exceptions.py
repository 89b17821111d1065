"""Typed failures raised by the trust & moderation services."""
from __future__ import annotations

from datetime import datetime


class ModerationError(Exception):
    """Base exception for all moderation and rate-limit failures."""

    message = "Moderation request failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class RateLimitExceeded(ModerationError):
    """Raised when a throttled action is attempted past its window allowance."""

    def __init__(self, action: str, reset_at: datetime, message: str | None = None) -> None:
        self.action = action
        self.reset_at = reset_at
        super().__init__(message or f"Too many {action} attempts. Try again later.")


class InvalidModerationInput(ModerationError):
    """Raised before any mutation when a moderation request is malformed."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Invalid value for {field}.")


class TargetNotFound(ModerationError):
    message = "Target record not found."


class NothingToRestore(ModerationError):
    message = "Content is not deleted; nothing to restore."


class Unauthorized(ModerationError):
    message = "Admin privileges required."


class AccountRestricted(ModerationError):
    """Raised when a suspended or banned user attempts a gated write."""

    def __init__(self, status: str, until: datetime | None = None, message: str | None = None) -> None:
        self.status = status
        self.until = until
        if message is None:
            if until is not None:
                message = f"Your account is suspended until {until.isoformat()}."
            else:
                message = "Your account has been banned."
        super().__init__(message)


class InteractionBlocked(ModerationError):
    """Raised when one side of an interaction has blocked the other."""

    message = "You can't interact with this angler."


class StorageFailure(ModerationError):
    """Raised after a rollback when the persistence layer rejects a write."""

    message = "The request could not be saved. Please retry."


__all__ = [
    "ModerationError",
    "RateLimitExceeded",
    "InvalidModerationInput",
    "TargetNotFound",
    "NothingToRestore",
    "Unauthorized",
    "AccountRestricted",
    "InteractionBlocked",
    "StorageFailure",
]
