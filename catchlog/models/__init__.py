"""Convenience exports for ORM models."""
from .block import ProfileBlock
from .catch import Catch, CatchComment, CatchRating, CatchReaction
from .follow import Follow
from .moderation import ModerationLogEntry, UserWarning
from .notification import Notification
from .profile import Profile
from .rate_limit import RateLimitWindow
from .report import Report

__all__ = [
    "Catch",
    "CatchComment",
    "CatchRating",
    "CatchReaction",
    "Follow",
    "ModerationLogEntry",
    "Notification",
    "Profile",
    "ProfileBlock",
    "RateLimitWindow",
    "Report",
    "UserWarning",
]
