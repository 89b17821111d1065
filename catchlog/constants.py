"""Project-wide constant values and enumerations."""
from __future__ import annotations

from enum import StrEnum


class ModerationStatus(StrEnum):
    ACTIVE = "active"
    WARNED = "warned"
    SUSPENDED = "suspended"
    BANNED = "banned"


class WarningSeverity(StrEnum):
    WARNING = "warning"
    TEMPORARY_SUSPENSION = "temporary_suspension"
    PERMANENT_BAN = "permanent_ban"


class ModerationAction(StrEnum):
    DELETE_CATCH = "delete_catch"
    DELETE_COMMENT = "delete_comment"
    RESTORE_CATCH = "restore_catch"
    RESTORE_COMMENT = "restore_comment"
    WARN_USER = "warn_user"
    SUSPEND_USER = "suspend_user"
    CLEAR_MODERATION = "clear_moderation"


class ModerationTargetType(StrEnum):
    CATCH = "catch"
    COMMENT = "comment"
    USER = "user"


class ReportStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ReportTargetType(StrEnum):
    CATCH = "catch"
    COMMENT = "comment"
    PROFILE = "profile"


class ReactionType(StrEnum):
    LIKE = "like"
    LOVE = "love"
    FIRE = "fire"


class ThrottledAction(StrEnum):
    COMMENT = "comment"
    CATCH = "catch"
    RATING = "rating"
    REACTION = "reaction"
    FOLLOW = "follow"
    REPORT = "report"


SEVERITY_TO_STATUS: dict[WarningSeverity, ModerationStatus] = {
    WarningSeverity.WARNING: ModerationStatus.WARNED,
    WarningSeverity.TEMPORARY_SUSPENSION: ModerationStatus.SUSPENDED,
    WarningSeverity.PERMANENT_BAN: ModerationStatus.BANNED,
}

SEVERITY_TO_ACTION: dict[WarningSeverity, ModerationAction] = {
    WarningSeverity.WARNING: ModerationAction.WARN_USER,
    WarningSeverity.TEMPORARY_SUSPENSION: ModerationAction.SUSPEND_USER,
    WarningSeverity.PERMANENT_BAN: ModerationAction.SUSPEND_USER,
}

ACTION_LABELS: dict[str, str] = {
    ModerationAction.DELETE_CATCH: "Deleted Catch",
    ModerationAction.DELETE_COMMENT: "Deleted Comment",
    ModerationAction.WARN_USER: "Warned User",
    ModerationAction.SUSPEND_USER: "Suspended User",
    ModerationAction.RESTORE_CATCH: "Restored Catch",
    ModerationAction.RESTORE_COMMENT: "Restored Comment",
    ModerationAction.CLEAR_MODERATION: "Lifted Restrictions",
}

ADMIN_ROLES = ("owner", "admin")

__all__ = [
    "ModerationStatus",
    "WarningSeverity",
    "ModerationAction",
    "ModerationTargetType",
    "ReportStatus",
    "ReportTargetType",
    "ReactionType",
    "ThrottledAction",
    "SEVERITY_TO_STATUS",
    "SEVERITY_TO_ACTION",
    "ACTION_LABELS",
    "ADMIN_ROLES",
]
