"""Convenience exports for service layer."""
from .audit_service import AuditFilter, export_moderation_log_csv, list_moderation_log
from .auth_service import (
    create_access_token,
    decode_access_token,
    get_current_user,
    require_admin,
    require_roles,
)
from .block_service import block_profile, ensure_not_blocked, has_block_between, list_blocked, unblock_profile
from .catch_service import add_comment, create_catch, get_catch, rate_catch, react_to_catch
from .cleanup_service import CleanupError, CleanupSummary, run_cleanup, sweep_expired_windows
from .follow_service import FollowStats, follow_user, get_follow_stats, unfollow_user
from .moderation_service import (
    ModerationOutcome,
    apply_moderation,
    ensure_can_act,
    get_moderation_status,
    is_blocked,
    lift_restrictions,
    list_user_warnings,
)
from .notification_service import (
    NotificationType,
    count_unread_notifications,
    list_notifications,
    mark_all_read,
    notify_admins,
    stage_notification,
)
from .rate_limiter import RateLimitDecision, RateLimitStatus, check_and_consume, get_rate_limit_status
from .realtime import ChangeFeed, change_feed
from .report_service import (
    ReportFilter,
    create_report,
    get_report_context,
    list_reports,
    resolve_with_action,
    update_report_status,
)
from .takedown_service import TakedownOutcome, delete_content, restore_content

__all__ = [
    "AuditFilter",
    "list_moderation_log",
    "export_moderation_log_csv",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "require_roles",
    "require_admin",
    "block_profile",
    "unblock_profile",
    "list_blocked",
    "has_block_between",
    "ensure_not_blocked",
    "get_catch",
    "create_catch",
    "add_comment",
    "react_to_catch",
    "rate_catch",
    "CleanupError",
    "CleanupSummary",
    "run_cleanup",
    "sweep_expired_windows",
    "FollowStats",
    "follow_user",
    "unfollow_user",
    "get_follow_stats",
    "ModerationOutcome",
    "apply_moderation",
    "lift_restrictions",
    "get_moderation_status",
    "is_blocked",
    "ensure_can_act",
    "list_user_warnings",
    "NotificationType",
    "stage_notification",
    "notify_admins",
    "count_unread_notifications",
    "list_notifications",
    "mark_all_read",
    "RateLimitDecision",
    "RateLimitStatus",
    "check_and_consume",
    "get_rate_limit_status",
    "ChangeFeed",
    "change_feed",
    "ReportFilter",
    "create_report",
    "list_reports",
    "get_report_context",
    "update_report_status",
    "resolve_with_action",
    "TakedownOutcome",
    "delete_content",
    "restore_content",
]
