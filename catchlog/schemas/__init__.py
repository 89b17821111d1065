"""Convenience exports for schema layer."""
from .audit import (
    AuditLogPage,
    ContentTakedownMetadata,
    LiftMetadata,
    ModerationActionMetadata,
    ModerationLogEntryResponse,
    RawMetadata,
    parse_metadata,
)
from .blocks import BlockActionResponse, BlockedProfileList, BlockedProfileResponse, BlockRequest
from .catches import (
    CatchCreate,
    CatchResponse,
    CommentCreate,
    CommentResponse,
    EngagementResponse,
    RatingRequest,
    ReactionRequest,
)
from .follow import FollowActionResponse, FollowStatsResponse
from .moderation import (
    LiftRestrictionsRequest,
    ModerationActionRequest,
    ModerationOutcomeResponse,
    ModerationStatusResponse,
    TakedownRequest,
    TakedownResponse,
    UserWarningList,
    UserWarningResponse,
)
from .notifications import NotificationListResponse, NotificationResponse, NotificationSummaryResponse
from .rate_limits import RateLimitStatusList, RateLimitStatusResponse
from .reports import (
    DeleteContentAction,
    LiftRestrictionsAction,
    ModerateUserAction,
    ReportAction,
    ReportContextResponse,
    ReportCreateRequest,
    ReportList,
    ReportResponse,
    ReportStatusUpdateRequest,
    ResolveReportRequest,
    ResolveReportResponse,
    RestoreContentAction,
)

__all__ = [
    "AuditLogPage",
    "ContentTakedownMetadata",
    "LiftMetadata",
    "ModerationActionMetadata",
    "ModerationLogEntryResponse",
    "RawMetadata",
    "parse_metadata",
    "BlockActionResponse",
    "BlockedProfileList",
    "BlockedProfileResponse",
    "BlockRequest",
    "CatchCreate",
    "CatchResponse",
    "CommentCreate",
    "CommentResponse",
    "EngagementResponse",
    "RatingRequest",
    "ReactionRequest",
    "FollowActionResponse",
    "FollowStatsResponse",
    "LiftRestrictionsRequest",
    "ModerationActionRequest",
    "ModerationOutcomeResponse",
    "ModerationStatusResponse",
    "TakedownRequest",
    "TakedownResponse",
    "UserWarningList",
    "UserWarningResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationSummaryResponse",
    "RateLimitStatusList",
    "RateLimitStatusResponse",
    "DeleteContentAction",
    "LiftRestrictionsAction",
    "ModerateUserAction",
    "ReportAction",
    "ReportContextResponse",
    "ReportCreateRequest",
    "ReportList",
    "ReportResponse",
    "ReportStatusUpdateRequest",
    "ResolveReportRequest",
    "ResolveReportResponse",
    "RestoreContentAction",
]
