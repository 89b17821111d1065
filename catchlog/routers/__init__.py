"""Aggregate router exports."""
from .blocks import router as blocks_router
from .catches import router as catches_router
from .follows import router as follows_router
from .moderation import router as moderation_router
from .notifications import router as notifications_router
from .rate_limits import router as rate_limits_router
from .realtime import router as realtime_router
from .reports import router as reports_router

__all__ = [
    "blocks_router",
    "catches_router",
    "follows_router",
    "moderation_router",
    "notifications_router",
    "rate_limits_router",
    "realtime_router",
    "reports_router",
]
