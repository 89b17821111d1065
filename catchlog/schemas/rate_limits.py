"""Schemas exposing rate-limit state so clients can render a countdown."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RateLimitStatusResponse(BaseModel):
    action: str
    max_attempts: int
    used: int
    remaining: int
    reset_at: datetime | None = None


class RateLimitStatusList(BaseModel):
    items: list[RateLimitStatusResponse]


__all__ = ["RateLimitStatusResponse", "RateLimitStatusList"]
