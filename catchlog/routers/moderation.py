"""Admin moderation endpoints: user actions, takedowns, audit log and report triage."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..constants import ModerationTargetType, ReportStatus, ReportTargetType
from ..database import get_session
from ..models import Profile
from ..schemas import (
    AuditLogPage,
    LiftRestrictionsRequest,
    ModerationActionRequest,
    ModerationOutcomeResponse,
    ModerationStatusResponse,
    ReportContextResponse,
    ReportList,
    ReportResponse,
    ReportStatusUpdateRequest,
    ResolveReportRequest,
    ResolveReportResponse,
    TakedownRequest,
    TakedownResponse,
    UserWarningList,
)
from ..services import require_roles
from ..services.audit_service import AuditFilter, export_moderation_log_csv, list_moderation_log, to_log_response
from ..services.clock import as_utc, utcnow
from ..services.moderation_service import (
    ModerationOutcome,
    apply_moderation,
    get_moderation_status,
    lift_restrictions,
    list_user_warnings,
    to_status_response,
    to_warning_response,
)
from ..services.report_service import (
    ReportFilter,
    get_report_context,
    list_reports,
    resolve_with_action,
    since_for_range,
    to_report_response,
    update_report_status,
)
from ..services.takedown_service import TakedownOutcome, delete_content, restore_content

router = APIRouter(prefix="/moderation", tags=["moderation"])

_require_admin = require_roles("owner", "admin")


def _outcome_response(outcome: ModerationOutcome) -> ModerationOutcomeResponse:
    return ModerationOutcomeResponse(
        status=to_status_response(outcome.profile),
        warning=to_warning_response(outcome.warning) if outcome.warning is not None else None,
        log_entry=to_log_response(outcome.log_entry) if outcome.log_entry is not None else None,
        duplicate=outcome.duplicate,
    )


def _takedown_response(outcome: TakedownOutcome) -> TakedownResponse:
    return TakedownResponse(
        target_type=outcome.target_type.value,
        target_id=outcome.target.id,
        owner_id=outcome.owner_id,
        deleted_at=as_utc(outcome.target.deleted_at),
        log_entry=to_log_response(outcome.log_entry),
    )


@router.get("/users/{user_id}/status", response_model=ModerationStatusResponse)
async def moderation_status_endpoint(
    user_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ModerationStatusResponse:
    return get_moderation_status(db, admin=current_user, user_id=user_id)


@router.get("/users/{user_id}/warnings", response_model=UserWarningList)
async def moderation_warnings_endpoint(
    user_id: UUID,
    page: int = Query(1, ge=1),
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> UserWarningList:
    return list_user_warnings(db, admin=current_user, user_id=user_id, page=page)


@router.post("/users/{user_id}/actions", response_model=ModerationOutcomeResponse)
async def moderation_action_endpoint(
    user_id: UUID,
    payload: ModerationActionRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ModerationOutcomeResponse:
    outcome = apply_moderation(
        db,
        admin=current_user,
        user_id=user_id,
        severity=payload.severity,
        reason=payload.reason,
        duration_hours=payload.duration_hours,
        idempotency_key=payload.idempotency_key,
    )
    return _outcome_response(outcome)


@router.post("/users/{user_id}/lift", response_model=ModerationOutcomeResponse)
async def moderation_lift_endpoint(
    user_id: UUID,
    payload: LiftRestrictionsRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ModerationOutcomeResponse:
    outcome = lift_restrictions(db, admin=current_user, user_id=user_id, reason=payload.reason)
    return _outcome_response(outcome)


@router.post("/{target_type}/{target_id}/delete", response_model=TakedownResponse)
async def moderation_delete_endpoint(
    target_type: Literal["catches", "comments"],
    target_id: UUID,
    payload: TakedownRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> TakedownResponse:
    outcome = delete_content(
        db,
        admin=current_user,
        target_type=_content_type(target_type),
        target_id=target_id,
        reason=payload.reason,
    )
    return _takedown_response(outcome)


@router.post("/{target_type}/{target_id}/restore", response_model=TakedownResponse)
async def moderation_restore_endpoint(
    target_type: Literal["catches", "comments"],
    target_id: UUID,
    payload: TakedownRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> TakedownResponse:
    outcome = restore_content(
        db,
        admin=current_user,
        target_type=_content_type(target_type),
        target_id=target_id,
        reason=payload.reason,
    )
    return _takedown_response(outcome)


def _content_type(segment: str) -> ModerationTargetType:
    return ModerationTargetType.CATCH if segment == "catches" else ModerationTargetType.COMMENT


def _audit_filter(
    user_id: UUID | None = None,
    action: str | None = None,
    search: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> AuditFilter:
    return AuditFilter(user_id=user_id, action=action or None, search=search, date_from=date_from, date_to=date_to)


@router.get("/log", response_model=AuditLogPage)
async def moderation_log_endpoint(
    audit_filter: AuditFilter = Depends(_audit_filter),
    direction: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> AuditLogPage:
    return list_moderation_log(
        db, admin=current_user, audit_filter=audit_filter, direction=direction, page=page, page_size=page_size
    )


@router.get("/log/export")
async def moderation_log_export_endpoint(
    audit_filter: AuditFilter = Depends(_audit_filter),
    direction: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> Response:
    body = export_moderation_log_csv(db, admin=current_user, audit_filter=audit_filter, direction=direction)
    filename = f"moderation-log-{utcnow().strftime('%Y%m%dT%H%M%SZ')}.csv"
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/reports", response_model=ReportList)
async def moderation_reports_endpoint(
    status: ReportStatus | None = None,
    target_type: ReportTargetType | None = None,
    reported_user_id: UUID | None = None,
    date_range: Literal["24h", "7d", "30d", "all"] | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    direction: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ReportList:
    report_filter = ReportFilter(
        status=status,
        target_type=target_type,
        reported_user_id=reported_user_id,
        date_from=date_from or since_for_range(date_range),
        date_to=date_to,
    )
    return list_reports(
        db,
        admin=current_user,
        report_filter=report_filter,
        direction=direction,
        page=page,
        page_size=page_size,
    )


@router.get("/reports/{report_id}", response_model=ReportContextResponse)
async def moderation_report_detail_endpoint(
    report_id: UUID,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ReportContextResponse:
    return get_report_context(db, admin=current_user, report_id=report_id)


@router.patch("/reports/{report_id}", response_model=ReportResponse)
async def moderation_report_status_endpoint(
    report_id: UUID,
    payload: ReportStatusUpdateRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ReportResponse:
    report = update_report_status(
        db,
        admin=current_user,
        report_id=report_id,
        status=payload.status,
        resolution_notes=payload.resolution_notes,
    )
    return to_report_response(report)


@router.post("/reports/{report_id}/resolve", response_model=ResolveReportResponse)
async def moderation_report_resolve_endpoint(
    report_id: UUID,
    payload: ResolveReportRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(_require_admin),
) -> ResolveReportResponse:
    return resolve_with_action(
        db,
        admin=current_user,
        report_id=report_id,
        action=payload.action,
        resolution_notes=payload.resolution_notes,
    )


__all__ = ["router"]
