"""Report submission endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import ReportCreateRequest, ReportResponse
from ..services import create_report, get_current_user
from ..services.report_service import to_report_response

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report_endpoint(
    payload: ReportCreateRequest,
    db: Session = Depends(get_session),
    current_user: Profile = Depends(get_current_user),
) -> ReportResponse:
    report = create_report(
        db,
        reporter=current_user,
        target_type=payload.target_type,
        target_id=payload.target_id,
        reason=payload.reason,
        details=payload.details,
    )
    return to_report_response(report)


__all__ = ["router"]
