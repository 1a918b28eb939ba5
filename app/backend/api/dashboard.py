from fastapi import APIRouter, Depends, HTTPException, status, Request, Query
from typing import Optional
from datetime import date

from ..models.redis_models import SessionUser
from ..services.attendance_service import AttendanceService, DashboardStats
from ..services.exceptions import DataAccessError
from .auth import get_current_user
from .dependencies import get_attendance_service
from .utilities.limiter import limiter

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardStats, summary="Kids registered and today's attendance")
@limiter.limit("120/minute")
async def get_dashboard(
    request: Request,
    on: Optional[date] = Query(None, description="Defaults to the server's current date."),
    user: SessionUser = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    try:
        return await service.get_dashboard(on or date.today())
    except DataAccessError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
