import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from typing import List
from uuid import UUID
from datetime import date

from ..models.db_models import AttendanceMark
from ..models.redis_models import SessionUser
from ..services.attendance_service import AttendanceService, AttendanceHistory, CommitResult, DraftView
from ..services.exceptions import ConflictError, DataAccessError, IncompleteAttendanceError, NotFoundError
from .schemas.attendance import DraftDateRequest, MarkRequest, AttendanceSubmitRequest
from .auth import get_current_user
from .dependencies import get_attendance_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


def _raise_http(e: Exception):
    if isinstance(e, IncompleteAttendanceError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


# === PART 1: DRAFT OF THE SELECTED DATE ===

@router.get("/draft", response_model=DraftView, summary="Current attendance draft with completeness counts")
@limiter.limit("240/minute")
async def get_draft(request: Request, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.get_draft_view(user.username)
    except (NotFoundError, DataAccessError) as e:
        _raise_http(e)


@router.put("/draft", response_model=DraftView, summary="Select the date to mark; reloads its saved attendance")
@limiter.limit("120/minute")
async def select_draft_date(request: Request, date_request: DraftDateRequest, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.select_draft_date(user.username, date_request.attendance_date)
    except (NotFoundError, DataAccessError) as e:
        _raise_http(e)


@router.put("/draft/marks/{kid_id}", response_model=DraftView, summary="Mark one kid present or absent")
@limiter.limit("600/minute")
async def mark_kid(request: Request, kid_id: UUID, mark_request: MarkRequest, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.mark_in_draft(user.username, kid_id, mark_request.status)
    except (NotFoundError, ConflictError, DataAccessError) as e:
        _raise_http(e)


@router.post("/draft/commit", response_model=CommitResult, summary="Save the draft, replacing the date's attendance")
@limiter.limit("30/minute")
async def commit_draft(request: Request, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.commit_draft(user.username)
    except (IncompleteAttendanceError, NotFoundError, DataAccessError) as e:
        _raise_http(e)


@router.delete("/draft", status_code=status.HTTP_204_NO_CONTENT, summary="Throw away the unsaved draft")
@limiter.limit("60/minute")
async def discard_draft(request: Request, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        await service.discard_draft(user.username)
    except DataAccessError as e:
        _raise_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === PART 2: SAVED ATTENDANCE BY DATE ===

@router.get("/{attendance_date}", response_model=List[AttendanceMark], summary="Saved (kid, status) pairs of a date")
@limiter.limit("240/minute")
async def get_attendance(request: Request, attendance_date: date, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.load_attendance(attendance_date)
    except DataAccessError as e:
        _raise_http(e)


@router.put("/{attendance_date}", response_model=CommitResult, summary="Save a complete set of marks for a date")
@limiter.limit("30/minute")
async def submit_attendance(request: Request, attendance_date: date, submit_request: AttendanceSubmitRequest, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.commit_marks(attendance_date, submit_request.marks)
    except (IncompleteAttendanceError, DataAccessError) as e:
        _raise_http(e)


@router.get("/{attendance_date}/history", response_model=AttendanceHistory, summary="Attendance of a date with kid details and totals")
@limiter.limit("120/minute")
async def get_history(request: Request, attendance_date: date, user: SessionUser = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        return await service.get_history(attendance_date)
    except DataAccessError as e:
        _raise_http(e)
