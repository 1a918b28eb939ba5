from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from .db_models import AttendanceMark


class SessionUser(BaseModel):
    """The part of a User that is safe to keep in a session (no password field)."""
    id: Optional[UUID] = None
    username: str
    sabha_name: str
    karyakar_number: str


class UserSessionRedis(BaseModel):
    """
    Represents a logged-in user's session stored in Redis.
    Created on login, deleted on logout, otherwise expires with its TTL.
    """
    user_data: SessionUser = Field(..., description="The logged-in user.")
    session_id: UUID = Field(..., description="Unique ID for this specific session.")
    session_start_time: datetime = Field(..., description="The time this session began.")
    session_end_time: datetime = Field(..., description="The time this session will expire.")


class AttendanceSnapshotRedis(BaseModel):
    """
    Cached copy of the attendance rows persisted for one date.
    """
    attendance_date: date
    marks: List[AttendanceMark] = Field(default_factory=list)
    cached_at: datetime
