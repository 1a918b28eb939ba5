from pydantic import BaseModel, Field
from uuid import UUID
from datetime import date
from typing import Dict

from ...models.db_models import AttendanceStatus


class DraftDateRequest(BaseModel):
    """Selects the date whose attendance is being marked."""
    attendance_date: date = Field(..., description="Calendar day in YYYY-MM-DD format.")


class MarkRequest(BaseModel):
    status: AttendanceStatus


class AttendanceSubmitRequest(BaseModel):
    """Every roster kid's status for one date, sent in one go."""
    marks: Dict[UUID, AttendanceStatus] = Field(default_factory=dict)
