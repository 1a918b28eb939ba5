# app/backend/models/db_models.py

from enum import Enum
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional
from uuid import UUID


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class Child(BaseModel):
    """
    Represents a registered child, mapping to the 'kids' table.
    """
    id: UUID = Field(..., description="Opaque identifier, Primary Key")
    registration_id: str = Field(..., description="Human readable registration code, unique. The roster is ordered by it.")
    full_name: str
    standard: int = Field(..., ge=1, le=12, description="School grade, 1 to 12")
    age: int
    school_name: str
    father_phone: str
    mother_phone: str
    address: Optional[str] = None
    created_at: Optional[datetime] = None


class AttendanceRecord(BaseModel):
    """
    Represents the status of one child on one day, mapping to the 'attendance' table.
    At most one row exists per (kid_id, attendance_date); the commit workflow keeps it that way.
    """
    id: Optional[UUID] = None
    kid_id: UUID = Field(..., description="Reference to the child. Not a foreign key, rows outlive deleted children.")
    attendance_date: date
    status: AttendanceStatus
    created_at: Optional[datetime] = None


class AttendanceMark(BaseModel):
    """A single (child, status) pair of a date's snapshot."""
    kid_id: UUID
    status: AttendanceStatus


class AttendanceHistoryRow(BaseModel):
    """
    An attendance row with the child's display fields.
    The display fields are None when the child has since been deleted.
    """
    id: UUID
    kid_id: UUID
    status: AttendanceStatus
    registration_id: Optional[str] = None
    full_name: Optional[str] = None
    standard: Optional[int] = None


class User(BaseModel):
    """
    Represents a login credential record, mapping to the 'users' table.
    """
    id: Optional[UUID] = None
    username: str = Field(..., description="Unique login name")
    password_hash: str = Field(..., description="Whatever the credential verifier encodes. Plaintext with the default verifier.")
    sabha_name: str
    karyakar_number: str
    created_at: Optional[datetime] = None
