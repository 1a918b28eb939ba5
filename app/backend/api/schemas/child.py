from pydantic import BaseModel, Field, ConfigDict
from uuid import UUID
from datetime import datetime
from typing import List, Optional

PHONE_PATTERN = r"^\+?[0-9][0-9 -]{6,18}$"


class ChildCreateRequest(BaseModel):
    """Request model for registering a kid."""
    registration_id: Optional[str] = Field(None, min_length=1, description="Leave empty to generate the next code.")
    full_name: str = Field(..., min_length=1)
    standard: int = Field(..., ge=1, le=12, description="School standard, 1 to 12.")
    age: int = Field(..., ge=1, le=25)
    school_name: str = Field(..., min_length=1)
    father_phone: str = Field(..., pattern=PHONE_PATTERN)
    mother_phone: str = Field(..., pattern=PHONE_PATTERN)
    address: Optional[str] = None


class ChildUpdateRequest(BaseModel):
    """Partial edit. Fields that are not sent keep their value."""
    full_name: Optional[str] = Field(None, min_length=1)
    standard: Optional[int] = Field(None, ge=1, le=12)
    age: Optional[int] = Field(None, ge=1, le=25)
    school_name: Optional[str] = Field(None, min_length=1)
    father_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    mother_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[str] = None


class ChildResponse(BaseModel):
    id: UUID
    registration_id: str
    full_name: str
    standard: int
    age: int
    school_name: str
    father_phone: str
    mother_phone: str
    address: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ChildListResponse(BaseModel):
    """A filtered view of the roster plus what the filter controls need."""
    children: List[ChildResponse]
    total: int = Field(description="Size of the whole roster, before filtering.")
    schools: List[str]
