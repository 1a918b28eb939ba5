# app/backend/api/schemas/user.py
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from uuid import UUID


class LoginRequest(BaseModel):
    username: str
    password: str


class SignupRequest(BaseModel):
    sabha_name: str = Field(..., min_length=1)
    karyakar_number: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: Optional[UUID] = None
    username: str
    sabha_name: str
    karyakar_number: str

    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: Token
    user: UserResponse


# Internal representation of JWT data
class TokenData(BaseModel):
    sub: Optional[str] = None
    sid: Optional[str] = None
