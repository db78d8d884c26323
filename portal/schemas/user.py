# ============================================================================
# Staff User & Student Schemas
# ============================================================================
from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Optional

from portal.config import get_settings
from portal.models.user import UserRole, AccountStatus

settings = get_settings()

def _check_password(v: Optional[str]) -> Optional[str]:
    if v is not None and len(v) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
    return v

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str
    role: UserRole = UserRole.VIEWER
    status: AccountStatus = AccountStatus.ACTIVE

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password(v)

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[AccountStatus] = None

    @field_validator("password")
    @classmethod
    def password_length(cls, v: Optional[str]) -> Optional[str]:
        return _check_password(v)

class StudentRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    email: EmailStr
    password: str
    phone_number: str = Field(..., min_length=1, max_length=30)
    class_name: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    prepared: Optional[str] = Field(None, max_length=200)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("first_name", "phone_number", "class_name", "country")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
