"""User Pydantic schemas — registration, login, profile output."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from artisans.models.user import UserRole
from artisans.schemas.base import CamelModel


class UserCreate(CamelModel):
    """Fields submitted on the registration form."""
    username: str = Field(min_length=3, max_length=100)
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=8)
    role: UserRole = UserRole.CLIENT
    service_type: Optional[str] = None
    business_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None

    @field_validator("role")
    @classmethod
    def no_self_service_admins(cls, v: UserRole) -> UserRole:
        if v == UserRole.ADMIN:
            raise ValueError("Admin accounts cannot be self-registered")
        return v


class UserLogin(CamelModel):
    """Username or email plus password."""
    username: str
    password: str


class UserOut(CamelModel):
    """Public user representation returned by the API."""
    id: int
    username: str
    email: str
    full_name: str
    role: UserRole
    service_type: Optional[str] = None
    business_name: Optional[str] = None
    points: int
    created_at: Optional[datetime] = None


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"
