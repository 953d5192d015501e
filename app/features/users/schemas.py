"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.access.catalog import RoleKey


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class UserUpdate(BaseModel):
    """Schema for updating the caller's own profile."""
    name: str | None = Field(None, min_length=1, max_length=255)
    avatar_url: str | None = Field(None, max_length=500)


class UserRoleUpdate(BaseModel):
    """Schema for assigning a school role to a user."""
    role: RoleKey


class UserResponse(UserBase):
    """Schema for user responses."""
    id: str
    avatar_url: str | None = None
    role: RoleKey
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """Public user information (limited fields)."""
    id: str
    name: str
    role: RoleKey
    avatar_url: str | None = None

    model_config = {"from_attributes": True}
