"""User schemas for request/response validation."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from proofboard.models.user import UserRole


class UserCreate(BaseModel):
    """Schema for user registration."""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8, max_length=100)
    name: str | None = Field(None, max_length=200)
    role: UserRole = UserRole.CREATIVE


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class UserBrief(BaseModel):
    id: int
    username: str
    name: str | None = None
    role: UserRole

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Schema for user response."""
    id: int
    email: str
    username: str
    name: str | None = None
    avatar_url: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    """Schema for JWT token response."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class AdminUserCreate(BaseModel):
    """Schema for an administrator creating an account with any role."""
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=8, max_length=100)
    name: str | None = Field(None, max_length=200)
    role: UserRole


class AdminUserUpdate(BaseModel):
    """Schema for an administrator updating an account."""
    email: EmailStr | None = None
    username: str | None = Field(None, min_length=3, max_length=100)
    password: str | None = Field(None, min_length=8, max_length=100)
    name: str | None = Field(None, max_length=200)
    role: UserRole | None = None
    is_active: bool | None = None


class UserListResponse(BaseModel):
    """Schema for a page of users."""
    users: list[UserResponse]
    total: int
