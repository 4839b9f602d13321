"""Project schemas for request/response validation."""
from datetime import datetime

from pydantic import BaseModel, Field

from proofboard.models.project import MemberRole, ProjectStatus
from proofboard.schemas.user import UserBrief


class ProjectCreate(BaseModel):
    """Schema for creating a project."""
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    client_name: str | None = Field(None, max_length=200)
    deadline: datetime | None = None


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    client_name: str | None = Field(None, max_length=200)
    status: ProjectStatus | None = None
    deadline: datetime | None = None


class ProjectResponse(BaseModel):
    """Schema for project response."""
    id: int
    name: str
    description: str | None = None
    client_name: str | None = None
    status: ProjectStatus
    deadline: datetime | None = None
    created_by: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectListResponse(BaseModel):
    """Schema for project list response."""
    projects: list[ProjectResponse]
    total: int
    page: int
    page_size: int


class MemberAdd(BaseModel):
    user_id: int
    role_in_project: MemberRole = MemberRole.MEMBER


class MemberResponse(BaseModel):
    id: int
    user_id: int
    role_in_project: MemberRole
    user: UserBrief
    created_at: datetime

    model_config = {"from_attributes": True}
