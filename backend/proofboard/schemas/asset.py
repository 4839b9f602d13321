"""Asset schemas for request/response validation."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from proofboard.models.asset import AssetStatus


class AssetVersionResponse(BaseModel):
    id: int
    asset_id: int
    version_number: int
    file_url: str
    file_size: int
    file_size_formatted: str
    file_meta: dict[str, Any] | None = None
    version_notes: str | None = None
    thumbnail_url: str | None = None
    uploaded_by: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AssetResponse(BaseModel):
    """Schema for asset response."""
    id: int
    project_id: int
    uploaded_by: int | None = None
    title: str
    description: str | None = None
    type: str
    status: AssetStatus
    current_version: int
    deadline: datetime | None = None
    is_locked: bool
    locked_by: int | None = None
    locked_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssetDetailResponse(AssetResponse):
    """Asset with the capability flags the review UI needs."""
    type_display_name: str
    annotation_capabilities: dict[str, bool]
    versions: list[AssetVersionResponse] = []


class AssetUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    deadline: datetime | None = None


class DecisionRequest(BaseModel):
    """Approve / request-revision / reopen payload."""
    comment: str | None = None


class LockRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class DownloadResponse(BaseModel):
    url: str
    filename: str
    version: int
    file_size: int


class AssetTypeResponse(BaseModel):
    """One registered handler as advertised to clients."""
    type: str
    display_name: str
    extensions: list[str]
    allowed_mime_types: list[str]
    max_file_size: int
    capabilities: dict[str, bool]
