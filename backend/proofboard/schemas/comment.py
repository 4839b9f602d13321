"""Comment schemas for request/response validation."""
from datetime import datetime

from pydantic import BaseModel, Field

from proofboard.schemas.user import UserBrief


class Rectangle(BaseModel):
    """Region as fractions of the displayed media."""
    x: float = Field(..., ge=0, le=1)
    y: float = Field(..., ge=0, le=1)
    width: float = Field(..., ge=0, le=1)
    height: float = Field(..., ge=0, le=1)


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    rectangle: Rectangle | None = None
    video_timestamp: float | None = Field(None, ge=0)
    page_number: int | None = Field(None, ge=1)
    parent_id: int | None = None
    temp_image_ids: list[str] = Field(default_factory=list, max_length=10)


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentImage(BaseModel):
    path: str
    url: str
    filename: str
    mime_type: str | None = None
    size: int


class CommentReply(BaseModel):
    id: int
    asset_id: int
    asset_version: int
    parent_id: int | None = None
    content: str
    user_id: int | None = None
    user: UserBrief | None = None
    images: list[CommentImage] | None = None
    mentions: list[UserBrief] = []
    is_resolved: bool
    resolved_by: int | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentResponse(CommentReply):
    rectangle: dict[str, float] | None = None
    video_timestamp: float | None = None
    formatted_timestamp: str | None = None
    page_number: int | None = None


class CommentThread(CommentResponse):
    """Top-level comment with its replies."""
    replies: list[CommentReply] = []


class TempImageResponse(BaseModel):
    temp_id: str
    filename: str
    preview_url: str
    size: int


class MessageResponse(BaseModel):
    message: str
