"""Pydantic schemas."""
from proofboard.schemas.user import (
    AdminUserCreate,
    AdminUserUpdate,
    RefreshRequest,
    Token,
    UserBrief,
    UserCreate,
    UserListResponse,
    UserLogin,
    UserResponse,
)
from proofboard.schemas.project import (
    MemberAdd,
    MemberResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)
from proofboard.schemas.asset import (
    AssetDetailResponse,
    AssetResponse,
    AssetTypeResponse,
    AssetUpdate,
    AssetVersionResponse,
    DecisionRequest,
    DownloadResponse,
    LockRequest,
)
from proofboard.schemas.comment import (
    CommentCreate,
    CommentResponse,
    CommentThread,
    CommentUpdate,
    MessageResponse,
    TempImageResponse,
)

__all__ = [
    "AdminUserCreate",
    "AdminUserUpdate",
    "RefreshRequest",
    "Token",
    "UserBrief",
    "UserCreate",
    "UserListResponse",
    "UserLogin",
    "UserResponse",
    "MemberAdd",
    "MemberResponse",
    "ProjectCreate",
    "ProjectListResponse",
    "ProjectResponse",
    "ProjectUpdate",
    "AssetDetailResponse",
    "AssetResponse",
    "AssetTypeResponse",
    "AssetUpdate",
    "AssetVersionResponse",
    "DecisionRequest",
    "DownloadResponse",
    "LockRequest",
    "CommentCreate",
    "CommentResponse",
    "CommentThread",
    "CommentUpdate",
    "MessageResponse",
    "TempImageResponse",
]
