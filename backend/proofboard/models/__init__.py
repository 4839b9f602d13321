"""Database models."""
from proofboard.models.user import User, UserRole
from proofboard.models.project import MemberRole, Project, ProjectMember, ProjectStatus
from proofboard.models.asset import Asset, AssetStatus
from proofboard.models.asset_version import AssetVersion
from proofboard.models.comment import Comment
from proofboard.models.approval_log import ApprovalAction, ApprovalLog
from proofboard.models.version_lock import LockAction, VersionLock

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectMember",
    "ProjectStatus",
    "MemberRole",
    "Asset",
    "AssetStatus",
    "AssetVersion",
    "Comment",
    "ApprovalAction",
    "ApprovalLog",
    "LockAction",
    "VersionLock",
]
