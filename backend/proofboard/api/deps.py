"""API dependencies."""
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from proofboard.database import get_db
from proofboard.models.project import ProjectMember
from proofboard.models.user import User
from proofboard.services.asset_service import AssetService
from proofboard.services.asset_types import AssetTypeRegistry
from proofboard.services.comment_service import CommentService
from proofboard.services.exceptions import PermissionDeniedError
from proofboard.services.notifications import NotificationDispatcher
from proofboard.utils.security import get_user_id_from_token
from proofboard.utils.storage import StorageService, storage

bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    db: DbSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> User:
    """Resolve the bearer token to an active user."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    user_id = get_user_id_from_token(credentials.credentials)
    if user_id is None:
        raise unauthorized

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise unauthorized
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_registry(request: Request) -> AssetTypeRegistry:
    return request.app.state.registry


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_storage() -> StorageService:
    return storage


Registry = Annotated[AssetTypeRegistry, Depends(get_registry)]
Notifier = Annotated[NotificationDispatcher, Depends(get_notifier)]
Storage = Annotated[StorageService, Depends(get_storage)]


def get_asset_service(db: DbSession, registry: Registry, store: Storage, notifier: Notifier) -> AssetService:
    return AssetService(db, registry, store, notifier)


def get_comment_service(db: DbSession, registry: Registry, store: Storage, notifier: Notifier) -> CommentService:
    return CommentService(db, registry, store, notifier)


Assets = Annotated[AssetService, Depends(get_asset_service)]
Comments = Annotated[CommentService, Depends(get_comment_service)]


async def get_membership(db: AsyncSession, project_id: int, user_id: int) -> ProjectMember | None:
    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


def authorize(allowed: bool, message: str = "You are not allowed to perform this action.") -> None:
    if not allowed:
        raise PermissionDeniedError(message)
