"""User directory and administrator account management routes."""
from fastapi import APIRouter, HTTPException, Query, status

from proofboard import policies
from proofboard.api.deps import CurrentUser, DbSession, authorize
from proofboard.models.user import User, UserRole
from proofboard.schemas.comment import MessageResponse
from proofboard.schemas.user import AdminUserCreate, AdminUserUpdate, UserListResponse, UserResponse
from proofboard.services.exceptions import NotFoundError
from proofboard.services.user_service import UserService

router = APIRouter()


def require_admin(current_user: User) -> None:
    authorize(policies.can_manage_users(current_user), "Admin access required.")


async def load_user(service: UserService, user_id: int) -> User:
    user = await service.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("/users", response_model=list[UserResponse])
async def list_directory(
    current_user: CurrentUser,
    db: DbSession,
    role: UserRole | None = None,
    search: str | None = Query(None, max_length=200),
):
    """Active users, visible to admins and PMs."""
    authorize(policies.can_list_users(current_user), "Access denied.")
    return await UserService(db).directory(role=role, search=search)


@router.get("/admin/users", response_model=UserListResponse)
async def list_users(
    current_user: CurrentUser,
    db: DbSession,
    role: UserRole | None = None,
    active: bool | None = None,
    search: str | None = Query(None, max_length=200),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    require_admin(current_user)
    users, total = await UserService(db).list_users(role, active, search, limit, offset)
    return UserListResponse(users=users, total=total)


@router.post("/admin/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: AdminUserCreate, current_user: CurrentUser, db: DbSession):
    """Create an account with any role."""
    require_admin(current_user)
    try:
        return await UserService(db).create_user(data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, data: AdminUserUpdate, current_user: CurrentUser, db: DbSession):
    """Change profile fields, password, role or active flag."""
    require_admin(current_user)
    service = UserService(db)
    user = await load_user(service, user_id)
    try:
        return await service.update_user(user, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: int, current_user: CurrentUser, db: DbSession):
    require_admin(current_user)
    service = UserService(db)
    user = await load_user(service, user_id)
    try:
        await service.delete_user(user, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return MessageResponse(message="User deleted successfully.")
