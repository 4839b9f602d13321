"""Authentication service."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from proofboard.models.user import User, UserRole
from proofboard.schemas.user import Token, UserCreate
from proofboard.services.user_service import ensure_unique
from proofboard.utils.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    get_user_id_from_token,
    verify_password,
)


class AuthService:
    """Service for user authentication operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, user_data: UserCreate) -> User:
        """Register a new user; raises ValueError on a duplicate email or username.

        Admin and PM accounts can only self-register while no user exists
        (bootstrapping the first administrator).
        """
        if user_data.role in (UserRole.ADMIN, UserRole.PM):
            if await self.db.scalar(select(func.count(User.id))):
                raise ValueError("Privileged roles are assigned by an administrator")

        await ensure_unique(self.db, user_data.email, user_data.username)

        user = User(
            email=user_data.email,
            username=user_data.username,
            name=user_data.name,
            role=user_data.role,
            hashed_password=get_password_hash(user_data.password),
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        """Authenticate user with email and password."""
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user

    def create_tokens(self, user: User) -> Token:
        """Create access and refresh tokens for user."""
        return Token(
            access_token=create_access_token(user.id),
            refresh_token=create_refresh_token(user.id),
        )

    async def refresh_tokens(self, refresh_token: str) -> Token | None:
        """New token pair for a valid refresh token of an active user."""
        user_id = get_user_id_from_token(refresh_token, REFRESH)
        if user_id is None:
            return None
        user = await self.get_user_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return self.create_tokens(user)

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        return await self.db.get(User, user_id)
