"""User administration service."""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from proofboard.models.user import User, UserRole
from proofboard.schemas.user import AdminUserCreate, AdminUserUpdate
from proofboard.utils.security import get_password_hash

logger = logging.getLogger(__name__)


async def ensure_unique(
    db: AsyncSession,
    email: str | None,
    username: str | None,
    exclude_id: int | None = None,
) -> None:
    """Raise ValueError when the email or username belongs to another user."""
    conditions = []
    if email is not None:
        conditions.append(User.email == email)
    if username is not None:
        conditions.append(User.username == username)
    if not conditions:
        return

    stmt = select(User.email, User.username).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    for taken_email, _ in (await db.execute(stmt)).all():
        if email is not None and taken_email == email:
            raise ValueError("Email already registered")
        raise ValueError("Username already taken")


def _search(stmt, search: str):
    pattern = f"%{search}%"
    return stmt.where(
        or_(User.name.ilike(pattern), User.username.ilike(pattern), User.email.ilike(pattern))
    )


class UserService:
    """Service for administrator-managed accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> User | None:
        """Get user by ID."""
        return await self.db.get(User, user_id)

    async def list_users(
        self,
        role: UserRole | None = None,
        active: bool | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[User], int]:
        """Page of users ordered by name, with the unpaged total."""
        stmt = select(User)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if active is not None:
            stmt = stmt.where(User.is_active.is_(active))
        if search:
            stmt = _search(stmt, search)

        total = await self.db.scalar(select(func.count()).select_from(stmt.subquery()))
        result = await self.db.execute(
            stmt.order_by(func.coalesce(User.name, User.username), User.id).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def directory(self, role: UserRole | None = None, search: str | None = None) -> list[User]:
        """Active users, e.g. for picking project members or mentions."""
        stmt = select(User).where(User.is_active.is_(True))
        if role is not None:
            stmt = stmt.where(User.role == role)
        if search:
            stmt = _search(stmt, search)
        result = await self.db.execute(stmt.order_by(func.coalesce(User.name, User.username), User.id))
        return list(result.scalars().all())

    async def create_user(self, data: AdminUserCreate) -> User:
        await ensure_unique(self.db, data.email, data.username)
        user = User(
            email=data.email,
            username=data.username,
            name=data.name,
            role=data.role,
            hashed_password=get_password_hash(data.password),
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        logger.info("User %s created with role %s", user.id, user.role.value)
        return user

    async def update_user(self, user: User, data: AdminUserUpdate) -> User:
        fields = data.model_dump(exclude_unset=True)
        await ensure_unique(self.db, fields.get("email"), fields.get("username"), exclude_id=user.id)

        password = fields.pop("password", None)
        if password is not None:
            user.hashed_password = get_password_hash(password)
        for key, value in fields.items():
            if value is None and key != "name":
                continue
            setattr(user, key, value)

        await self.db.flush()
        await self.db.refresh(user)
        if "role" in fields:
            logger.info("User %s role set to %s", user.id, user.role.value)
        return user

    async def delete_user(self, user: User, actor: User) -> None:
        if user.id == actor.id:
            raise ValueError("Cannot delete your own account")
        user_id = user.id
        await self.db.refresh(user, ["memberships"])
        await self.db.delete(user)
        await self.db.flush()
        logger.info("User %s deleted by user %s", user_id, actor.id)
