from __future__ import annotations

import pytest
from sqlalchemy import select

from proofboard.models.project import ProjectMember
from proofboard.models.user import User, UserRole
from proofboard.schemas.user import AdminUserCreate, AdminUserUpdate
from proofboard.services.user_service import UserService
from proofboard.utils.security import verify_password


def new_user(**overrides) -> AdminUserCreate:
    data = {
        "email": "nia@studio.io",
        "username": "nia",
        "password": "s3cret-pass",
        "name": "Nia Planner",
        "role": UserRole.PM,
    }
    data.update(overrides)
    return AdminUserCreate(**data)


async def test_create_user_with_any_role(db, admin):
    created = await UserService(db).create_user(new_user(role=UserRole.ADMIN))
    assert created.id is not None
    assert created.role == UserRole.ADMIN
    assert created.is_active is True
    assert verify_password("s3cret-pass", created.hashed_password)


async def test_create_user_rejects_duplicates(db, pm):
    service = UserService(db)
    with pytest.raises(ValueError, match="Email already registered"):
        await service.create_user(new_user(email=pm.email))
    with pytest.raises(ValueError, match="Username already taken"):
        await service.create_user(new_user(username=pm.username))


async def test_list_users_filters_and_pages(db, admin, pm, creative, reviewer):
    service = UserService(db)
    await service.create_user(new_user())

    pms, total = await service.list_users(role=UserRole.PM)
    assert total == 2
    assert [u.name for u in pms] == ["Nia Planner", "Pat Manager"]

    found, total = await service.list_users(search="cam")
    assert (found, total) == ([creative], 1)

    page, total = await service.list_users(limit=2, offset=2)
    assert total == 5
    assert len(page) == 2


async def test_update_user_fields(db, pm, creative):
    service = UserService(db)
    updated = await service.update_user(
        creative, AdminUserUpdate(role=UserRole.PM, is_active=False, password="n3w-password")
    )
    assert updated.role == UserRole.PM
    assert updated.is_active is False
    assert verify_password("n3w-password", updated.hashed_password)
    assert creative not in await service.directory()

    await service.update_user(creative, AdminUserUpdate(name=None))
    assert creative.name is None

    # Keeping one's own username is not a conflict.
    await service.update_user(creative, AdminUserUpdate(username=creative.username))
    with pytest.raises(ValueError, match="Username already taken"):
        await service.update_user(creative, AdminUserUpdate(username=pm.username))


async def test_delete_user_removes_memberships(db, project, admin, creative):
    service = UserService(db)
    with pytest.raises(ValueError, match="own account"):
        await service.delete_user(admin, admin)

    await service.delete_user(creative, admin)
    assert await db.get(User, creative.id) is None
    members = await db.scalars(select(ProjectMember.user_id).where(ProjectMember.project_id == project.id))
    assert creative.id not in set(members)
