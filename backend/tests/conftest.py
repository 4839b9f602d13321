from __future__ import annotations

import io
import os
import shutil
import tempfile
from pathlib import Path

# Settings are read once at import time, so point them at scratch locations
# before anything from proofboard is imported.
_SCRATCH = Path(tempfile.mkdtemp(prefix="proofboard-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_SCRATCH / 'app.db'}")
os.environ.setdefault("UPLOAD_DIR", str(_SCRATCH / "uploads"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from proofboard import models  # noqa: F401
from proofboard.database import Base
from proofboard.models.project import MemberRole, Project, ProjectMember
from proofboard.models.user import User, UserRole
from proofboard.services.asset_service import AssetService
from proofboard.services.asset_types import build_default_registry
from proofboard.services.comment_service import CommentService
from proofboard.services.notifications import NotificationDispatcher
from proofboard.utils.storage import StorageService


def have_ffmpeg() -> bool:
    return shutil.which("ffmpeg") is not None


def png_bytes(width: int = 64, height: int = 48, color: str = "red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, "PNG")
    return buf.getvalue()


def pdf_bytes(pages: int = 1) -> bytes:
    """A small PDF with `pages` blank pages, written by Pillow."""
    images = [Image.new("RGB", (200, 280), "white") for _ in range(pages)]
    buf = io.BytesIO()
    images[0].save(buf, "PDF", save_all=True, append_images=images[1:])
    return buf.getvalue()


@pytest_asyncio.fixture
async def engine(tmp_path: Path):
    """File-backed SQLite so several sessions can share one database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(tmp_path: Path) -> StorageService:
    return StorageService(tmp_path / "uploads")


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def notifier(events) -> NotificationDispatcher:
    return NotificationDispatcher([events.append])


@pytest.fixture
def asset_service(db, registry, store, notifier) -> AssetService:
    return AssetService(db, registry, store, notifier)


@pytest.fixture
def comment_service(db, registry, store, notifier) -> CommentService:
    return CommentService(db, registry, store, notifier)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role: UserRole = UserRole.CREATIVE, name: str | None = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"{role.value}{n}@example.com",
            username=f"{role.value}{n}",
            name=name,
            role=role,
            hashed_password="not-a-real-hash",
            is_active=True,
        )
        db.add(user)
        await db.flush()
        return user

    return _make_user


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN, name="Ada Admin")


@pytest_asyncio.fixture
async def pm(make_user) -> User:
    return await make_user(UserRole.PM, name="Pat Manager")


@pytest_asyncio.fixture
async def creative(make_user) -> User:
    return await make_user(UserRole.CREATIVE, name="Cam Creative")


@pytest_asyncio.fixture
async def reviewer(make_user) -> User:
    return await make_user(UserRole.REVIEWER, name="Robin Client")


@pytest_asyncio.fixture
async def project(db, pm, creative, reviewer) -> Project:
    project = Project(name="Spring Campaign", client_name="Acme", created_by=pm.id)
    db.add(project)
    await db.flush()
    db.add_all([
        ProjectMember(project_id=project.id, user_id=pm.id, role_in_project=MemberRole.OWNER),
        ProjectMember(project_id=project.id, user_id=creative.id, role_in_project=MemberRole.MEMBER),
        ProjectMember(project_id=project.id, user_id=reviewer.id, role_in_project=MemberRole.MEMBER),
    ])
    await db.flush()
    return project


@pytest.fixture
def stage(store):
    """Stage in-memory bytes the way an upload would be staged."""

    async def _stage(content: bytes, filename: str, mime_type: str | None):
        return await store.stage_bytes(content, filename, mime_type)

    return _stage


@pytest_asyncio.fixture
async def image_asset(asset_service, project, creative, stage):
    file = await stage(png_bytes(), "hero.png", "image/png")
    return await asset_service.create_asset(project, creative, file, title="Hero Banner")
