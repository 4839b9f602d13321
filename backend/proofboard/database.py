"""Database connection and session management."""
from collections.abc import AsyncGenerator
from pathlib import Path
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from proofboard.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session.

    One request is one transaction: every write a service performs is
    flushed into this session and committed together, or rolled back
    together when anything raises. Routes that hand work to subscribers or
    workers commit through their service first; the final commit here is
    then a no-op.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize / migrate the database schema.

    Alembic migrations are preferred; `create_all()` is the fallback for a
    brand new database when Alembic cannot run.
    """

    def _run_alembic_upgrade() -> None:
        from alembic import command
        from alembic.config import Config

        project_root = Path(__file__).resolve().parent.parent  # backend/
        alembic_ini = project_root / "alembic.ini"
        cfg = Config(str(alembic_ini))
        cfg.set_main_option("script_location", str(project_root / "alembic"))
        cfg.set_main_option("sqlalchemy.url", settings.database_url)
        cfg.attributes["configure_logger"] = False
        command.upgrade(cfg, "head")

    try:
        # Alembic env.py uses asyncio.run, so keep it off the running loop.
        await asyncio.to_thread(_run_alembic_upgrade)
    except Exception:
        logger.exception("Alembic upgrade failed, falling back to create_all()")
        from proofboard import models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
