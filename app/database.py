"""
Ledger Reports - Database Configuration

Async SQLAlchemy 2.0 engine and session factories. The API process shares one
engine; Celery workers build a short-lived one per task with
create_session_factory() because each task runs on its own event loop.
"""

from typing import Any, Dict, Tuple

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


# Naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    metadata = MetaData(naming_convention=convention)


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }
    # SQLite uses a single-connection pool; sizing only applies to server databases
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
    return options


def create_session_factory(
    url: str,
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build a dedicated engine and session factory for ``url``."""
    new_engine = create_async_engine(url, **_engine_options(url))
    factory = async_sessionmaker(
        new_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return new_engine, factory


# Create async engine and session factory
engine, async_session_factory = create_session_factory(settings.database_url_async)


async def get_async_session() -> AsyncSession:
    """
    Dependency for getting async database session.
    Use with FastAPI's Depends().
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


get_db = get_async_session


async def init_db():
    """
    Create all tables.
    Use this for development/testing only.
    """
    # Register models on the metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
