"""
Database engine and session factory management with SQLAlchemy async.

The ledger, the error/recovery stores and the template store each open one
short-lived session per operation from a shared session factory, so
concurrent jobs never share a session.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from core.config import settings
from models.base import Base
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the configured (or given) database URL"""
    kwargs.setdefault("poolclass", NullPool)
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        future=True,
        **kwargs
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Create a session factory bound to the given engine"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def create_tables(bind: AsyncEngine) -> None:
    """Create every table registered on the declarative base"""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


engine = build_engine()
async_session_maker = build_session_factory(engine)
