"""
FastAPI dependencies: database session and pipeline components
"""

from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.database import async_session_maker
from ingestion.error_store import ErrorStore, RecoveryActionStore
from ingestion.job_ledger import JobLedger
from ingestion.loaders.template_store import TemplateStore
from ingestion.recovery import RecoveryEngine
from ingestion.runner import ETLRunner


def get_session_factory() -> async_sessionmaker:
    return async_session_maker


async def get_db(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session"""
    async with session_factory() as session:
        yield session


def get_ledger(session_factory: async_sessionmaker = Depends(get_session_factory)) -> JobLedger:
    return JobLedger(session_factory)


def get_recovery_engine(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    ledger: JobLedger = Depends(get_ledger)
) -> RecoveryEngine:
    return RecoveryEngine(
        error_store=ErrorStore(session_factory),
        recovery_store=RecoveryActionStore(session_factory),
        job_ledger=ledger
    )


def get_template_store(session_factory: async_sessionmaker = Depends(get_session_factory)) -> TemplateStore:
    return TemplateStore(session_factory)


def get_runner(session_factory: async_sessionmaker = Depends(get_session_factory)) -> ETLRunner:
    return ETLRunner.from_session_factory(session_factory)
