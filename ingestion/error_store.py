"""
Durable error and recovery-action stores.

Both stores exist purely for post-hoc diagnosis. They open one short-lived
session per write, so a failing store never touches the caller's session.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from models.etl_error import ETLErrorRecord
from models.recovery_action import RecoveryAction
from schemas.etl import ErrorStats
import logging

logger = logging.getLogger(__name__)


class ErrorStore:
    """Persist ETL errors and aggregate them per job"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record_error(
        self,
        job_id: str,
        error_type: str,
        phase: str,
        message: str,
        item_id: Optional[str] = None,
        stack: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        handled: bool = False
    ) -> ETLErrorRecord:
        record = ETLErrorRecord(
            job_id=job_id,
            error_type=error_type,
            phase=phase,
            item_id=item_id,
            message=message,
            stack=stack,
            context=context or {},
            handled=handled,
            timestamp=datetime.utcnow()
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
            await session.refresh(record)
        return record

    async def list_errors(self, job_id: str) -> List[ETLErrorRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ETLErrorRecord)
                .where(ETLErrorRecord.job_id == job_id)
                .order_by(ETLErrorRecord.timestamp.asc(), ETLErrorRecord.id.asc())
            )
            return list(result.scalars().all())

    async def get_stats(self, job_id: str) -> ErrorStats:
        """Count a job's stored errors by type and by phase"""
        errors = await self.list_errors(job_id)

        by_type: Dict[str, int] = {}
        by_phase: Dict[str, int] = {}
        for error in errors:
            error_type = error.error_type or "UNKNOWN_ERROR"
            phase = error.phase or "unknown"
            by_type[error_type] = by_type.get(error_type, 0) + 1
            by_phase[phase] = by_phase.get(phase, 0) + 1

        return ErrorStats(total_errors=len(errors), by_type=by_type, by_phase=by_phase)


class RecoveryActionStore:
    """Append-only store of recovery actions"""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record_action(
        self,
        job_id: str,
        strategy: str,
        error: Optional[str] = None,
        item_id: Optional[str] = None,
        checkpoint_data: Optional[Dict[str, Any]] = None
    ) -> RecoveryAction:
        action = RecoveryAction(
            job_id=job_id,
            strategy=strategy,
            item_id=item_id,
            checkpoint_data=checkpoint_data,
            error=error,
            timestamp=datetime.utcnow()
        )
        async with self.session_factory() as session:
            session.add(action)
            await session.commit()
            await session.refresh(action)
        return action

    async def list_actions(self, job_id: str) -> List[RecoveryAction]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(RecoveryAction)
                .where(RecoveryAction.job_id == job_id)
                .order_by(RecoveryAction.timestamp.asc(), RecoveryAction.id.asc())
            )
            return list(result.scalars().all())
