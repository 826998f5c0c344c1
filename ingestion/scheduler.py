import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.config import settings
from core.database import async_session_maker
from ingestion.runner import ETLRunner
from models.base import JobType

logger = logging.getLogger(__name__)


class ETLScheduler:
    """Runs the three recurring jobs on fixed intervals"""

    def __init__(self, session_factory: async_sessionmaker = None, runner: ETLRunner = None):
        self.scheduler = AsyncIOScheduler()
        self.runner = runner or ETLRunner.from_session_factory(session_factory or async_session_maker)

    async def run_etl_job(self, job_type: str):
        """Job to run one ETL job type; failures are logged, never raised"""
        logger.info(f"Scheduler: Starting {job_type} job")
        try:
            await self.runner.run_job(job_type)
        except Exception as e:
            logger.error(f"Scheduler: {job_type} job failed - {e}")

    def start(self):
        """Start the scheduler"""
        intervals = {
            JobType.HOT_TRENDS: settings.HOT_TRENDS_INTERVAL_HOURS,
            JobType.CATEGORY: settings.CATEGORY_INTERVAL_HOURS,
            JobType.STATS_REFRESH: settings.STATS_REFRESH_INTERVAL_HOURS,
        }
        for job_type, hours in intervals.items():
            self.scheduler.add_job(
                self.run_etl_job,
                trigger=IntervalTrigger(hours=hours),
                args=[job_type.value],
                id=f"etl_{job_type.value}",
                replace_existing=True
            )
        self.scheduler.start()
        logger.info("ETL Scheduler started")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("ETL Scheduler stopped")
