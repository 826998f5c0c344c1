# ============================================================================
# File: ingestion/runner.py
# Description: ETL coordinator for the recurring template jobs
# ============================================================================
"""
ETL Runner - Orchestrates the hot-trends, category and stats-refresh jobs.

Every entry point:
- creates a scheduled ledger entry and moves it to running
- extracts through the recovery engine (retries live there)
- hands the batch to the per-item processing loop
- completes the job with its result, or fails it with the partial result
  captured so far and re-raises
"""

from dataclasses import replace
from functools import partial
from typing import Any, Dict, List, Optional, Union
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from core.config import settings as default_settings
from core.exceptions import ETLError, RecoveryError, UnrecoverableError
from ingestion.error_store import ErrorStore, RecoveryActionStore
from ingestion.extractors.video_source import VideoSourceConnector
from ingestion.job_ledger import JobLedger
from ingestion.loaders.template_store import TemplateStore
from ingestion.processing import ItemProcessor
from ingestion.recovery import (
    RecoveryEngine,
    RecoveryOptions,
    ExtractionContext,
    LoadingContext,
    TransformationContext,
)
from ingestion.transformers.content_analyzer import ContentAnalyzer
from ingestion.transformers.video_normalizer import VideoNormalizer
from models.base import ETLPhase, JobStatus, JobType
from schemas.etl import (
    Checkpoint,
    CategoryResult,
    CategoryRunResult,
    HotTrendsResult,
    JobCreate,
    JobResult,
    ProcessingResult,
    StatsRefreshResult,
)

logger = logging.getLogger(__name__)


def _partial_job_result(error: BaseException, fallback: Any) -> Optional[JobResult]:
    """Best available progress summary for a failed job"""
    partial_result = getattr(error, "partial_result", None) or fallback
    if partial_result is None or isinstance(partial_result, JobResult):
        return partial_result
    return partial_result.to_job_result()


def _error_message(error: BaseException) -> str:
    if isinstance(error, RecoveryError):
        return error.error.message
    if isinstance(error, ETLError):
        return error.message
    return str(error) or type(error).__name__


class ETLRunner:
    """
    ETL Coordinator

    Responsibilities:
    - Own the job lifecycle in the ledger
    - Run extraction through the recovery engine
    - Isolate category failures from each other
    - Never leave a job running after an exception
    """

    def __init__(
        self,
        connector: VideoSourceConnector,
        analyzer: ContentAnalyzer,
        store: TemplateStore,
        ledger: JobLedger,
        engine: RecoveryEngine,
        settings=None,
        normalizer: Optional[VideoNormalizer] = None,
        options: Optional[RecoveryOptions] = None
    ):
        self.connector = connector
        self.analyzer = analyzer
        self.store = store
        self.ledger = ledger
        self.engine = engine
        self.settings = settings or default_settings
        self.normalizer = normalizer or VideoNormalizer()
        self.options = options or engine.options
        self.processor = ItemProcessor(
            analyzer=analyzer,
            store=store,
            engine=engine,
            normalizer=self.normalizer,
            settings=self.settings
        )

    @classmethod
    def from_session_factory(cls, session_factory: async_sessionmaker, settings=None) -> "ETLRunner":
        """Wire the default collaborators onto one database"""
        settings = settings or default_settings
        ledger = JobLedger(session_factory)
        engine = RecoveryEngine(
            error_store=ErrorStore(session_factory),
            recovery_store=RecoveryActionStore(session_factory),
            job_ledger=ledger,
            options=RecoveryOptions.from_settings(settings)
        )
        return cls(
            connector=VideoSourceConnector(),
            analyzer=ContentAnalyzer(),
            store=TemplateStore(session_factory),
            ledger=ledger,
            engine=engine,
            settings=settings
        )

    async def _start_job(self, name: str, job_type: JobType, parameters: Dict[str, Any]) -> str:
        job = await self.ledger.create_job(JobCreate(
            name=name,
            type=job_type.value,
            status=JobStatus.SCHEDULED,
            parameters=parameters
        ))
        await self.ledger.start_job(job.id)
        logger.info(f"Started {job_type.value} job {job.id}")
        return job.id

    async def _fail(self, job_id: str, error: BaseException, progress: Any) -> None:
        logger.error(
            f"ETL job {job_id} failed: {_error_message(error)}",
            extra={"etl_context": {"job_id": job_id, "error_class": type(error).__name__}}
        )
        await self.ledger.fail_job(job_id, _error_message(error), _partial_job_result(error, progress))

    # ------------------------------------------------------------------
    # Hot trends
    # ------------------------------------------------------------------

    async def process_hot_trends(self, options: Optional[Dict[str, Any]] = None) -> HotTrendsResult:
        """
        Scrape trending videos and turn them into templates.

        Args:
            options: Extra scraper input (e.g. ``{"maxVideos": 50}``)

        Returns:
            HotTrendsResult with the job id and counters
        """
        job_id = await self._start_job("Hot trends ETL", JobType.HOT_TRENDS, options or {})
        result = HotTrendsResult(job_id=job_id)

        try:
            # --------------------------------------------------
            # PHASE 1: EXTRACTION
            # --------------------------------------------------
            try:
                raw_items = await self.engine.execute_with_recovery(
                    partial(self.connector.scrape_trending, options),
                    ETLPhase.EXTRACTION,
                    job_id,
                    ExtractionContext(query="trending"),
                    self.options
                )
            except RecoveryError as e:
                result.message = f"Extraction failed: {e.error.message}"
                await self.ledger.fail_job(job_id, result.message, result.to_job_result(result.message))
                return result

            if not raw_items:
                result.message = "No trending videos found"
                logger.info(f"Job {job_id}: {result.message}")
                await self.ledger.complete_job(job_id, JobResult(
                    processed=0, failed=0, templates=0, message=result.message
                ))
                return result

            # --------------------------------------------------
            # PHASE 2: TRANSFORM + LOAD
            # --------------------------------------------------
            processed = await self.processor.process_items_with_recovery(
                raw_items,
                job_id,
                Checkpoint(phase=ETLPhase.TRANSFORMATION),
                self.options
            )

            result = HotTrendsResult(
                **processed.model_dump(),
                job_id=job_id,
                message=f"Created {processed.success} templates from {processed.total} trending videos"
            )
            await self.ledger.complete_job(job_id, processed.to_job_result(result.message))

            logger.info(
                f"Hot trends job {job_id} completed - "
                f"Success: {result.success}, Failed: {result.failed}, Skipped: {result.skipped}"
            )
            return result

        except Exception as e:
            await self._fail(job_id, e, result)
            raise

    # ------------------------------------------------------------------
    # Stats refresh
    # ------------------------------------------------------------------

    async def update_template_stats(self, limit: Optional[int] = None) -> StatsRefreshResult:
        """
        Re-scrape the source video of each active template and refresh its
        engagement counters. A template whose lookup, payload or update
        fails is counted as failed and the refresh moves on.
        """
        limit = limit or self.settings.STATS_REFRESH_LIMIT
        job_id = await self._start_job("Template stats refresh", JobType.STATS_REFRESH, {"limit": limit})
        result = StatsRefreshResult(job_id=job_id)
        template_options = replace(self.options, notify_on_failure=False)

        try:
            templates = await self.engine.execute_with_recovery(
                partial(self.store.get_all_templates, limit),
                ETLPhase.LOADING,
                job_id,
                LoadingContext(checkpoint=Checkpoint(phase=ETLPhase.LOADING)),
                self.options
            )
            result.total = len(templates)
            logger.info(f"Refreshing stats of {result.total} templates")

            for index, template in enumerate(templates):
                if not template.source_video_id:
                    result.skipped += 1
                    continue

                checkpoint = Checkpoint(phase=ETLPhase.EXTRACTION).advance(index, template.id, result.updated)

                try:
                    raw_items = await self.engine.execute_with_recovery(
                        partial(self.connector.scrape_by_hashtag, template.source_video_id, 1),
                        ETLPhase.EXTRACTION,
                        job_id,
                        ExtractionContext(
                            query=template.source_video_id,
                            checkpoint=checkpoint,
                            partial_result=result.to_job_result()
                        ),
                        template_options
                    )
                except RecoveryError as e:
                    logger.warning(f"Stats lookup failed for template {template.id}: {e.error.message}")
                    result.failed += 1
                    continue

                if not raw_items:
                    result.skipped += 1
                    continue

                try:
                    video = self.normalizer.normalize(raw_items[0])
                except Exception as e:
                    await self.engine.handle_error(
                        e, ETLPhase.VALIDATION, job_id,
                        TransformationContext(
                            item_id=template.id,
                            checkpoint=checkpoint.model_copy(update={"phase": ETLPhase.VALIDATION}),
                            partial_result=result.to_job_result()
                        ),
                        template_options
                    )
                    logger.warning(f"Unusable stats payload for template {template.id}")
                    result.failed += 1
                    continue

                if video.stats is None:
                    result.skipped += 1
                    continue

                try:
                    await self.engine.execute_with_recovery(
                        partial(self.store.update_stats, template.id, video.stats),
                        ETLPhase.LOADING,
                        job_id,
                        LoadingContext(
                            item_id=template.id,
                            checkpoint=checkpoint.model_copy(update={"phase": ETLPhase.LOADING}),
                            partial_result=result.to_job_result()
                        ),
                        template_options
                    )
                except RecoveryError as e:
                    logger.warning(f"Stats update failed for template {template.id}: {e.error.message}")
                    result.failed += 1
                    continue

                result.updated += 1

            await self.ledger.complete_job(job_id, result.to_job_result())
            logger.info(
                f"Stats refresh job {job_id} completed - "
                f"Updated: {result.updated}, Failed: {result.failed}, Skipped: {result.skipped}"
            )
            return result

        except Exception as e:
            await self._fail(job_id, e, result)
            raise

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def process_by_categories(
        self,
        categories: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> CategoryRunResult:
        """
        Process each category independently; one category's failure is
        recorded in its result and never stops the others.
        """
        categories = categories or list(self.settings.DEFAULT_CATEGORIES)
        limit = limit or self.settings.CATEGORY_LIMIT
        job_id = await self._start_job(
            "Category ETL", JobType.CATEGORY, {"categories": categories, "limit": limit}
        )
        run = CategoryRunResult(job_id=job_id)

        # a failed category must not end the whole job
        category_options = replace(self.options, notify_on_failure=False)
        # a video trending in two categories becomes one template
        loaded_ids = set()

        try:
            for category in categories:
                try:
                    raw_items = await self.engine.execute_with_recovery(
                        partial(self.connector.scrape_by_category, category, limit),
                        ETLPhase.EXTRACTION,
                        job_id,
                        ExtractionContext(
                            query=category,
                            category=category,
                            partial_result=run.to_job_result()
                        ),
                        category_options
                    )
                except RecoveryError as e:
                    logger.error(f"Extraction failed for category {category}: {e.error.message}")
                    run.add(category, CategoryResult(error=e.error.message, failed=1))
                    continue

                try:
                    processed = await self.processor.process_items_with_recovery(
                        raw_items,
                        job_id,
                        Checkpoint(phase=ETLPhase.TRANSFORMATION, category=category),
                        category_options,
                        loaded_ids
                    )
                    category_result = CategoryResult(**processed.model_dump())
                except UnrecoverableError as e:
                    logger.error(f"Processing aborted for category {category}: {e.error.message}")
                    progress = e.partial_result or ProcessingResult()
                    category_result = CategoryResult(**progress.model_dump(), error=e.error.message)

                run.add(category, category_result)
                logger.info(
                    f"Category {category}: {category_result.success} succeeded, "
                    f"{category_result.failed} failed, {category_result.skipped} skipped"
                )

            await self.ledger.complete_job(job_id, run.to_job_result())
            logger.info(
                f"Category job {job_id} completed - "
                f"Success: {run.total_success}, Failed: {run.total_failed}, Skipped: {run.total_skipped}"
            )
            return run

        except Exception as e:
            await self._fail(job_id, e, run)
            raise

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def run_job(
        self,
        job_type: Union[JobType, str],
        **params
    ) -> Union[HotTrendsResult, CategoryRunResult, StatsRefreshResult]:
        """Run one job by its type name (``hot-trends``, ``category``, ``stats-refresh``)"""
        try:
            job_type = JobType(job_type)
        except ValueError:
            raise ValueError(f"Unknown job type: {job_type}")

        if job_type == JobType.HOT_TRENDS:
            return await self.process_hot_trends(params.get("options"))
        if job_type == JobType.CATEGORY:
            return await self.process_by_categories(params.get("categories"), params.get("limit"))
        return await self.update_template_stats(params.get("limit"))
