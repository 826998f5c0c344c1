"""
Per-item processing loop: normalize -> filter -> transform -> categorize -> load.

Items are processed sequentially in extraction order. Each failure is first
offered to the recovery engine; skipped items are counted as failed and the
loop moves on. Only an unrecoverable outcome aborts the batch, and the
counters collected so far travel with the raised ``UnrecoverableError``.

Invariant: ``success + failed + skipped`` equals the number of items
attempted.
"""

from typing import Any, List, Optional, Set
import logging

from core.config import settings as default_settings
from core.exceptions import UnrecoverableError
from ingestion.recovery import (
    RecoveryEngine,
    RecoveryOptions,
    RecoveryOutcome,
    TransformationContext,
    LoadingContext,
    normalize_error,
)
from ingestion.transformers.content_analyzer import ContentAnalyzer
from ingestion.transformers.video_normalizer import VideoNormalizer
from ingestion.loaders.template_store import TemplateStore
from models.base import ETLPhase, RecoveryStrategy
from schemas.etl import Checkpoint, ProcessingResult
from schemas.video import VideoRecord

logger = logging.getLogger(__name__)


def _is_skip(outcome: RecoveryOutcome) -> bool:
    return outcome.handled and outcome.strategy == RecoveryStrategy.SKIP


def _is_retry(outcome: RecoveryOutcome) -> bool:
    return outcome.handled and outcome.strategy == RecoveryStrategy.RETRY


class ItemProcessor:
    """
    Turn a batch of scraped videos into templates.

    Responsibilities:
    - Eligibility filtering before any expensive call
    - Per-item checkpointing
    - Delegating failures to the recovery engine
    - Accurate success / failed / skipped accounting
    """

    def __init__(
        self,
        analyzer: ContentAnalyzer,
        store: TemplateStore,
        engine: RecoveryEngine,
        normalizer: Optional[VideoNormalizer] = None,
        settings=None
    ):
        self.analyzer = analyzer
        self.store = store
        self.engine = engine
        self.normalizer = normalizer or VideoNormalizer()
        self.settings = settings or default_settings

    def is_eligible(self, video: VideoRecord) -> bool:
        """Complete records above the view and like thresholds"""
        if not video.id or video.video_meta is None or video.stats is None:
            return False
        if video.stats.play_count < self.settings.MIN_VIEW_COUNT:
            return False
        if video.stats.digg_count < self.settings.MIN_LIKE_COUNT:
            return False
        return True

    async def process_items_with_recovery(
        self,
        items: List[Any],
        job_id: str,
        checkpoint: Optional[Checkpoint] = None,
        options: Optional[RecoveryOptions] = None,
        loaded_ids: Optional[Set[str]] = None
    ) -> ProcessingResult:
        """
        Process a batch of raw or normalized video records.

        Args:
            items: Raw provider dicts or ``VideoRecord`` instances
            job_id: Ledger id of the running job
            checkpoint: Base checkpoint (carries the category, if any)
            options: Recovery options for this batch
            loaded_ids: Source video ids already turned into templates by
                this job; repeats are skipped. Updated in place.

        Returns:
            ProcessingResult with counters and created template ids

        Raises:
            UnrecoverableError: A failure the engine could not skip; its
                ``partial_result`` holds the counters up to and including
                the aborted item
        """
        result = ProcessingResult(total=len(items))
        base_checkpoint = checkpoint or Checkpoint(phase=ETLPhase.TRANSFORMATION)
        loaded_ids = set() if loaded_ids is None else loaded_ids

        logger.info(f"Processing {len(items)} items for job {job_id}")

        for index, item in enumerate(items):
            item_id = item.get("id") if isinstance(item, dict) else getattr(item, "id", None)
            item_id = str(item_id) if item_id is not None else None

            try:
                # --------------------------------------------------
                # NORMALIZE
                # --------------------------------------------------
                try:
                    video = self.normalizer.normalize(item)
                except Exception as e:
                    outcome = await self.engine.handle_error(
                        e, ETLPhase.VALIDATION, job_id,
                        TransformationContext(
                            item_id=item_id,
                            partial_result=result.to_job_result()
                        ),
                        options
                    )
                    if _is_skip(outcome):
                        result.failed += 1
                        continue
                    raise self._unrecoverable(e, ETLPhase.VALIDATION, outcome, result)

                # --------------------------------------------------
                # ELIGIBILITY
                # --------------------------------------------------
                if not self.is_eligible(video):
                    logger.debug(f"Skipping ineligible video {video.id}")
                    result.skipped += 1
                    continue

                if video.id in loaded_ids:
                    logger.debug(f"Skipping duplicate video {video.id} for job {job_id}")
                    result.skipped += 1
                    continue

                item_checkpoint = base_checkpoint.advance(index, video.id, result.success)

                # --------------------------------------------------
                # TRANSFORM
                # --------------------------------------------------
                transform_context = TransformationContext(
                    item_id=video.id,
                    checkpoint=item_checkpoint.model_copy(update={"phase": ETLPhase.TRANSFORMATION}),
                    partial_result=result.to_job_result()
                )
                try:
                    sections = self.analyzer.analyze_for_templates(video)
                except Exception as e:
                    outcome = await self.engine.handle_error(
                        e, ETLPhase.TRANSFORMATION, job_id, transform_context, options
                    )
                    if _is_skip(outcome):
                        result.failed += 1
                        continue
                    raise self._unrecoverable(e, ETLPhase.TRANSFORMATION, outcome, result)

                if not sections:
                    logger.debug(f"No template sections for video {video.id}")
                    result.skipped += 1
                    continue

                try:
                    category = self.analyzer.categorize(video)
                except Exception as e:
                    outcome = await self.engine.handle_error(
                        e, ETLPhase.TRANSFORMATION, job_id, transform_context, options
                    )
                    if _is_skip(outcome):
                        result.failed += 1
                        continue
                    raise self._unrecoverable(e, ETLPhase.TRANSFORMATION, outcome, result)

                # --------------------------------------------------
                # LOAD
                # --------------------------------------------------
                try:
                    template = await self.store.create_template(video, sections, category)
                except Exception as e:
                    outcome = await self.engine.handle_error(
                        e, ETLPhase.LOADING, job_id,
                        LoadingContext(
                            item_id=video.id,
                            checkpoint=item_checkpoint.model_copy(update={"phase": ETLPhase.LOADING}),
                            partial_result=result.to_job_result()
                        ),
                        options
                    )
                    if _is_skip(outcome):
                        result.failed += 1
                        continue
                    if not _is_retry(outcome):
                        raise self._unrecoverable(e, ETLPhase.LOADING, outcome, result)

                    # single re-attempt; a second failure lands in the catch-all below
                    template = await self.store.create_template(video, sections, category)

                loaded_ids.add(video.id)
                result.success += 1
                result.templates.append(template.id)

            except UnrecoverableError as e:
                result.failed += 1
                e.partial_result = result
                logger.error(
                    f"Aborting batch for job {job_id} at item {item_id}: {e.message}",
                    extra={"etl_context": {"job_id": job_id, "item_id": item_id, "index": index}}
                )
                raise

            except Exception as e:
                logger.error(
                    f"Unexpected error processing item {item_id}: {str(e)}",
                    extra={"etl_context": {"job_id": job_id, "item_id": item_id, "index": index}}
                )
                result.failed += 1

        logger.info(
            f"Processed {result.total} items for job {job_id} - "
            f"Success: {result.success}, Failed: {result.failed}, Skipped: {result.skipped}"
        )
        return result

    @staticmethod
    def _unrecoverable(
        error: Exception,
        phase: ETLPhase,
        outcome: RecoveryOutcome,
        result: ProcessingResult
    ) -> UnrecoverableError:
        etl_error = normalize_error(error, phase)
        return UnrecoverableError(
            f"Unrecoverable {phase.value} error ({outcome.strategy.value}): {etl_error.message}",
            outcome=outcome,
            error=etl_error,
            partial_result=result
        )
