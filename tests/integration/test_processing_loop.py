"""
Integration tests for the per-item processing loop against a SQLite store
"""

import pytest

from core.exceptions import AuthenticationError, LoadError, NetworkError, UnrecoverableError
from ingestion.loaders.template_store import TemplateStore
from ingestion.processing import ItemProcessor
from ingestion.transformers.content_analyzer import ContentAnalyzer
from models.base import ETLPhase, RecoveryStrategy
from schemas.etl import Checkpoint
from schemas.video import VideoRecord, VideoMeta, VideoStats


class FailingStore(TemplateStore):
    """Template store whose first writes fail with the given errors"""

    def __init__(self, session_factory, errors):
        super().__init__(session_factory)
        self.errors = list(errors)
        self.attempts = 0

    async def create_template(self, video, sections, category):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return await super().create_template(video, sections, category)


def scenario_batch(raw_video):
    """5 good videos, 3 below the thresholds, 2 that break the analyzer"""
    good = [raw_video(f"good_{i}") for i in range(5)]
    low = [
        raw_video("low_views", plays=500),
        raw_video("low_likes", likes=10),
        raw_video("low_both", plays=100, likes=1),
    ]
    broken = [raw_video("broken_1"), raw_video("broken_2")]
    return [good[0], low[0], broken[0], good[1], good[2], low[1], broken[1], good[3], low[2], good[4]]


class TestProcessingLoop:

    @pytest.mark.asyncio
    async def test_mixed_batch_accounting(self, raw_video, flaky_analyzer, template_store,
                                          recovery_engine, error_store, recovery_store):
        processor = ItemProcessor(
            analyzer=flaky_analyzer(fail_ids={"broken_1", "broken_2"}),
            store=template_store,
            engine=recovery_engine
        )

        result = await processor.process_items_with_recovery(scenario_batch(raw_video), "job-a")

        assert (result.total, result.success, result.failed, result.skipped) == (10, 5, 2, 3)
        assert result.success + result.failed + result.skipped == result.total
        assert len(result.templates) == 5
        assert len(await template_store.get_all_templates()) == 5

        errors = await error_store.list_errors("job-a")
        assert [e.item_id for e in errors] == ["broken_1", "broken_2"]
        assert {e.error_type for e in errors} == {"TRANSFORM_ERROR"}

        actions = await recovery_store.list_actions("job-a")
        assert [a.strategy for a in actions] == ["skip", "skip"]

    @pytest.mark.asyncio
    async def test_accepts_normalized_records(self, template_store, recovery_engine):
        processor = ItemProcessor(ContentAnalyzer(), template_store, recovery_engine)
        video = VideoRecord(
            id="v1",
            text="Five minute meal prep. Cook once and eat all week",
            video_meta=VideoMeta(duration=20),
            stats=VideoStats(play_count=20000, digg_count=3000),
            hashtags=["mealprep"],
        )

        result = await processor.process_items_with_recovery([video], "job-b")

        assert result.success == 1
        template = await template_store.get_template(result.templates[0])
        assert template.category == "food"

    @pytest.mark.asyncio
    async def test_invalid_records_count_as_failed(self, raw_video, template_store,
                                                   recovery_engine, error_store):
        processor = ItemProcessor(ContentAnalyzer(), template_store, recovery_engine)
        bad = raw_video("bad")
        bad["stats"]["playCount"] = -1

        result = await processor.process_items_with_recovery([bad, "junk", raw_video("ok")], "job-c")

        assert (result.success, result.failed, result.skipped) == (1, 2, 0)
        errors = await error_store.list_errors("job-c")
        assert [e.phase for e in errors] == ["validation", "validation"]

    @pytest.mark.asyncio
    async def test_incomplete_records_are_skipped(self, raw_video, template_store, recovery_engine):
        processor = ItemProcessor(ContentAnalyzer(), template_store, recovery_engine)
        no_meta = raw_video("no_meta")
        no_meta.pop("videoMeta")
        no_stats = raw_video("no_stats")
        no_stats.pop("stats")
        zero_length = raw_video("zero_length", duration=0)

        result = await processor.process_items_with_recovery([no_meta, no_stats, zero_length], "job-d")

        assert (result.success, result.failed, result.skipped) == (0, 0, 3)

    @pytest.mark.asyncio
    async def test_load_retry_reattempts_once(self, raw_video, session_factory, recovery_engine):
        store = FailingStore(session_factory, [NetworkError("connection reset")])
        processor = ItemProcessor(ContentAnalyzer(), store, recovery_engine)

        result = await processor.process_items_with_recovery([raw_video("v1")], "job-e")

        assert store.attempts == 2
        assert result.success == 1
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_second_load_failure_counts_as_failed(self, raw_video, session_factory, recovery_engine):
        store = FailingStore(session_factory, [NetworkError("reset"), NetworkError("reset again")])
        processor = ItemProcessor(ContentAnalyzer(), store, recovery_engine)

        result = await processor.process_items_with_recovery([raw_video("v1"), raw_video("v2")], "job-f")

        assert store.attempts == 3
        assert (result.success, result.failed, result.skipped) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_load_error_skips_item(self, raw_video, session_factory, recovery_engine, recovery_store):
        store = FailingStore(session_factory, [LoadError("constraint violated")])
        processor = ItemProcessor(ContentAnalyzer(), store, recovery_engine)

        result = await processor.process_items_with_recovery([raw_video("v1"), raw_video("v2")], "job-g")

        assert (result.success, result.failed) == (1, 1)
        actions = await recovery_store.list_actions("job-g")
        assert actions[0].strategy == RecoveryStrategy.SKIP.value
        assert actions[0].item_id == "v1"

    @pytest.mark.asyncio
    async def test_unrecoverable_error_aborts_with_progress(self, raw_video, flaky_analyzer,
                                                            template_store, recovery_engine):
        analyzer = flaky_analyzer(fail_ids={"v2"}, error=AuthenticationError("asset service rejected token"))
        processor = ItemProcessor(analyzer, template_store, recovery_engine)
        items = [raw_video("v1"), raw_video("v2"), raw_video("v3")]

        with pytest.raises(UnrecoverableError) as exc_info:
            await processor.process_items_with_recovery(items, "job-h")

        progress = exc_info.value.partial_result
        assert (progress.total, progress.success, progress.failed, progress.skipped) == (3, 1, 1, 0)
        assert exc_info.value.outcome.strategy == RecoveryStrategy.NOTIFY_ONLY
        assert len(await template_store.get_all_templates()) == 1

    @pytest.mark.asyncio
    async def test_category_checkpoint_reaches_recovery_records(self, raw_video, session_factory,
                                                                recovery_engine, recovery_store):
        recovery_engine.options.use_checkpoint = True
        store = FailingStore(session_factory, [LoadError("constraint violated")])
        processor = ItemProcessor(ContentAnalyzer(), store, recovery_engine)

        await processor.process_items_with_recovery(
            [raw_video("v1")], "job-i", Checkpoint(phase=ETLPhase.TRANSFORMATION, category="dance")
        )

        actions = await recovery_store.list_actions("job-i")
        assert actions[0].checkpoint_data["category"] == "dance"
        assert actions[0].checkpoint_data["phase"] == "loading"
        assert actions[0].checkpoint_data["last_processed_item_id"] == "v1"

    @pytest.mark.asyncio
    async def test_repeated_video_is_loaded_once(self, raw_video, template_store, recovery_engine):
        processor = ItemProcessor(ContentAnalyzer(), template_store, recovery_engine)

        result = await processor.process_items_with_recovery(
            [raw_video("v1"), raw_video("v1"), raw_video("v2")], "job-j"
        )

        assert (result.total, result.success, result.failed, result.skipped) == (3, 2, 0, 1)
        assert len(result.templates) == len(set(result.templates)) == 2
        assert len(await template_store.get_all_templates()) == 2

    @pytest.mark.asyncio
    async def test_ids_loaded_by_earlier_batches_are_skipped(self, raw_video, template_store, recovery_engine):
        processor = ItemProcessor(ContentAnalyzer(), template_store, recovery_engine)
        loaded_ids = set()

        first = await processor.process_items_with_recovery([raw_video("v1")], "job-k", loaded_ids=loaded_ids)
        second = await processor.process_items_with_recovery(
            [raw_video("v1"), raw_video("v2")], "job-k", loaded_ids=loaded_ids
        )

        assert first.success == 1
        assert (second.success, second.skipped) == (1, 1)
        assert loaded_ids == {"v1", "v2"}
