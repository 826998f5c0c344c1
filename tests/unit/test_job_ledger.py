"""
Unit tests for the job ledger
"""

import pytest
from datetime import datetime, timedelta

from core.exceptions import JobNotFoundError
from models.base import JobStatus
from schemas.etl import JobCreate, JobResult


def _job(name="Hot trends ETL", job_type="hot-trends", **kwargs):
    return JobCreate(name=name, type=job_type, **kwargs)


class TestJobLifecycle:

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_start_time(self, ledger):
        job = await ledger.create_job(_job())

        assert len(job.id) == 36
        assert job.status == JobStatus.SCHEDULED
        assert job.start_time is not None
        assert job.end_time is None

    @pytest.mark.asyncio
    async def test_create_accepts_plain_dict(self, ledger):
        job = await ledger.create_job({
            "name": "Category ETL",
            "type": "category",
            "status": "running",
            "parameters": {"categories": ["dance"]},
        })

        assert job.status == JobStatus.RUNNING
        assert job.parameters == {"categories": ["dance"]}

    @pytest.mark.asyncio
    async def test_complete_derives_duration(self, ledger):
        started = datetime.utcnow() - timedelta(seconds=5)
        job = await ledger.create_job(_job(start_time=started))
        await ledger.start_job(job.id)

        done = await ledger.complete_job(job.id, JobResult(processed=10, failed=2, templates=5))

        assert done.status == JobStatus.COMPLETED
        assert done.end_time is not None
        assert done.duration_ms >= 5000
        assert done.result == {"processed": 10, "failed": 2, "templates": 5, "message": None}

    @pytest.mark.asyncio
    async def test_terminal_job_is_not_updated(self, ledger):
        job = await ledger.create_job(_job(status=JobStatus.RUNNING))
        await ledger.fail_job(job.id, "token rejected")

        again = await ledger.complete_job(job.id, JobResult(processed=1, failed=0, templates=1))

        assert again.status == JobStatus.FAILED
        assert again.error == "token rejected"
        assert again.result is None

    @pytest.mark.asyncio
    async def test_update_unknown_job(self, ledger):
        with pytest.raises(JobNotFoundError):
            await ledger.update_job("missing", {"status": JobStatus.RUNNING})

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, ledger):
        job = await ledger.create_job(_job())

        with pytest.raises(ValueError, match="Unknown job fields"):
            await ledger.update_job(job.id, {"owner": "ops"})


class TestFailJob:

    @pytest.mark.asyncio
    async def test_partial_result_written_when_processed_set(self, ledger):
        job = await ledger.create_job(_job(status=JobStatus.RUNNING))

        failed = await ledger.fail_job(
            job.id, "database offline",
            JobResult(processed=4, failed=1, templates=3)
        )

        assert failed.status == JobStatus.FAILED
        assert failed.error == "database offline"
        assert failed.result == {"processed": 4, "failed": 1, "templates": 3, "message": None}
        assert failed.duration_ms is not None

    @pytest.mark.asyncio
    async def test_partial_result_without_processed_is_dropped(self, ledger):
        job = await ledger.create_job(_job(status=JobStatus.RUNNING))

        failed = await ledger.fail_job(job.id, "boom", {"failed": 1})

        assert failed.status == JobStatus.FAILED
        assert failed.result is None

    @pytest.mark.asyncio
    async def test_never_raises(self, ledger):
        assert await ledger.fail_job("missing", "boom") is None


class TestJobQueries:

    @pytest.mark.asyncio
    async def test_recent_jobs_newest_first(self, ledger):
        now = datetime.utcnow()
        old = await ledger.create_job(_job(start_time=now - timedelta(hours=2)))
        new = await ledger.create_job(_job(start_time=now))

        jobs = await ledger.get_recent_jobs(limit=10)

        assert [j.id for j in jobs] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_limit(self, ledger):
        for _ in range(3):
            await ledger.create_job(_job())

        assert len(await ledger.get_recent_jobs(limit=2)) == 2

    @pytest.mark.asyncio
    async def test_filter_by_status_and_type(self, ledger):
        running = await ledger.create_job(_job(status=JobStatus.RUNNING))
        category = await ledger.create_job(_job(name="Category ETL", job_type="category"))

        by_status = await ledger.get_jobs_by_status("running")
        by_type = await ledger.get_jobs_by_type("category")

        assert [j.id for j in by_status] == [running.id]
        assert [j.id for j in by_type] == [category.id]

    @pytest.mark.asyncio
    async def test_get_by_id(self, ledger):
        job = await ledger.create_job(_job())

        assert (await ledger.get_job_by_id(job.id)).name == "Hot trends ETL"
        assert await ledger.get_job_by_id("missing") is None
