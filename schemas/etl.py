"""
Pydantic schemas for job ledger payloads, checkpoints and run results
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import ETLPhase, JobStatus


class Checkpoint(BaseModel):
    """Progress snapshot sufficient to resume a job phase"""
    phase: ETLPhase
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    last_processed_index: Optional[int] = None
    last_processed_item_id: Optional[str] = None
    processed_count: int = 0
    category: Optional[str] = None

    def advance(self, index: int, item_id: Optional[str], processed_count: int) -> "Checkpoint":
        """Copy of this checkpoint pointing at the given item"""
        return self.model_copy(update={
            "timestamp": datetime.utcnow(),
            "last_processed_index": index,
            "last_processed_item_id": item_id,
            "processed_count": processed_count,
        })

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class JobResult(BaseModel):
    """Result summary written into the ledger"""
    processed: Optional[int] = None
    failed: Optional[int] = None
    templates: Optional[int] = None
    message: Optional[str] = None


class ProcessingResult(BaseModel):
    """Counters accumulated by one pass of the processing loop"""
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    templates: List[str] = Field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.success + self.failed + self.skipped

    def to_job_result(self, message: Optional[str] = None) -> JobResult:
        return JobResult(
            processed=self.attempted,
            failed=self.failed,
            templates=self.success,
            message=message
        )


class CategoryResult(ProcessingResult):
    """Processing result of one category, with the error that ended it (if any)"""
    error: Optional[str] = None


class CategoryRunResult(BaseModel):
    """Aggregate of a category-based run"""
    job_id: Optional[str] = None
    categories: Dict[str, CategoryResult] = Field(default_factory=dict)
    total_success: int = 0
    total_failed: int = 0
    total_skipped: int = 0
    templates: List[str] = Field(default_factory=list)

    def add(self, category: str, result: CategoryResult) -> None:
        self.categories[category] = result
        self.total_success += result.success
        self.total_failed += result.failed
        self.total_skipped += result.skipped
        self.templates.extend(result.templates)

    def to_job_result(self) -> JobResult:
        return JobResult(
            processed=self.total_success + self.total_failed + self.total_skipped,
            failed=self.total_failed,
            templates=self.total_success,
            message=f"Processed {len(self.categories)} categories"
        )


class StatsRefreshResult(BaseModel):
    """Aggregate of a stats-refresh run"""
    job_id: Optional[str] = None
    total: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0

    def to_job_result(self) -> JobResult:
        return JobResult(
            processed=self.updated + self.failed + self.skipped,
            failed=self.failed,
            templates=self.updated,
            message=f"Updated stats for {self.updated} of {self.total} templates"
        )


class JobCreate(BaseModel):
    """Payload for creating a ledger entry"""
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=50)
    status: JobStatus = JobStatus.SCHEDULED
    start_time: Optional[datetime] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ErrorStats(BaseModel):
    """Stored errors of a job aggregated by type and by phase"""
    total_errors: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_phase: Dict[str, int] = Field(default_factory=dict)


class HotTrendsResult(ProcessingResult):
    """Outcome of a hot-trends run"""
    job_id: Optional[str] = None
    message: Optional[str] = None
