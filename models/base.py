from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class JobStatus(str, enum.Enum):
    """ETL job lifecycle: scheduled -> running -> completed | failed"""
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobType(str, enum.Enum):
    """Recurring job types run by the coordinator"""
    HOT_TRENDS = "hot-trends"
    CATEGORY = "category"
    STATS_REFRESH = "stats-refresh"


class ETLPhase(str, enum.Enum):
    """Pipeline stage in which an error occurred"""
    EXTRACTION = "extraction"
    TRANSFORMATION = "transformation"
    LOADING = "loading"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class RecoveryStrategy(str, enum.Enum):
    """Remediation chosen for a classified error"""
    RETRY = "retry"
    SKIP = "skip"
    FALLBACK = "fallback"
    CHECKPOINT = "checkpoint"
    NOTIFY_ONLY = "notify-only"
