"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class, JSON column type and shared enums
          (JobStatus, JobType, ETLPhase, RecoveryStrategy)
    etl_job: Job Ledger entries (lifecycle and result of each ETL job)
    etl_error: Durable error store used for error statistics
    recovery_action: Append-only audit trail of recovery strategies
    template: Trending templates produced by the pipeline

Usage:
    from models import ETLJob, ETLErrorRecord, RecoveryAction, TrendingTemplate
    from models.base import JobStatus, ETLPhase

Importing the package registers every table on ``Base.metadata``.
"""

from models.base import Base, JobStatus, JobType, ETLPhase, RecoveryStrategy
from models.etl_job import ETLJob
from models.etl_error import ETLErrorRecord
from models.recovery_action import RecoveryAction
from models.template import TrendingTemplate

__all__ = [
    "Base",
    "JobStatus",
    "JobType",
    "ETLPhase",
    "RecoveryStrategy",
    "ETLJob",
    "ETLErrorRecord",
    "RecoveryAction",
    "TrendingTemplate",
]
