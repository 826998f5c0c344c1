from sqlalchemy import Column, String, Enum, DateTime, Float, Text, Index
from datetime import datetime
from models.base import Base, JobStatus, JSONType


class ETLJob(Base):
    """
    Job Ledger entry: one row per coordinator invocation.

    Purpose:
    - Lifecycle tracking (scheduled -> running -> completed | failed)
    - Result summary for operators (processed / failed / templates)
    - Error message of the failure that ended the job

    Design:
    - id is a UUID string assigned by the ledger client
    - duration_ms is derived from start_time when end_time is written
    - result and parameters are free-form JSON documents
    """
    __tablename__ = "etl_jobs"

    id = Column(String(36), primary_key=True)

    # Job identification
    name = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False, index=True)

    # Lifecycle
    status = Column(Enum(JobStatus), default=JobStatus.SCHEDULED, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    end_time = Column(DateTime, nullable=True)
    duration_ms = Column(Float, nullable=True)

    # Outcome
    error = Column(Text, nullable=True)
    parameters = Column(JSONType, nullable=True)
    result = Column(JSONType, nullable=True)  # {processed, failed, templates, message}

    __table_args__ = (
        Index("idx_etl_job_status_started", "status", "start_time"),
        Index("idx_etl_job_type_started", "type", "start_time"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status.value if self.status else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "parameters": self.parameters or {},
            "result": self.result,
        }
