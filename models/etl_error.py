from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, Boolean, Index
from datetime import datetime
from models.base import Base, JSONType


class ETLErrorRecord(Base):
    """
    Durable error store: every error offered to the recovery engine.

    Purpose:
    - Post-hoc diagnosis (message, stack, context)
    - Error statistics per job, by type and by phase
    """
    __tablename__ = "etl_errors"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    job_id = Column(String(36), nullable=False, index=True)
    error_type = Column(String(50), nullable=False, index=True)
    phase = Column(String(50), nullable=False, default="unknown")
    item_id = Column(String(255), nullable=True)

    message = Column(Text, nullable=False)
    stack = Column(Text, nullable=True)
    context = Column(JSONType, nullable=True)
    handled = Column(Boolean, default=False, nullable=False)

    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    __table_args__ = (
        Index("idx_etl_error_job_type", "job_id", "error_type"),
    )
