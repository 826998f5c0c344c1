from sqlalchemy import Column, BigInteger, Integer, String, DateTime, Text, Index
from datetime import datetime
from models.base import Base, JSONType


class RecoveryAction(Base):
    """
    Append-only audit trail of recovery strategies applied to failures.

    One row per skip / fallback / checkpoint action. checkpoint_data holds
    the progress snapshot needed to resume a phase.
    """
    __tablename__ = "etl_recovery_actions"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    job_id = Column(String(36), nullable=False, index=True)
    strategy = Column(String(20), nullable=False)
    item_id = Column(String(255), nullable=True)
    checkpoint_data = Column(JSONType, nullable=True)
    error = Column(Text, nullable=True)

    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_recovery_job_timestamp", "job_id", "timestamp"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "job_id": self.job_id,
            "strategy": self.strategy,
            "item_id": self.item_id,
            "checkpoint_data": self.checkpoint_data,
            "error": self.error,
            "timestamp": self.timestamp,
        }
