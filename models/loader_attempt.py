from sqlalchemy import Column, BigInteger, String, Enum, DateTime, Float, Integer, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
import uuid
from models.base import Base, RunStatus, utcnow


class LoaderAttempt(Base):
    """
    Audit trail of every engine attempt for a loader.

    Purpose:
    - History of skips, loads and failures per dataset
    - Duration and row count monitoring
    - Error tracking and debugging

    Never consulted by the skip/run decision; loader_runs is the source of truth.
    """
    __tablename__ = "loader_attempts"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    run_id = Column(UUID(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False, index=True)

    loader_key = Column(String(100), nullable=False, index=True)
    status = Column(Enum(RunStatus), default=RunStatus.RUNNING, nullable=False, index=True)

    # Inputs to the decision
    logic_version = Column(Integer, nullable=True)
    content_fingerprint = Column(String(128), nullable=True)
    decision_reason = Column(String(255), nullable=True)

    # Timestamps
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    rows_read = Column(Integer, default=0)
    addresses_loaded = Column(Integer, default=0)
    providers_loaded = Column(Integer, default=0)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_details = Column(JSONB, nullable=True)

    __table_args__ = (
        Index("idx_loader_attempt_key_started", "loader_key", "started_at"),
    )
