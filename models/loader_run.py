from sqlalchemy import Column, Integer, String, DateTime
from models.base import Base, utcnow


class LoaderRun(Base):
    """
    Durable run state per dataset loader.

    Purpose:
    - Skip work when neither the source bytes nor the loader logic changed
    - Force a reload when the loader's logic version is bumped

    Design:
    - One row per loader key
    - Written only after a load completed successfully, so a crash mid-load
      leaves the previous state in place and the dataset is reprocessed
    """
    __tablename__ = "loader_runs"

    loader_key = Column(String(100), primary_key=True)
    logic_version = Column(Integer, nullable=False)
    content_fingerprint = Column(String(128), nullable=False)
    last_run = Column(DateTime(timezone=True), nullable=False, default=utcnow)
