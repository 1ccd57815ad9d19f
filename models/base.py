from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware UTC now, used for column defaults."""
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class LoaderState(str, enum.Enum):
    """Lifecycle state of one loader key as seen by the engine"""
    UNKNOWN = "unknown"
    UP_TO_DATE = "up_to_date"
    STALE = "stale"
    RUNNING = "running"
    FAILED = "failed"


class RunStatus(str, enum.Enum):
    """Outcome of a single engine attempt for one loader"""
    RUNNING = "running"
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"
