"""
Durable loader run state and the skip/run decision rule.

loader_runs holds one row per loader key with the logic version and content
fingerprint of the last successful load. It is the only input to the
decision. loader_attempts is an audit trail written alongside it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import async_sessionmaker

from models.base import LoaderState, RunStatus, utcnow
from models.loader_run import LoaderRun
from models.loader_attempt import LoaderAttempt
from core.exceptions import RunStateError

logger = logging.getLogger(__name__)


@dataclass
class LoaderRunStatus:
    """Last successful load of one loader key."""

    loader_key: str
    logic_version: int
    content_fingerprint: str
    last_run: datetime

    @classmethod
    def from_model(cls, row: LoaderRun) -> "LoaderRunStatus":
        return cls(
            loader_key=row.loader_key,
            logic_version=row.logic_version,
            content_fingerprint=row.content_fingerprint,
            last_run=row.last_run,
        )


def decide(
    prior: Optional[LoaderRunStatus],
    logic_version: int,
    fingerprint: str,
) -> Tuple[LoaderState, str]:
    """
    Decide whether a loader has work to do.

    Rules, first match wins:
    1. No prior record -> STALE
    2. Logic version increased -> STALE
    3. Same fingerprint -> UP_TO_DATE
    4. Otherwise -> STALE

    Returns:
        (state, human-readable reason)
    """
    if prior is None:
        return LoaderState.STALE, "no previous run"

    if logic_version > prior.logic_version:
        return (
            LoaderState.STALE,
            f"logic version {prior.logic_version} -> {logic_version}",
        )

    if fingerprint == prior.content_fingerprint:
        return LoaderState.UP_TO_DATE, "fingerprint unchanged"

    return LoaderState.STALE, "fingerprint changed"


class RunStateRepository:
    """Read and write loader_runs and loader_attempts."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def load_all(self) -> Dict[str, LoaderRunStatus]:
        """Every persisted run state keyed by loader key."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(LoaderRun))
                rows = result.scalars().all()
        except Exception as e:
            raise RunStateError(
                "Failed to read loader run state",
                context={"operation": "scan", "table_name": LoaderRun.__tablename__},
                original_exception=e,
            )

        states = {row.loader_key: LoaderRunStatus.from_model(row) for row in rows}
        logger.info(f"Loaded run state for {len(states)} loaders")
        return states

    async def record_success(
        self,
        loader_key: str,
        logic_version: int,
        fingerprint: str,
    ) -> LoaderRunStatus:
        """Upsert the run state of a successfully loaded key."""
        status = LoaderRunStatus(
            loader_key=loader_key,
            logic_version=logic_version,
            content_fingerprint=fingerprint,
            last_run=utcnow(),
        )

        stmt = insert(LoaderRun).values(
            loader_key=status.loader_key,
            logic_version=status.logic_version,
            content_fingerprint=status.content_fingerprint,
            last_run=status.last_run,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[LoaderRun.loader_key],
            set_={
                "logic_version": stmt.excluded.logic_version,
                "content_fingerprint": stmt.excluded.content_fingerprint,
                "last_run": stmt.excluded.last_run,
            },
        )

        async with self.session_factory() as session:
            try:
                await session.execute(stmt)
                await session.commit()
            except Exception as e:
                await session.rollback()
                raise RunStateError(
                    "Failed to record loader run state",
                    context={
                        "loader_key": loader_key,
                        "operation": "record",
                        "table_name": LoaderRun.__tablename__,
                    },
                    original_exception=e,
                )

        return status

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    async def start_attempt(self, loader_key: str) -> uuid.UUID:
        """Create a RUNNING attempt row and return its run id."""
        attempt = LoaderAttempt(
            run_id=uuid.uuid4(),
            loader_key=loader_key,
            status=RunStatus.RUNNING,
            started_at=utcnow(),
        )
        async with self.session_factory() as session:
            try:
                session.add(attempt)
                await session.commit()
            except Exception as e:
                await session.rollback()
                raise RunStateError(
                    "Failed to record loader attempt",
                    context={"loader_key": loader_key, "operation": "start_attempt"},
                    original_exception=e,
                )
        return attempt.run_id

    async def finish_attempt(
        self,
        run_id: uuid.UUID,
        status: RunStatus,
        logic_version: Optional[int] = None,
        fingerprint: Optional[str] = None,
        reason: Optional[str] = None,
        stats: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Complete an attempt with its outcome and statistics."""
        stats = stats or {}

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    select(LoaderAttempt.started_at).where(LoaderAttempt.run_id == run_id)
                )
                started_at = result.scalar_one()
                completed_at = utcnow()

                await session.execute(
                    update(LoaderAttempt)
                    .where(LoaderAttempt.run_id == run_id)
                    .values(
                        status=status,
                        logic_version=logic_version,
                        content_fingerprint=fingerprint,
                        decision_reason=reason,
                        completed_at=completed_at,
                        duration_seconds=(completed_at - started_at).total_seconds(),
                        rows_read=stats.get("rows_read", 0),
                        addresses_loaded=stats.get("addresses_loaded", 0),
                        providers_loaded=stats.get("providers_loaded", 0),
                        error_message=error.get("message") if error else None,
                        error_details=error,
                    )
                )
                await session.commit()
            except Exception as e:
                await session.rollback()
                raise RunStateError(
                    "Failed to complete loader attempt",
                    context={"run_id": str(run_id), "operation": "finish_attempt"},
                    original_exception=e,
                )
