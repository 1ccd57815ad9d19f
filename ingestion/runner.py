# ============================================================================
# File: ingestion/runner.py
# Description: Idempotent dataset loader engine with durable run state
# ============================================================================
"""
Loader Engine - decides per registered dataset loader whether work is needed
and runs it.

This module provides:
- A registry of dataset loaders keyed by loader key
- Skip/run decisions from content fingerprint plus logic version
- Durable run state written only after a successful load
- Per-loader failure isolation (one failing loader never stops the others)
- A run-attempt audit trail and a summary report per run
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging
import uuid

from sqlalchemy.ext.asyncio import async_sessionmaker

from ingestion.base import DatasetLoader, DatasetMetadata
from ingestion.run_state import LoaderRunStatus, RunStateRepository, decide
from models.base import LoaderState, RunStatus
from core.config import settings
from core.exceptions import ETLException, CleanupError, RunStateError

logger = logging.getLogger(__name__)


class LoaderEngine:
    """
    Idempotent loader engine.

    Responsibilities:
    - Hold the loader registry and the cached run state per key
    - Decide STALE / UP_TO_DATE for each loader
    - Run load -> cleanup -> durable state -> cache update, in that order
    - Record every attempt in loader_attempts

    State per key: UNKNOWN -> UP_TO_DATE | STALE -> RUNNING -> UP_TO_DATE | FAILED
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        repository: Optional[RunStateRepository] = None,
        data_dir: Optional[Union[str, Path]] = None,
        cleanup_on_skip: Optional[bool] = None,
    ):
        if session_factory is None:
            from core.database import async_session_maker
            session_factory = async_session_maker

        self.session_factory = session_factory
        self.repository = repository or RunStateRepository(session_factory)
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.cleanup_on_skip = settings.CLEANUP_ON_SKIP if cleanup_on_skip is None else cleanup_on_skip

        self.loaders: Dict[str, DatasetLoader] = {}
        self.loader_states: Dict[str, LoaderRunStatus] = {}
        self.states: Dict[str, LoaderState] = {}

    @classmethod
    async def create(
        cls,
        loaders: Iterable[DatasetLoader] = (),
        **kwargs,
    ) -> "LoaderEngine":
        """Build an engine, seed its cache from the store and register loaders."""
        engine = cls(**kwargs)
        await engine.scan()
        for loader in loaders:
            engine.register(loader)
        return engine

    async def scan(self) -> None:
        """
        Seed the in-memory cache from loader_runs.

        Raises:
            RunStateError: the store could not be read
        """
        self.loader_states = await self.repository.load_all()

    def register(self, loader: DatasetLoader) -> None:
        if loader.key in self.loaders:
            logger.warning(f"Loader {loader.key} already registered; replacing it")

        self.loaders[loader.key] = loader
        self.states.setdefault(loader.key, LoaderState.UNKNOWN)
        logger.info(f"Registered loader {loader!r}")

    def should_load(self, loader: DatasetLoader, metadata: DatasetMetadata) -> Tuple[LoaderState, str]:
        """Apply the decision rule against the cached run state."""
        return decide(
            self.loader_states.get(loader.key),
            loader.logic_version,
            metadata.fingerprint,
        )

    async def update_status(self, loader: DatasetLoader, metadata: DatasetMetadata) -> LoaderRunStatus:
        """Persist the successful run, then update the cache."""
        status = await self.repository.record_success(
            loader.key,
            loader.logic_version,
            metadata.fingerprint,
        )
        self.loader_states[loader.key] = status
        return status

    async def run(self, data_dir: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """
        Run every registered loader once, sequentially in key order.

        Failures are caught per loader, logged and reported; the remaining
        loaders still run.

        Returns:
            Summary with per-loader outcomes:
            - loaders: Number of loaders considered
            - succeeded / skipped / failed: Outcome counts
            - results: {loader_key: {status, reason, stats, error}}
        """
        data_dir = Path(data_dir) if data_dir else self.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)

        keys: List[str] = sorted(self.loaders)
        logger.info(f"Starting loader run for {len(keys)} loaders: {', '.join(keys)}")

        results: Dict[str, Dict[str, Any]] = {}
        for key in keys:
            results[key] = await self.run_loader(self.loaders[key], data_dir)

        summary = {
            "loaders": len(keys),
            "succeeded": sum(1 for r in results.values() if r["status"] == RunStatus.SUCCESS.value),
            "skipped": sum(1 for r in results.values() if r["status"] == RunStatus.SKIPPED.value),
            "failed": sum(1 for r in results.values() if r["status"] == RunStatus.FAILED.value),
            "results": results,
        }
        logger.info(
            f"Loader run completed - Succeeded: {summary['succeeded']}, "
            f"Skipped: {summary['skipped']}, Failed: {summary['failed']}"
        )
        return summary

    async def run_loader(self, loader: DatasetLoader, data_dir: Path) -> Dict[str, Any]:
        """Run one loader inside its failure boundary."""
        key = loader.key
        run_id = await self._start_attempt(key)
        metadata: Optional[DatasetMetadata] = None
        reason: Optional[str] = None

        try:
            # --------------------------------------------------
            # PHASE 1: FETCH AND DECIDE
            # --------------------------------------------------
            metadata = await loader.fetch_metadata(data_dir)
            state, reason = self.should_load(loader, metadata)
            self._transition(key, state, reason)

            if state == LoaderState.UP_TO_DATE:
                if self.cleanup_on_skip:
                    await self._cleanup(loader, metadata)
                await self._finish_attempt(run_id, RunStatus.SKIPPED, loader, metadata, reason)
                return {"status": RunStatus.SKIPPED.value, "reason": reason}

            # --------------------------------------------------
            # PHASE 2: LOAD
            # --------------------------------------------------
            self._transition(key, LoaderState.RUNNING)
            async with self.session_factory() as session:
                stats = await loader.load(metadata.artifact, session)

            # --------------------------------------------------
            # PHASE 3: CLEANUP, DURABLE STATE, CACHE
            # --------------------------------------------------
            await self._cleanup(loader, metadata)
            await self.update_status(loader, metadata)
            self._transition(key, LoaderState.UP_TO_DATE, "load complete")

            await self._finish_attempt(run_id, RunStatus.SUCCESS, loader, metadata, reason, stats=stats)
            return {"status": RunStatus.SUCCESS.value, "reason": reason, "stats": stats}

        except ETLException as e:
            logger.error(
                f"Loader {key} failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            error = e.to_dict()

        except Exception as e:
            logger.exception(f"Unexpected error in loader {key}")
            error = {
                "error_type": type(e).__name__,
                "message": str(e),
            }

        self._transition(key, LoaderState.FAILED, error["message"])
        await self._finish_attempt(run_id, RunStatus.FAILED, loader, metadata, reason, error=error)
        return {"status": RunStatus.FAILED.value, "reason": reason, "error": error}

    def _transition(self, key: str, state: LoaderState, reason: Optional[str] = None) -> None:
        previous = self.states.get(key, LoaderState.UNKNOWN)
        self.states[key] = state
        suffix = f" ({reason})" if reason else ""
        logger.info(f"Loader {key}: {previous.value} -> {state.value}{suffix}")

    async def _cleanup(self, loader: DatasetLoader, metadata: DatasetMetadata) -> None:
        try:
            await loader.cleanup(metadata)
        except CleanupError as e:
            logger.warning(
                f"Cleanup failed for {loader.key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    # ------------------------------------------------------------------
    # Audit trail; failures here never change a loader's outcome
    # ------------------------------------------------------------------

    async def _start_attempt(self, key: str) -> Optional[uuid.UUID]:
        try:
            return await self.repository.start_attempt(key)
        except RunStateError as e:
            logger.warning(
                f"Could not record attempt for {key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return None

    async def _finish_attempt(
        self,
        run_id: Optional[uuid.UUID],
        status: RunStatus,
        loader: DatasetLoader,
        metadata: Optional[DatasetMetadata],
        reason: Optional[str],
        stats: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        if run_id is None:
            return
        try:
            await self.repository.finish_attempt(
                run_id,
                status,
                logic_version=loader.logic_version,
                fingerprint=metadata.fingerprint if metadata else None,
                reason=reason,
                stats=stats,
                error=error,
            )
        except RunStateError as e:
            logger.warning(
                f"Could not complete attempt for {loader.key}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
