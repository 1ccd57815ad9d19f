import logging
from typing import Callable, Iterable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from ingestion.base import DatasetLoader
from ingestion.datasets.registry import default_loaders
from ingestion.runner import LoaderEngine

logger = logging.getLogger(__name__)


class LoaderScheduler:
    """Re-run the loader engine on a fixed interval."""

    def __init__(
        self,
        interval_minutes: Optional[int] = None,
        loader_factory: Callable[[], Iterable[DatasetLoader]] = default_loaders,
        engine_kwargs: Optional[dict] = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self.interval_minutes = interval_minutes or settings.LOADER_INTERVAL_MINUTES
        self.loader_factory = loader_factory
        self.engine_kwargs = engine_kwargs or {}

    async def run_loaders_job(self):
        """Job to run every registered loader once"""
        logger.info("Scheduler: Starting loader run")
        try:
            engine = await LoaderEngine.create(self.loader_factory(), **self.engine_kwargs)
            summary = await engine.run()
            logger.info(
                f"Scheduler: Loader run finished - "
                f"{summary['succeeded']} loaded, {summary['skipped']} skipped, {summary['failed']} failed"
            )
            return summary
        except Exception as e:
            # Keep the schedule alive; the next tick retries
            logger.error(f"Scheduler: Loader run failed - {e}")
            return None

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_loaders_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="loader_run",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Loader scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Loader scheduler stopped")
