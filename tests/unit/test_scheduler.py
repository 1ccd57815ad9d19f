import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from ingestion.scheduler import LoaderScheduler


def test_scheduler_initialization():
    scheduler = LoaderScheduler(interval_minutes=15)
    assert scheduler.scheduler is not None
    assert scheduler.interval_minutes == 15


@pytest.mark.asyncio
async def test_scheduler_job_execution():
    summary = {"loaders": 1, "succeeded": 1, "skipped": 0, "failed": 0, "results": {}}
    loaders = [MagicMock()]

    with patch("ingestion.scheduler.LoaderEngine") as mock_engine_cls:
        mock_engine = MagicMock()
        mock_engine.run = AsyncMock(return_value=summary)
        mock_engine_cls.create = AsyncMock(return_value=mock_engine)

        scheduler = LoaderScheduler(loader_factory=lambda: loaders, engine_kwargs={"data_dir": "/tmp/x"})
        result = await scheduler.run_loaders_job()

        mock_engine_cls.create.assert_awaited_once_with(loaders, data_dir="/tmp/x")
        mock_engine.run.assert_awaited_once()
        assert result == summary


@pytest.mark.asyncio
async def test_scheduler_job_survives_engine_failure():
    with patch("ingestion.scheduler.LoaderEngine") as mock_engine_cls:
        mock_engine_cls.create = AsyncMock(side_effect=RuntimeError("database down"))

        scheduler = LoaderScheduler(loader_factory=list)
        result = await scheduler.run_loaders_job()

        assert result is None


@pytest.mark.asyncio
async def test_scheduler_registers_interval_job():
    scheduler = LoaderScheduler(interval_minutes=60, loader_factory=list)
    scheduler.start()
    try:
        job = scheduler.scheduler.get_job("loader_run")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 3600
    finally:
        scheduler.stop()
