"""
Script to run every registered dataset loader once, or on a fixed interval
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine, async_session_maker
from core.logging import setup_logging
from ingestion.datasets.registry import default_loaders
from ingestion.runner import LoaderEngine
from ingestion.scheduler import LoaderScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load CMS reference datasets into PostgreSQL")
    parser.add_argument(
        "--data-dir",
        default=settings.DATA_DIR,
        help="Directory where downloaded artifacts are cached (default: %(default)s)",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Keep running and re-run the loaders every LOADER_INTERVAL_MINUTES",
    )
    parser.add_argument(
        "--interval-minutes",
        type=int,
        default=settings.LOADER_INTERVAL_MINUTES,
        help="Interval for --schedule (default: %(default)s)",
    )
    return parser.parse_args(argv)


async def run_once(data_dir: str) -> int:
    """Run all loaders once; exit code 1 when any loader failed"""
    try:
        loader_engine = await LoaderEngine.create(
            default_loaders(),
            session_factory=async_session_maker,
            data_dir=data_dir,
        )
        summary = await loader_engine.run()

        for key, outcome in summary["results"].items():
            logger.info(f"{key}: {outcome['status']} ({outcome.get('reason')})")

        return 1 if summary["failed"] else 0

    except Exception as e:
        logger.error(f"Loader run error: {str(e)}")
        return 1
    finally:
        await engine.dispose()


async def run_scheduled(data_dir: str, interval_minutes: int) -> None:
    scheduler = LoaderScheduler(
        interval_minutes=interval_minutes,
        engine_kwargs={"session_factory": async_session_maker, "data_dir": data_dir},
    )
    # First run immediately, then on the interval
    await scheduler.run_loaders_job()
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await engine.dispose()


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    if args.schedule:
        try:
            asyncio.run(run_scheduled(args.data_dir, args.interval_minutes))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        return 0

    return asyncio.run(run_once(args.data_dir))


if __name__ == "__main__":
    sys.exit(main())
