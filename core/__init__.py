"""
Core utilities and configuration for the CMS dataset loaders.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session factory and schema creation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import FetchError, MalformedRow
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "get_session",
    "create_schema",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "FetchError",
    "NoMatchingEntry",
    "TransformationError",
    "MalformedRow",
    "LoadError",
    "StoreError",
    "LinkError",
    "CleanupError",
    "RunStateError",
]
