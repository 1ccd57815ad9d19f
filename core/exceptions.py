"""
Custom exceptions for the dataset loaders with structured error context.

This module provides the exception hierarchy used throughout the loading
pipeline. Each exception carries context information for debugging and for
the run-attempt audit trail.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── FetchError
    │   └── NoMatchingEntry
    ├── TransformationError
    │   └── MalformedRow
    ├── LoadError
    │   ├── StoreError
    │   └── LinkError
    ├── CleanupError
    └── RunStateError
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all loader-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (loader key, path, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        # Add timestamp to context
        self.context["error_timestamp"] = self.timestamp.isoformat()

        # Chain original exception if provided
        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for source artifact failures."""
    pass


class FetchError(ExtractionError):
    """
    Exception raised when the source artifact cannot be downloaded or stored.

    Context should include:
        - url: The source URL
        - status_code: HTTP status code (if applicable)
        - destination: Local path being written
        - retry_count: Number of attempts made
    """
    pass


class NoMatchingEntry(ExtractionError):
    """
    Exception raised when an archive holds no qualifying tabular file.

    Context should include:
        - archive: Path to the archive
        - extension: Required entry extension
        - name_contains: Required name substring
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for row decoding failures."""
    pass


class MalformedRow(TransformationError):
    """
    Exception raised when a row (or the file header) fails structural decode.

    Context should include:
        - entry: Archive entry being read
        - line_number: 1-based data line number (if a row failed)
        - missing_columns: Required columns absent from the header (if any)
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for data loading failures."""
    pass


class StoreError(LoadError):
    """
    Exception raised when a batched upsert fails. The whole call is rolled back.

    Context should include:
        - table_name: Name of the table
        - rows: Number of rows in the call
        - rows_written_before_failure: Rows sent before the failing chunk
        - batch_size: Effective chunk size
    """
    pass


class LinkError(LoadError):
    """
    Exception raised when returned surrogate keys do not line up with the
    deduplicated address list.
    """
    pass


# ============================================================================
# Housekeeping Errors
# ============================================================================

class CleanupError(ETLException):
    """
    Exception raised when a cached artifact cannot be removed.

    Non-fatal: the engine logs it and still records the successful run.
    """
    pass


class RunStateError(ETLException):
    """
    Exception raised when loader run state cannot be read or written.

    Context should include:
        - loader_key: Loader whose state was being accessed
        - operation: Operation that failed (scan, record)
    """
    pass
