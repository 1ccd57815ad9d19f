"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (LoaderState, RunStatus)
    loader_run: Durable run state per dataset loader
    loader_attempt: Audit trail of every engine attempt
    address: Deduplicated addresses with geographic codes
    provider: Provider of Services records

Usage:
    from models import Address, Provider, LoaderRun
    from models.base import LoaderState, RunStatus

Relationships:
    - Provider → Address (many-to-one via address_id)
"""

from models.base import Base, LoaderState, RunStatus
from models.loader_run import LoaderRun
from models.loader_attempt import LoaderAttempt
from models.address import Address
from models.provider import Provider

__all__ = [
    "Base",
    "LoaderState",
    "RunStatus",
    "LoaderRun",
    "LoaderAttempt",
    "Address",
    "Provider",
]
