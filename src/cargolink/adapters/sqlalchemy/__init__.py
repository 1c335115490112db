"""SQLAlchemy adapter package for cargolink."""

from __future__ import annotations

from .engine import configure_sqlite, create_database_engine
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyBookingRepository,
    SqlAlchemyContainerRepository,
    SqlAlchemyInvoiceRepository,
    SqlAlchemyOrderContainerRepository,
    SqlAlchemyOrderRepository,
)
from .unit_of_work import SqlAlchemyIngestUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyBookingRepository",
    "SqlAlchemyContainerRepository",
    "SqlAlchemyIngestUnitOfWork",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyOrderContainerRepository",
    "SqlAlchemyOrderRepository",
    "configure_sqlite",
    "create_all_tables",
    "create_database_engine",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
