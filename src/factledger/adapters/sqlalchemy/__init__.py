"""SQLAlchemy adapter package for factledger."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyEntityMergeRepository,
    SqlAlchemyFactRepository,
    SqlAlchemyOrganizationRepository,
    SqlAlchemyPersonRepository,
)
from .unit_of_work import SqlAlchemyFactUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyEntityMergeRepository",
    "SqlAlchemyFactRepository",
    "SqlAlchemyFactUnitOfWork",
    "SqlAlchemyOrganizationRepository",
    "SqlAlchemyPersonRepository",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
