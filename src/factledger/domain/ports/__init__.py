"""Interfaces the domain needs from storage adapters."""

from __future__ import annotations

from .persistence import (
    EntityMergeRepository,
    FactRepository,
    OrganizationRepository,
    PersonRepository,
    Repository,
)
from .unit_of_work import (
    FactRepositories,
    FactUnitOfWork,
    FactUnitOfWorkFactory,
)

__all__ = [
    "EntityMergeRepository",
    "FactRepositories",
    "FactRepository",
    "FactUnitOfWork",
    "FactUnitOfWorkFactory",
    "OrganizationRepository",
    "PersonRepository",
    "Repository",
]
