"""Transaction boundary for fact ingestion and entity resolution."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from factledger.domain.ports.persistence import (
        EntityMergeRepository,
        FactRepository,
        OrganizationRepository,
        PersonRepository,
    )


@dataclass(frozen=True, slots=True)
class FactRepositories:
    """Repositories that share one unit of work, and therefore one transaction."""

    facts: FactRepository
    people: PersonRepository
    organizations: OrganizationRepository
    merges: EntityMergeRepository


@runtime_checkable
class FactUnitOfWork(Protocol):
    """Context manager around one transaction on the fact store.

    Writes become durable on ``commit``; leaving the block any other way discards
    them. Backend failures surface as ``StorageError``, lost races on a slot as
    ``ConcurrencyViolation``.
    """

    @property
    def repositories(self) -> FactRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


type FactUnitOfWorkFactory = Callable[[], FactUnitOfWork]
