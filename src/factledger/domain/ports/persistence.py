"""Ports for persisting facts and the entities they describe."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from factledger.domain.model import EntityMerge, Fact, Organization, Person

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from factledger.domain.model import FactInput, Subject


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class FactRepository(Protocol):
    """Append-mostly temporal store of facts.

    Implementations must guarantee at most one current fact (``valid_until is None``)
    per ``(subject, fact_type, key)`` slot and must never delete rows.
    """

    def get_current(self, subject: Subject, fact_type: str, key: str) -> Fact | None: ...

    def insert(
        self,
        fact_input: FactInput,
        *,
        recorded_at: datetime,
        fact_id: UUID | None = None,
    ) -> Fact: ...

    def retire(
        self,
        fact_id: UUID,
        *,
        retired_at: datetime,
        replaced_by_id: UUID | None = None,
    ) -> None: ...

    def get_history(self, subject: Subject, fact_type: str, key: str) -> Sequence[Fact]: ...

    def query(
        self,
        *,
        subject: Subject | None = None,
        fact_type: str | None = None,
        key: str | None = None,
        include_historical: bool = False,
        limit: int | None = None,
    ) -> Sequence[Fact]: ...

    def reassign_subject(self, source: Subject, target: Subject, *, retired_at: datetime) -> int:
        """Move every fact of ``source`` onto ``target``, returning how many moved.

        Where both subjects have a current fact for the same slot, the source's fact is
        retired (replaced by the target's) before it moves.
        """
        ...


@runtime_checkable
class PersonRepository(Repository[Person], Protocol):
    """Repository contract for people."""

    def get(self, person_id: UUID) -> Person | None: ...

    def get_by_canonical_key(self, canonical_key: str) -> Person | None: ...

    def list_all(self) -> Sequence[Person]: ...

    def remove(self, person: Person) -> None: ...


@runtime_checkable
class OrganizationRepository(Repository[Organization], Protocol):
    """Repository contract for organizations."""

    def get(self, organization_id: UUID) -> Organization | None: ...

    def get_by_canonical_key(self, canonical_key: str) -> Organization | None: ...

    def list_all(self) -> Sequence[Organization]: ...

    def remove(self, organization: Organization) -> None: ...


@runtime_checkable
class EntityMergeRepository(Repository[EntityMerge], Protocol):
    """Append-only audit log of entity merges."""
