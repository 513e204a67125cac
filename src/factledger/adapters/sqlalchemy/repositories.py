"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from factledger.adapters.sqlalchemy.mappings import (
    fact_table,
    organization_table,
    person_table,
)
from factledger.domain.errors import ConcurrencyViolation
from factledger.domain.model import EntityMerge, Fact, Organization, Person

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import ColumnElement
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from factledger.domain.model import FactInput, Subject


def _subject_clause(subject: Subject) -> ColumnElement[bool]:
    return (fact_table.c.subject_type == subject.subject_type) & (
        fact_table.c.subject_id == subject.subject_id
    )


def _slot_clause(subject: Subject, fact_type: str, key: str) -> ColumnElement[bool]:
    return (
        _subject_clause(subject)
        & (fact_table.c.fact_type == fact_type)
        & (fact_table.c.key == key)
    )


class SqlAlchemyFactRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_current(self, subject: Subject, fact_type: str, key: str) -> Fact | None:
        stmt = (
            select(Fact)
            .where(_slot_clause(subject, fact_type, key))
            .where(fact_table.c.valid_until.is_(None))
            .order_by(fact_table.c.valid_from.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalars().first()

    def insert(
        self,
        fact_input: FactInput,
        *,
        recorded_at: datetime,
        fact_id: UUID | None = None,
    ) -> Fact:
        fact = Fact.from_input(fact_input, recorded_at=recorded_at)
        if fact_id is not None:
            fact.id = fact_id
        self.session.add(fact)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConcurrencyViolation(
                f"Another current fact exists for {fact.subject}/{fact.fact_type}/{fact.key}"
            ) from exc
        return fact

    def retire(
        self,
        fact_id: UUID,
        *,
        retired_at: datetime,
        replaced_by_id: UUID | None = None,
    ) -> None:
        self.session.flush()
        stmt = (
            update(fact_table)
            .where(fact_table.c.id == fact_id)
            .where(fact_table.c.valid_until.is_(None))
            .values(valid_until=retired_at, replaced_by_id=replaced_by_id)
        )
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        if result.rowcount != 1:
            raise ConcurrencyViolation(f"Fact {fact_id} is no longer current")
        # bring an already-loaded instance in line with the row
        self.session.get(Fact, fact_id, populate_existing=True)

    def get_history(self, subject: Subject, fact_type: str, key: str) -> Sequence[Fact]:
        # current first, then retired facts by most recent retirement
        stmt = (
            select(Fact)
            .where(_slot_clause(subject, fact_type, key))
            .order_by(
                fact_table.c.valid_until.is_(None).desc(),
                fact_table.c.valid_until.desc(),
                fact_table.c.created_at.desc(),
            )
        )
        return self.session.execute(stmt).scalars().all()

    def query(
        self,
        *,
        subject: Subject | None = None,
        fact_type: str | None = None,
        key: str | None = None,
        include_historical: bool = False,
        limit: int | None = None,
    ) -> Sequence[Fact]:
        stmt = select(Fact)
        if subject is not None:
            stmt = stmt.where(_subject_clause(subject))
        if fact_type is not None:
            stmt = stmt.where(fact_table.c.fact_type == fact_type)
        if key is not None:
            stmt = stmt.where(fact_table.c.key == key)
        if not include_historical:
            stmt = stmt.where(fact_table.c.valid_until.is_(None))
        stmt = stmt.order_by(fact_table.c.valid_from.desc(), fact_table.c.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.execute(stmt).scalars().all()

    def reassign_subject(self, source: Subject, target: Subject, *, retired_at: datetime) -> int:
        stmt = select(Fact).where(_subject_clause(source))
        facts = self.session.execute(stmt).scalars().all()
        for fact in facts:
            if fact.is_current:
                survivor = self.get_current(target, fact.fact_type, fact.key)
                if survivor is not None:
                    self.retire(fact.id, retired_at=retired_at, replaced_by_id=survivor.id)
            fact.subject = target
        self.session.flush()
        return len(facts)


class SqlAlchemyPersonRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Person) -> None:
        self.session.add(entity)

    def get(self, person_id: UUID) -> Person | None:
        return self.session.get(Person, person_id)

    def get_by_canonical_key(self, canonical_key: str) -> Person | None:
        stmt = select(Person).where(person_table.c.canonical_key == canonical_key)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> Sequence[Person]:
        stmt = select(Person).order_by(person_table.c.created_at)
        return self.session.execute(stmt).scalars().all()

    def remove(self, person: Person) -> None:
        self.session.delete(person)


class SqlAlchemyOrganizationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Organization) -> None:
        self.session.add(entity)

    def get(self, organization_id: UUID) -> Organization | None:
        return self.session.get(Organization, organization_id)

    def get_by_canonical_key(self, canonical_key: str) -> Organization | None:
        stmt = select(Organization).where(organization_table.c.canonical_key == canonical_key)
        return self.session.execute(stmt).scalar_one_or_none()

    def list_all(self) -> Sequence[Organization]:
        stmt = select(Organization).order_by(organization_table.c.created_at)
        return self.session.execute(stmt).scalars().all()

    def remove(self, organization: Organization) -> None:
        self.session.delete(organization)


class SqlAlchemyEntityMergeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: EntityMerge) -> None:
        self.session.add(entity)
