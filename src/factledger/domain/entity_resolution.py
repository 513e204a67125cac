"""Resolve people and organizations by canonical key, find near-duplicates, merge them.

Flow for ``resolve_or_create_*``:

1. compute the canonical key of the input
2. look up an existing entity by that key
3. if found, optionally copy over the non-empty input fields
4. otherwise create the entity; if another writer created it first, look it up once more

Merging folds a duplicate into a primary entity: its facts are re-pointed at the
primary, colliding current facts are retired so each slot keeps a single current
fact, and an ``EntityMerge`` audit record is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from factledger.domain.canonical_keys import (
    ORGANIZATION_SIMILARITY_THRESHOLD,
    PERSON_SIMILARITY_THRESHOLD,
    calculate_similarity,
    extract_domain,
    generate_org_key,
    generate_person_key,
)
from factledger.domain.conflicts.ingest import utcnow
from factledger.domain.errors import ConcurrencyViolation, EntityNotFoundError
from factledger.domain.model import EntityMerge, EntityType, MergeReason, Organization, Person

if TYPE_CHECKING:
    from uuid import UUID

    from factledger.domain.conflicts.ingest import Clock
    from factledger.domain.ports import FactRepositories, FactUnitOfWorkFactory

log = logging.getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class PersonInput:
    first_name: str
    last_name: str
    email: str | None = None
    linkedin_url: str | None = None
    twitter_handle: str | None = None
    phone: str | None = None


@dataclass(slots=True, kw_only=True)
class OrganizationInput:
    name: str
    domain: str | None = None
    legal_name: str | None = None
    website: str | None = None
    description: str | None = None


@dataclass(slots=True, kw_only=True)
class EntityResolutionResult[TEntity: (Person, Organization)]:
    entity: TEntity
    canonical_key: str
    is_new: bool
    was_updated: bool


@dataclass(frozen=True, slots=True, kw_only=True)
class DuplicateCandidate:
    id: UUID
    name: str
    contact: str | None
    similarity: float


def resolve_or_create_person(
    person_input: PersonInput,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    update_if_exists: bool = True,
    clock: Clock = utcnow,
) -> EntityResolutionResult[Person]:
    """Find a person by canonical key or create one.

    Losing a race to create the same person shows up as ``ConcurrencyViolation``;
    the lookup then runs once more and resolves to the other writer's record.
    """

    canonical_key = generate_person_key(
        first_name=person_input.first_name,
        last_name=person_input.last_name,
        email=person_input.email,
    )
    try:
        return _resolve_person_once(
            person_input,
            canonical_key,
            unit_of_work_factory=unit_of_work_factory,
            update_if_exists=update_if_exists,
            clock=clock,
        )
    except ConcurrencyViolation:
        log.warning("Person key=%s created concurrently; resolving again", canonical_key)
    return _resolve_person_once(
        person_input,
        canonical_key,
        unit_of_work_factory=unit_of_work_factory,
        update_if_exists=update_if_exists,
        clock=clock,
    )


def _resolve_person_once(
    person_input: PersonInput,
    canonical_key: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    update_if_exists: bool,
    clock: Clock,
) -> EntityResolutionResult[Person]:
    now = clock()
    with unit_of_work_factory() as uow:
        people = uow.repositories.people
        existing = people.get_by_canonical_key(canonical_key)
        if existing is None:
            person = Person(
                first_name=person_input.first_name,
                last_name=person_input.last_name,
                email=person_input.email,
                linkedin_url=person_input.linkedin_url,
                twitter_handle=person_input.twitter_handle,
                phone=person_input.phone,
                last_contacted_at=now,
            )
            people.add(person)
            uow.commit()
            log.info("Created person %s (key=%s)", person.id, person.canonical_key)
            return EntityResolutionResult(
                entity=person, canonical_key=person.canonical_key, is_new=True, was_updated=False
            )

        existing.last_contacted_at = now
        if update_if_exists:
            existing.first_name = person_input.first_name
            existing.last_name = person_input.last_name
            _copy_present(
                person_input,
                existing,
                ("email", "linkedin_url", "twitter_handle", "phone"),
            )
            existing.refresh_canonical_key()
        uow.commit()
        log.debug("Resolved person %s by key=%s", existing.id, canonical_key)
        return EntityResolutionResult(
            entity=existing,
            canonical_key=existing.canonical_key,
            is_new=False,
            was_updated=update_if_exists,
        )


def resolve_or_create_organization(
    organization_input: OrganizationInput,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    update_if_exists: bool = True,
) -> EntityResolutionResult[Organization]:
    domain = organization_input.domain or extract_domain(organization_input.website)
    canonical_key = generate_org_key(name=organization_input.name, domain=domain)
    try:
        return _resolve_organization_once(
            organization_input,
            canonical_key,
            domain,
            unit_of_work_factory=unit_of_work_factory,
            update_if_exists=update_if_exists,
        )
    except ConcurrencyViolation:
        log.warning("Organization key=%s created concurrently; resolving again", canonical_key)
    return _resolve_organization_once(
        organization_input,
        canonical_key,
        domain,
        unit_of_work_factory=unit_of_work_factory,
        update_if_exists=update_if_exists,
    )


def _resolve_organization_once(
    organization_input: OrganizationInput,
    canonical_key: str,
    domain: str | None,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    update_if_exists: bool,
) -> EntityResolutionResult[Organization]:
    with unit_of_work_factory() as uow:
        organizations = uow.repositories.organizations
        existing = organizations.get_by_canonical_key(canonical_key)
        if existing is None:
            organization = Organization(
                name=organization_input.name,
                domain=domain,
                legal_name=organization_input.legal_name,
                website=organization_input.website,
                description=organization_input.description,
            )
            organizations.add(organization)
            uow.commit()
            log.info(
                "Created organization %s (key=%s)", organization.id, organization.canonical_key
            )
            return EntityResolutionResult(
                entity=organization,
                canonical_key=organization.canonical_key,
                is_new=True,
                was_updated=False,
            )

        if not update_if_exists:
            return EntityResolutionResult(
                entity=existing, canonical_key=canonical_key, is_new=False, was_updated=False
            )

        if organization_input.name:
            existing.name = organization_input.name
        if domain:
            existing.domain = domain
        _copy_present(organization_input, existing, ("legal_name", "website", "description"))
        existing.refresh_canonical_key()
        uow.commit()
        return EntityResolutionResult(
            entity=existing, canonical_key=existing.canonical_key, is_new=False, was_updated=True
        )


def find_duplicate_people(
    first_name: str,
    last_name: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    threshold: float = PERSON_SIMILARITY_THRESHOLD,
) -> list[DuplicateCandidate]:
    """Return people whose full name is at least ``threshold`` similar, best match first."""

    full_name = f"{first_name} {last_name}"
    with unit_of_work_factory() as uow:
        people = uow.repositories.people.list_all()
        candidates = [
            DuplicateCandidate(
                id=person.id,
                name=person.full_name,
                contact=person.email,
                similarity=calculate_similarity(full_name, person.full_name),
            )
            for person in people
        ]
    return _rank(candidates, threshold)


def find_duplicate_organizations(
    name: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    threshold: float = ORGANIZATION_SIMILARITY_THRESHOLD,
) -> list[DuplicateCandidate]:
    with unit_of_work_factory() as uow:
        organizations = uow.repositories.organizations.list_all()
        candidates = [
            DuplicateCandidate(
                id=organization.id,
                name=organization.name,
                contact=organization.domain,
                similarity=calculate_similarity(name, organization.name),
            )
            for organization in organizations
        ]
    return _rank(candidates, threshold)


def merge_people(
    primary_id: UUID,
    duplicate_id: UUID,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    reason: MergeReason = MergeReason.MANUAL,
    created_by: str | None = None,
    clock: Clock = utcnow,
) -> EntityMerge:
    """Fold ``duplicate_id`` into ``primary_id`` and delete the duplicate person."""

    _reject_self_merge(primary_id, duplicate_id)
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        primary = _require(repositories.people.get(primary_id), EntityType.PERSON, primary_id)
        duplicate = _require(
            repositories.people.get(duplicate_id), EntityType.PERSON, duplicate_id
        )
        merge = _fold_facts(
            repositories,
            primary,
            duplicate,
            reason=reason,
            created_by=created_by,
            clock=clock,
        )
        repositories.people.remove(duplicate)
        uow.commit()
    return merge


def merge_organizations(
    primary_id: UUID,
    duplicate_id: UUID,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    reason: MergeReason = MergeReason.MANUAL,
    created_by: str | None = None,
    clock: Clock = utcnow,
) -> EntityMerge:
    """Fold ``duplicate_id`` into ``primary_id`` and delete the duplicate organization."""

    _reject_self_merge(primary_id, duplicate_id)
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        organizations = repositories.organizations
        primary = _require(organizations.get(primary_id), EntityType.ORGANIZATION, primary_id)
        duplicate = _require(
            organizations.get(duplicate_id), EntityType.ORGANIZATION, duplicate_id
        )
        merge = _fold_facts(
            repositories,
            primary,
            duplicate,
            reason=reason,
            created_by=created_by,
            clock=clock,
        )
        organizations.remove(duplicate)
        uow.commit()
    return merge


def _fold_facts(
    repositories: FactRepositories,
    primary: Person | Organization,
    duplicate: Person | Organization,
    *,
    reason: MergeReason,
    created_by: str | None,
    clock: Clock,
) -> EntityMerge:
    merge = EntityMerge(
        entity_type=primary.ENTITY_TYPE,
        source_id=duplicate.id,
        target_id=primary.id,
        reason=reason,
        created_by=created_by,
    )
    moved = repositories.facts.reassign_subject(
        merge.source_subject, merge.target_subject, retired_at=clock()
    )
    merge.facts_moved = moved
    repositories.merges.add(merge)
    log.info(
        "Merged %s %s into %s (%d facts moved)",
        primary.ENTITY_TYPE,
        duplicate.id,
        primary.id,
        moved,
    )
    return merge


def _rank(candidates: list[DuplicateCandidate], threshold: float) -> list[DuplicateCandidate]:
    matches = [candidate for candidate in candidates if candidate.similarity >= threshold]
    return sorted(matches, key=lambda candidate: candidate.similarity, reverse=True)


def _copy_present(source: object, target: object, names: tuple[str, ...]) -> None:
    for name in names:
        value = getattr(source, name)
        if value:
            setattr(target, name, value)


def _require[TEntity](entity: TEntity | None, entity_type: EntityType, entity_id: UUID) -> TEntity:
    if entity is None:
        raise EntityNotFoundError(f"No {entity_type} with id {entity_id}")
    return entity


def _reject_self_merge(primary_id: UUID, duplicate_id: UUID) -> None:
    if primary_id == duplicate_id:
        raise ValueError("Cannot merge an entity into itself")
