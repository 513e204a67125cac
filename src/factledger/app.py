"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

from factledger.adapters.sqlalchemy.migrations import current_revision, upgrade_head
from factledger.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyFactUnitOfWork,
    is_started,
    startup,
)
from factledger.config import (
    ConflictPolicyConfig,
    DatabaseConfig,
    get_conflict_policy_config,
    get_database_config,
)
from factledger.domain.conflicts import add_fact_with_conflict_detection
from factledger.domain.conflicts.ingest import utcnow
from factledger.domain.entity_resolution import (
    DuplicateCandidate,
    find_duplicate_organizations,
    find_duplicate_people,
)

if TYPE_CHECKING:
    from factledger.domain.conflicts import ConflictStrategy, FactOutcome
    from factledger.domain.conflicts.ingest import Clock
    from factledger.domain.model import Fact, FactInput, Subject
    from factledger.domain.ports import FactUnitOfWorkFactory


log = getLogger(__name__)


def default_unit_of_work_factory() -> FactUnitOfWorkFactory:
    """Start the SQLAlchemy adapter on first use and return its unit of work class."""

    if not is_started():
        startup()
    return SqlAlchemyFactUnitOfWork


def upgrade_database(database_uri: str | None = None) -> str | None:
    """Migrate the configured (or given) database to head and return its revision."""

    database = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
    engine = create_engine(database.uri, future=True, echo=database.echo)
    try:
        upgrade_head(engine=engine)
        revision = current_revision(engine)
    finally:
        engine.dispose()
    log.info("Database schema is at revision %s", revision)
    return revision


def add_fact(
    fact_input: FactInput,
    *,
    strategy: ConflictStrategy | None = None,
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
    policy: ConflictPolicyConfig | None = None,
    clock: Clock = utcnow,
) -> FactOutcome:
    """Ingest one fact through conflict detection using the configured adapters."""

    effective_policy = policy or get_conflict_policy_config()
    return add_fact_with_conflict_detection(
        fact_input,
        unit_of_work_factory=unit_of_work_factory or default_unit_of_work_factory(),
        clock=clock,
        strategy=strategy,
        confidence_margin=effective_policy.confidence_margin,
    )


def list_facts(
    *,
    subject: Subject | None = None,
    fact_type: str | None = None,
    key: str | None = None,
    include_historical: bool = False,
    limit: int | None = None,
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
) -> list[Fact]:
    """Return facts newest first, current only unless ``include_historical``."""

    factory = unit_of_work_factory or default_unit_of_work_factory()
    with factory() as uow:
        return list(
            uow.repositories.facts.query(
                subject=subject,
                fact_type=fact_type,
                key=key,
                include_historical=include_historical,
                limit=limit,
            )
        )


def fact_history(
    subject: Subject,
    fact_type: str,
    key: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
) -> list[Fact]:
    factory = unit_of_work_factory or default_unit_of_work_factory()
    with factory() as uow:
        return list(uow.repositories.facts.get_history(subject, fact_type, key))


def duplicate_people(
    first_name: str,
    last_name: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
    policy: ConflictPolicyConfig | None = None,
) -> list[DuplicateCandidate]:
    effective_policy = policy or get_conflict_policy_config()
    return find_duplicate_people(
        first_name,
        last_name,
        unit_of_work_factory=unit_of_work_factory or default_unit_of_work_factory(),
        threshold=effective_policy.person_similarity,
    )


def duplicate_organizations(
    name: str,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
    policy: ConflictPolicyConfig | None = None,
) -> list[DuplicateCandidate]:
    effective_policy = policy or get_conflict_policy_config()
    return find_duplicate_organizations(
        name,
        unit_of_work_factory=unit_of_work_factory or default_unit_of_work_factory(),
        threshold=effective_policy.organization_similarity,
    )
