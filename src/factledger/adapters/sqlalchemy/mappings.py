"""SQLAlchemy mapping metadata for the factledger domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    func,
    orm,
    text,
)
from sqlalchemy.orm import composite

from factledger.domain.model import (
    EntityMerge,
    EntityType,
    Fact,
    MergeReason,
    Organization,
    Person,
    Subject,
    SubjectType,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]
CURRENT_FACT_PREDICATE = "valid_until IS NULL"
ENUM_COLUMN_LENGTH = 32


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    # persist the lowercase values, not the member names
    return Enum(
        enum_cls,
        native_enum=False,
        length=ENUM_COLUMN_LENGTH,
        values_callable=lambda members: [member.value for member in members],
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Facts -----------------------------------------------------------------------

fact_table = Table(
    "fact",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("subject_type", _str_enum(SubjectType), nullable=False),
    Column("subject_id", String, nullable=False),
    Column("fact_type", String, nullable=False),
    Column("key", String, nullable=False),
    Column("value", Text, nullable=False),
    Column("source_type", String, nullable=False),
    Column("source_id", String, nullable=True),
    Column("source_url", String, nullable=True),
    Column("confidence", Float, nullable=False, default=1.0),
    Column("valid_from", UTCDateTime(), nullable=False),
    Column("valid_until", UTCDateTime(), nullable=True),
    Column("replaced_by_id", UUIDColumnType, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("created_by", String, nullable=True),
    Index("ix_fact_slot", "subject_type", "subject_id", "fact_type", "key"),
    # At most one current fact per slot.
    Index(
        "uq_fact_current_slot",
        "subject_type",
        "subject_id",
        "fact_type",
        "key",
        unique=True,
        sqlite_where=text(CURRENT_FACT_PREDICATE),
        postgresql_where=text(CURRENT_FACT_PREDICATE),
    ),
)

# Entities --------------------------------------------------------------------

person_table = Table(
    "person",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("first_name", String, nullable=False),
    Column("last_name", String, nullable=False),
    Column("email", String, nullable=True),
    Column("linkedin_url", String, nullable=True),
    Column("twitter_handle", String, nullable=True),
    Column("phone", String, nullable=True),
    Column("canonical_key", String, nullable=False, unique=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("last_contacted_at", UTCDateTime(), nullable=True),
)

organization_table = Table(
    "organization",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("domain", String, nullable=True),
    Column("legal_name", String, nullable=True),
    Column("website", String, nullable=True),
    Column("description", Text, nullable=True),
    Column("canonical_key", String, nullable=False, unique=True),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
)

entity_merge_table = Table(
    "entity_merge",
    mapper_registry.metadata,
    Column("entity_type", _str_enum(EntityType), primary_key=True),
    Column("source_id", UUIDColumnType, primary_key=True),
    Column("target_id", UUIDColumnType, primary_key=True),
    Column("reason", _str_enum(MergeReason), nullable=False),
    Column("facts_moved", Integer, nullable=False, default=0),
    Column("created_at", UTCDateTime(), nullable=False, server_default=func.now()),
    Column("created_by", String, nullable=True),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Fact,
        fact_table,
        properties={
            "subject": composite(Subject, fact_table.c.subject_type, fact_table.c.subject_id),
        },
    )
    mapper_registry.map_imperatively(Person, person_table)
    mapper_registry.map_imperatively(Organization, organization_table)
    mapper_registry.map_imperatively(EntityMerge, entity_merge_table)

    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create tables directly from metadata, bypassing migrations."""

    start_mappers()
    mapper_registry.metadata.create_all(engine)
