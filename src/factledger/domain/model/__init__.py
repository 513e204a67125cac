"""Public domain model surface."""

from __future__ import annotations

from factledger.domain.model.audit import EntityMerge
from factledger.domain.model.entity import Entity, new_id
from factledger.domain.model.enums import EntityType, MergeReason, SubjectType
from factledger.domain.model.fact import (
    DEFAULT_CONFIDENCE,
    KNOWN_FACT_TYPES,
    KNOWN_SOURCE_TYPES,
    MERGED_SOURCE_TYPE,
    Fact,
    FactInput,
)
from factledger.domain.model.party import Organization, Party, Person
from factledger.domain.model.subject import Subject

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    # facts
    "Subject",
    "FactInput",
    "Fact",
    "DEFAULT_CONFIDENCE",
    "KNOWN_FACT_TYPES",
    "KNOWN_SOURCE_TYPES",
    "MERGED_SOURCE_TYPE",
    # parties
    "Person",
    "Organization",
    "Party",
    # audit
    "EntityMerge",
    # enums
    "EntityType",
    "MergeReason",
    "SubjectType",
]
