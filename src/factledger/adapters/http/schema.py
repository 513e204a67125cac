"""Pydantic models describing the facts HTTP payloads."""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from factledger.domain.conflicts import ConflictStrategy
from factledger.domain.errors import FactValidationError
from factledger.domain.model import DEFAULT_CONFIDENCE, FactInput, Subject

if TYPE_CHECKING:
    from factledger.domain.conflicts import ConflictRecord, FactOutcome
    from factledger.domain.model import Fact


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ApiModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# Requests --------------------------------------------------------------------


class FactCreateRequest(ApiModel):
    """Body of ``POST /facts``. Required fields are checked by ``to_fact_input``."""

    entity_type: str | None = None
    entity_id: str | None = None
    fact_type: str | None = None
    key: str | None = None
    value: Any = None
    source_type: str | None = None
    source_id: str | None = None
    source_url: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    created_by: str | None = None
    strategy: ConflictStrategy | None = None

    _normalize_text = field_validator(
        "entity_type",
        "entity_id",
        "fact_type",
        "key",
        "source_type",
        "source_id",
        "source_url",
        "created_by",
        mode="before",
    )(_blank_to_none)

    def encoded_value(self) -> str | None:
        """Strings pass through; anything else is stored as its JSON encoding."""

        if self.value is None:
            return None
        if isinstance(self.value, str):
            return self.value if self.value.strip() else None
        return json.dumps(self.value)

    def to_fact_input(self) -> FactInput:
        value = self.encoded_value()
        required = {
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "factType": self.fact_type,
            "key": self.key,
            "value": value,
            "sourceType": self.source_type,
        }
        missing = [name for name, present in required.items() if present is None]
        if (
            missing
            or self.fact_type is None
            or self.key is None
            or value is None
            or self.source_type is None
        ):
            raise FactValidationError("Missing required fields", missing=missing)

        return FactInput(
            subject=Subject.parse(self.entity_type, self.entity_id),
            fact_type=self.fact_type,
            key=self.key,
            value=value,
            source_type=self.source_type,
            source_id=self.source_id,
            source_url=self.source_url,
            confidence=DEFAULT_CONFIDENCE if self.confidence is None else self.confidence,
            created_by=self.created_by,
        )


# Responses -------------------------------------------------------------------


class FactVersionPayload(ApiModel):
    """One version of a slot, as listed under ``grouped``."""

    id: UUID
    value: str
    source_type: str
    source_id: str | None = None
    source_url: str | None = None
    confidence: float
    valid_from: datetime
    valid_until: datetime | None = None
    replaced_by_id: UUID | None = None
    created_at: datetime
    created_by: str | None = None

    @classmethod
    def from_fact(cls, fact: Fact) -> FactVersionPayload:
        return cls(**_version_fields(fact))


class FactPayload(FactVersionPayload):
    entity_type: str
    entity_id: str
    fact_type: str
    key: str

    @classmethod
    def from_fact(cls, fact: Fact) -> FactPayload:
        return cls(
            entity_type=fact.subject.subject_type.value,
            entity_id=fact.subject.subject_id,
            fact_type=fact.fact_type,
            key=fact.key,
            **_version_fields(fact),
        )


def _version_fields(fact: Fact) -> dict[str, Any]:
    return {
        "id": fact.id,
        "value": fact.value,
        "source_type": fact.source_type,
        "source_id": fact.source_id,
        "source_url": fact.source_url,
        "confidence": fact.confidence,
        "valid_from": fact.valid_from,
        "valid_until": fact.valid_until,
        "replaced_by_id": fact.replaced_by_id,
        "created_at": fact.created_at,
        "created_by": fact.created_by,
    }


class IncomingFactPayload(ApiModel):
    entity_type: str
    entity_id: str
    fact_type: str
    key: str
    value: str
    source_type: str
    source_id: str | None = None
    source_url: str | None = None
    confidence: float
    created_by: str | None = None


class ConflictingFactPayload(ApiModel):
    id: UUID
    value: str
    source_type: str
    source_id: str | None = None
    confidence: float
    valid_from: datetime
    created_at: datetime


class ConflictPayload(ApiModel):
    new_fact: IncomingFactPayload
    existing_facts: list[ConflictingFactPayload]
    reason: str
    message: str
    suggested_strategy: ConflictStrategy

    @classmethod
    def from_record(cls, record: ConflictRecord) -> ConflictPayload:
        incoming = record.incoming
        existing = record.existing
        return cls(
            new_fact=IncomingFactPayload(
                entity_type=incoming.subject.subject_type.value,
                entity_id=incoming.subject.subject_id,
                fact_type=incoming.fact_type,
                key=incoming.key,
                value=incoming.value,
                source_type=incoming.source_type,
                source_id=incoming.source_id,
                source_url=incoming.source_url,
                confidence=float(incoming.confidence),
                created_by=incoming.created_by,
            ),
            existing_facts=[
                ConflictingFactPayload(
                    id=existing.id,
                    value=existing.value,
                    source_type=existing.source_type,
                    source_id=existing.source_id,
                    confidence=existing.confidence,
                    valid_from=existing.valid_from,
                    created_at=existing.created_at,
                )
            ],
            reason=record.reason.value,
            message=record.message,
            suggested_strategy=record.suggested_strategy,
        )


class FactCreatedResponse(ApiModel):
    success: Literal[True] = True
    fact_id: UUID | None
    superseded_fact_id: UUID | None = None
    classification: str
    resolution: str | None
    conflict: ConflictPayload | None = None

    @classmethod
    def from_outcome(cls, outcome: FactOutcome) -> FactCreatedResponse:
        return cls(
            fact_id=outcome.fact_id,
            superseded_fact_id=outcome.superseded_fact_id,
            classification=outcome.classification.value,
            resolution=outcome.resolution.value if outcome.resolution else None,
            conflict=ConflictPayload.from_record(outcome.conflict) if outcome.conflict else None,
        )


MANUAL_REVIEW_MESSAGE = "Conflict detected - manual review required"


class ManualReviewResponse(ApiModel):
    success: Literal[False] = False
    requires_manual_review: Literal[True] = True
    conflict: ConflictPayload
    message: str = MANUAL_REVIEW_MESSAGE


class TypeSummary(ApiModel):
    type: str
    key_count: int
    fact_count: int


class FactsSummary(ApiModel):
    total_facts: int
    fact_types: list[str]
    by_type: list[TypeSummary]


class FactsResponse(ApiModel):
    facts: list[FactPayload]
    grouped: dict[str, dict[str, list[FactVersionPayload]]]
    summary: FactsSummary

    @classmethod
    def from_facts(cls, facts: list[Fact]) -> FactsResponse:
        grouped: dict[str, dict[str, list[FactVersionPayload]]] = {}
        for fact in facts:
            by_key = grouped.setdefault(fact.fact_type, {})
            by_key.setdefault(fact.key, []).append(FactVersionPayload.from_fact(fact))

        summary = FactsSummary(
            total_facts=len(facts),
            fact_types=list(grouped),
            by_type=[
                TypeSummary(
                    type=fact_type,
                    key_count=len(keys),
                    fact_count=sum(len(versions) for versions in keys.values()),
                )
                for fact_type, keys in grouped.items()
            ],
        )
        return cls(
            facts=[FactPayload.from_fact(fact) for fact in facts],
            grouped=grouped,
            summary=summary,
        )


class ErrorResponse(ApiModel):
    error: str
    missing: list[str] | None = None


class HealthResponse(ApiModel):
    status: Literal["ok"] = "ok"
    version: str
