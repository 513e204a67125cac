"""Temporal, sourced assertions about a subject."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from factledger.domain.errors import FactValidationError
from factledger.domain.model.entity import Entity

if TYPE_CHECKING:
    from uuid import UUID

    from factledger.domain.model.subject import Subject

log = logging.getLogger(__name__)

DEFAULT_CONFIDENCE: Final[float] = 1.0
MERGED_SOURCE_TYPE: Final[str] = "merged"

# Values produced by the in-repo producers. Both sets stay open: unknown values are
# logged, never rejected.
KNOWN_SOURCE_TYPES: Final[frozenset[str]] = frozenset(
    {"manual", "attio", "gmail", "fireflies", "angellist", "conversation", MERGED_SOURCE_TYPE}
)
KNOWN_FACT_TYPES: Final[frozenset[str]] = frozenset(
    {"metric", "note", "NOTE", "contact", "deal_term"}
)


@dataclass(frozen=True, kw_only=True)
class FactInput:
    """An incoming assertion, as produced by a sync job or manual entry."""

    subject: Subject
    fact_type: str
    key: str
    value: str
    source_type: str
    source_id: str | None = None
    source_url: str | None = None
    confidence: float = DEFAULT_CONFIDENCE
    created_by: str | None = None
    valid_from: datetime | None = None

    def validate(self) -> None:
        """Raise ``FactValidationError`` unless every identity field is present."""

        missing: list[str] = []
        if self.subject is None:
            missing.append("subject")
        for name in ("fact_type", "key", "value", "source_type"):
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        if missing:
            raise FactValidationError(
                f"Missing required fields: {', '.join(missing)}", missing=missing
            )
        if isinstance(self.confidence, bool) or not 0.0 <= float(self.confidence) <= 1.0:
            raise FactValidationError(
                f"Confidence must be within [0, 1], got {self.confidence!r}"
            )
        if self.valid_from is not None and self.valid_from.tzinfo is None:
            raise FactValidationError("valid_from must include timezone information")
        if self.source_type not in KNOWN_SOURCE_TYPES:
            log.warning("Unrecognised source_type=%s for key=%s", self.source_type, self.key)
        if self.fact_type not in KNOWN_FACT_TYPES:
            log.warning("Unrecognised fact_type=%s for key=%s", self.fact_type, self.key)


@dataclass(eq=False, kw_only=True)
class Fact(Entity):
    """A stored assertion.

    Only ``valid_until``/``replaced_by_id`` change after creation, except that merging
    two entities re-points ``subject`` of the duplicate's facts.
    """

    subject: Subject
    fact_type: str
    key: str
    value: str
    source_type: str
    source_id: str | None = None
    source_url: str | None = None
    confidence: float = DEFAULT_CONFIDENCE
    valid_from: datetime
    valid_until: datetime | None = None
    replaced_by_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    created_by: str | None = None

    @classmethod
    def from_input(cls, fact_input: FactInput, *, recorded_at: datetime) -> Fact:
        return cls(
            subject=fact_input.subject,
            fact_type=fact_input.fact_type,
            key=fact_input.key,
            value=fact_input.value,
            source_type=fact_input.source_type,
            source_id=fact_input.source_id,
            source_url=fact_input.source_url,
            confidence=float(fact_input.confidence),
            valid_from=fact_input.valid_from or recorded_at,
            created_at=recorded_at,
            created_by=fact_input.created_by,
        )

    @property
    def is_current(self) -> bool:
        return self.valid_until is None
