"""Audit trail of entity merges."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .enums import MergeReason, SubjectType
from .subject import Subject

if TYPE_CHECKING:
    from uuid import UUID

    from .enums import EntityType


@dataclass(eq=False, kw_only=True)
class EntityMerge:
    """A duplicate person or organization was folded into a surviving one.

    The duplicate row is gone afterwards; this record is what remains of it,
    together with how many of its facts were re-filed under the survivor.
    """

    entity_type: EntityType
    source_id: UUID
    target_id: UUID
    reason: MergeReason = MergeReason.MANUAL
    facts_moved: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    created_by: str | None = None

    @property
    def source_subject(self) -> Subject:
        return Subject(SubjectType(self.entity_type.value), str(self.source_id))

    @property
    def target_subject(self) -> Subject:
        return Subject(SubjectType(self.entity_type.value), str(self.target_id))
