"""Shared contracts for fact conflict detection and resolution.

This module holds only:
- the enums naming each stage's outcome
- the dataclasses passed between detection, policy and the ingest entry point
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from factledger.domain.model import Fact, FactInput


class Classification(StrEnum):
    """How an incoming fact relates to the current fact of its slot."""

    NEW = "new"
    DUPLICATE = "duplicate"
    UPDATE = "update"
    CONFLICT = "conflict"


class ConflictStrategy(StrEnum):
    """Explicit resolution a caller may request for a conflicting fact."""

    LATEST_WINS = "latest_wins"
    HIGHEST_CONFIDENCE = "highest_confidence"
    USER_CONFIRM = "user_confirm"
    MERGE = "merge"


class ApplyAction(StrEnum):
    """Policy decision on how to materialize one incoming fact."""

    INSERT = "insert"
    IGNORE = "ignore"
    SUPERSEDE = "supersede"
    MERGE = "merge"
    KEEP_EXISTING = "keep_existing"
    MANUAL_REVIEW = "manual_review"


class FactResolution(StrEnum):
    """What happened to the store, as reported to callers."""

    NEW = "new"
    DUPLICATE_IGNORED = "duplicate-ignored"
    SUPERSEDED_PREVIOUS = "superseded-previous"
    MERGED = "merged"
    KEPT_EXISTING = "kept-existing"


class ConflictReason(StrEnum):
    DIFFERENT_SOURCE = "different_source_not_more_confident"
    USER_CONFIRM_REQUIRED = "user_confirm_required"


@dataclass(frozen=True, slots=True, kw_only=True)
class Detection:
    """Classification of an incoming fact against the slot's current fact."""

    classification: Classification
    existing: Fact | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class Decision:
    action: ApplyAction
    strategy: ConflictStrategy | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictRecord:
    """Everything a human needs to settle a conflict by hand."""

    incoming: FactInput
    existing: Fact
    reason: ConflictReason
    message: str
    suggested_strategy: ConflictStrategy


@dataclass(frozen=True, slots=True, kw_only=True)
class FactOutcome:
    """Result of ``add_fact_with_conflict_detection``."""

    classification: Classification
    resolution: FactResolution | None = None
    fact_id: UUID | None = None
    superseded_fact_id: UUID | None = None
    conflict: ConflictRecord | None = None
    requires_manual_review: bool = False

    @property
    def wrote(self) -> bool:
        return self.resolution in _WRITING_RESOLUTIONS


_WRITING_RESOLUTIONS = frozenset(
    {FactResolution.NEW, FactResolution.SUPERSEDED_PREVIOUS, FactResolution.MERGED}
)
