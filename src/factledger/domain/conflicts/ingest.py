"""Fact ingestion with conflict detection.

``add_fact_with_conflict_detection`` is the single write path into the fact store.
Each call produces at most one durable change, committed atomically:

- a pure insert (first fact in a slot)
- a retire + insert pair (supersession or merge)
- nothing (duplicate, kept existing, or escalated to manual review)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from factledger.domain.errors import ConcurrencyViolation, FactValidationError
from factledger.domain.model import MERGED_SOURCE_TYPE, new_id

from .contracts import (
    ApplyAction,
    Classification,
    ConflictReason,
    FactOutcome,
    FactResolution,
)
from .detect import detect
from .policy import build_conflict_record, decide, merged_value

if TYPE_CHECKING:
    from factledger.domain.model import Fact, FactInput
    from factledger.domain.ports import FactRepository, FactUnitOfWorkFactory

    from .contracts import ConflictStrategy, Decision, Detection

log = logging.getLogger(__name__)


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def add_fact_with_conflict_detection(
    fact_input: FactInput,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    clock: Clock = utcnow,
    strategy: ConflictStrategy | None = None,
    confidence_margin: float = 0.0,
) -> FactOutcome:
    """Detect, decide and apply one incoming fact.

    Raises ``FactValidationError`` before touching storage when required fields are
    missing, also when a superseding fact's ``valid_from`` predates the fact it
    replaces, and ``StorageError`` when the transaction cannot complete (nothing is
    left half-applied). A concurrent writer on the same slot is absorbed by re-running
    detection once against the new current fact.
    """

    fact_input.validate()
    try:
        return _ingest_once(
            fact_input,
            unit_of_work_factory=unit_of_work_factory,
            clock=clock,
            strategy=strategy,
            confidence_margin=confidence_margin,
        )
    except ConcurrencyViolation:
        log.warning(
            "Concurrent write on %s/%s/%s; re-running conflict detection",
            fact_input.subject,
            fact_input.fact_type,
            fact_input.key,
        )
    return _ingest_once(
        fact_input,
        unit_of_work_factory=unit_of_work_factory,
        clock=clock,
        strategy=strategy,
        confidence_margin=confidence_margin,
    )


def _ingest_once(
    fact_input: FactInput,
    *,
    unit_of_work_factory: FactUnitOfWorkFactory,
    clock: Clock,
    strategy: ConflictStrategy | None,
    confidence_margin: float,
) -> FactOutcome:
    with unit_of_work_factory() as uow:
        facts = uow.repositories.facts
        detection = detect(facts, fact_input, confidence_margin=confidence_margin)
        decision = decide(detection, fact_input, strategy=strategy)
        outcome = apply_decision(facts, decision, detection, fact_input, now=clock())
        if outcome.wrote:
            uow.commit()
    _log_outcome(fact_input, outcome)
    return outcome


def apply_decision(
    facts: FactRepository,
    decision: Decision,
    detection: Detection,
    fact_input: FactInput,
    *,
    now: datetime,
) -> FactOutcome:
    """Perform the writes a decision calls for, inside the caller's unit of work."""

    classification = detection.classification
    existing = detection.existing

    if decision.action is ApplyAction.INSERT:
        fact = facts.insert(fact_input, recorded_at=now)
        return FactOutcome(
            classification=classification,
            resolution=FactResolution.NEW,
            fact_id=fact.id,
        )

    existing = _require_existing(existing, decision)

    if decision.action is ApplyAction.IGNORE:
        return FactOutcome(
            classification=classification,
            resolution=FactResolution.DUPLICATE_IGNORED,
            fact_id=existing.id,
        )

    conflict = (
        build_conflict_record(existing, fact_input)
        if classification is Classification.CONFLICT
        else None
    )

    if decision.action is ApplyAction.SUPERSEDE:
        fact = _supersede(facts, existing, fact_input, now=now)
        return FactOutcome(
            classification=classification,
            resolution=FactResolution.SUPERSEDED_PREVIOUS,
            fact_id=fact.id,
            superseded_fact_id=existing.id,
            conflict=conflict,
        )

    if decision.action is ApplyAction.MERGE:
        merged_input = replace(
            fact_input,
            value=merged_value(existing, fact_input),
            source_type=MERGED_SOURCE_TYPE,
            source_id=None,
            source_url=None,
            confidence=1.0,
            valid_from=None,
        )
        fact = _supersede(facts, existing, merged_input, now=now)
        return FactOutcome(
            classification=classification,
            resolution=FactResolution.MERGED,
            fact_id=fact.id,
            superseded_fact_id=existing.id,
            conflict=conflict,
        )

    if decision.action is ApplyAction.KEEP_EXISTING:
        return FactOutcome(
            classification=classification,
            resolution=FactResolution.KEPT_EXISTING,
            fact_id=existing.id,
            conflict=conflict,
        )

    reason = (
        ConflictReason.USER_CONFIRM_REQUIRED
        if decision.strategy is not None
        else ConflictReason.DIFFERENT_SOURCE
    )
    return FactOutcome(
        classification=classification,
        conflict=build_conflict_record(existing, fact_input, reason=reason),
        requires_manual_review=True,
    )


def _supersede(
    facts: FactRepository,
    existing: Fact,
    fact_input: FactInput,
    *,
    now: datetime,
) -> Fact:
    # Retire before inserting: the store allows only one current fact per slot.
    retired_at = _retirement_time(existing, fact_input, now=now)
    replacement_id = new_id()
    facts.retire(existing.id, retired_at=retired_at, replaced_by_id=replacement_id)
    return facts.insert(fact_input, recorded_at=now, fact_id=replacement_id)


def _retirement_time(existing: Fact, fact_input: FactInput, *, now: datetime) -> datetime:
    """End of ``existing``'s validity: ``now``, or earlier when the replacement is backdated.

    A replacement may not start before the fact it supersedes, so validity windows
    within a slot never overlap.
    """

    valid_from = fact_input.valid_from
    if valid_from is None:
        return now
    if valid_from < existing.valid_from:
        raise FactValidationError(
            f"valid_from {valid_from.isoformat()} predates the current fact "
            f"(valid from {existing.valid_from.isoformat()})"
        )
    return min(valid_from, now)


def _require_existing(existing: Fact | None, decision: Decision) -> Fact:
    if existing is None:
        raise ValueError(f"Decision {decision.action} requires a current fact")
    return existing


def _log_outcome(fact_input: FactInput, outcome: FactOutcome) -> None:
    if outcome.requires_manual_review:
        log.warning(
            "Conflict on %s/%s/%s requires manual review: %s",
            fact_input.subject,
            fact_input.fact_type,
            fact_input.key,
            outcome.conflict.message if outcome.conflict else "",
        )
        return
    log.info(
        "Fact %s/%s/%s from %s: %s (fact_id=%s)",
        fact_input.subject,
        fact_input.fact_type,
        fact_input.key,
        fact_input.source_type,
        outcome.resolution,
        outcome.fact_id,
    )
