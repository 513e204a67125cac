"""Resolution policy for classified facts.

Responsibilities of this stage:
- turn a ``Detection`` into a concrete ``Decision``
- build the conflict record shown to a human when no automatic decision is allowed

Without an explicit strategy only NEW, DUPLICATE and UPDATE are applied
automatically; every CONFLICT goes to manual review. An explicit strategy is how
a reviewer settles a conflict afterwards.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from .contracts import (
    ApplyAction,
    Classification,
    ConflictReason,
    ConflictRecord,
    ConflictStrategy,
    Decision,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from factledger.domain.model import Fact, FactInput

    from .contracts import Detection

CONFLICT_STRATEGIES: Final[Mapping[str, ConflictStrategy]] = {
    # contact info
    "email": ConflictStrategy.USER_CONFIRM,
    "phone": ConflictStrategy.USER_CONFIRM,
    "linkedIn": ConflictStrategy.USER_CONFIRM,
    # metrics change over time
    "MRR": ConflictStrategy.LATEST_WINS,
    "ARR": ConflictStrategy.LATEST_WINS,
    "burn_rate": ConflictStrategy.LATEST_WINS,
    "runway": ConflictStrategy.LATEST_WINS,
    "team_size": ConflictStrategy.LATEST_WINS,
    "valuation": ConflictStrategy.LATEST_WINS,
    # free text
    "notes": ConflictStrategy.MERGE,
    "description": ConflictStrategy.MERGE,
    # deal terms
    "valuation_cap": ConflictStrategy.USER_CONFIRM,
    "ownership": ConflictStrategy.USER_CONFIRM,
    "investment_amount": ConflictStrategy.USER_CONFIRM,
}
DEFAULT_CONFLICT_STRATEGY: Final[ConflictStrategy] = ConflictStrategy.HIGHEST_CONFIDENCE


def suggested_strategy(fact_type: str, key: str) -> ConflictStrategy:
    """Strategy a reviewer would most likely pick for this slot (key first, then type)."""

    return (
        CONFLICT_STRATEGIES.get(key)
        or CONFLICT_STRATEGIES.get(fact_type)
        or DEFAULT_CONFLICT_STRATEGY
    )


def decide(
    detection: Detection,
    incoming: FactInput,
    *,
    strategy: ConflictStrategy | None = None,
) -> Decision:
    classification = detection.classification
    if classification is Classification.NEW:
        return Decision(action=ApplyAction.INSERT, reason=detection.reason)
    if classification is Classification.DUPLICATE:
        return Decision(action=ApplyAction.IGNORE, reason=detection.reason)
    if classification is Classification.UPDATE:
        return Decision(action=ApplyAction.SUPERSEDE, reason=detection.reason)
    return _decide_conflict(detection, incoming, strategy)


def _decide_conflict(
    detection: Detection,
    incoming: FactInput,
    strategy: ConflictStrategy | None,
) -> Decision:
    existing = detection.existing
    if existing is None:
        raise ValueError("Conflict detection must carry the existing fact")

    if strategy is None or strategy is ConflictStrategy.USER_CONFIRM:
        return Decision(
            action=ApplyAction.MANUAL_REVIEW,
            strategy=strategy,
            reason=detection.reason,
        )
    if strategy is ConflictStrategy.LATEST_WINS:
        return Decision(action=ApplyAction.SUPERSEDE, strategy=strategy, reason="latest_wins")
    if strategy is ConflictStrategy.MERGE:
        return Decision(action=ApplyAction.MERGE, strategy=strategy, reason="merge")

    if float(incoming.confidence) > existing.confidence:
        return Decision(
            action=ApplyAction.SUPERSEDE, strategy=strategy, reason="incoming_more_confident"
        )
    return Decision(
        action=ApplyAction.KEEP_EXISTING, strategy=strategy, reason="existing_at_least_as_confident"
    )


def build_conflict_record(
    existing: Fact,
    incoming: FactInput,
    *,
    reason: ConflictReason = ConflictReason.DIFFERENT_SOURCE,
) -> ConflictRecord:
    return ConflictRecord(
        incoming=incoming,
        existing=existing,
        reason=reason,
        message=conflict_message(existing, incoming),
        suggested_strategy=suggested_strategy(incoming.fact_type, incoming.key),
    )


def conflict_message(existing: Fact, incoming: FactInput) -> str:
    subject_label = incoming.subject.subject_type.value.capitalize()
    return (
        f"Conflicting {incoming.key} values for {subject_label}: "
        f'existing = "{existing.value}" (from {existing.source_type}), '
        f'new = "{incoming.value}" (from {incoming.source_type})'
    )


def merged_value(existing: Fact, incoming: FactInput) -> str:
    """Combine two free-text values, keeping source attribution for each."""

    return (
        f"[{existing.source_type}]: {existing.value}"
        f"\n\n[{incoming.source_type}]: {incoming.value}"
    )
