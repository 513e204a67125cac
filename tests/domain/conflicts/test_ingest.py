from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Never

import pytest

from factledger.domain.conflicts import (
    Classification,
    ConflictReason,
    ConflictStrategy,
    FactResolution,
    add_fact_with_conflict_detection,
)
from factledger.domain.errors import ConcurrencyViolation, FactValidationError
from factledger.domain.model import MERGED_SOURCE_TYPE, FactInput

from tests.helpers.facts import (
    ORG_SUBJECT,
    FakeFactRepositories,
    FakeUnitOfWorkFactory,
    InMemoryFactRepository,
    RacingFactRepository,
    SteppingClock,
    make_fact_input,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from factledger.domain.conflicts import FactOutcome
    from factledger.domain.model import Fact


def _ingest(
    factory: FakeUnitOfWorkFactory,
    fact_input: FactInput,
    clock: SteppingClock,
    *,
    strategy: ConflictStrategy | None = None,
) -> FactOutcome:
    return add_fact_with_conflict_detection(
        fact_input,
        unit_of_work_factory=factory,
        clock=clock,
        strategy=strategy,
    )


def _history(factory: FakeUnitOfWorkFactory, key: str = "MRR") -> Sequence[Fact]:
    return factory.repositories.facts.get_history(ORG_SUBJECT, "metric", key)


def test_first_fact_is_inserted(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    outcome = _ingest(fake_unit_of_work, make_fact_input("200000"), clock)

    current = fake_unit_of_work.repositories.facts.get_current(ORG_SUBJECT, "metric", "MRR")
    assert outcome.classification is Classification.NEW
    assert outcome.resolution is FactResolution.NEW
    assert not outcome.requires_manual_review
    assert current is not None
    assert current.id == outcome.fact_id
    assert fake_unit_of_work.commits == 1


def test_resubmission_is_idempotent(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    first = _ingest(fake_unit_of_work, make_fact_input("200000"), clock)

    second = _ingest(fake_unit_of_work, make_fact_input("200000"), clock)

    assert second.classification is Classification.DUPLICATE
    assert second.resolution is FactResolution.DUPLICATE_IGNORED
    assert second.fact_id == first.fact_id
    assert len(_history(fake_unit_of_work)) == 1
    assert fake_unit_of_work.commits == 1


def test_same_source_update_supersedes(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    first = _ingest(fake_unit_of_work, make_fact_input("200000"), clock)

    second = _ingest(fake_unit_of_work, make_fact_input("225000"), clock)

    history = _history(fake_unit_of_work)
    assert second.resolution is FactResolution.SUPERSEDED_PREVIOUS
    assert second.superseded_fact_id == first.fact_id
    assert second.conflict is None
    assert [fact.value for fact in history] == ["225000", "200000"]
    assert history[1].valid_until == clock.current
    assert history[1].replaced_by_id == second.fact_id


def test_backdated_update_ends_previous_window_at_its_start(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    _ingest(fake_unit_of_work, make_fact_input("200000"), clock)
    backdated = clock.current + timedelta(seconds=30)

    second = _ingest(fake_unit_of_work, make_fact_input("225000", valid_from=backdated), clock)

    current, previous = _history(fake_unit_of_work)
    assert second.resolution is FactResolution.SUPERSEDED_PREVIOUS
    assert current.valid_from == backdated
    assert previous.valid_until == backdated
    assert previous.valid_until < clock.current


def test_update_predating_current_fact_is_rejected(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    first = _ingest(fake_unit_of_work, make_fact_input("200000"), clock)
    too_early = datetime(2024, 12, 31, tzinfo=UTC)

    with pytest.raises(FactValidationError, match="predates the current fact"):
        _ingest(fake_unit_of_work, make_fact_input("225000", valid_from=too_early), clock)

    history = _history(fake_unit_of_work)
    assert [fact.id for fact in history] == [first.fact_id]
    assert history[0].is_current
    assert fake_unit_of_work.issued[-1].rollbacks == 1
    assert fake_unit_of_work.commits == 1


def test_conflict_escalates_without_writing(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    _ingest(fake_unit_of_work, make_fact_input("225000"), clock)

    outcome = _ingest(
        fake_unit_of_work, make_fact_input("999999", source_type="attio", confidence=0.5), clock
    )

    current = fake_unit_of_work.repositories.facts.get_current(ORG_SUBJECT, "metric", "MRR")
    assert outcome.requires_manual_review
    assert outcome.classification is Classification.CONFLICT
    assert outcome.fact_id is None
    assert outcome.conflict is not None
    assert outcome.conflict.existing.value == "225000"
    assert outcome.conflict.incoming.value == "999999"
    assert outcome.conflict.reason is ConflictReason.DIFFERENT_SOURCE
    assert current is not None
    assert current.value == "225000"
    assert len(_history(fake_unit_of_work)) == 1
    assert fake_unit_of_work.commits == 1


def test_user_confirm_strategy_still_escalates(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    _ingest(fake_unit_of_work, make_fact_input("225000"), clock)

    outcome = _ingest(
        fake_unit_of_work,
        make_fact_input("1", source_type="attio"),
        clock,
        strategy=ConflictStrategy.USER_CONFIRM,
    )

    assert outcome.requires_manual_review
    assert outcome.conflict is not None
    assert outcome.conflict.reason is ConflictReason.USER_CONFIRM_REQUIRED


def test_latest_wins_settles_a_conflict(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    first = _ingest(fake_unit_of_work, make_fact_input("225000"), clock)

    outcome = _ingest(
        fake_unit_of_work,
        make_fact_input("999999", source_type="attio", confidence=0.5),
        clock,
        strategy=ConflictStrategy.LATEST_WINS,
    )

    assert outcome.resolution is FactResolution.SUPERSEDED_PREVIOUS
    assert outcome.superseded_fact_id == first.fact_id
    assert outcome.conflict is not None
    assert [fact.value for fact in _history(fake_unit_of_work)] == ["999999", "225000"]


def test_highest_confidence_keeps_existing(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    first = _ingest(fake_unit_of_work, make_fact_input("225000"), clock)

    outcome = _ingest(
        fake_unit_of_work,
        make_fact_input("999999", source_type="attio", confidence=0.5),
        clock,
        strategy=ConflictStrategy.HIGHEST_CONFIDENCE,
    )

    assert outcome.resolution is FactResolution.KEPT_EXISTING
    assert outcome.fact_id == first.fact_id
    assert not outcome.requires_manual_review
    assert len(_history(fake_unit_of_work)) == 1


def test_merge_strategy_combines_text(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    _ingest(fake_unit_of_work, make_fact_input("Met at demo day", key="notes"), clock)

    outcome = _ingest(
        fake_unit_of_work,
        make_fact_input("Intro via Ana", key="notes", source_type="gmail", confidence=0.8),
        clock,
        strategy=ConflictStrategy.MERGE,
    )

    current = fake_unit_of_work.repositories.facts.get_current(ORG_SUBJECT, "metric", "notes")
    assert outcome.resolution is FactResolution.MERGED
    assert current is not None
    assert current.id == outcome.fact_id
    assert current.value == "[manual]: Met at demo day\n\n[gmail]: Intro via Ana"
    assert current.source_type == MERGED_SOURCE_TYPE
    assert current.confidence == 1.0


def test_validation_happens_before_storage(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    with pytest.raises(FactValidationError) as excinfo:
        _ingest(fake_unit_of_work, make_fact_input("   "), clock)

    assert excinfo.value.missing == ("value",)
    assert fake_unit_of_work.issued == []


def test_at_most_one_current_fact_per_slot(
    fake_unit_of_work: FakeUnitOfWorkFactory, clock: SteppingClock
) -> None:
    submissions = [
        ("100", "manual", 1.0),
        ("100", "attio", 0.4),
        ("120", "attio", 0.4),
        ("130", "manual", 0.3),
        ("140", "gmail", 0.9),
        ("140", "gmail", 0.9),
        ("150", "fireflies", 0.95),
    ]
    lengths: list[int] = []
    for value, source_type, confidence in submissions:
        _ingest(
            fake_unit_of_work,
            make_fact_input(value, source_type=source_type, confidence=confidence),
            clock,
        )
        history = _history(fake_unit_of_work)
        lengths.append(len(history))
        assert sum(1 for fact in history if fact.is_current) == 1

    assert lengths == sorted(lengths)


def test_concurrent_writer_triggers_one_retry(clock: SteppingClock) -> None:
    competitor = make_fact_input("200000", source_type="attio")
    facts = RacingFactRepository(competitor)
    factory = FakeUnitOfWorkFactory(FakeFactRepositories(facts=facts))

    outcome = _ingest(factory, make_fact_input("200000"), clock)

    assert facts.raced
    assert outcome.classification is Classification.DUPLICATE
    assert len(factory.issued) == 2
    assert factory.issued[0].rollbacks == 1


class _AlwaysTakenFactRepository(InMemoryFactRepository):
    def insert(self, *_args: object, **_kwargs: object) -> Never:
        raise ConcurrencyViolation("slot already has a current fact")


def test_second_concurrency_violation_propagates(clock: SteppingClock) -> None:
    factory = FakeUnitOfWorkFactory(FakeFactRepositories(facts=_AlwaysTakenFactRepository()))

    with pytest.raises(ConcurrencyViolation):
        _ingest(factory, make_fact_input("200000"), clock)

    assert len(factory.issued) == 2
