from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.pool import StaticPool

from factledger.adapters.sqlalchemy import start_mappers
from factledger.adapters.sqlalchemy.migrations import upgrade_head
from factledger.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyFactUnitOfWork,
    shutdown,
    startup,
)

from tests.helpers.facts import FakeUnitOfWorkFactory, SteppingClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    # One shared connection, so the API's worker threads see the same in-memory database.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyFactUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyFactUnitOfWork:
        return SqlAlchemyFactUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def fake_unit_of_work() -> FakeUnitOfWorkFactory:
    return FakeUnitOfWorkFactory()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()
