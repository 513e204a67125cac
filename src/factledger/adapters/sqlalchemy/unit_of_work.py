"""Session lifecycle for the fact store.

``startup`` binds the module to one engine (migrating it to head); every
``SqlAlchemyFactUnitOfWork`` then opens a fresh session on that engine. Anything
the driver raises inside a unit of work leaves it as a domain ``StorageError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from factledger.adapters.sqlalchemy.mappings import start_mappers
from factledger.adapters.sqlalchemy.migrations import upgrade_head
from factledger.adapters.sqlalchemy.repositories import (
    SqlAlchemyEntityMergeRepository,
    SqlAlchemyFactRepository,
    SqlAlchemyOrganizationRepository,
    SqlAlchemyPersonRepository,
)
from factledger.config import DatabaseConfig, get_database_config
from factledger.domain.errors import ConcurrencyViolation, StorageError
from factledger.domain.ports.unit_of_work import FactRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the fact store is used before ``startup`` or misconfigured."""


@dataclass(slots=True)
class _StoreBinding:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = field(default=None, repr=False)

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = (
            sessionmaker(bind=engine, expire_on_commit=False) if engine is not None else None
        )

    def require_sessions(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "Fact store not started. Call factledger.adapters.sqlalchemy."
                "unit_of_work.startup() before opening a unit of work."
            )
        return self.sessions


_BINDING = _StoreBinding()


def _engine_for(database: DatabaseConfig) -> Engine:
    return create_engine(database.uri, future=True, echo=database.echo)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the fact store to ``engine`` (or a configured database) and migrate it."""

    if _BINDING.engine is not None and not force:
        raise StartupError("Fact store already started. Pass force=True to rebind it.")

    if engine is None:
        database = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = _engine_for(database)
    start_mappers()
    upgrade_head(engine=engine)
    _BINDING.bind(engine)
    log.info("Fact store ready on %s", engine.url.render_as_string())


def configured_engine() -> Engine | None:
    return _BINDING.engine


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    """Dispose the bound engine; a later ``startup`` may bind a new one."""

    if _BINDING.engine is not None:
        _BINDING.engine.dispose()
        log.debug("Fact store engine disposed")
    _BINDING.bind(None)


def _as_storage_error(exc: SQLAlchemyError) -> StorageError:
    # the only unique constraints guard current-fact slots and canonical keys
    if isinstance(exc, IntegrityError):
        return ConcurrencyViolation(f"Write rejected by a uniqueness constraint: {exc.orig}")
    return StorageError(f"Database operation failed: {exc}")


class SqlAlchemyFactUnitOfWork:
    """One session and one transaction over facts, people, organizations and merges.

    Leaving the block without ``commit`` discards every write.
    """

    def __init__(self) -> None:
        self._sessions = _BINDING.require_sessions()
        self._session: Session | None = None
        self._repositories: FactRepositories | None = None

    def __enter__(self) -> SqlAlchemyFactUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._sessions()
        self._session = session
        self._repositories = FactRepositories(
            facts=SqlAlchemyFactRepository(session),
            people=SqlAlchemyPersonRepository(session),
            organizations=SqlAlchemyOrganizationRepository(session),
            merges=SqlAlchemyEntityMergeRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        if isinstance(exc_value, SQLAlchemyError):
            raise _as_storage_error(exc_value) from exc_value
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            raise _as_storage_error(exc) from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> FactRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session


if TYPE_CHECKING:
    from factledger.domain.ports.unit_of_work import FactUnitOfWork

    _uow_check: FactUnitOfWork = SqlAlchemyFactUnitOfWork()
