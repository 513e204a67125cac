"""FastAPI application exposing fact ingestion and the facts read path."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Annotated

from fastapi import FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from factledger import __version__
from factledger.adapters.sqlalchemy.unit_of_work import is_started, shutdown
from factledger.app import add_fact, default_unit_of_work_factory, list_facts
from factledger.config import (
    ApiConfig,
    ConflictPolicyConfig,
    get_api_config,
    get_conflict_policy_config,
)
from factledger.domain.errors import FactValidationError, StorageError
from factledger.domain.model import Subject
from factledger.domain.ports import FactUnitOfWorkFactory

from .schema import (
    ConflictPayload,
    ErrorResponse,
    FactCreatedResponse,
    FactCreateRequest,
    FactsResponse,
    HealthResponse,
    ManualReviewResponse,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ApiSettings:
    api: ApiConfig = field(default_factory=ApiConfig)
    policy: ConflictPolicyConfig = field(default_factory=ConflictPolicyConfig)

    @classmethod
    def from_env(cls) -> ApiSettings:
        return cls(api=get_api_config(), policy=get_conflict_policy_config())


def _error(status_code: int, message: str, *, missing: list[str] | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, missing=missing or None)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def create_app(
    unit_of_work_factory: FactUnitOfWorkFactory | None = None,
    settings: ApiSettings | None = None,
) -> FastAPI:
    """Application factory.

    Without an explicit ``unit_of_work_factory`` the SQLAlchemy adapter is started
    on application startup against the configured database.
    """

    settings = settings or ApiSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_adapter = app.state.unit_of_work_factory is None
        if owns_adapter:
            log.info("Starting factledger API on the configured database")
            app.state.unit_of_work_factory = default_unit_of_work_factory()
        try:
            yield
        finally:
            if owns_adapter and is_started():
                log.info("Shutting down factledger API")
                shutdown()

    app = FastAPI(title="factledger", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.unit_of_work_factory = unit_of_work_factory

    def _factory() -> FactUnitOfWorkFactory:
        factory: FactUnitOfWorkFactory | None = app.state.unit_of_work_factory
        if factory is None:
            factory = default_unit_of_work_factory()
            app.state.unit_of_work_factory = factory
        return factory

    @app.exception_handler(RequestValidationError)
    async def on_invalid_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
        log.debug("Rejected malformed request: %s", exc.errors())
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(FactValidationError)
    async def on_invalid_fact(_request: Request, exc: FactValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), missing=list(exc.missing))

    @app.post(
        "/facts",
        status_code=status.HTTP_201_CREATED,
        response_model=FactCreatedResponse,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
            status.HTTP_409_CONFLICT: {"model": ManualReviewResponse},
            status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        },
    )
    def create_fact(body: FactCreateRequest) -> FactCreatedResponse | JSONResponse:
        fact_input = body.to_fact_input()
        try:
            outcome = add_fact(
                fact_input,
                strategy=body.strategy,
                unit_of_work_factory=_factory(),
                policy=settings.policy,
            )
        except StorageError:
            log.exception("Failed to add fact for %s", fact_input.subject)
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to add fact")

        if outcome.requires_manual_review and outcome.conflict is not None:
            review = ManualReviewResponse(conflict=ConflictPayload.from_record(outcome.conflict))
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=review.model_dump(mode="json", by_alias=True),
            )
        return FactCreatedResponse.from_outcome(outcome)

    @app.get(
        "/facts",
        response_model=FactsResponse,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
            status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        },
    )
    def read_facts(
        entity_type: Annotated[str | None, Query(alias="entityType")] = None,
        entity_id: Annotated[str | None, Query(alias="entityId")] = None,
        fact_type: Annotated[str | None, Query(alias="factType")] = None,
        key: Annotated[str | None, Query()] = None,
        include_historical: Annotated[bool, Query(alias="includeHistorical")] = False,
    ) -> FactsResponse | JSONResponse:
        subject = Subject.parse(entity_type, entity_id) if entity_type or entity_id else None
        try:
            facts = list_facts(
                subject=subject,
                fact_type=fact_type or None,
                key=key or None,
                include_historical=include_historical,
                limit=settings.api.fact_query_limit,
                unit_of_work_factory=_factory(),
            )
        except StorageError:
            log.exception("Failed to fetch facts")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch facts")
        return FactsResponse.from_facts(facts)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(version=__version__)

    return app
