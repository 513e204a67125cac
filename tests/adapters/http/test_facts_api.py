"""Drive the facts API end to end over an in-memory SQLite store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, Self

import pytest
from fastapi.testclient import TestClient

from factledger import __version__
from factledger.adapters.http import ApiSettings, create_app
from factledger.config import ApiConfig
from factledger.domain.errors import StorageError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from factledger.adapters.sqlalchemy.unit_of_work import SqlAlchemyFactUnitOfWork


def _payload(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "entityType": "organization",
        "entityId": "org123",
        "factType": "metric",
        "key": "MRR",
        "value": "200000",
        "sourceType": "manual",
        "confidence": 1.0,
    }
    body.update(overrides)
    return body


@pytest.fixture
def client(
    sqlite_unit_of_work: Callable[[], SqlAlchemyFactUnitOfWork],
) -> Iterator[TestClient]:
    app = create_app(unit_of_work_factory=sqlite_unit_of_work, settings=ApiSettings())
    with TestClient(app) as test_client:
        yield test_client


def _current_values(client: TestClient) -> list[str]:
    response = client.get("/facts", params={"entityType": "organization", "entityId": "org123"})
    assert response.status_code == 200
    return [fact["value"] for fact in response.json()["facts"]]


def test_first_fact_is_created(client: TestClient) -> None:
    response = client.post("/facts", json=_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["resolution"] == "new"
    assert body["classification"] == "new"
    assert body["factId"]
    assert _current_values(client) == ["200000"]


def test_resubmission_is_ignored(client: TestClient) -> None:
    first = client.post("/facts", json=_payload()).json()

    response = client.post("/facts", json=_payload())

    assert response.status_code == 201
    assert response.json()["resolution"] == "duplicate-ignored"
    assert response.json()["factId"] == first["factId"]
    history = client.get("/facts", params={"includeHistorical": "true"}).json()
    assert history["summary"]["totalFacts"] == 1


def test_same_source_update_supersedes_previous(client: TestClient) -> None:
    first = client.post("/facts", json=_payload()).json()

    response = client.post("/facts", json=_payload(value="225000"))

    assert response.status_code == 201
    body = response.json()
    assert body["resolution"] == "superseded-previous"
    assert body["supersededFactId"] == first["factId"]
    assert _current_values(client) == ["225000"]

    history = client.get("/facts", params={"includeHistorical": "true"}).json()
    versions = history["grouped"]["metric"]["MRR"]
    retired = next(version for version in versions if version["id"] == first["factId"])
    assert retired["validUntil"] is not None
    assert retired["replacedById"] == body["factId"]


def test_less_confident_other_source_needs_manual_review(client: TestClient) -> None:
    client.post("/facts", json=_payload())
    client.post("/facts", json=_payload(value="225000"))

    response = client.post(
        "/facts", json=_payload(value="999999", sourceType="attio", confidence=0.5)
    )

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["requiresManualReview"] is True
    assert body["message"] == "Conflict detected - manual review required"
    conflict = body["conflict"]
    assert conflict["newFact"]["value"] == "999999"
    assert [fact["value"] for fact in conflict["existingFacts"]] == ["225000"]
    assert conflict["suggestedStrategy"] in {"latest_wins", "highest_confidence", "user_confirm"}
    assert _current_values(client) == ["225000"]


def test_more_confident_other_source_supersedes(client: TestClient) -> None:
    client.post("/facts", json=_payload(confidence=0.6))

    response = client.post(
        "/facts", json=_payload(value="210000", sourceType="attio", confidence=0.9)
    )

    assert response.status_code == 201
    assert response.json()["resolution"] == "superseded-previous"
    assert _current_values(client) == ["210000"]


def test_explicit_strategy_resolves_conflict(client: TestClient) -> None:
    client.post("/facts", json=_payload())

    response = client.post(
        "/facts",
        json=_payload(value="999999", sourceType="attio", confidence=0.5, strategy="latest_wins"),
    )

    assert response.status_code == 201
    assert response.json()["resolution"] == "superseded-previous"
    assert _current_values(client) == ["999999"]


def test_non_string_values_are_stored_as_json(client: TestClient) -> None:
    response = client.post(
        "/facts", json=_payload(factType="profile", key="tags", value=["saas", "b2b"])
    )

    assert response.status_code == 201
    facts = client.get("/facts", params={"factType": "profile"}).json()["facts"]
    assert [fact["value"] for fact in facts] == ['["saas", "b2b"]']


def test_missing_fields_are_reported(client: TestClient) -> None:
    body = _payload()
    del body["factType"]
    body["value"] = "   "

    response = client.post("/facts", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields", "missing": ["factType", "value"]}


def test_unknown_entity_type_is_rejected(client: TestClient) -> None:
    response = client.post("/facts", json=_payload(entityType="planet"))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid entityType"


@pytest.mark.parametrize(
    "content",
    ["not json", '{"confidence": 2}', '{"strategy": "coin_flip"}'],
)
def test_malformed_bodies_are_rejected(client: TestClient, content: str) -> None:
    response = client.post(
        "/facts", content=content, headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_facts_are_grouped_and_summarised(client: TestClient) -> None:
    client.post("/facts", json=_payload())
    client.post("/facts", json=_payload(key="ARR", value="2400000"))
    client.post("/facts", json=_payload(factType="profile", key="stage", value="Series A"))
    client.post("/facts", json=_payload(entityId="other", value="5"))

    response = client.get("/facts", params={"entityType": "organization", "entityId": "org123"})

    body = response.json()
    assert body["summary"]["totalFacts"] == 3
    assert sorted(body["summary"]["factTypes"]) == ["metric", "profile"]
    by_type = {entry["type"]: entry for entry in body["summary"]["byType"]}
    assert by_type["metric"] == {"type": "metric", "keyCount": 2, "factCount": 2}
    assert set(body["grouped"]["metric"]) == {"MRR", "ARR"}
    assert {fact["entityId"] for fact in body["facts"]} == {"org123"}


def test_historical_facts_are_opt_in(client: TestClient) -> None:
    client.post("/facts", json=_payload())
    client.post("/facts", json=_payload(value="225000"))

    current = client.get("/facts", params={"key": "MRR"}).json()
    everything = client.get("/facts", params={"key": "MRR", "includeHistorical": "true"}).json()

    assert [fact["value"] for fact in current["facts"]] == ["225000"]
    assert sorted(fact["value"] for fact in everything["facts"]) == ["200000", "225000"]


@pytest.mark.parametrize(
    "params",
    [{"entityType": "organization"}, {"entityType": "planet", "entityId": "x"}],
)
def test_incomplete_subject_filter_is_rejected(
    client: TestClient, params: dict[str, str]
) -> None:
    response = client.get("/facts", params=params)

    assert response.status_code == 400


def test_query_limit_caps_results(
    sqlite_unit_of_work: Callable[[], SqlAlchemyFactUnitOfWork],
) -> None:
    settings = ApiSettings(api=ApiConfig(fact_query_limit=2))
    app = create_app(unit_of_work_factory=sqlite_unit_of_work, settings=settings)
    with TestClient(app) as client:
        for key in ("a", "b", "c"):
            client.post("/facts", json=_payload(key=key))

        body = client.get("/facts").json()

    assert body["summary"]["totalFacts"] == 2


class _BrokenUnitOfWork:
    def __enter__(self) -> Self:
        raise StorageError("database unavailable")

    def __exit__(self, *_: object) -> Literal[False]:
        return False


def test_storage_failures_become_server_errors() -> None:
    app = create_app(
        unit_of_work_factory=_BrokenUnitOfWork,  # pyright: ignore[reportArgumentType]
        settings=ApiSettings(),
    )
    with TestClient(app) as client:
        created = client.post("/facts", json=_payload())
        listed = client.get("/facts")

    assert created.status_code == 500
    assert created.json() == {"error": "Failed to add fact"}
    assert listed.status_code == 500
    assert listed.json() == {"error": "Failed to fetch facts"}


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}
