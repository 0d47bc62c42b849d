"""
Integration tests for the HTTP API.
"""
import pytest
from fastapi.testclient import TestClient

from listings_service.application.sessions import SessionRegistry
from listings_service.config import settings
from listings_service.dependencies import get_session_registry
from listings_service.main import app

from conftest import FakeBatchFetcher, make_listings


@pytest.fixture
def api_fetcher():
    return FakeBatchFetcher(make_listings(500))


@pytest.fixture
def client(api_fetcher):
    registry = SessionRegistry(api_fetcher, ttl_seconds=0, max_sessions=10)
    app.dependency_overrides[get_session_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def open_session(client, page_size=20):
    response = client.post("/api/v1/sessions", json={"page_size": page_size})
    assert response.status_code == 201
    return response.json()["session_id"]


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_new_session_starts_idle(client):
    response = client.post("/api/v1/sessions", json={"page_size": 20})

    assert response.status_code == 201
    data = response.json()
    assert data["state"] == "idle"
    assert data["records"] == []
    assert data["page"] == 1
    assert data["page_size"] == 20
    assert data["query"] is None
    assert not data["has_next"]


def test_session_without_body_uses_default_page_size(client):
    response = client.post("/api/v1/sessions")

    assert response.status_code == 201
    assert response.json()["page_size"] == settings.DEFAULT_PAGE_SIZE


def test_page_size_is_bounded(client):
    response = client.post("/api/v1/sessions", json={"page_size": 0})
    assert response.status_code == 422


def test_search_and_paginate(client, api_fetcher):
    session_id = open_session(client)

    response = client.post(
        f"/api/v1/sessions/{session_id}/search",
        json={"query": "3BHK", "property_type": "Apartment"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "ready"
    assert [r["id"] for r in data["records"]] == [f"listing-{i}" for i in range(20)]
    assert data["query"] == {"text": "3BHK", "structured_filters": {"property_type": "Apartment"}}
    assert data["total_pages"] == 25
    assert data["has_next"]

    data = client.post(f"/api/v1/sessions/{session_id}/next").json()
    assert data["page"] == 2
    assert data["start_index"] == 20
    assert data["has_previous"]

    data = client.post(f"/api/v1/sessions/{session_id}/pages/5").json()
    assert data["page"] == 5
    assert data["records"][0]["id"] == "listing-80"

    data = client.post(f"/api/v1/sessions/{session_id}/previous").json()
    assert data["page"] == 4

    data = client.get(f"/api/v1/sessions/{session_id}").json()
    assert data["page"] == 4
    assert api_fetcher.offsets == [0]


def test_invalid_page_number(client):
    session_id = open_session(client)

    response = client.post(f"/api/v1/sessions/{session_id}/pages/0")

    assert response.status_code == 422


def test_filters_narrow_results(client, api_fetcher):
    session_id = open_session(client)
    client.post(f"/api/v1/sessions/{session_id}/search", json={"query": "flat"})
    client.post(f"/api/v1/sessions/{session_id}/pages/3")

    response = client.patch(
        f"/api/v1/sessions/{session_id}/filters",
        json={"location": "whitefield", "bedroom_count": "2"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["page"] == 1
    assert data["has_active_filters"]
    assert data["filters"]["location"] == "whitefield"
    assert all(r["location"] == "Whitefield" and r["bedroom_count"] == 2 for r in data["records"])
    assert api_fetcher.offsets == [0]

    data = client.delete(f"/api/v1/sessions/{session_id}/filters").json()
    assert not data["has_active_filters"]
    assert data["filtered_count"] == 500


def test_invalid_bedroom_filter(client):
    session_id = open_session(client)

    response = client.patch(
        f"/api/v1/sessions/{session_id}/filters",
        json={"bedroom_count": "three"},
    )

    assert response.status_code == 422


def test_failed_search_can_be_retried(client, api_fetcher):
    session_id = open_session(client)
    api_fetcher.fail(0)

    data = client.post(f"/api/v1/sessions/{session_id}/search", json={"query": "flat"}).json()
    assert data["state"] == "error"
    assert data["can_retry"]
    assert data["error"]

    data = client.post(f"/api/v1/sessions/{session_id}/retry").json()
    assert data["state"] == "ready"
    assert data["error"] is None
    assert len(data["records"]) == 20


def test_empty_results(client, api_fetcher):
    api_fetcher.by_query["nothing"] = []
    session_id = open_session(client)

    data = client.post(f"/api/v1/sessions/{session_id}/search", json={"query": "nothing"}).json()

    assert data["state"] == "ready"
    assert data["is_empty"]
    assert not data["has_next"]


def test_refresh_and_reset(client, api_fetcher):
    session_id = open_session(client)
    client.post(f"/api/v1/sessions/{session_id}/search", json={"query": "flat"})

    data = client.post(f"/api/v1/sessions/{session_id}/refresh").json()
    assert data["state"] == "ready"
    assert api_fetcher.offsets == [0, 0]

    data = client.post(f"/api/v1/sessions/{session_id}/reset").json()
    assert data["state"] == "idle"
    assert data["query"] is None


def test_sessions_are_isolated(client):
    first = open_session(client)
    second = open_session(client)

    client.post(f"/api/v1/sessions/{first}/search", json={"query": "flat"})

    assert client.get(f"/api/v1/sessions/{first}").json()["state"] == "ready"
    assert client.get(f"/api/v1/sessions/{second}").json()["state"] == "idle"


def test_close_session(client):
    session_id = open_session(client)

    response = client.delete(f"/api/v1/sessions/{session_id}")
    assert response.status_code == 200

    assert client.get(f"/api/v1/sessions/{session_id}").status_code == 404
    assert client.delete(f"/api/v1/sessions/{session_id}").status_code == 404


def test_unknown_session(client):
    response = client.post("/api/v1/sessions/missing/search", json={"query": "flat"})

    assert response.status_code == 404
