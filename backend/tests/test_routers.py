from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from conftest import FLIGHT_OFFERS_PATH, LOCATIONS_PATH, RESTRICTED, TOKEN_OK, TOKEN_PATH

from tripscout.main import app
from tripscout.services.providers.amadeus_client import FLIGHT_SEARCH_KEY


@pytest.fixture
def api(make_engine):
    @contextmanager
    def open_client(**engine_kwargs):
        app.state.engine = make_engine(**engine_kwargs)
        try:
            with TestClient(app) as client:
                yield client
        finally:
            del app.state.engine
    return open_client


FLIGHT_PARAMS = {"origin": "Mumbai", "destination": "Goa", "departure_date": "2025-03-01", "travelers": 2}


def test_health(api):
    with api() as client:
        response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "tripscout"}


def test_flight_search_reports_generated_results(api, stub):
    stub.on(TOKEN_PATH, TOKEN_OK).on(LOCATIONS_PATH, (200, {"data": []})).on(FLIGHT_OFFERS_PATH, RESTRICTED)

    with api() as client:
        response = client.get("/api/flights/search", params=FLIGHT_PARAMS)

    assert response.status_code == 200
    body = response.json()
    assert body["generated"] is True
    assert body["rate_limited"] is False
    assert body["count"] == len(body["options"])
    cheapest = min(o["price"] for o in body["options"])
    assert body["recommended"]["price"] == cheapest


def test_missing_credentials_is_service_unavailable(api, settings, stub):
    with api(settings_override=settings.model_copy(update={"amadeus_client_id": ""})) as client:
        response = client.get("/api/flights/search", params=FLIGHT_PARAMS)

    assert response.status_code == 503
    assert "AMADEUS_CLIENT_ID" in response.json()["detail"]
    assert stub.requests == []


def test_unusable_city_is_bad_request(api):
    with api() as client:
        response = client.get("/api/flights/search", params={**FLIGHT_PARAMS, "origin": "123 !!!"})
    assert response.status_code == 400


def test_invalid_hotel_ranges_are_rejected(api, stub):
    with api() as client:
        bad_budget = client.get("/api/hotels/search", params={
            "city": "Goa", "checkin": "2025-03-01", "checkout": "2025-03-03",
            "budget_min": 9000, "budget_max": 2000,
        })
        bad_dates = client.get("/api/hotels/search", params={
            "city": "Goa", "checkin": "2025-03-03", "checkout": "2025-03-01",
        })

    assert bad_budget.status_code == 422
    assert bad_dates.status_code == 422
    assert stub.requests == []


def test_rate_limited_search_is_flagged(api, stub):
    stub.on(TOKEN_PATH, TOKEN_OK).on(LOCATIONS_PATH, (200, {"data": []})).on(FLIGHT_OFFERS_PATH, (429, {}))

    with api() as client:
        response = client.get("/api/flights/search", params=FLIGHT_PARAMS)
        status = client.get(f"/api/rate-limits/{FLIGHT_SEARCH_KEY}")

    body = response.json()
    assert body["options"] == [] and body["recommended"] is None
    assert body["rate_limited"] is True
    assert status.json() == {"key": FLIGHT_SEARCH_KEY, "rate_limited": True}


def test_unknown_place_is_not_found(api, stub):
    stub.on(TOKEN_PATH, TOKEN_OK).on(LOCATIONS_PATH, (200, {"data": []}))
    with api() as client:
        response = client.get("/api/places/resolve", params={"q": "Atlantis"})
    assert response.status_code == 404


def test_unknown_place_kind_is_bad_request(api):
    with api() as client:
        response = client.get("/api/places/resolve", params={"q": "Goa", "kind": "harbour"})
    assert response.status_code == 400
