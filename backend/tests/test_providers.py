from datetime import date

import httpx

from conftest import FakeClock, ProviderStub, query_params

from tripscout.schemas.options import TIME_PLACEHOLDER, CanonicalOption, Category, SourceTag
from tripscout.services.gateway import ProviderGateway
from tripscout.services.pacing import PacingController
from tripscout.services.providers.base import (
    AdapterOutcome,
    OutcomeStatus,
    ResolvedRoute,
    ensure_unique_ids,
)
from tripscout.services.providers.booking_client import BookingClient
from tripscout.services.providers.irctc_client import IrctcClient
from tripscout.services.providers.redbus_client import RedbusClient


def _gateway(stub) -> ProviderGateway:
    clock = FakeClock()
    pacing = PacingController(min_interval=0, clock=clock, sleep=clock.sleep)
    return ProviderGateway(pacing, transport=httpx.MockTransport(stub))


TRAIN = {
    "trainNumber": "12051",
    "trainName": "MAO JANSHATABDI",
    "from": {"departureTime": "05:25"},
    "to": {"arrivalTime": "14:00"},
    "duration": "08:35",
    "classes": [{"classCode": "CC"}, {"classCode": "2S"}],
}


async def test_irctc_station_lookup(settings):
    stub = ProviderStub().on(
        "/api/v1/searchStation",
        (200, {"status": True, "data": [{"stationCode": "CSMT", "stationName": "Mumbai CST"}]}),
    )
    client = IrctcClient(settings, _gateway(stub))

    [candidate] = await client.station_lookup().lookup("Mumbai")

    request = stub.requests[0]
    assert request.url.host == "irctc1.p.rapidapi.com"
    assert request.headers["X-RapidAPI-Key"] == "rapid-key"
    assert request.headers["X-RapidAPI-Host"] == "irctc1.p.rapidapi.com"
    assert query_params(request) == {"search": "Mumbai"}
    assert candidate.code == "CSMT" and candidate.kind == "station"


async def test_irctc_trains_parsed_without_fare(settings):
    stub = ProviderStub().on("/api/v1/searchTrain", (200, {"data": [TRAIN, {"trainNumber": "1"}]}))
    client = IrctcClient(settings, _gateway(stub))
    route = ResolvedRoute("Mumbai", "Goa", "CSMT", "MAO", date(2025, 3, 1))

    outcome = await client.search_trains(route)

    assert query_params(stub.requests[0]) == {
        "fromStationCode": "CSMT", "toStationCode": "MAO", "date": "2025-03-01",
    }
    [train] = outcome.options
    assert train.category == Category.TRAIN
    assert train.provider_label == "MAO JANSHATABDI"
    assert train.schedule_code == "12051"
    assert train.departure_time == "05:25"
    assert train.duration_text == "8h 35m"
    assert train.price is None
    assert train.source_tag == SourceTag.IRCTC


async def test_irctc_date_is_optional(settings):
    stub = ProviderStub().on("/api/v1/searchTrain", (200, {"data": [TRAIN]}))
    client = IrctcClient(settings, _gateway(stub))

    await client.search_trains(ResolvedRoute("Mumbai", "Goa", "CSMT", "MAO"))
    assert "date" not in query_params(stub.requests[0])


async def test_redbus_search_by_city_names(settings):
    trips = [
        {"id": 981, "travels": "Paulo Travels", "busType": "AC Sleeper (2+1)",
         "departureTime": "21:30", "arrivalTime": "09:15", "fare": 1450},
        {"id": 982, "travels": "Neeta Travels", "busType": "Non-AC Seater",
         "departureTime": "", "arrivalTime": "", "duration": "11h 40m"},
        {"travels": "no id"},
    ]
    stub = ProviderStub().on("/search", (200, {"data": trips}))
    client = RedbusClient(settings, _gateway(stub))

    outcome = await client.search_buses(ResolvedRoute("Mumbai", "Goa", travel_date=date(2025, 3, 1)))

    assert query_params(stub.requests[0]) == {"from": "Mumbai", "to": "Goa", "date": "2025-03-01"}
    first, second = outcome.options
    assert first.id == "981"
    assert first.price == 1450
    assert first.duration_text == "11h 45m"
    assert second.departure_time == TIME_PLACEHOLDER
    assert second.duration_text == "11h 40m"
    assert second.price is None


async def test_redbus_bad_request_is_unavailable(settings):
    stub = ProviderStub().on("/search", (400, {"message": "Invalid city"}))
    client = RedbusClient(settings, _gateway(stub))

    outcome = await client.search_buses(ResolvedRoute("Xx", "Yy", travel_date=date(2025, 3, 1)))
    assert outcome.status == OutcomeStatus.UNAVAILABLE


async def test_booking_hotels_parsed(settings):
    result = [
        {"hotel_id": 10101, "name": "Taj Fort Aguada", "review_score": 8.9,
         "price_breakdown": {"currency": "INR", "gross_price": 14250.0},
         "photo1": "https://img.example/1.jpg", "address": "Sinquerim, Candolim"},
        {"hotel_id": 10102, "name": "Budget Inn"},
    ]
    stub = ProviderStub().on("/v1/hotels/search", (200, {"result": result}))
    client = BookingClient(settings, _gateway(stub))

    outcome = await client.search_hotels("Goa", date(2025, 3, 1), date(2025, 3, 4))

    params = query_params(stub.requests[0])
    assert params["city_name"] == "Goa"
    assert params["order_by"] == "price"
    assert params["adults_number"] == "2"
    taj, inn = outcome.options
    assert taj.id == "booking-10101"
    assert taj.price == 14250.0
    assert taj.rating == 8.9
    assert taj.image_url == "https://img.example/1.jpg"
    assert taj.location == "Sinquerim, Candolim"
    assert taj.duration_text == "3 nights"
    assert inn.price is None
    assert inn.location == "Goa"


async def test_rate_limited_outcome_does_not_need_fallback(settings):
    stub = ProviderStub().on("/v1/hotels/search", (429, {}))
    client = BookingClient(settings, _gateway(stub))

    outcome = await client.search_hotels("Goa", date(2025, 3, 1), date(2025, 3, 2))
    assert outcome.status == OutcomeStatus.RATE_LIMITED
    assert not outcome.needs_fallback


def test_duplicate_ids_are_suffixed():
    outcome = AdapterOutcome.from_options([])
    assert outcome.status == OutcomeStatus.NO_MATCH

    options = [
        CanonicalOption(id="12051", category=Category.TRAIN, provider_label="A", source_tag=SourceTag.IRCTC),
        CanonicalOption(id="12051", category=Category.TRAIN, provider_label="B", source_tag=SourceTag.IRCTC),
        CanonicalOption(id="12052", category=Category.TRAIN, provider_label="C", source_tag=SourceTag.IRCTC),
    ]
    assert [o.id for o in ensure_unique_ids(options)] == ["12051", "12051-2", "12052"]
