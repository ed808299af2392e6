import asyncio

import httpx
import pytest

from conftest import FakeClock, ProviderStub, YieldingClock

from tripscout.exceptions import (
    PlanRestrictedError,
    ProviderAuthError,
    ProviderUnavailableError,
    RateLimitedError,
)
from tripscout.services.gateway import ProviderGateway, classify_response, is_plan_restricted
from tripscout.services.pacing import PacingController

URL = "https://provider.test/search"


def _gateway(clock: FakeClock, stub, min_interval=3.0, cooldown=120.0) -> ProviderGateway:
    pacing = PacingController(min_interval=min_interval, cooldown_window=cooldown, clock=clock, sleep=clock.sleep)
    return ProviderGateway(pacing, transport=httpx.MockTransport(stub))


async def test_consecutive_calls_respect_min_interval():
    clock = FakeClock()
    stub = ProviderStub().on("/search", (200, {"data": []}))
    stub.clock = clock
    gateway = _gateway(clock, stub)

    for _ in range(3):
        await gateway.send("op", "GET", URL)
        clock.advance(0.5)

    gaps = [b - a for a, b in zip(stub.times, stub.times[1:])]
    assert len(gaps) == 2
    assert all(gap >= 3.0 for gap in gaps)
    await gateway.close()


async def test_no_wait_when_interval_already_elapsed():
    clock = FakeClock()
    stub = ProviderStub().on("/search", (200, {"data": []}))
    gateway = _gateway(clock, stub)

    await gateway.send("op", "GET", URL)
    clock.advance(10)
    await gateway.send("op", "GET", URL)

    assert clock.sleeps == []
    await gateway.close()


async def test_429_retries_with_doubling_backoff_then_cools_down():
    clock = FakeClock()
    stub = ProviderStub().on("/search", (429, {"message": "Too many requests"}))
    gateway = _gateway(clock, stub, min_interval=0)

    with pytest.raises(RateLimitedError) as exc_info:
        await gateway.send("redbus", "GET", URL)

    assert exc_info.value.cooling_down is False
    assert len(stub.requests) == 3
    assert clock.sleeps == [2.0, 4.0]
    assert gateway.pacing.is_rate_limited("redbus")
    await gateway.close()


async def test_cooling_down_key_is_skipped_without_network_call():
    clock = FakeClock()
    stub = ProviderStub().on("/search", (429, {}))
    gateway = _gateway(clock, stub, min_interval=0)

    with pytest.raises(RateLimitedError):
        await gateway.send("irctc-train", "GET", URL)
    calls_after_429 = len(stub.requests)

    clock.advance(119)
    with pytest.raises(RateLimitedError) as exc_info:
        await gateway.send("irctc-train", "GET", URL)
    assert exc_info.value.cooling_down is True
    assert len(stub.requests) == calls_after_429

    # Other keys are unaffected by this cooldown
    stub.on("/search", (200, {"ok": True}))
    resp = await gateway.send("redbus", "GET", URL)
    assert resp.status_code == 200
    await gateway.close()


async def test_retries_after_429_keep_the_min_interval():
    clock = FakeClock()
    stub = ProviderStub().on("/search", (429, {}))
    stub.clock = clock
    gateway = _gateway(clock, stub, min_interval=3.0)

    with pytest.raises(RateLimitedError):
        await gateway.send("redbus", "GET", URL)

    # 2s backoff is topped up to the 3s interval, the 4s backoff already covers it
    assert stub.times == [1000.0, 1003.0, 1007.0]
    await gateway.close()


async def test_queued_callers_skip_once_the_key_cools_down():
    clock = YieldingClock()
    stub = ProviderStub().on("/search", (429, {}))
    stub.clock = clock
    gateway = _gateway(clock, stub, min_interval=3.0)

    results = await asyncio.gather(
        *(gateway.send("booking-hotels", "GET", URL) for _ in range(5)),
        return_exceptions=True,
    )

    assert all(isinstance(r, RateLimitedError) for r in results)
    assert sorted(r.cooling_down for r in results) == [False, True, True, True, True]

    cooldown_start = gateway.pacing.cooldown_until("booking-hotels") - 120.0
    assert all(t <= cooldown_start for t in stub.times)

    gaps = [b - a for a, b in zip(stub.times, stub.times[1:])]
    assert all(gap >= 3.0 for gap in gaps)
    await gateway.close()


async def test_cooldown_expires_after_window():
    clock = FakeClock()
    pacing = PacingController(min_interval=0, cooldown_window=120, clock=clock, sleep=clock.sleep)
    pacing.start_cooldown("amadeus-flight-search")

    assert pacing.check_rate_limit("amadeus-flight-search")
    clock.advance(120.01)
    assert not pacing.check_rate_limit("amadeus-flight-search")
    assert pacing.active_cooldowns() == {}


def test_is_rate_limited_does_not_mutate_state():
    clock = FakeClock()
    pacing = PacingController(clock=clock)
    assert not pacing.is_rate_limited("never-seen")
    assert pacing.active_cooldowns() == {}


async def test_timeout_maps_to_unavailable():
    clock = FakeClock()

    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    gateway = _gateway(clock, ProviderStub().on("/search", handler), min_interval=0)
    with pytest.raises(ProviderUnavailableError) as exc_info:
        await gateway.send("booking-hotels", "GET", URL)
    assert exc_info.value.detail == "timeout"
    await gateway.close()


def _response(status: int, body) -> httpx.Response:
    return httpx.Response(status, json=body, request=httpx.Request("GET", URL))


def test_classify_success_returns_payload():
    assert classify_response("op", "P", _response(200, {"data": [1]})) == {"data": [1]}


def test_classify_401_is_auth_error():
    with pytest.raises(ProviderAuthError):
        classify_response("op", "Amadeus", _response(401, {"errors": [{"code": 38190, "title": "Invalid access token"}]}))


def test_classify_403_is_plan_restricted():
    with pytest.raises(PlanRestrictedError):
        classify_response("op", "Amadeus", _response(403, {"errors": [{"detail": "Forbidden"}]}))


def test_classify_restriction_reported_in_band():
    body = {"success": False, "error": {"code": "function_access_restricted", "info": "Upgrade required"}}
    with pytest.raises(PlanRestrictedError):
        classify_response("op", "P", _response(200, body))


def test_classify_server_error_is_unavailable_with_status():
    with pytest.raises(ProviderUnavailableError) as exc_info:
        classify_response("op", "P", _response(500, {"message": "boom"}))
    assert exc_info.value.status_code == 500


def test_classify_non_json_body_is_unavailable():
    resp = httpx.Response(200, text="<html>gateway</html>", request=httpx.Request("GET", URL))
    with pytest.raises(ProviderUnavailableError):
        classify_response("op", "P", resp)


def test_plan_restriction_phrases():
    assert is_plan_restricted({"message": "You are not subscribed to this API."})
    assert is_plan_restricted({"error": "This endpoint requires a higher subscription plan"})
    assert not is_plan_restricted({"message": "Invalid date"})
