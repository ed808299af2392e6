import asyncio
import inspect
import json
import os
import sys
import tempfile
from urllib.parse import parse_qs

import httpx
import pytest

# Ensure backend/ is on sys.path so `import tripscout` works in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

os.environ.setdefault("TRIPSCOUT_LOG_DIR", os.path.join(tempfile.gettempdir(), "tripscout-test-logs"))

from tripscout.config import Settings  # noqa: E402
from tripscout.services.search_orchestrator import EngineState, TravelSearchEngine  # noqa: E402


def pytest_pyfunc_call(pyfuncitem):
    """Allow running async tests without pytest-asyncio.

    If the test function is a coroutine, run it in a fresh event loop.
    """
    testfunction = pyfuncitem.obj
    if inspect.iscoroutinefunction(testfunction):
        funcargs = pyfuncitem.funcargs
        sig = inspect.signature(testfunction)
        allowed = {name: funcargs[name] for name in sig.parameters.keys() if name in funcargs}
        asyncio.run(testfunction(**allowed))
        return True
    return None


class FakeClock:
    """Manually advanced clock whose sleep just moves time forward."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class YieldingClock(FakeClock):
    """FakeClock whose sleep also yields, so concurrent callers interleave."""

    async def sleep(self, seconds: float) -> None:
        await super().sleep(seconds)
        await asyncio.sleep(0)


class StubLLM:
    """Stands in for LLMClient: returns a canned reply or raises."""

    is_configured = True

    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, user: str, **kwargs) -> str:
        self.calls.append((system, user))
        if self.error is not None:
            raise self.error
        return self.reply


class ProviderStub:
    """Routes MockTransport requests to per-path handlers and records every call."""

    def __init__(self):
        self.routes: dict[str, object] = {}
        self.requests: list[httpx.Request] = []
        self.times: list[float] = []
        self.clock: FakeClock | None = None

    def on(self, path: str, response):
        """Register a response (status, body) tuple or a callable(request) for a path."""
        self.routes[path] = response
        return self

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.clock is not None:
            self.times.append(self.clock())
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"message": f"no stub for {request.url.path}"})
        if callable(handler):
            result = handler(request)
            if isinstance(result, httpx.Response):
                return result
            status, body = result
        else:
            status, body = handler
        return httpx.Response(status, json=body)


def query_params(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content)


TOKEN_PATH = "/v1/security/oauth2/token"
LOCATIONS_PATH = "/v1/reference-data/locations"
FLIGHT_OFFERS_PATH = "/v2/shopping/flight-offers"
HOTELS_BY_CITY_PATH = "/v1/reference-data/locations/hotels/by-city"

TOKEN_OK = (200, {"access_token": "test-token", "expires_in": 1799})

RESTRICTED = (403, {"errors": [{"code": 38197, "title": "Forbidden", "detail": "function_access_restricted"}]})


def amadeus_location(name: str, code: str, sub_type: str = "AIRPORT", city_code: str | None = None) -> dict:
    return {
        "subType": sub_type,
        "name": name,
        "iataCode": code,
        "address": {"cityCode": city_code or code, "cityName": name},
    }


def locations_by_keyword(table: dict[str, list[dict]]):
    def handler(request: httpx.Request):
        keyword = query_params(request).get("keyword", "")
        return 200, {"data": table.get(keyword, [])}
    return handler


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        amadeus_client_id="client-id",
        amadeus_client_secret="client-secret",
        rapidapi_key="rapid-key",
        openai_api_key="",
        anthropic_api_key="",
        redis_url="",
    )


@pytest.fixture
def stub(clock):
    s = ProviderStub()
    s.clock = clock
    return s


@pytest.fixture
def make_engine(settings, clock, stub):
    def factory(settings_override: Settings | None = None, llm=None, rng=None) -> TravelSearchEngine:
        cfg = settings_override or settings
        state = EngineState.from_settings(cfg, clock=clock, sleep=clock.sleep)
        return TravelSearchEngine(
            cfg,
            state=state,
            llm=llm,
            transport=httpx.MockTransport(stub),
            rng=rng,
        )
    return factory
