"""Search orchestrator — per-category pipelines with caching, resolution and fallback.

Each public search runs: credential check, keyword normalization, cache
lookup (shared by concurrent identical callers), place resolution (origin
then destination, serialized through the pacing controller), the provider
adapter, and finally either the live results or the generative fallback.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
import redis.asyncio as redis

from tripscout.config import Settings
from tripscout.data.places import CITY_IATA
from tripscout.exceptions import InvalidQueryError
from tripscout.schemas.options import CanonicalOption, Category
from tripscout.schemas.search import (
    BusSearchQuery,
    FlightSearchQuery,
    HotelSearchQuery,
    TrainSearchQuery,
)
from tripscout.services.cache_service import RedisCache, TieredCache, TTLCache
from tripscout.services.fallback import FallbackRequest, GenerativeFallback
from tripscout.services.gateway import ProviderGateway
from tripscout.services.llm_client import LLMClient
from tripscout.services.normalizer import (
    apply_hotel_filters,
    estimate_missing_prices,
    highlight_recommended_option,
)
from tripscout.services.pacing import Clock, PacingController, Sleep
from tripscout.services.place_resolver import (
    PlaceLookup,
    PlaceResolution,
    PlaceResolver,
    normalize_keyword,
)
from tripscout.services.providers.amadeus_client import (
    FLIGHT_SEARCH_KEY,
    HOTEL_LIST_KEY,
    TOKEN_KEY,
    AmadeusClient,
)
from tripscout.services.providers.base import AdapterOutcome, OutcomeStatus, ResolvedRoute
from tripscout.services.providers.booking_client import HOTEL_SEARCH_KEY, BookingClient
from tripscout.services.providers.irctc_client import TRAIN_SEARCH_KEY, IrctcClient
from tripscout.services.providers.redbus_client import BUS_SEARCH_KEY, RedbusClient

logger = logging.getLogger(__name__)

# Operation keys whose cooldown makes a category report "rate limited"
CATEGORY_KEYS = {
    Category.FLIGHT: (FLIGHT_SEARCH_KEY, TOKEN_KEY, "amadeus-location-CITY,AIRPORT"),
    Category.TRAIN: (TRAIN_SEARCH_KEY, "irctc-station"),
    Category.BUS: (BUS_SEARCH_KEY,),
    Category.HOTEL: (HOTEL_LIST_KEY, HOTEL_SEARCH_KEY, TOKEN_KEY, "amadeus-location-CITY"),
}

PLACE_KINDS = ("airport", "city", "station")


def _encode_options(options: list[CanonicalOption]) -> list[dict]:
    return [o.model_dump(mode="json") for o in options]


def _decode_options(raw: list[dict]) -> list[CanonicalOption]:
    return [CanonicalOption.model_validate(item) for item in raw]


@dataclass
class EngineState:
    """Shared mutable state: result caches, place cache and the pacing controller."""
    results: TieredCache[list[CanonicalOption]]
    places: TTLCache[PlaceResolution]
    pacing: PacingController

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        redis_client: redis.Redis | None = None,
    ) -> "EngineState":
        persisted = None
        if settings.redis_url or redis_client is not None:
            persisted = RedisCache(settings.redis_url, client=redis_client)
        return cls(
            results=TieredCache(
                "results",
                TTLCache(settings.cache_ttl_seconds, clock=clock),
                persisted=persisted,
                persisted_ttl=settings.persisted_cache_ttl_seconds,
                encode=_encode_options,
                decode=_decode_options,
            ),
            places=TTLCache(settings.location_cache_ttl_seconds, clock=clock),
            pacing=PacingController(
                min_interval=settings.min_api_interval_seconds,
                cooldown_window=settings.rate_limit_cooldown_seconds,
                clock=clock,
                sleep=sleep,
            ),
        )

    async def close(self):
        if self.results.persisted is not None:
            await self.results.persisted.close()


class TravelSearchEngine:
    """Aggregates flight, rail, bus and lodging providers behind one interface."""

    def __init__(
        self,
        settings: Settings,
        state: EngineState | None = None,
        llm: LLMClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings
        self.state = state or EngineState.from_settings(settings)
        self.gateway = ProviderGateway(
            self.state.pacing,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_rate_limit_retries,
            backoff_base=settings.backoff_base_seconds,
            transport=transport,
        )
        self.resolver = PlaceResolver(
            self.state.places, self.state.pacing, ttl=settings.location_cache_ttl_seconds
        )
        self.amadeus = AmadeusClient(settings, self.gateway)
        self.irctc = IrctcClient(settings, self.gateway)
        self.redbus = RedbusClient(settings, self.gateway)
        self.booking = BookingClient(settings, self.gateway)
        self.fallback = GenerativeFallback(llm if llm is not None else LLMClient(settings))
        self.rng = rng
        self._inflight: dict[str, asyncio.Task] = {}

    # --- Public operations ---

    async def search_flights(self, query: FlightSearchQuery) -> list[CanonicalOption]:
        self.settings.require_for("flight")
        origin, destination = self._route_keywords(query.origin_city, query.destination_city, 3)
        key = f"flight:{origin.lower()}:{destination.lower()}:{query.departure_date}:{query.travelers}"
        return await self._cached(key, lambda: self._flight_pipeline(query, origin, destination))

    async def search_trains(self, query: TrainSearchQuery) -> list[CanonicalOption]:
        self.settings.require_for("train")
        origin, destination = self._route_keywords(query.origin_city, query.destination_city, 2)
        key = f"train:{origin.lower()}:{destination.lower()}:{query.date or 'N/A'}"
        return await self._cached(key, lambda: self._train_pipeline(query, origin, destination))

    async def search_buses(self, query: BusSearchQuery) -> list[CanonicalOption]:
        self.settings.require_for("bus")
        origin, destination = self._route_keywords(query.origin_city, query.destination_city, 3)
        key = f"bus:{origin.lower()}:{destination.lower()}:{query.date}"
        return await self._cached(key, lambda: self._bus_pipeline(query, origin, destination))

    async def search_hotels(self, query: HotelSearchQuery) -> list[CanonicalOption]:
        """Search lodging; cached results are unfiltered, budget and limit apply per call."""
        self.settings.require_for("hotel")
        city = normalize_keyword(query.city_name)
        if not city:
            raise InvalidQueryError(f"Invalid city name for hotel search: {query.city_name!r}")
        key = (
            f"hotel:{city.lower()}:{query.checkin}:{query.checkout}:"
            f"{query.budget_min if query.budget_min is not None else 'all'}:"
            f"{query.budget_max if query.budget_max is not None else 'all'}"
        )
        options = await self._cached(key, lambda: self._hotel_pipeline(query, city))
        return apply_hotel_filters(
            options, query.budget_min, query.budget_max, query.limit, rng=self.rng
        )

    @staticmethod
    def highlight_recommended_option(options: list[CanonicalOption]) -> CanonicalOption | None:
        return highlight_recommended_option(options)

    def check_rate_limit(self, key: str) -> bool:
        return self.state.pacing.check_rate_limit(key)

    def category_rate_limited(self, category: Category) -> bool:
        return any(self.check_rate_limit(k) for k in CATEGORY_KEYS[category])

    async def resolve_place(self, text: str, kind: str = "airport") -> PlaceResolution | None:
        """Resolve free text to an airport, city or station code."""
        kind = kind.lower()
        if kind not in PLACE_KINDS:
            raise InvalidQueryError(f"Unknown place kind {kind!r}, expected one of {', '.join(PLACE_KINDS)}")
        if kind == "station":
            self.settings.require_for("train")
            lookup = self.irctc.station_lookup()
        else:
            self.settings.require_for("flight")
            lookup = self.amadeus.location_lookup("CITY,AIRPORT" if kind == "airport" else "CITY")
        if not normalize_keyword(text, lookup.max_tokens):
            raise InvalidQueryError(f"Cannot resolve place from {text!r}")
        return await self.resolver.resolve(text, lookup)

    async def close(self):
        await self.gateway.close()
        await self.state.close()

    # --- Caching & coalescing ---

    async def _cached(
        self,
        key: str,
        produce: Callable[[], Awaitable[list[CanonicalOption]]],
    ) -> list[CanonicalOption]:
        cached = await self.state.results.get(key)
        if cached is not None:
            return list(cached)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._produce_and_store(key, produce))
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug(f"Joining in-flight search: {key}")
        return list(await asyncio.shield(task))

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _produce_and_store(
        self,
        key: str,
        produce: Callable[[], Awaitable[list[CanonicalOption]]],
    ) -> list[CanonicalOption]:
        options = await produce()
        if options:
            await self.state.results.set(key, options)
        return options

    # --- Pipelines ---

    @staticmethod
    def _route_keywords(origin_text: str, destination_text: str, max_tokens: int) -> tuple[str, str]:
        origin = normalize_keyword(origin_text, max_tokens)
        destination = normalize_keyword(destination_text, max_tokens)
        if not origin or not destination:
            raise InvalidQueryError(
                f"Invalid city names: {origin_text!r} -> {destination_text!r}. "
                "Please provide valid city names."
            )
        return origin, destination

    async def _resolve_code(
        self, text: str, lookup: PlaceLookup, use_city_code: bool = False
    ) -> str | None:
        resolution = await self.resolver.resolve(text, lookup)
        if resolution is not None:
            if use_city_code and resolution.city_code:
                return resolution.city_code
            return resolution.code
        return None

    async def _resolve_iata(self, text: str, keyword: str, lookup: PlaceLookup, use_city_code: bool = False) -> str | None:
        """Live lookup first, then the static city table."""
        code = await self._resolve_code(text, lookup, use_city_code)
        if code is None:
            code = CITY_IATA.get(keyword)
            if code:
                logger.info(f"Using static IATA code {code} for {keyword}")
        return code

    async def _flight_pipeline(
        self, query: FlightSearchQuery, origin: str, destination: str
    ) -> list[CanonicalOption]:
        lookup = self.amadeus.location_lookup("CITY,AIRPORT")
        route = ResolvedRoute(
            origin_label=origin,
            destination_label=destination,
            origin_code=await self._resolve_iata(query.origin_city, origin, lookup),
            destination_code=await self._resolve_iata(query.destination_city, destination, lookup),
            travel_date=query.departure_date,
            travelers=query.travelers,
        )
        if not route.fully_resolved:
            logger.warning(f"Could not resolve airports for {origin} -> {destination}, using fallback")
            return await self._generate(Category.FLIGHT, route)
        outcome = await self.amadeus.search_flights(route)
        return await self._settle(Category.FLIGHT, route, outcome)

    async def _train_pipeline(
        self, query: TrainSearchQuery, origin: str, destination: str
    ) -> list[CanonicalOption]:
        lookup = self.irctc.station_lookup()
        route = ResolvedRoute(
            origin_label=origin,
            destination_label=destination,
            origin_code=await self._resolve_code(query.origin_city, lookup),
            destination_code=await self._resolve_code(query.destination_city, lookup),
            travel_date=query.date,
        )
        if not route.fully_resolved:
            logger.warning(f"Unable to find train stations for {origin} -> {destination}, using fallback")
            return await self._generate(Category.TRAIN, route)
        outcome = await self.irctc.search_trains(route)
        return await self._settle(Category.TRAIN, route, outcome)

    async def _bus_pipeline(
        self, query: BusSearchQuery, origin: str, destination: str
    ) -> list[CanonicalOption]:
        route = ResolvedRoute(origin_label=origin, destination_label=destination, travel_date=query.date)
        outcome = await self.redbus.search_buses(route)
        return await self._settle(Category.BUS, route, outcome)

    async def _hotel_pipeline(self, query: HotelSearchQuery, city: str) -> list[CanonicalOption]:
        amadeus_outcome, booking_outcome = await asyncio.gather(
            self._amadeus_hotels(query, city),
            self.booking.search_hotels(city, query.checkin, query.checkout),
        )
        outcomes = (amadeus_outcome, booking_outcome)
        merged = [o for outcome in outcomes for o in outcome.options]
        if merged:
            logger.info(f"Hotels for {city}: {len(amadeus_outcome.options)} Amadeus, {len(booking_outcome.options)} Booking.com")
            return merged
        if not any(outcome.needs_fallback for outcome in outcomes):
            logger.warning(f"Hotel search for {city} rate-limited on every provider")
            return []
        return await self.fallback.generate(FallbackRequest(
            category=Category.HOTEL,
            origin_label=city,
            destination_label=city,
            travel_date=query.checkin,
            checkout=query.checkout,
            budget_min=query.budget_min,
            budget_max=query.budget_max,
            currency=self.settings.currency,
        ))

    async def _amadeus_hotels(self, query: HotelSearchQuery, city: str) -> AdapterOutcome:
        lookup = self.amadeus.location_lookup("CITY")
        city_code = await self._resolve_iata(query.city_name, city, lookup, use_city_code=True)
        if city_code is None:
            return AdapterOutcome(OutcomeStatus.NO_MATCH, detail=f"no city code for {city}")
        return await self.amadeus.list_hotels(city_code, city, query.checkin, query.checkout)

    # --- Outcome handling ---

    async def _settle(
        self, category: Category, route: ResolvedRoute, outcome: AdapterOutcome
    ) -> list[CanonicalOption]:
        if outcome.status == OutcomeStatus.SUCCESS:
            return estimate_missing_prices(outcome.options)
        if outcome.needs_fallback:
            logger.warning(f"{category.value} search {outcome.status.value}, using fallback: {outcome.detail}")
            return await self._generate(category, route)
        logger.warning(f"{category.value} search rate-limited: {outcome.detail}")
        return []

    async def _generate(self, category: Category, route: ResolvedRoute) -> list[CanonicalOption]:
        return await self.fallback.generate(FallbackRequest(
            category=category,
            origin_label=route.origin_label,
            destination_label=route.destination_label,
            origin_code=route.origin_code,
            destination_code=route.destination_code,
            travel_date=route.travel_date,
            travelers=route.travelers,
            currency=self.settings.currency,
        ))
