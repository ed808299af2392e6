"""Generative fallback — illustrative options when a live provider cannot answer.

Two tiers: the LLM client is asked for a JSON array first; if it is not
configured, fails, or returns fewer than MIN_OPTIONS usable items, a
deterministic generator seeded from the request produces the set instead.
The second tier cannot fail.
"""

import hashlib
import json
import logging
import math
import random
import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import BaseModel

from tripscout.data.operators import (
    AIRLINES,
    BUS_OPERATORS,
    BUS_TYPES,
    HOTEL_AREAS,
    HOTEL_BRANDS,
    TRAINS,
)
from tripscout.schemas.options import CanonicalOption, Category, SourceTag
from tripscout.schemas.providers import (
    GeneratedBus,
    GeneratedFlight,
    GeneratedHotel,
    GeneratedTrain,
    parse_records,
)
from tripscout.services.llm_client import LLMClient
from tripscout.services.normalizer import display_time, format_minutes, resolve_duration

logger = logging.getLogger(__name__)

MIN_OPTIONS = 5
MAX_OPTIONS = 8

DEFAULT_HOTEL_BUDGET = (1500.0, 15000.0)

# Departures are generated on the quarter hour between these bounds (minutes after midnight)
FIRST_DEPARTURE = 6 * 60
LAST_DEPARTURE = 21 * 60 + 45

_FENCE = re.compile(r"```(?:json)?")
_ARRAY = re.compile(r"\[.*\]", re.DOTALL)

SYSTEM_PROMPT = (
    "You are a travel data generator for Indian routes. "
    "Always return a valid JSON array only, no additional text or explanations."
)


@dataclass(frozen=True)
class FallbackRequest:
    """Resolved search parameters handed to the fallback."""
    category: Category
    origin_label: str
    destination_label: str = ""
    origin_code: str | None = None
    destination_code: str | None = None
    travel_date: date | None = None
    travelers: int = 1
    checkout: date | None = None
    budget_min: float | None = None
    budget_max: float | None = None
    currency: str = "INR"

    @property
    def origin(self) -> str:
        return self.origin_code or self.origin_label

    @property
    def destination(self) -> str:
        return self.destination_code or self.destination_label

    @property
    def nights(self) -> int:
        if self.travel_date and self.checkout:
            return max(1, (self.checkout - self.travel_date).days)
        return 1

    def budget_range(self) -> tuple[float, float]:
        low = self.budget_min if self.budget_min is not None else DEFAULT_HOTEL_BUDGET[0]
        if self.budget_max is not None:
            high = self.budget_max
        else:
            high = max(DEFAULT_HOTEL_BUDGET[1], low * 2)
        return low, max(low, high)

    def seed(self) -> int:
        """Stable seed so the same request always generates the same set."""
        parts = [
            self.category.value,
            self.origin.lower(),
            self.destination.lower(),
            self.travel_date.isoformat() if self.travel_date else "",
            str(self.travelers),
            self.checkout.isoformat() if self.checkout else "",
            str(self.budget_min),
            str(self.budget_max),
        ]
        digest = hashlib.md5("|".join(parts).encode()).hexdigest()
        return int(digest[:8], 16)


def extract_json_array(text: str) -> list:
    """Pull the first JSON array out of a model reply, tolerating code fences.

    Raises ValueError when no array can be parsed.
    """
    cleaned = _FENCE.sub("", text or "").strip()
    match = _ARRAY.search(cleaned)
    if not match:
        raise ValueError("no JSON array in model output")
    data = json.loads(match.group(0))
    if not isinstance(data, list):
        raise ValueError("model output is not a JSON array")
    return data


def _clock(minutes: int) -> str:
    minutes %= 24 * 60
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _time_of_day_factor(departure: int) -> float:
    """0.85 for the first departure of the day rising to 1.35 for the last."""
    span = LAST_DEPARTURE - FIRST_DEPARTURE
    return 0.85 + 0.5 * (departure - FIRST_DEPARTURE) / span


def _nights_text(nights: int) -> str:
    return f"{nights} night{'s' if nights != 1 else ''}"


class GenerativeFallback:
    def __init__(self, llm: LLMClient | None = None):
        self.llm = llm

    async def generate(self, request: FallbackRequest) -> list[CanonicalOption]:
        """Return MIN_OPTIONS..MAX_OPTIONS illustrative options for the request."""
        if self.llm is not None and self.llm.is_configured:
            try:
                options = await self._from_model(request)
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Model fallback failed for {request.category.value}: {e}")
            else:
                if len(options) >= MIN_OPTIONS:
                    logger.info(f"Generated {len(options[:MAX_OPTIONS])} {request.category.value} options via model")
                    return options[:MAX_OPTIONS]
                logger.warning(
                    f"Model fallback returned {len(options)} usable {request.category.value} items, "
                    f"using synthetic generator"
                )

        options = self.synthetic(request)
        logger.info(f"Generated {len(options)} synthetic {request.category.value} options")
        return options

    # --- Tier one: LLM ---

    async def _from_model(self, request: FallbackRequest) -> list[CanonicalOption]:
        reply = await self.llm.complete(SYSTEM_PROMPT, self._prompt(request))
        items = extract_json_array(reply)

        if request.category == Category.FLIGHT:
            return [
                self._model_flight(request, item, raw, i)
                for i, (item, raw) in enumerate(parse_records(items, GeneratedFlight, "model"))
            ]
        if request.category == Category.TRAIN:
            return [
                self._model_train(request, item, raw, i)
                for i, (item, raw) in enumerate(parse_records(items, GeneratedTrain, "model"))
            ]
        if request.category == Category.BUS:
            return [
                self._model_bus(request, item, raw, i)
                for i, (item, raw) in enumerate(parse_records(items, GeneratedBus, "model"))
            ]

        low, high = request.budget_range()
        hotels = [
            (item, raw) for item, raw in parse_records(items, GeneratedHotel, "model")
            if low <= round(item.price_per_night) <= high
        ]
        return [self._model_hotel(request, item, raw, i) for i, (item, raw) in enumerate(hotels)]

    @staticmethod
    def _prompt(request: FallbackRequest) -> str:
        when = request.travel_date.isoformat() if request.travel_date else "any upcoming day"
        route = (
            f"Route: {request.origin_label} ({request.origin}) to "
            f"{request.destination_label} ({request.destination})\nDate: {when}\n"
        )
        if request.category == Category.FLIGHT:
            return (
                f"Generate realistic domestic flight data in India.\n{route}"
                f"Number of travelers: {request.travelers}\n\n"
                f"Generate {MIN_OPTIONS + 1}-{MAX_OPTIONS} flight options using real Indian airlines. "
                "Departure times between 06:00 and 22:00 in HH:MM format, morning flights cheaper.\n"
                'Return ONLY a JSON array of objects with keys "airline", "flightNumber", '
                '"departureTime", "arrivalTime", "duration" ("Xh Ym") and "pricePerPerson" (INR number).'
            )
        if request.category == Category.TRAIN:
            return (
                f"Generate realistic Indian Railways train data.\n{route}\n"
                f"Generate {MIN_OPTIONS + 1}-{MAX_OPTIONS} trains with real train names and 5-digit numbers.\n"
                'Return ONLY a JSON array of objects with keys "name", "number", "departureTime", '
                '"arrivalTime" (HH:MM), "duration" ("Xh Ym") and "price" (INR number).'
            )
        if request.category == Category.BUS:
            return (
                f"Generate realistic intercity bus data in India.\n{route}\n"
                f"Generate {MIN_OPTIONS + 1}-{MAX_OPTIONS} buses from real operators.\n"
                'Return ONLY a JSON array of objects with keys "operator", "busType", "departureTime", '
                '"arrivalTime" (HH:MM), "duration" ("Xh Ym") and "price" (INR number).'
            )
        low, high = request.budget_range()
        return (
            f"Generate realistic hotel data for {request.origin_label}, India.\n"
            f"Check-in: {when}, nights: {request.nights}\n"
            f"Generate {MIN_OPTIONS + 1}-{MAX_OPTIONS} hotels priced between INR {low:.0f} and {high:.0f} per night, "
            "spread across budget, mid-range and luxury.\n"
            'Return ONLY a JSON array of objects with keys "name", "pricePerNight" (INR number), '
            '"rating" (0-10) and "area".'
        )

    @staticmethod
    def _model_flight(request: FallbackRequest, item: GeneratedFlight, raw: Any, index: int) -> CanonicalOption:
        return CanonicalOption(
            id=f"gen-{item.flight_number}-{index + 1}",
            category=Category.FLIGHT,
            provider_label=item.airline,
            schedule_code=item.flight_number,
            departure_time=display_time(item.departure_time),
            arrival_time=display_time(item.arrival_time),
            duration_text=resolve_duration(item.duration, item.departure_time, item.arrival_time),
            price=float(round(item.price_per_person) * max(1, request.travelers)),
            currency=request.currency,
            origin=request.origin,
            destination=request.destination,
            raw=raw,
            source_tag=SourceTag.GENERATED_MODEL,
        )

    @staticmethod
    def _model_train(request: FallbackRequest, item: GeneratedTrain, raw: Any, index: int) -> CanonicalOption:
        return CanonicalOption(
            id=f"gen-{item.number}-{index + 1}",
            category=Category.TRAIN,
            provider_label=item.name,
            schedule_code=item.number,
            departure_time=display_time(item.departure_time),
            arrival_time=display_time(item.arrival_time),
            duration_text=resolve_duration(item.duration, item.departure_time, item.arrival_time),
            price=float(round(item.price)),
            currency=request.currency,
            origin=request.origin_label,
            destination=request.destination_label,
            raw=raw,
            source_tag=SourceTag.GENERATED_MODEL,
        )

    @staticmethod
    def _model_bus(request: FallbackRequest, item: GeneratedBus, raw: Any, index: int) -> CanonicalOption:
        return CanonicalOption(
            id=f"gen-bus-{index + 1}",
            category=Category.BUS,
            provider_label=item.operator,
            schedule_code=item.bus_type,
            departure_time=display_time(item.departure_time),
            arrival_time=display_time(item.arrival_time),
            duration_text=resolve_duration(item.duration, item.departure_time, item.arrival_time),
            price=float(round(item.price)),
            currency=request.currency,
            origin=request.origin_label,
            destination=request.destination_label,
            raw=raw,
            source_tag=SourceTag.GENERATED_MODEL,
        )

    @staticmethod
    def _model_hotel(request: FallbackRequest, item: GeneratedHotel, raw: Any, index: int) -> CanonicalOption:
        location = f"{item.area}, {request.origin_label}" if item.area else request.origin_label
        return CanonicalOption(
            id=f"gen-hotel-{index + 1}",
            category=Category.HOTEL,
            provider_label=item.name,
            departure_time=request.travel_date.isoformat() if request.travel_date else "",
            arrival_time=request.checkout.isoformat() if request.checkout else "",
            duration_text=_nights_text(request.nights),
            price=float(round(item.price_per_night)),
            currency=request.currency,
            origin=request.origin_label,
            destination=request.origin_label,
            rating=item.rating,
            location=location,
            raw=raw,
            source_tag=SourceTag.GENERATED_MODEL,
        )

    # --- Tier two: deterministic synthetic generator ---

    def synthetic(self, request: FallbackRequest) -> list[CanonicalOption]:
        rng = random.Random(request.seed())
        count = rng.randint(MIN_OPTIONS, MAX_OPTIONS)
        if request.category == Category.HOTEL:
            return self._synthetic_hotels(request, rng, count)

        departures = sorted(
            rng.randint(FIRST_DEPARTURE // 15, LAST_DEPARTURE // 15) * 15 for _ in range(count)
        )
        if request.category == Category.FLIGHT:
            return self._synthetic_flights(request, rng, departures)
        if request.category == Category.TRAIN:
            return self._synthetic_trains(request, rng, departures)
        return self._synthetic_buses(request, rng, departures)

    @staticmethod
    def _synthetic_option(
        request: FallbackRequest,
        index: int,
        label: str,
        code: str,
        departure: int,
        duration: int,
        price: float,
        raw: dict,
    ) -> CanonicalOption:
        return CanonicalOption(
            id=f"gen-{request.category.value}-{index + 1}",
            category=request.category,
            provider_label=label,
            schedule_code=code,
            departure_time=_clock(departure),
            arrival_time=_clock(departure + duration),
            duration_text=format_minutes(duration),
            price=float(max(1, round(price))),
            currency=request.currency,
            origin=request.origin if request.category == Category.FLIGHT else request.origin_label,
            destination=request.destination if request.category == Category.FLIGHT else request.destination_label,
            raw=raw,
            source_tag=SourceTag.GENERATED_SYNTHETIC,
        )

    def _synthetic_flights(self, request, rng, departures) -> list[CanonicalOption]:
        base = rng.randint(3500, 6500)
        duration = rng.randint(14, 36) * 5
        travelers = max(1, request.travelers)
        options = []
        for i, departure in enumerate(departures):
            airline, code = rng.choice(AIRLINES)
            flight_number = f"{code}{rng.randint(100, 9999)}"
            per_person = round(base * _time_of_day_factor(departure))
            options.append(self._synthetic_option(
                request, i, airline, flight_number, departure, duration,
                per_person * travelers,
                {"airline": airline, "flightNumber": flight_number, "pricePerPerson": per_person},
            ))
        return options

    def _synthetic_trains(self, request, rng, departures) -> list[CanonicalOption]:
        base = rng.randint(600, 1800)
        options = []
        for i, departure in enumerate(departures):
            name, prefix = rng.choice(TRAINS)
            number = f"{prefix}{rng.randint(10, 99)}"
            duration = rng.randint(60, 240) * 5
            options.append(self._synthetic_option(
                request, i, name, number, departure, duration,
                base * _time_of_day_factor(departure),
                {"name": name, "number": number},
            ))
        return options

    def _synthetic_buses(self, request, rng, departures) -> list[CanonicalOption]:
        base = rng.randint(500, 1200)
        duration = rng.randint(72, 180) * 5
        options = []
        for i, departure in enumerate(departures):
            operator = rng.choice(BUS_OPERATORS)
            bus_type, multiplier = rng.choice(BUS_TYPES)
            options.append(self._synthetic_option(
                request, i, operator, bus_type, departure, duration,
                base * multiplier * _time_of_day_factor(departure),
                {"operator": operator, "busType": bus_type},
            ))
        return options

    @staticmethod
    def _synthetic_hotels(request: FallbackRequest, rng: random.Random, count: int) -> list[CanonicalOption]:
        """Spread nightly prices evenly across the budget, cheapest brand tiers first."""
        low, high = request.budget_range()
        floor_price, ceil_price = max(1, math.ceil(low)), max(1, math.floor(high))
        brands = sorted(HOTEL_BRANDS, key=lambda b: b[1])
        city = request.origin_label
        options = []
        for i in range(count):
            slot = (i + rng.random()) / count
            price = min(ceil_price, max(floor_price, round(low + (high - low) * slot)))
            brand, tier = brands[min(int(slot * len(brands)), len(brands) - 1)]
            area = rng.choice(HOTEL_AREAS)
            rating = round(min(9.6, 6.0 + tier * 1.3 + rng.uniform(-0.4, 0.4)), 1)
            options.append(CanonicalOption(
                id=f"gen-hotel-{i + 1}",
                category=Category.HOTEL,
                provider_label=f"{brand} {city}",
                departure_time=request.travel_date.isoformat() if request.travel_date else "",
                arrival_time=request.checkout.isoformat() if request.checkout else "",
                duration_text=_nights_text(request.nights),
                price=float(price),
                currency=request.currency,
                origin=city,
                destination=city,
                rating=rating,
                location=f"{area}, {city}",
                raw={"brand": brand, "area": area},
                source_tag=SourceTag.GENERATED_SYNTHETIC,
            ))
        return options
