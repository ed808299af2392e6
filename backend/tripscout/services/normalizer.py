"""Result normalizer & selector — formatting, recommendation, price estimation, lodging selection."""

import logging
import math
import random
import re
from datetime import datetime

from tripscout.schemas.options import (
    DURATION_PLACEHOLDER,
    TIME_PLACEHOLDER,
    CanonicalOption,
    Category,
)

logger = logging.getLogger(__name__)

_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:\d+S)?)?$")
_HUMAN_DURATION = re.compile(r"^\s*(?:(\d+)\s*h(?:rs?|ours?)?)?\s*(?:(\d+)\s*m(?:in(?:utes?|s)?)?)?\s*$", re.I)
_CLOCK = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

# Fare per minute of travel used when a rail/bus provider exposes no fare
ESTIMATE_RATE_PER_MINUTE = {Category.TRAIN: 2.2, Category.BUS: 2.8}
ESTIMATE_FLOOR = {Category.TRAIN: 250, Category.BUS: 300}
ESTIMATE_DEFAULT = {Category.TRAIN: 850, Category.BUS: 700}


# --- Time & duration formatting ---

def format_minutes(minutes: int) -> str:
    hours, mins = divmod(max(0, int(minutes)), 60)
    if hours and mins:
        return f"{hours}h {mins}m"
    if hours:
        return f"{hours}h"
    return f"{mins}m"


def format_iso_duration(value: str | None) -> str:
    """Format an ISO-8601 duration (PT2H30M) as "2h 30m"; anything else as the placeholder."""
    minutes = _iso_minutes(value)
    if minutes is None or minutes == 0:
        return DURATION_PLACEHOLDER
    return format_minutes(minutes)


def _iso_minutes(value: str | None) -> int | None:
    if not value:
        return None
    m = _ISO_DURATION.match(value.strip())
    if not m or value.strip() in ("P", "PT"):
        return None
    days, hours, mins = (int(g) if g else 0 for g in m.groups())
    return days * 1440 + hours * 60 + mins


def duration_minutes(text: str | None) -> int | None:
    """Parse "2h 10m", "02:10", or "PT2H10M" into minutes."""
    if not text or text == DURATION_PLACEHOLDER:
        return None
    iso = _iso_minutes(text)
    if iso is not None:
        return iso
    clock = _CLOCK.match(text.strip())
    if clock:
        return int(clock.group(1)) * 60 + int(clock.group(2))
    human = _HUMAN_DURATION.match(text)
    if human and any(human.groups()):
        hours, mins = (int(g) if g else 0 for g in human.groups())
        return hours * 60 + mins
    return None


def _parse_datetime(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _clock_minutes(value: str) -> int | None:
    m = _CLOCK.match(value.strip())
    if not m:
        return None
    hours, mins = int(m.group(1)), int(m.group(2))
    if hours > 23 or mins > 59:
        return None
    return hours * 60 + mins


def display_time(value: str | None) -> str:
    """Render a provider time as local "HH:MM"; absent values become the placeholder."""
    if not value or not str(value).strip():
        return TIME_PLACEHOLDER
    value = str(value)
    if "T" in value:
        dt = _parse_datetime(value)
        if dt is not None:
            return dt.strftime("%H:%M")
    minutes = _clock_minutes(value)
    if minutes is not None:
        return f"{minutes // 60:02d}:{minutes % 60:02d}"
    return value.strip()


def compute_duration(departure: str | None, arrival: str | None) -> str:
    """Duration between two provider times, or the placeholder when either does not parse.

    Full timestamps are subtracted directly; bare clock times that go
    backwards are taken to cross midnight.
    """
    if not departure or not arrival:
        return DURATION_PLACEHOLDER

    dep_dt, arr_dt = _parse_datetime(departure), _parse_datetime(arrival)
    if dep_dt is not None and arr_dt is not None and "T" in departure and "T" in arrival:
        if (dep_dt.tzinfo is None) != (arr_dt.tzinfo is None):
            return DURATION_PLACEHOLDER
        minutes = int((arr_dt - dep_dt).total_seconds() // 60)
        return format_minutes(minutes) if minutes > 0 else DURATION_PLACEHOLDER

    dep_m, arr_m = _clock_minutes(departure), _clock_minutes(arrival)
    if dep_m is None or arr_m is None:
        return DURATION_PLACEHOLDER
    minutes = arr_m - dep_m
    if minutes <= 0:
        minutes += 24 * 60
    return format_minutes(minutes)


def resolve_duration(provider_duration: str | None, departure: str | None, arrival: str | None) -> str:
    """Prefer a provider-supplied duration, else compute one from the times."""
    if provider_duration:
        minutes = duration_minutes(provider_duration)
        if minutes:
            return format_minutes(minutes)
    return compute_duration(departure, arrival)


# --- Recommendation ---

def highlight_recommended_option(options: list[CanonicalOption]) -> CanonicalOption | None:
    """Cheapest priced option, first seen on ties; first option when none is priced."""
    best: CanonicalOption | None = None
    for option in options:
        if option.price is None:
            continue
        if best is None or option.price < best.price:
            best = option
    if best is not None:
        return best
    return options[0] if options else None


# --- Price estimation ---

def estimate_price(option: CanonicalOption) -> float | None:
    rate = ESTIMATE_RATE_PER_MINUTE.get(option.category)
    if rate is None:
        return None
    minutes = duration_minutes(option.duration_text)
    if not minutes:
        return float(ESTIMATE_DEFAULT[option.category])
    estimate = max(ESTIMATE_FLOOR[option.category], minutes * rate)
    return float(int(round(estimate / 10.0)) * 10)


def estimate_missing_prices(options: list[CanonicalOption]) -> list[CanonicalOption]:
    """Fill absent rail/bus fares with a duration-based estimate flagged as such."""
    result = []
    for option in options:
        if option.price is None and option.category in ESTIMATE_RATE_PER_MINUTE:
            price = estimate_price(option)
            option = option.model_copy(update={"price": price, "price_estimated": True})
        result.append(option)
    return result


# --- Lodging selection ---

def filter_by_budget(
    options: list[CanonicalOption],
    budget_min: float | None = None,
    budget_max: float | None = None,
) -> list[CanonicalOption]:
    """Inclusive budget filter. Options without a price are kept."""
    if budget_min is None and budget_max is None:
        return list(options)

    kept = []
    for option in options:
        price = option.price
        if price is not None:
            if budget_min is not None and price < budget_min:
                continue
            if budget_max is not None and price > budget_max:
                continue
        kept.append(option)
    return kept


def _price_key(option: CanonicalOption) -> float:
    return option.price if option.price is not None else math.inf


def price_bands(options: list[CanonicalOption]) -> list[list[CanonicalOption]]:
    """Split priced options (sorted ascending) into budget/mid/luxury bands of equal width."""
    priced = sorted((o for o in options if o.price is not None), key=_price_key)
    if not priced:
        return [[], [], []]
    low, high = priced[0].price, priced[-1].price
    span = high - low
    bands: list[list[CanonicalOption]] = [[], [], []]
    if span == 0:
        bands[0] = priced
        return bands
    width = span / 3
    for option in priced:
        index = min(int((option.price - low) / width), 2)
        bands[index].append(option)
    return bands


def select_diverse(
    options: list[CanonicalOption],
    limit: int,
    rng: random.Random | None = None,
) -> list[CanonicalOption]:
    """Pick `limit` options spread across three equal-width price bands.

    Up to ceil(limit/3) picks per band are taken in band-interleaved order so
    every non-empty band keeps a representative after truncation; short bands
    are topped up from the remaining options in price order, then the
    selection is shuffled.
    """
    if limit >= len(options):
        return list(options)

    ordered = sorted(options, key=_price_key)
    priced = [o for o in ordered if o.price is not None]
    if not priced or priced[0].price == priced[-1].price:
        return ordered[:limit]

    per_band = math.ceil(limit / 3)
    band_picks = [band[:per_band] for band in price_bands(ordered)]

    selected: list[CanonicalOption] = []
    for rank in range(per_band):
        for picks in band_picks:
            if rank < len(picks):
                selected.append(picks[rank])
    selected = selected[:limit]

    if len(selected) < limit:
        chosen = {id(o) for o in selected}
        for option in ordered:
            if len(selected) >= limit:
                break
            if id(option) not in chosen:
                selected.append(option)

    (rng or random).shuffle(selected)
    return selected[:limit]


def apply_hotel_filters(
    options: list[CanonicalOption],
    budget_min: float | None = None,
    budget_max: float | None = None,
    limit: int | None = 10,
    rng: random.Random | None = None,
) -> list[CanonicalOption]:
    """Budget filter first, then diversity selection when a budget is set and results exceed the limit."""
    filtered = filter_by_budget(options, budget_min, budget_max)
    if limit is None or len(filtered) <= limit:
        return filtered
    if budget_min is not None or budget_max is not None:
        return select_diverse(filtered, limit, rng)
    return filtered[:limit]
