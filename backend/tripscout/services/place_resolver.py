"""Place resolver — turns free-text place descriptions into provider codes.

Free text such as "visit the red fort and explore Delhi" is reduced to a
short keyword ("Delhi"), looked up against a provider's location endpoint,
and the outcome (including "not found") is cached for a long time so bad
input does not keep hitting the provider.
"""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from tripscout.data.places import KNOWN_CITIES, STOP_WORDS
from tripscout.exceptions import PlanRestrictedError, ProviderUnavailableError, RateLimitedError
from tripscout.services.cache_service import TTLCache
from tripscout.services.pacing import PacingController

logger = logging.getLogger(__name__)

_NON_ALPHA = re.compile(r"[^a-zA-Z\s]")


@dataclass(frozen=True)
class PlaceCandidate:
    """One entry returned by a provider location search."""
    code: str | None
    name: str
    kind: str
    city_code: str | None = None


@dataclass(frozen=True)
class PlaceResolution:
    keyword: str
    code: str | None
    name: str | None = None
    city_code: str | None = None

    @property
    def found(self) -> bool:
        return self.code is not None


class PlaceLookup(Protocol):
    """A provider location endpoint the resolver can query."""

    rate_limit_key: str
    preferred_kind: str
    max_tokens: int

    async def lookup(self, keyword: str) -> list[PlaceCandidate]:
        ...


def tokenize(text: str) -> list[str]:
    return _NON_ALPHA.sub(" ", text or "").lower().split()


def _known_city(tokens: list[str]) -> str | None:
    for first, second in zip(tokens, tokens[1:]):
        city = KNOWN_CITIES.get(f"{first} {second}")
        if city:
            return city
    for token in tokens:
        city = KNOWN_CITIES.get(token)
        if city:
            return city
    return None


def normalize_keyword(text: str, max_tokens: int = 3) -> str:
    """Reduce free text to a short, title-cased search keyword.

    Returns "" when the text holds no alphabetic words at all.
    """
    tokens = tokenize(text)
    if not tokens:
        return ""

    kept = [t for t in tokens if t not in STOP_WORDS and len(t) > 2]
    if not kept:
        kept = tokens

    city = _known_city(kept)
    if city:
        return city
    return " ".join(t.capitalize() for t in kept[:max_tokens])


def pick_candidate(keyword: str, candidates: list[PlaceCandidate], preferred_kind: str) -> PlaceCandidate:
    needle = keyword.lower()
    preferred = preferred_kind.lower()
    for c in candidates:
        if c.code and c.kind.lower() == preferred and needle in c.name.lower():
            return c
    for c in candidates:
        if c.code:
            return c
    return candidates[0]


class PlaceResolver:
    """Resolves place text via a PlaceLookup with long-lived caching of hits and misses."""

    def __init__(
        self,
        cache: TTLCache[PlaceResolution],
        pacing: PacingController,
        ttl: float = 24 * 60 * 60,
    ):
        self.cache = cache
        self.pacing = pacing
        self.ttl = ttl

    async def resolve(self, text: str, lookup: PlaceLookup) -> PlaceResolution | None:
        """Resolve text to a provider code.

        Returns None for any unresolved outcome: empty keyword, cached or
        fresh "not found", rate limit, or transport failure. Authentication
        errors propagate.
        """
        keyword = normalize_keyword(text, lookup.max_tokens)
        if not keyword:
            return None

        cache_key = f"{lookup.rate_limit_key}:{keyword.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached if cached.found else None

        try:
            candidates = await lookup.lookup(keyword)
        except RateLimitedError as e:
            if not e.cooling_down:
                self.cache.set(cache_key, PlaceResolution(keyword=keyword, code=None), self.pacing.cooldown_window)
            logger.warning(f"Location lookup for '{keyword}' rate-limited, treating as unresolved")
            return None
        except ProviderUnavailableError as e:
            if e.status_code == 400:
                self.cache.set(cache_key, PlaceResolution(keyword=keyword, code=None), self.ttl)
                logger.warning(f"Provider could not understand location query: {keyword}")
            else:
                logger.warning(f"Location lookup for '{keyword}' failed: {e}")
            return None
        except PlanRestrictedError as e:
            logger.warning(f"Location lookup unavailable on current plan: {e}")
            return None

        if not candidates:
            self.cache.set(cache_key, PlaceResolution(keyword=keyword, code=None), self.ttl)
            logger.info(f"No locations found for '{keyword}' ({lookup.rate_limit_key})")
            return None

        best = pick_candidate(keyword, candidates, lookup.preferred_kind)
        resolution = PlaceResolution(
            keyword=keyword,
            code=best.code,
            name=best.name,
            city_code=best.city_code,
        )
        self.cache.set(cache_key, resolution, self.ttl)
        if resolution.found:
            logger.info(f"Resolved '{text}' -> {resolution.code} ({resolution.name})")
            return resolution
        return None
