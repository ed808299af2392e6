"""Amadeus API client — flight offers, location lookup and hotel list with OAuth2."""

import logging
import time
from datetime import date
from typing import Any, Callable

from tripscout.config import Settings
from tripscout.exceptions import ProviderAuthError, ProviderUnavailableError
from tripscout.schemas.options import DURATION_PLACEHOLDER, CanonicalOption, Category, SourceTag
from tripscout.schemas.providers import (
    AmadeusFlightOffer,
    AmadeusHotel,
    AmadeusLocation,
    parse_records,
)
from tripscout.services.gateway import ProviderGateway
from tripscout.services.normalizer import (
    compute_duration,
    display_time,
    format_iso_duration,
)
from tripscout.services.place_resolver import PlaceCandidate
from tripscout.services.providers.base import (
    AdapterOutcome,
    ResolvedRoute,
    payload_records,
    run_adapter_call,
)

logger = logging.getLogger(__name__)

PROVIDER = "Amadeus"

FLIGHT_SEARCH_KEY = "amadeus-flight-search"
HOTEL_LIST_KEY = "amadeus-hotel-list"
TOKEN_KEY = "amadeus-token"

MAX_FLIGHT_OFFERS = 6
MAX_HOTELS = 50

# Airline name lookup (carriers common on Indian routes)
AIRLINE_NAMES = {
    "6E": "IndiGo", "AI": "Air India", "SG": "SpiceJet", "UK": "Vistara",
    "QP": "Akasa Air", "IX": "Air India Express", "I5": "AirAsia India",
    "G8": "Go First", "9I": "Alliance Air", "S5": "Star Air",
    "EK": "Emirates", "QR": "Qatar Airways", "SQ": "Singapore Airlines",
    "EY": "Etihad Airways", "BA": "British Airways", "LH": "Lufthansa",
    "AF": "Air France", "KL": "KLM", "TG": "Thai Airways", "UL": "SriLankan Airlines",
}


class AmadeusClient:
    """Adapter for the Amadeus Self-Service API."""

    def __init__(
        self,
        settings: Settings,
        gateway: ProviderGateway,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.gateway = gateway
        self._clock = clock
        self._token: str | None = None
        self._token_expires: float = 0.0

    @property
    def base_url(self) -> str:
        return self.settings.amadeus_base_url.rstrip("/")

    def _token_valid(self) -> bool:
        return self._token is not None and self._clock() < self._token_expires

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires = 0.0

    async def _ensure_token(self) -> str:
        """Get or refresh the OAuth2 token, renewing 60 seconds before expiry."""
        if self._token_valid():
            return self._token

        resp = await self.gateway.send(
            TOKEN_KEY,
            "POST",
            f"{self.base_url}/v1/security/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.settings.amadeus_client_id,
                "client_secret": self.settings.amadeus_client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if resp.status_code in (400, 401):
            raise ProviderAuthError(PROVIDER, f"token request failed: {resp.text[:200]}")
        if resp.status_code != 200:
            raise ProviderUnavailableError(TOKEN_KEY, resp.status_code, resp.text[:200])

        try:
            data = resp.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 1799))
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning(f"Amadeus token response unusable: {e!r}")
            raise ProviderUnavailableError(TOKEN_KEY, resp.status_code, "malformed token response") from e

        self._token = token
        self._token_expires = self._clock() + expires_in - 60
        logger.info("Amadeus token refreshed")
        return self._token

    async def _authorized_json(self, key: str, method: str, path: str, **kwargs) -> Any:
        """Call an authorized endpoint, refreshing the token once if it is rejected."""
        extra_headers = kwargs.pop("headers", {})
        for attempt in range(2):
            token = await self._ensure_token()
            headers = {"Authorization": f"Bearer {token}", **extra_headers}
            try:
                return await self.gateway.fetch_json(
                    key, PROVIDER, method, f"{self.base_url}{path}", headers=headers, **kwargs
                )
            except ProviderAuthError:
                if attempt > 0:
                    raise
                logger.warning("Amadeus rejected the cached token, refreshing")
                self.invalidate_token()

    # --- Flights ---

    def _flight_body(self, route: ResolvedRoute) -> dict:
        travelers = max(1, route.travelers)
        return {
            "currencyCode": self.settings.currency,
            "originDestinations": [
                {
                    "id": "1",
                    "originLocationCode": route.origin_code,
                    "destinationLocationCode": route.destination_code,
                    "departureDateTimeRange": {"date": route.travel_date.isoformat()},
                }
            ],
            "travelers": [
                {"id": str(i + 1), "travelerType": "ADULT"} for i in range(travelers)
            ],
            "sources": ["GDS"],
            "searchCriteria": {"maxFlightOffers": MAX_FLIGHT_OFFERS},
        }

    async def _fetch_flights(self, route: ResolvedRoute) -> list[CanonicalOption]:
        data = await self._authorized_json(
            FLIGHT_SEARCH_KEY,
            "POST",
            "/v2/shopping/flight-offers",
            json=self._flight_body(route),
            headers={"Content-Type": "application/json"},
        )
        options = []
        for offer, raw in parse_records(payload_records(data), AmadeusFlightOffer, PROVIDER):
            option = self._parse_offer(offer, raw)
            if option is not None:
                options.append(option)
        return options

    async def search_flights(self, route: ResolvedRoute) -> AdapterOutcome:
        return await run_adapter_call(PROVIDER, lambda: self._fetch_flights(route))

    @staticmethod
    def _parse_offer(offer: AmadeusFlightOffer, raw: Any) -> CanonicalOption | None:
        """Map a validated Amadeus offer onto the canonical shape."""
        try:
            price = float(offer.price.total)
        except ValueError:
            logger.warning(f"Amadeus offer {offer.id} has a non-numeric price, dropped")
            return None

        itinerary = offer.itineraries[0]
        first_seg = itinerary.segments[0]
        last_seg = itinerary.segments[-1]
        airline_code = first_seg.carrier_code or ""
        flight_number = f"{airline_code}{first_seg.number or ''}".strip()

        duration = format_iso_duration(itinerary.duration)
        if duration == DURATION_PLACEHOLDER:
            duration = compute_duration(first_seg.departure.at, last_seg.arrival.at)

        return CanonicalOption(
            id=offer.id,
            category=Category.FLIGHT,
            provider_label=AIRLINE_NAMES.get(airline_code, airline_code or "Airline"),
            schedule_code=flight_number or None,
            departure_time=display_time(first_seg.departure.at),
            arrival_time=display_time(last_seg.arrival.at),
            duration_text=duration,
            price=price,
            currency=offer.price.currency,
            origin=first_seg.departure.iata_code,
            destination=last_seg.arrival.iata_code,
            raw=raw,
            source_tag=SourceTag.AMADEUS,
        )

    # --- Locations ---

    def location_lookup(self, sub_type: str = "CITY,AIRPORT") -> "AmadeusLocationLookup":
        return AmadeusLocationLookup(self, sub_type)

    async def search_locations(self, keyword: str, sub_type: str) -> list[PlaceCandidate]:
        data = await self._authorized_json(
            f"amadeus-location-{sub_type}",
            "GET",
            "/v1/reference-data/locations",
            params={"keyword": keyword, "subType": sub_type, "page[limit]": "5"},
        )
        candidates = []
        for loc, _ in parse_records(payload_records(data), AmadeusLocation, PROVIDER):
            city_code = loc.address.city_code if loc.address else None
            candidates.append(PlaceCandidate(
                code=loc.iata_code or city_code,
                name=loc.name,
                kind=loc.sub_type,
                city_code=city_code or (loc.iata_code if loc.sub_type == "CITY" else None),
            ))
        return candidates

    # --- Hotels ---

    async def _fetch_hotels(
        self, city_code: str, city_label: str, checkin: date, checkout: date
    ) -> list[CanonicalOption]:
        data = await self._authorized_json(
            HOTEL_LIST_KEY,
            "GET",
            "/v1/reference-data/locations/hotels/by-city",
            params={"cityCode": city_code},
        )
        nights = max(1, (checkout - checkin).days)
        options = []
        for hotel, raw in parse_records(payload_records(data), AmadeusHotel, PROVIDER)[:MAX_HOTELS]:
            location = (hotel.address.city_name if hotel.address else None) or city_label
            options.append(CanonicalOption(
                id=f"amadeus-{hotel.hotel_id}",
                category=Category.HOTEL,
                provider_label=hotel.name.title(),
                schedule_code=hotel.chain_code,
                departure_time=checkin.isoformat(),
                arrival_time=checkout.isoformat(),
                duration_text=f"{nights} night{'s' if nights != 1 else ''}",
                currency=self.settings.currency,
                origin=location,
                destination=location,
                location=location,
                raw=raw,
                source_tag=SourceTag.AMADEUS,
            ))
        return options

    async def list_hotels(
        self, city_code: str, city_label: str, checkin: date, checkout: date
    ) -> AdapterOutcome:
        return await run_adapter_call(
            PROVIDER, lambda: self._fetch_hotels(city_code, city_label, checkin, checkout)
        )


class AmadeusLocationLookup:
    """PlaceLookup over the Amadeus locations endpoint for one subType."""

    max_tokens = 3

    def __init__(self, client: AmadeusClient, sub_type: str):
        self.client = client
        self.sub_type = sub_type
        self.rate_limit_key = f"amadeus-location-{sub_type}"
        self.preferred_kind = "AIRPORT" if "AIRPORT" in sub_type else "CITY"

    async def lookup(self, keyword: str) -> list[PlaceCandidate]:
        return await self.client.search_locations(keyword, self.sub_type)
