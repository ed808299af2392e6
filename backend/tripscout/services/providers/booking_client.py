"""Booking.com (RapidAPI) client — priced hotel search by city name."""

import logging
from datetime import date

from tripscout.config import Settings
from tripscout.schemas.options import CanonicalOption, Category, SourceTag
from tripscout.schemas.providers import BookingHotel, parse_records
from tripscout.services.gateway import ProviderGateway
from tripscout.services.providers.base import (
    AdapterOutcome,
    payload_records,
    rapidapi_headers,
    run_adapter_call,
)

logger = logging.getLogger(__name__)

PROVIDER = "Booking.com"

HOTEL_SEARCH_KEY = "booking-hotels"


class BookingClient:
    def __init__(self, settings: Settings, gateway: ProviderGateway):
        self.settings = settings
        self.gateway = gateway

    async def _fetch_hotels(self, city_label: str, checkin: date, checkout: date) -> list[CanonicalOption]:
        data = await self.gateway.fetch_json(
            HOTEL_SEARCH_KEY,
            PROVIDER,
            "GET",
            f"https://{self.settings.booking_host}/v1/hotels/search",
            params={
                "city_name": city_label,
                "checkin_date": checkin.isoformat(),
                "checkout_date": checkout.isoformat(),
                "units": "metric",
                "adults_number": "2",
                "order_by": "price",
            },
            headers=rapidapi_headers(self.settings.rapidapi_key, self.settings.booking_host),
        )

        nights = max(1, (checkout - checkin).days)
        options = []
        for hotel, raw in parse_records(payload_records(data, "result"), BookingHotel, PROVIDER):
            breakdown = hotel.price_breakdown
            location = hotel.address or city_label
            options.append(CanonicalOption(
                id=f"booking-{hotel.hotel_id}",
                category=Category.HOTEL,
                provider_label=hotel.name,
                departure_time=checkin.isoformat(),
                arrival_time=checkout.isoformat(),
                duration_text=f"{nights} night{'s' if nights != 1 else ''}",
                price=breakdown.gross_price if breakdown else None,
                currency=(breakdown.currency if breakdown else None) or self.settings.currency,
                origin=city_label,
                destination=city_label,
                rating=hotel.review_score,
                image_url=hotel.photo1,
                location=location,
                raw=raw,
                source_tag=SourceTag.BOOKING_COM,
            ))
        return options

    async def search_hotels(self, city_label: str, checkin: date, checkout: date) -> AdapterOutcome:
        return await run_adapter_call(
            PROVIDER, lambda: self._fetch_hotels(city_label, checkin, checkout)
        )
