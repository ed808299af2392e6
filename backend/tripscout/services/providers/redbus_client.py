"""RedBus (RapidAPI) client — bus search by city names."""

import logging

from tripscout.config import Settings
from tripscout.schemas.options import CanonicalOption, Category, SourceTag
from tripscout.schemas.providers import RedbusTrip, parse_records
from tripscout.services.gateway import ProviderGateway
from tripscout.services.normalizer import display_time, resolve_duration
from tripscout.services.providers.base import (
    AdapterOutcome,
    ResolvedRoute,
    payload_records,
    rapidapi_headers,
    run_adapter_call,
)

logger = logging.getLogger(__name__)

PROVIDER = "RedBus"

BUS_SEARCH_KEY = "redbus"


class RedbusClient:
    def __init__(self, settings: Settings, gateway: ProviderGateway):
        self.settings = settings
        self.gateway = gateway

    async def _fetch_buses(self, route: ResolvedRoute) -> list[CanonicalOption]:
        data = await self.gateway.fetch_json(
            BUS_SEARCH_KEY,
            PROVIDER,
            "GET",
            f"https://{self.settings.redbus_host}/search",
            params={
                "from": route.origin_label,
                "to": route.destination_label,
                "date": route.travel_date.isoformat(),
            },
            headers=rapidapi_headers(self.settings.rapidapi_key, self.settings.redbus_host),
        )

        options = []
        for trip, raw in parse_records(payload_records(data), RedbusTrip, PROVIDER):
            options.append(CanonicalOption(
                id=trip.id,
                category=Category.BUS,
                provider_label=trip.travels,
                schedule_code=trip.bus_type,
                departure_time=display_time(trip.departure_time),
                arrival_time=display_time(trip.arrival_time),
                duration_text=resolve_duration(trip.duration, trip.departure_time, trip.arrival_time),
                price=trip.fare,
                currency=self.settings.currency,
                origin=route.origin_label,
                destination=route.destination_label,
                raw=raw,
                source_tag=SourceTag.REDBUS,
            ))
        return options

    async def search_buses(self, route: ResolvedRoute) -> AdapterOutcome:
        return await run_adapter_call(PROVIDER, lambda: self._fetch_buses(route))
