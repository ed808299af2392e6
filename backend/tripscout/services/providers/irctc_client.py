"""IRCTC (RapidAPI) client — station lookup and train search."""

import logging

from tripscout.config import Settings
from tripscout.schemas.options import CanonicalOption, Category, SourceTag
from tripscout.schemas.providers import IrctcStation, IrctcTrain, parse_records
from tripscout.services.gateway import ProviderGateway
from tripscout.services.normalizer import display_time, resolve_duration
from tripscout.services.place_resolver import PlaceCandidate
from tripscout.services.providers.base import (
    AdapterOutcome,
    ResolvedRoute,
    payload_records,
    rapidapi_headers,
    run_adapter_call,
)

logger = logging.getLogger(__name__)

PROVIDER = "IRCTC"

STATION_KEY = "irctc-station"
TRAIN_SEARCH_KEY = "irctc-train"


class IrctcClient:
    def __init__(self, settings: Settings, gateway: ProviderGateway):
        self.settings = settings
        self.gateway = gateway

    @property
    def _headers(self) -> dict[str, str]:
        return rapidapi_headers(self.settings.rapidapi_key, self.settings.irctc_host)

    def _url(self, path: str) -> str:
        return f"https://{self.settings.irctc_host}/api/v1/{path}"

    def station_lookup(self) -> "IrctcStationLookup":
        return IrctcStationLookup(self)

    async def search_stations(self, keyword: str) -> list[PlaceCandidate]:
        data = await self.gateway.fetch_json(
            STATION_KEY, PROVIDER, "GET", self._url("searchStation"),
            params={"search": keyword}, headers=self._headers,
        )
        return [
            PlaceCandidate(code=s.station_code, name=s.station_name, kind="station")
            for s, _ in parse_records(payload_records(data), IrctcStation, PROVIDER)
        ]

    async def _fetch_trains(self, route: ResolvedRoute) -> list[CanonicalOption]:
        params = {
            "fromStationCode": route.origin_code,
            "toStationCode": route.destination_code,
        }
        if route.travel_date:
            params["date"] = route.travel_date.isoformat()

        data = await self.gateway.fetch_json(
            TRAIN_SEARCH_KEY, PROVIDER, "GET", self._url("searchTrain"),
            params=params, headers=self._headers,
        )

        options = []
        for train, raw in parse_records(payload_records(data), IrctcTrain, PROVIDER):
            departure = train.from_.departure_time
            arrival = train.to.arrival_time
            options.append(CanonicalOption(
                id=train.train_number,
                category=Category.TRAIN,
                provider_label=train.train_name,
                schedule_code=train.train_number,
                departure_time=display_time(departure),
                arrival_time=display_time(arrival),
                duration_text=resolve_duration(train.duration, departure, arrival),
                currency=self.settings.currency,
                origin=route.origin_label,
                destination=route.destination_label,
                raw=raw,
                source_tag=SourceTag.IRCTC,
            ))
        logger.info(f"IRCTC returned {len(options)} trains {route.origin_code} -> {route.destination_code}")
        return options

    async def search_trains(self, route: ResolvedRoute) -> AdapterOutcome:
        return await run_adapter_call(PROVIDER, lambda: self._fetch_trains(route))


class IrctcStationLookup:
    """PlaceLookup over the IRCTC station search."""

    rate_limit_key = STATION_KEY
    preferred_kind = "station"
    max_tokens = 2

    def __init__(self, client: IrctcClient):
        self.client = client

    async def lookup(self, keyword: str) -> list[PlaceCandidate]:
        return await self.client.search_stations(keyword)
