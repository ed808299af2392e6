"""Payload schemas for provider responses and generated fallback items.

Each record is validated on its own; a record that fails validation is
dropped without affecting the rest of the batch.
"""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Amadeus ---

class AmadeusPrice(_Payload):
    total: str
    currency: str


class AmadeusEndpoint(_Payload):
    at: str
    iata_code: str = Field(alias="iataCode")


class AmadeusSegment(_Payload):
    departure: AmadeusEndpoint
    arrival: AmadeusEndpoint
    carrier_code: str | None = Field(None, alias="carrierCode")
    number: str | None = None


class AmadeusItinerary(_Payload):
    duration: str | None = None
    segments: list[AmadeusSegment] = Field(..., min_length=1)


class AmadeusFlightOffer(_Payload):
    id: str
    price: AmadeusPrice
    itineraries: list[AmadeusItinerary] = Field(..., min_length=1)


class AmadeusAddress(_Payload):
    city_code: str | None = Field(None, alias="cityCode")
    city_name: str | None = Field(None, alias="cityName")
    lines: list[str] | None = None


class AmadeusLocation(_Payload):
    sub_type: str = Field(..., alias="subType")
    name: str
    iata_code: str | None = Field(None, alias="iataCode")
    address: AmadeusAddress | None = None


class AmadeusGeoCode(_Payload):
    latitude: float | None = None
    longitude: float | None = None


class AmadeusHotel(_Payload):
    hotel_id: str = Field(..., alias="hotelId")
    name: str
    chain_code: str | None = Field(None, alias="chainCode")
    iata_code: str | None = Field(None, alias="iataCode")
    geo_code: AmadeusGeoCode | None = Field(None, alias="geoCode")
    address: AmadeusAddress | None = None


# --- IRCTC (RapidAPI) ---

class IrctcStation(_Payload):
    station_code: str = Field(..., alias="stationCode")
    station_name: str = Field(..., alias="stationName")


class IrctcDeparture(_Payload):
    departure_time: str = Field(..., alias="departureTime")


class IrctcArrival(_Payload):
    arrival_time: str = Field(..., alias="arrivalTime")


class IrctcClass(_Payload):
    class_code: str = Field(..., alias="classCode")


class IrctcTrain(_Payload):
    train_number: str = Field(..., alias="trainNumber")
    train_name: str = Field(..., alias="trainName")
    from_: IrctcDeparture = Field(..., alias="from")
    to: IrctcArrival
    duration: str | None = None
    classes: list[IrctcClass] | None = None


# --- RedBus (RapidAPI) ---

class RedbusTrip(_Payload):
    id: str
    travels: str
    bus_type: str = Field(..., alias="busType")
    departure_time: str = Field(..., alias="departureTime")
    arrival_time: str = Field(..., alias="arrivalTime")
    duration: str | None = None
    fare: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("id must be a string or integer")
        return str(v)


# --- Booking.com (RapidAPI) ---

class BookingPriceBreakdown(_Payload):
    currency: str | None = None
    gross_price: float | None = None


class BookingHotel(_Payload):
    hotel_id: str
    name: str
    review_score: float | None = None
    price_breakdown: BookingPriceBreakdown | None = None
    photo1: str | None = None
    address: str | None = None

    @field_validator("hotel_id", mode="before")
    @classmethod
    def _id_to_str(cls, v):
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("hotel_id must be a string or integer")
        return str(v)


# --- Generated fallback items (LLM output) ---

class GeneratedFlight(_Payload):
    airline: str = Field(..., min_length=1)
    flight_number: str = Field(..., alias="flightNumber", min_length=1)
    departure_time: str = Field(..., alias="departureTime")
    arrival_time: str = Field(..., alias="arrivalTime")
    duration: str | None = None
    price_per_person: float = Field(..., alias="pricePerPerson", gt=0)


class GeneratedTrain(_Payload):
    name: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1)
    departure_time: str = Field(..., alias="departureTime")
    arrival_time: str = Field(..., alias="arrivalTime")
    duration: str | None = None
    price: float = Field(..., gt=0)


class GeneratedBus(_Payload):
    operator: str = Field(..., min_length=1)
    bus_type: str = Field(..., alias="busType", min_length=1)
    departure_time: str = Field(..., alias="departureTime")
    arrival_time: str = Field(..., alias="arrivalTime")
    duration: str | None = None
    price: float = Field(..., gt=0)


class GeneratedHotel(_Payload):
    name: str = Field(..., min_length=1)
    price_per_night: float = Field(..., alias="pricePerNight", gt=0)
    rating: float | None = Field(None, ge=0, le=10)
    area: str | None = None


def parse_records(items: Any, schema: type[T], source: str) -> list[tuple[T, Any]]:
    """Validate a list of raw records, returning (parsed, raw) pairs.

    Non-list input yields an empty list. Records that fail validation are
    logged and skipped.
    """
    if not isinstance(items, list):
        return []

    parsed: list[tuple[T, Any]] = []
    dropped = 0
    for item in items:
        try:
            parsed.append((schema.model_validate(item), item))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.warning(f"{source}: dropped {dropped} record(s) failing {schema.__name__} validation")
    return parsed
