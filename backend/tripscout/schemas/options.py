"""Canonical result record shared by all four search categories."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

TIME_PLACEHOLDER = "--:--"
DURATION_PLACEHOLDER = "—"


class Category(str, Enum):
    FLIGHT = "flight"
    TRAIN = "train"
    BUS = "bus"
    HOTEL = "hotel"


class SourceTag(str, Enum):
    AMADEUS = "amadeus"
    IRCTC = "irctc"
    REDBUS = "redbus"
    BOOKING_COM = "booking_com"
    GENERATED_MODEL = "generated_model"
    GENERATED_SYNTHETIC = "generated_synthetic"

    @property
    def is_fallback(self) -> bool:
        """True for records that are illustrative rather than live quotes."""
        return self in (SourceTag.GENERATED_MODEL, SourceTag.GENERATED_SYNTHETIC)


class CanonicalOption(BaseModel):
    id: str
    category: Category
    provider_label: str
    schedule_code: str | None = None
    departure_time: str = TIME_PLACEHOLDER
    arrival_time: str = TIME_PLACEHOLDER
    duration_text: str = DURATION_PLACEHOLDER
    price: float | None = None
    currency: str = "INR"
    price_estimated: bool = False
    origin: str = ""
    destination: str = ""

    # Lodging extras
    rating: float | None = None
    image_url: str | None = None
    location: str | None = None

    raw: Any = None
    source_tag: SourceTag
