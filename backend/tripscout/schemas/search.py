from datetime import date as date_type

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Query(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class FlightSearchQuery(_Query):
    origin_city: str = Field(..., min_length=1)
    destination_city: str = Field(..., min_length=1)
    departure_date: date_type
    travelers: int = Field(1, ge=1, le=9)


class TrainSearchQuery(_Query):
    origin_city: str = Field(..., min_length=1)
    destination_city: str = Field(..., min_length=1)
    date: date_type | None = None


class BusSearchQuery(_Query):
    origin_city: str = Field(..., min_length=1)
    destination_city: str = Field(..., min_length=1)
    date: date_type


class HotelSearchQuery(_Query):
    city_name: str = Field(..., min_length=1)
    checkin: date_type
    checkout: date_type
    budget_min: float | None = Field(None, ge=0)
    budget_max: float | None = Field(None, ge=0)
    limit: int = Field(10, ge=1, le=100)

    @model_validator(mode="after")
    def _check_ranges(self):
        if self.checkout <= self.checkin:
            raise ValueError("checkout must be after checkin")
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_min > self.budget_max
        ):
            raise ValueError("budget_min must not exceed budget_max")
        return self
