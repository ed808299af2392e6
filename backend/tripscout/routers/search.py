"""Search router — flight, train, bus and hotel search plus place and rate-limit lookups."""

import logging
from datetime import date as date_type
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ValidationError

from tripscout.schemas.options import CanonicalOption, Category
from tripscout.schemas.search import (
    BusSearchQuery,
    FlightSearchQuery,
    HotelSearchQuery,
    TrainSearchQuery,
)
from tripscout.services.search_orchestrator import TravelSearchEngine

logger = logging.getLogger(__name__)

router = APIRouter()


class SearchResponse(BaseModel):
    options: list[CanonicalOption]
    recommended: CanonicalOption | None = None
    count: int
    rate_limited: bool = False
    generated: bool = False


def get_engine(request: Request) -> TravelSearchEngine:
    return request.app.state.engine


def _query(model: type[BaseModel], **params: Any) -> Any:
    try:
        return model(**params)
    except ValidationError as e:
        detail = e.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=422, detail=detail)


def _response(engine: TravelSearchEngine, category: Category, options: list[CanonicalOption]) -> SearchResponse:
    return SearchResponse(
        options=options,
        recommended=engine.highlight_recommended_option(options),
        count=len(options),
        rate_limited=not options and engine.category_rate_limited(category),
        generated=any(o.source_tag.is_fallback for o in options),
    )


@router.get("/flights/search", response_model=SearchResponse)
async def search_flights(
    origin: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    departure_date: date_type = Query(...),
    travelers: int = Query(1),
    engine: TravelSearchEngine = Depends(get_engine),
):
    """Search one-way flights between two free-text places."""
    query = _query(
        FlightSearchQuery,
        origin_city=origin,
        destination_city=destination,
        departure_date=departure_date,
        travelers=travelers,
    )
    return _response(engine, Category.FLIGHT, await engine.search_flights(query))


@router.get("/trains/search", response_model=SearchResponse)
async def search_trains(
    origin: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    date: date_type | None = Query(None),
    engine: TravelSearchEngine = Depends(get_engine),
):
    query = _query(TrainSearchQuery, origin_city=origin, destination_city=destination, date=date)
    return _response(engine, Category.TRAIN, await engine.search_trains(query))


@router.get("/buses/search", response_model=SearchResponse)
async def search_buses(
    origin: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    date: date_type = Query(...),
    engine: TravelSearchEngine = Depends(get_engine),
):
    query = _query(BusSearchQuery, origin_city=origin, destination_city=destination, date=date)
    return _response(engine, Category.BUS, await engine.search_buses(query))


@router.get("/hotels/search", response_model=SearchResponse)
async def search_hotels(
    city: str = Query(..., min_length=1),
    checkin: date_type = Query(...),
    checkout: date_type = Query(...),
    budget_min: float | None = Query(None),
    budget_max: float | None = Query(None),
    limit: int = Query(10),
    engine: TravelSearchEngine = Depends(get_engine),
):
    """Search hotels; with a budget, results are spread across price bands."""
    query = _query(
        HotelSearchQuery,
        city_name=city,
        checkin=checkin,
        checkout=checkout,
        budget_min=budget_min,
        budget_max=budget_max,
        limit=limit,
    )
    return _response(engine, Category.HOTEL, await engine.search_hotels(query))


@router.get("/places/resolve")
async def resolve_place(
    q: str = Query(..., min_length=1),
    kind: str = Query("airport"),
    engine: TravelSearchEngine = Depends(get_engine),
):
    """Resolve free text to an airport, city or station code."""
    resolution = await engine.resolve_place(q, kind)
    if resolution is None:
        raise HTTPException(status_code=404, detail=f"No {kind} found for '{q}'")
    return {
        "keyword": resolution.keyword,
        "code": resolution.code,
        "name": resolution.name,
        "city_code": resolution.city_code,
    }


@router.get("/rate-limits/{key}")
async def rate_limit_status(key: str, engine: TravelSearchEngine = Depends(get_engine)):
    return {"key": key, "rate_limited": engine.check_rate_limit(key)}
