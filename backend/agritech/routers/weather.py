"""
Weather API Router
==================

Thin wrapper around OpenWeather's One Call 3.0 API.

GET /api/weather/overview?lat=&lon=             - Current + 7 day / 24 hour forecast
GET /api/weather/current?lat=&lon=&exclude=     - Raw One Call response
GET /api/weather/timemachine?lat=&lon=&dt=      - Weather at a moment (epoch seconds)
GET /api/weather/daily?lat=&lon=&date=          - Daily aggregation (YYYY-MM-DD)

Coordinates are checked here, so bad ones never reach OpenWeather.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from agritech.errors import VendorAPIError
from agritech.routers.dependencies import get_weather_service, http_error


router = APIRouter(prefix="/api/weather", tags=["weather"])


def validate_lat(lat: float = Query(..., ge=-90.0, le=90.0)) -> float:
    return lat


def validate_lon(lon: float = Query(..., ge=-180.0, le=180.0)) -> float:
    return lon


@router.get("/overview")
async def weather_overview(
    lat: float = Depends(validate_lat),
    lon: float = Depends(validate_lon),
    units: str = "metric",
    weather = Depends(get_weather_service),
):
    """The same trimmed forecast that goes into device reports."""
    try:
        return await weather.get_weather_overview(lat, lon, units=units)
    except VendorAPIError as e:
        raise http_error(e)


@router.get("/current")
async def current_weather(
    lat: float = Depends(validate_lat),
    lon: float = Depends(validate_lon),
    exclude: Optional[str] = Query(None, examples=["minutely,alerts"]),
    units: str = "metric",
    lang: str = "en",
    weather = Depends(get_weather_service),
):
    try:
        return await weather.get_current_weather(lat, lon, exclude=exclude, units=units, lang=lang)
    except VendorAPIError as e:
        raise http_error(e)


@router.get("/timemachine")
async def weather_at_time(
    dt: int = Query(..., description="Unix timestamp (seconds)"),
    lat: float = Depends(validate_lat),
    lon: float = Depends(validate_lon),
    units: str = "metric",
    lang: str = "en",
    weather = Depends(get_weather_service),
):
    try:
        return await weather.get_weather_for_timestamp(lat, lon, dt, units=units, lang=lang)
    except VendorAPIError as e:
        raise http_error(e)


@router.get("/daily")
async def daily_aggregation(
    day: date = Query(..., alias="date", description="Day to summarize (YYYY-MM-DD)"),
    lat: float = Depends(validate_lat),
    lon: float = Depends(validate_lon),
    units: str = "metric",
    lang: str = "en",
    weather = Depends(get_weather_service),
):
    try:
        return await weather.get_daily_aggregation(lat, lon, day, units=units, lang=lang)
    except VendorAPIError as e:
        raise http_error(e)
