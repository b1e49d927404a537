"""
OpenWeather Service
===================

Forecasts and current conditions for a station's coordinates, from the
OpenWeather One Call API 3.0.

API Documentation: https://openweathermap.org/api/one-call-3

Authentication:
- One API key for the whole app (OPENWEATHER_API_KEY in .env)
- Without it every call fails with a VendorAPIError, which reports treat
  as "no weather data" rather than an error
"""

import logging
from datetime import date, datetime
from typing import Any, Optional, Union

import httpx

from agritech.errors import VendorAPIError

logger = logging.getLogger(__name__)


class WeatherService:
    """
    Async client for OpenWeather One Call 3.0.

    Everything comes back in metric units unless asked otherwise.
    """

    API_BASE = "https://api.openweathermap.org/data/3.0"

    WEATHER_DESCRIPTIONS = {
        200: "Thunderstorm with light rain",
        201: "Thunderstorm with rain",
        202: "Thunderstorm with heavy rain",
        210: "Light thunderstorm",
        211: "Thunderstorm",
        212: "Heavy thunderstorm",
        221: "Ragged thunderstorm",
        230: "Thunderstorm with light drizzle",
        231: "Thunderstorm with drizzle",
        232: "Thunderstorm with heavy drizzle",
        300: "Light intensity drizzle",
        301: "Drizzle",
        302: "Heavy intensity drizzle",
        310: "Light intensity drizzle rain",
        311: "Drizzle rain",
        312: "Heavy intensity drizzle rain",
        313: "Shower rain and drizzle",
        314: "Heavy shower rain and drizzle",
        321: "Shower drizzle",
        500: "Light rain",
        501: "Moderate rain",
        502: "Heavy intensity rain",
        503: "Very heavy rain",
        504: "Extreme rain",
        511: "Freezing rain",
        520: "Light intensity shower rain",
        521: "Shower rain",
        522: "Heavy intensity shower rain",
        531: "Ragged shower rain",
        600: "Light snow",
        601: "Snow",
        602: "Heavy snow",
        611: "Sleet",
        612: "Light shower sleet",
        613: "Shower sleet",
        615: "Light rain and snow",
        616: "Rain and snow",
        620: "Light shower snow",
        621: "Shower snow",
        622: "Heavy shower snow",
        701: "Mist",
        711: "Smoke",
        721: "Haze",
        731: "Sand/dust whirls",
        741: "Fog",
        751: "Sand",
        761: "Dust",
        762: "Volcanic ash",
        771: "Squalls",
        781: "Tornado",
        800: "Clear sky",
        801: "Few clouds",
        802: "Scattered clouds",
        803: "Broken clouds",
        804: "Overcast clouds",
    }

    def __init__(
        self,
        api_key: Optional[str],
        request_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.http_client = http_client or httpx.AsyncClient(
            timeout=request_timeout,
            headers={"Accept": "application/json", "User-Agent": "AgriTech-Backend/1.0"},
        )

        if not api_key:
            logger.warning("[OpenWeather] OPENWEATHER_API_KEY is not set - weather data will be unavailable")

    async def _call(self, endpoint: str, params: dict) -> dict:
        """GET an endpoint, turning every failure into a VendorAPIError."""
        if not self.api_key:
            raise VendorAPIError("openweather", "OpenWeather API key is not configured")

        query = dict(params)
        query["appid"] = self.api_key

        try:
            response = await self.http_client.get(f"{self.API_BASE}{endpoint}", params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                message = "Invalid OpenWeather API key"
            elif status == 429:
                message = "OpenWeather API rate limit exceeded"
            elif status == 404:
                message = "Weather data not found for the specified location"
            elif status == 400:
                message = f"Invalid parameters: {self._error_message(e.response)}"
            else:
                message = f"OpenWeather API Error: HTTP {status}"
            logger.error(f"[OpenWeather] {message}")
            raise VendorAPIError("openweather", message, status_code=status) from e
        except httpx.TimeoutException as e:
            logger.error("[OpenWeather] Request timed out")
            raise VendorAPIError("openweather", "Request timeout - OpenWeather API is not responding") from e
        except httpx.ConnectError as e:
            logger.error(f"[OpenWeather] Connection failed: {e}")
            raise VendorAPIError("openweather", "Unable to connect to OpenWeather API") from e
        except httpx.RequestError as e:
            raise VendorAPIError("openweather", f"OpenWeather API Error: {e}") from e
        except ValueError as e:
            raise VendorAPIError("openweather", "OpenWeather API returned invalid JSON") from e

        if not data:
            raise VendorAPIError("openweather", "Empty response from OpenWeather API")
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message", response.text[:200])
        except ValueError:
            return response.text[:200]

    @staticmethod
    def _base_params(lat: float, lon: float, units: str, lang: str) -> dict:
        return {"lat": lat, "lon": lon, "units": units, "lang": lang}

    # =========================================================================
    # ONE CALL ENDPOINTS
    # =========================================================================

    async def get_current_weather(
        self,
        lat: float,
        lon: float,
        exclude: Optional[str] = None,
        units: str = "metric",
        lang: str = "en",
    ) -> dict:
        """Current conditions + minutely/hourly/daily forecast (minus `exclude`)."""
        params = self._base_params(lat, lon, units, lang)
        if exclude:
            params["exclude"] = exclude
        return await self._call("/onecall", params)

    async def get_weather_for_timestamp(
        self,
        lat: float,
        lon: float,
        dt: Union[int, datetime],
        units: str = "metric",
        lang: str = "en",
    ) -> dict:
        """Weather at a specific moment (past or future), dt in epoch seconds."""
        if isinstance(dt, datetime):
            dt = int(dt.timestamp())
        params = self._base_params(lat, lon, units, lang)
        params["dt"] = int(dt)
        return await self._call("/onecall/timemachine", params)

    async def get_daily_aggregation(
        self,
        lat: float,
        lon: float,
        day: Union[str, date],
        units: str = "metric",
        lang: str = "en",
    ) -> dict:
        """Aggregated weather for one day (YYYY-MM-DD)."""
        params = self._base_params(lat, lon, units, lang)
        params["date"] = day.isoformat() if isinstance(day, date) else day
        return await self._call("/onecall/day_summary", params)

    async def get_weather_overview(self, lat: float, lon: float, units: str = "metric") -> dict:
        """
        Trimmed-down forecast used in reports.

        Returns:
            {location, current, daily (next 7 days), hourly (next 24 hours)}
        """
        weather_data = await self.get_current_weather(lat, lon, exclude="minutely", units=units)
        return {
            "location": {
                "lat": lat,
                "lon": lon,
                "timezone": weather_data.get("timezone"),
                "timezone_offset": weather_data.get("timezone_offset"),
            },
            "current": weather_data.get("current") or {},
            "daily": (weather_data.get("daily") or [])[:7],
            "hourly": (weather_data.get("hourly") or [])[:24],
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def validate_coordinates(lat: Any, lon: Any) -> bool:
        try:
            lat, lon = float(lat), float(lon)
        except (TypeError, ValueError):
            return False
        return -90 <= lat <= 90 and -180 <= lon <= 180

    @staticmethod
    def kelvin_to_celsius(kelvin: float) -> float:
        return kelvin - 273.15

    @staticmethod
    def kelvin_to_fahrenheit(kelvin: float) -> float:
        return (kelvin - 273.15) * 9 / 5 + 32

    @classmethod
    def get_weather_description(cls, condition_id: int) -> str:
        return cls.WEATHER_DESCRIPTIONS.get(condition_id, "Unknown weather condition")

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()
