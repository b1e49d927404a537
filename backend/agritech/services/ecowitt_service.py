"""
EcoWitt Weather Station Service
===============================

Talks to the EcoWitt cloud API (v3) for station data.

API Documentation: https://doc.ecowitt.net/web/#/apiv3en

Authentication:
- Every call needs the account's application_key + api_key
- Plus the station's MAC address to say which station we mean

THE ENDPOINTS WE USE:
--------------------
    GET /device/real_time   - what the station sees right now
    GET /device/history     - readings between two dates
    GET /device/info        - name, coordinates, station type...

THE ANNOYING PART:
-----------------
EcoWitt answers {"code": 0, "msg": "success", "data": []} when the station
has data but didn't like our call_back / cycle_type / unit combination. So
realtime and history both run a probe chain (see probe.py) of alternative
parameter sets before concluding the station really has nothing.

It also rate-limits with {"code": -1, "msg": "Operation too frequent"}. We
wait 2 seconds and retry once; if it's still unhappy we hand back the
rate-limit response with a note instead of blowing up.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Optional, Union

import httpx

from agritech.errors import VendorAPIError
from agritech.services.probe import (
    ProbeResult,
    ProbeStatus,
    ProbeStep,
    ProbeAttempt,
    build_diagnostics,
    is_rate_limited,
    probe,
)
from agritech.utils.time_ranges import parse_datetime

logger = logging.getLogger(__name__)


class EcowittService:
    """
    Async client for the EcoWitt v3 API.

    One instance (and one pooled httpx client) is shared by the whole app.
    """

    API_BASE = "https://api.ecowitt.net/api/v3"

    # Metric unit ids: temp °C, pressure hPa, wind km/h, rain mm
    METRIC_UNITS = {
        "temp_unitid": 1,
        "pressure_unitid": 3,
        "wind_speed_unitid": 6,
        "rainfall_unitid": 12,
    }

    # History defaults: °F, inHg, mph, in, W/m², L
    HISTORY_UNITS = {
        "temp_unitid": 2,
        "pressure_unitid": 4,
        "wind_speed_unitid": 9,
        "rainfall_unitid": 13,
        "solar_irradiance_unitid": 16,
        "capacity_unitid": 24,
    }

    REALTIME_STEPS = [
        ProbeStep("without call_back", drop_params=("call_back",)),
        ProbeStep("call_back=indoor", set_params={"call_back": "indoor"}),
    ]

    HISTORY_STEPS = [
        ProbeStep("call_back=outdoor", set_params={"call_back": "outdoor"}),
        ProbeStep("cycle_type=5min", set_params={"cycle_type": "5min"}),
        ProbeStep("metric units", set_params=METRIC_UNITS),
    ]

    REALTIME_EMPTY_CAUSES = [
        "Device is offline or not sending data",
        "Wrong call_back scope for this station",
        "No sensors configured on the station",
        "Invalid application_key / api_key / MAC combination",
    ]

    HISTORY_EMPTY_CAUSES = [
        "No data recorded in the requested time range",
        "Device was offline during the requested time range",
        "Station firmware expects a different call_back / cycle_type / unit combination",
        "Invalid application_key / api_key / MAC combination",
    ]

    # Keys every response has that aren't sensor data
    RESPONSE_META_KEYS = ("code", "msg", "time", "data")

    SENSOR_UNITS = {
        "temperature": "°C",
        "humidity": "%",
        "pressure": "hPa",
        "wind_speed": "km/h",
        "wind_direction": "°",
        "rainfall": "mm",
        "uv": "index",
        "solar_radiation": "W/m²",
        "pm25": "μg/m³",
        "pm10": "μg/m³",
        "co2": "ppm",
        "soil_temperature": "°C",
        "soil_moisture": "%",
        "leaf_temperature": "°C",
        "leaf_wetness": "%",
    }

    def __init__(
        self,
        request_timeout: float = 10.0,
        rate_limit_delay: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.http_client = http_client or httpx.AsyncClient(timeout=request_timeout)
        self.rate_limit_delay = rate_limit_delay

    # =========================================================================
    # LOW-LEVEL REQUESTS
    # =========================================================================

    async def _request(self, endpoint: str, params: dict) -> dict:
        """One GET, errors wrapped into VendorAPIError."""
        url = f"{self.API_BASE}{endpoint}"
        mac = params.get("mac", "?")

        try:
            response = await self.http_client.get(url, params=params)
            response.raise_for_status()
            response_data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[EcoWitt {mac}] HTTP {e.response.status_code} from {endpoint}")
            raise VendorAPIError(
                "ecowitt",
                f"Ecowitt API Error: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"[EcoWitt {mac}] Timeout calling {endpoint}")
            raise VendorAPIError("ecowitt", "Ecowitt API Error: request timed out") from e
        except httpx.RequestError as e:
            logger.error(f"[EcoWitt {mac}] Request to {endpoint} failed: {e}")
            raise VendorAPIError("ecowitt", f"Ecowitt API Error: {e}") from e
        except ValueError as e:
            raise VendorAPIError("ecowitt", "Ecowitt API Error: response was not valid JSON") from e

        if not isinstance(response_data, dict):
            raise VendorAPIError("ecowitt", "Ecowitt API Error: unexpected response shape")

        code = response_data.get("code")
        if code not in (0, None) and not is_rate_limited(response_data):
            message = response_data.get("msg") or "unknown error"
            logger.error(f"[EcoWitt {mac}] {endpoint} returned code {code}: {message}")
            raise VendorAPIError("ecowitt", f"Ecowitt API Error: {message} (code {code})")

        return response_data

    async def _get(self, endpoint: str, params: dict) -> dict:
        """GET with the single rate-limit retry."""
        response_data = await self._request(endpoint, params)

        if is_rate_limited(response_data):
            logger.warning(
                f"[EcoWitt {params.get('mac', '?')}] Rate limited on {endpoint}, "
                f"retrying in {self.rate_limit_delay}s"
            )
            await asyncio.sleep(self.rate_limit_delay)
            response_data = await self._request(endpoint, params)

        return response_data

    @staticmethod
    def format_time(value: Union[datetime, str]) -> str:
        """EcoWitt wants 'YYYY-MM-DD HH:MM:SS' (UTC)."""
        return parse_datetime(value).strftime("%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _credentials(application_key: str, api_key: str, mac: str) -> dict:
        return {"application_key": application_key, "api_key": api_key, "mac": mac}

    # =========================================================================
    # EMPTY CHECKS
    # =========================================================================

    @staticmethod
    def realtime_is_empty(response: dict) -> bool:
        data = response.get("data")
        return isinstance(data, list) and len(data) == 0

    @staticmethod
    def history_is_empty(response: dict) -> bool:
        data = response.get("data")
        return not isinstance(data, dict) or len(data) == 0

    # =========================================================================
    # REALTIME
    # =========================================================================

    def _realtime_params(self, application_key: str, api_key: str, mac: str) -> dict:
        params = self._credentials(application_key, api_key, mac)
        params["call_back"] = "all"
        params.update(self.METRIC_UNITS)
        return params

    def _root_level_fallback(self, result: ProbeResult) -> Optional[ProbeResult]:
        """Some stations put sensor keys at the top level of the base response instead of under `data`."""
        base = result.base_payload if result.base_payload is not None else result.payload
        root_keys = {
            key: value
            for key, value in base.items()
            if key not in self.RESPONSE_META_KEYS
        }
        if not root_keys:
            result.attempts.append(ProbeAttempt("root-level keys", {}, "empty"))
            return None

        result.attempts.append(ProbeAttempt("root-level keys", {}, "data"))
        payload = {
            "code": base.get("code"),
            "msg": base.get("msg"),
            "time": base.get("time"),
            "data": root_keys,
        }
        return ProbeResult(ProbeStatus.OK, payload, result.attempts, base_payload=base)

    async def get_realtime(self, application_key: str, api_key: str, mac: str) -> ProbeResult:
        """
        Get the station's current readings.

        Falls back through: no call_back -> call_back=indoor -> sensor keys at
        the response root. If all of that is empty you get an EMPTY result
        with diagnostics, not an exception.

        Raises:
            VendorAPIError: network/auth problems on the first request
        """
        params = self._realtime_params(application_key, api_key, mac)
        result = await probe(
            fetch=lambda p: self._get("/device/real_time", p),
            base_params=params,
            steps=self.REALTIME_STEPS,
            is_empty=self.realtime_is_empty,
            label=f"EcoWitt {mac} realtime",
        )

        if result.status == ProbeStatus.EMPTY:
            root_result = self._root_level_fallback(result)
            if root_result:
                logger.info(f"[EcoWitt {mac}] Realtime data found at response root")
                return root_result

            logger.warning(f"[EcoWitt {mac}] Realtime returned no data after all strategies")
            result.diagnostics = build_diagnostics(
                "Device returned empty data array",
                result.attempts,
                params,
                possible_causes=self.REALTIME_EMPTY_CAUSES,
            )
        elif result.status == ProbeStatus.RATE_LIMITED:
            result.diagnostics = self._rate_limit_diagnostics(result, params)

        return result

    # =========================================================================
    # HISTORY
    # =========================================================================

    def _history_params(
        self,
        application_key: str,
        api_key: str,
        mac: str,
        start_time: Union[datetime, str],
        end_time: Union[datetime, str],
    ) -> dict:
        params = self._credentials(application_key, api_key, mac)
        params.update({
            "start_date": self.format_time(start_time),
            "end_date": self.format_time(end_time),
            "call_back": "indoor",
            "cycle_type": "auto",
        })
        params.update(self.HISTORY_UNITS)
        return params

    def _rate_limit_diagnostics(self, result: ProbeResult, params: dict) -> dict:
        return build_diagnostics(
            "Persistent rate limiting after retry",
            result.attempts,
            params,
            possible_causes=["Too many requests to EcoWitt in a short time"],
            retry_attempted=True,
        )

    async def get_history(
        self,
        application_key: str,
        api_key: str,
        mac: str,
        start_time: Union[datetime, str],
        end_time: Union[datetime, str],
    ) -> ProbeResult:
        """
        Get historical readings between start_time and end_time.

        Falls back through: call_back=outdoor -> 5 minute cycles -> metric units.

        Raises:
            VendorAPIError: network/auth problems on the first request
        """
        params = self._history_params(application_key, api_key, mac, start_time, end_time)
        result = await probe(
            fetch=lambda p: self._get("/device/history", p),
            base_params=params,
            steps=self.HISTORY_STEPS,
            is_empty=self.history_is_empty,
            label=f"EcoWitt {mac} history",
        )

        if result.status == ProbeStatus.EMPTY:
            logger.warning(f"[EcoWitt {mac}] History returned no data after all strategies")
            result.diagnostics = build_diagnostics(
                "No historical data returned for any parameter combination",
                result.attempts,
                params,
                possible_causes=self.HISTORY_EMPTY_CAUSES,
            )
        elif result.status == ProbeStatus.RATE_LIMITED:
            logger.warning(f"[EcoWitt {mac}] History still rate limited after retry")
            result.diagnostics = self._rate_limit_diagnostics(result, params)

        return result

    # =========================================================================
    # DIAGNOSTICS (every strategy, no short-circuit)
    # =========================================================================

    async def diagnose_realtime(self, application_key: str, api_key: str, mac: str) -> ProbeResult:
        """Run every realtime strategy and report what each one returned."""
        params = self._realtime_params(application_key, api_key, mac)
        result = await probe(
            fetch=lambda p: self._get("/device/real_time", p),
            base_params=params,
            steps=self.REALTIME_STEPS,
            is_empty=self.realtime_is_empty,
            exhaustive=True,
            label=f"EcoWitt {mac} diagnose",
        )
        result.diagnostics = build_diagnostics(
            "Realtime diagnostic run",
            result.attempts,
            params,
            possible_causes=[] if result.ok else self.REALTIME_EMPTY_CAUSES,
        )
        return result

    async def diagnose_history(
        self,
        application_key: str,
        api_key: str,
        mac: str,
        start_time: Union[datetime, str],
        end_time: Union[datetime, str],
    ) -> ProbeResult:
        """Run every history strategy and report what each one returned."""
        params = self._history_params(application_key, api_key, mac, start_time, end_time)
        result = await probe(
            fetch=lambda p: self._get("/device/history", p),
            base_params=params,
            steps=self.HISTORY_STEPS,
            is_empty=self.history_is_empty,
            exhaustive=True,
            label=f"EcoWitt {mac} diagnose-history",
        )
        result.diagnostics = build_diagnostics(
            "History diagnostic run",
            result.attempts,
            params,
            possible_causes=[] if result.ok else self.HISTORY_EMPTY_CAUSES,
            data_keys=sorted(result.data.keys()) if isinstance(result.data, dict) else [],
        )
        return result

    # =========================================================================
    # DEVICE INFO
    # =========================================================================

    async def get_device_info(self, application_key: str, api_key: str, mac: str) -> dict:
        """
        Get station details (name, coordinates, station type, timezone...).

        Raises:
            VendorAPIError: on any failure
        """
        return await self._get("/device/info", self._credentials(application_key, api_key, mac))

    # =========================================================================
    # SEVERAL DEVICES AT ONCE
    # =========================================================================

    async def _fetch_for_device(self, device, fetch: Awaitable) -> tuple:
        """(mac, result) for one device. Any failure becomes that device's VendorAPIError."""
        try:
            return device.mac, await fetch
        except VendorAPIError as e:
            return device.mac, e
        except Exception as e:
            logger.error(f"[EcoWitt {device.mac}] Unexpected failure: {e}")
            return device.mac, VendorAPIError("ecowitt", f"Ecowitt API Error: {e}")

    async def get_multiple_realtime(self, devices: list) -> dict[str, Any]:
        """
        Realtime for several devices in parallel, keyed by MAC.

        One device failing doesn't affect the others - its entry is a
        VendorAPIError instead of a ProbeResult.
        """
        results = await asyncio.gather(*(
            self._fetch_for_device(
                device, self.get_realtime(device.application_key, device.api_key, device.mac)
            )
            for device in devices
        ))
        return dict(results)

    async def get_multiple_history(
        self,
        devices: list,
        start_time: Union[datetime, str],
        end_time: Union[datetime, str],
    ) -> dict[str, Any]:
        """History for several devices in parallel, keyed by MAC."""
        results = await asyncio.gather(*(
            self._fetch_for_device(
                device,
                self.get_history(device.application_key, device.api_key, device.mac, start_time, end_time),
            )
            for device in devices
        ))
        return dict(results)

    @classmethod
    def get_sensor_unit(cls, sensor_name: str) -> str:
        """Display unit for a sensor name ("unknown" if we don't know it)."""
        return cls.SENSOR_UNITS.get(sensor_name, "unknown")

    async def close(self):
        """Close HTTP client."""
        await self.http_client.aclose()
