"""
Report Service
==============

Builds the weather report for one device, or for every device in a group.

THE RULE: PARTIAL DATA BEATS NO DATA
-----------------------------------
A device report pulls from four places:

    device info  ──> weather (needs the coordinates from device info)
    realtime
    history      (only if asked for)

They run at the same time, and each one is allowed to fail on its own. If
OpenWeather is down you still get your station data, the weather field is
null, and metadata.warnings says why.

The only things that DO fail the request:
- the device doesn't exist, or belongs to someone else  -> NotFoundError
- the request itself is broken (bad UUID, bad range)     -> ValidationError

GROUP REPORTS:
-------------
Every member device gets its own device report, a few at a time (bounded
pool). A device that fails ends up in `errors` and everyone else still gets
their report.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Optional, Union

from agritech.database import Device, device_crud, group_crud
from agritech.errors import NotFoundError, ValidationError
from agritech.models import (
    DeviceCharacteristics,
    DeviceReport,
    DeviceSummary,
    GroupReport,
    GroupReportError,
    GroupReportMetadata,
    GroupSummary,
    HistoryRange,
    ReportMetadata,
    TimeRangeInfo,
    WeatherReport,
)
from agritech.services.ecowitt_service import EcowittService
from agritech.services.probe import ProbeResult
from agritech.services.series_normalizer import extract_all
from agritech.services.weather_service import WeatherService
from agritech.utils.time_ranges import (
    TimeRange,
    TimeRangeType,
    describe_time_range,
    get_time_range,
    resolve_time_range,
)
from agritech.utils.validation import validate_uuid

logger = logging.getLogger(__name__)


CURRENT_WEATHER_FIELDS = (
    "temp",
    "feels_like",
    "humidity",
    "pressure",
    "wind_speed",
    "wind_deg",
    "visibility",
    "weather",
    "sunrise",
    "sunset",
    "uvi",
    "clouds",
    "dew_point",
)


def _percent(part: int, total: int) -> int:
    if total == 0:
        return 0
    return int(part / total * 100 + 0.5)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReportService:
    """
    Assembles DeviceReport / GroupReport objects.

    Args:
        ecowitt: EcowittService for station data
        weather: WeatherService for forecasts
        session_factory: Callable returning a SQLAlchemy Session (SessionLocal)
        group_concurrency: How many device reports a group report builds at once
    """

    DEFAULT_HISTORY_RANGE = TimeRangeType.WEEK

    def __init__(
        self,
        ecowitt: EcowittService,
        weather: WeatherService,
        session_factory,
        group_concurrency: int = 4,
    ):
        self.ecowitt = ecowitt
        self.weather = weather
        self.session_factory = session_factory
        self.group_concurrency = max(1, group_concurrency)

    # =========================================================================
    # INPUT CHECKS
    # =========================================================================

    @staticmethod
    def _require_uuid(value: str, field: str):
        if not validate_uuid(value):
            raise ValidationError(f"Invalid {field}: must be a UUID")

    def _load_owned_device(self, device_id: str, user_id: str) -> Device:
        self._require_uuid(device_id, "device_id")
        self._require_uuid(user_id, "user_id")

        with self.session_factory() as db:
            device = device_crud.get_device_by_id(db, str(device_id))

        # Someone else's device looks exactly like a missing one
        if device is None or device.user_id != str(user_id):
            raise NotFoundError("Device not found or you don't have permission to access it")
        return device

    def resolve_history_range(
        self,
        history_range: Optional[Union[TimeRange, HistoryRange, dict]] = None,
    ) -> TimeRange:
        """Turn whatever the caller gave us into a concrete TimeRange (default: last week)."""
        if history_range is None:
            return get_time_range(self.DEFAULT_HISTORY_RANGE)

        if isinstance(history_range, TimeRange):
            if history_range.start >= history_range.end:
                raise ValidationError("Start time must be before end time")
            return history_range

        if isinstance(history_range, dict):
            history_range = HistoryRange(**history_range)

        range_type = history_range.type.value if history_range.type else None
        if not range_type and not (history_range.start_time or history_range.end_time):
            return get_time_range(self.DEFAULT_HISTORY_RANGE)

        return resolve_time_range(
            range_type=range_type,
            start_time=history_range.start_time,
            end_time=history_range.end_time,
        )

    # =========================================================================
    # SUB-FETCH HELPERS
    # =========================================================================

    @staticmethod
    async def _guarded(name: str, awaitable: Awaitable, warnings: list, label: str) -> Any:
        """Await one sub-fetch; on failure log it, note it, and return None."""
        try:
            return await awaitable
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or e.__class__.__name__
            logger.warning(f"[Report {label}] {name} unavailable: {message}")
            warnings.append(f"{name}: {message}")
            return None

    @staticmethod
    def _info_data(device_info: Optional[dict]) -> Optional[dict]:
        if not isinstance(device_info, dict):
            return None
        data = device_info.get("data")
        return data if isinstance(data, dict) and data else None

    def _coordinates(self, info_data: Optional[dict]) -> Optional[tuple]:
        if not info_data:
            return None
        lat, lon = info_data.get("latitude"), info_data.get("longitude")
        if lat is None or lon is None or not WeatherService.validate_coordinates(lat, lon):
            return None
        return float(lat), float(lon)

    @staticmethod
    def build_characteristics(info_data: Optional[dict]) -> Optional[DeviceCharacteristics]:
        """Pick the interesting bits out of /device/info."""
        if not info_data:
            return None

        created_at = None
        create_time = info_data.get("createtime")
        if create_time not in (None, ""):
            try:
                created_at = datetime.fromtimestamp(int(create_time), tz=timezone.utc).isoformat()
            except (TypeError, ValueError, OverflowError):
                created_at = None

        def as_float(value):
            try:
                return float(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        return DeviceCharacteristics(
            id=info_data.get("id"),
            name=info_data.get("name"),
            mac=info_data.get("mac"),
            type=info_data.get("type"),
            station_type=info_data.get("stationtype"),
            timezone=info_data.get("date_zone_id"),
            created_at=created_at,
            latitude=as_float(info_data.get("latitude")),
            longitude=as_float(info_data.get("longitude")),
            last_update=info_data.get("last_update"),
        )

    @staticmethod
    def build_weather_report(overview: Optional[dict]) -> Optional[WeatherReport]:
        if not overview:
            return None
        current = overview.get("current") or {}
        return WeatherReport(
            current={field: current.get(field) for field in CURRENT_WEATHER_FIELDS},
            forecast={
                "daily": overview.get("daily") or [],
                "hourly": overview.get("hourly") or [],
            },
            location=overview.get("location") or {},
        )

    # =========================================================================
    # DEVICE REPORT
    # =========================================================================

    async def build_device_report(
        self,
        device_id: str,
        user_id: str,
        include_history: bool = False,
        history_range: Optional[Union[TimeRange, HistoryRange, dict]] = None,
    ) -> DeviceReport:
        """
        Build the report for one device.

        Args:
            device_id: Device UUID
            user_id: Who's asking (must own the device)
            include_history: Also fetch + normalize historical series
            history_range: TimeRange, HistoryRange or dict (default: last week)

        Returns:
            DeviceReport - always, as long as the device is found and yours

        Raises:
            NotFoundError: device missing or not owned by user_id
            ValidationError: bad IDs or bad history range
        """
        device = self._load_owned_device(device_id, user_id)
        time_range = self.resolve_history_range(history_range) if include_history else None
        label = device.id
        warnings = []

        logger.info(f"[Report {label}] Building report for '{device.name}' (history={include_history})")

        async def info_then_weather():
            device_info = await self._guarded(
                "device info",
                self.ecowitt.get_device_info(device.application_key, device.api_key, device.mac),
                warnings,
                label,
            )
            info_data = self._info_data(device_info)
            coordinates = self._coordinates(info_data)
            if coordinates is None:
                warnings.append("weather: station coordinates unknown")
                return info_data, None

            overview = await self._guarded(
                "weather",
                self.weather.get_weather_overview(*coordinates),
                warnings,
                label,
            )
            return info_data, overview

        async def no_history():
            return None

        history_call = (
            self._guarded(
                "history",
                self.ecowitt.get_history(
                    device.application_key, device.api_key, device.mac,
                    time_range.start, time_range.end,
                ),
                warnings,
                label,
            )
            if time_range
            else no_history()
        )

        (info_data, overview), realtime_result, history_result = await asyncio.gather(
            info_then_weather(),
            self._guarded(
                "realtime",
                self.ecowitt.get_realtime(device.application_key, device.api_key, device.mac),
                warnings,
                label,
            ),
            history_call,
        )

        metadata = ReportMetadata(include_history=include_history, generated_at=_utc_now())
        diagnostics = {}

        # ---- realtime ----
        realtime = None
        if isinstance(realtime_result, ProbeResult):
            if realtime_result.ok:
                data = realtime_result.data
                realtime = data if isinstance(data, dict) else {"data": data}
                metadata.device_online = realtime_result.payload.get("code") == 0
            else:
                warnings.append(f"realtime: {(realtime_result.diagnostics or {}).get('message', 'no data')}")
                diagnostics["realtime"] = realtime_result.diagnostics

        # ---- history ----
        historical = None
        if isinstance(history_result, ProbeResult):
            if history_result.ok and isinstance(history_result.data, dict):
                historical = extract_all(history_result.data)
                metadata.historical_data_keys = sorted(history_result.data.keys())
            else:
                warnings.append(f"history: {(history_result.diagnostics or {}).get('message', 'no data')}")
                diagnostics["history"] = history_result.diagnostics

        characteristics = self.build_characteristics(info_data)
        weather = self.build_weather_report(overview)

        metadata.has_device_info = characteristics is not None
        metadata.has_realtime_data = realtime is not None
        metadata.has_weather_data = weather is not None
        metadata.has_historical_data = bool(historical and historical.any_data())
        metadata.has_soil_moisture_data = bool(historical and historical.soil_moisture.has_data)
        metadata.diagnostic_performed = bool(diagnostics)
        metadata.diagnostics = diagnostics or None
        metadata.warnings = warnings

        return DeviceReport(
            device=DeviceSummary(
                id=device.id,
                name=device.name,
                mac=device.mac,
                device_type=device.device_type,
                status=device.status,
            ),
            characteristics=characteristics,
            realtime=realtime,
            weather=weather,
            historical=historical,
            time_range=(
                TimeRangeInfo(
                    start=time_range.start,
                    end=time_range.end,
                    description=describe_time_range(time_range.start, time_range.end),
                )
                if time_range
                else None
            ),
            metadata=metadata,
        )

    # =========================================================================
    # GROUP REPORT
    # =========================================================================

    async def build_group_report(
        self,
        group_id: str,
        user_id: str,
        include_history: bool = False,
        history_range: Optional[Union[TimeRange, HistoryRange, dict]] = None,
    ) -> GroupReport:
        """
        Build a report for every device in a group.

        Device reports run concurrently (at most group_concurrency at once).
        A failing device is recorded in `errors` and never fails the group.

        Raises:
            NotFoundError: group missing or not owned by user_id
            ValidationError: bad IDs or bad history range
        """
        self._require_uuid(group_id, "group_id")
        self._require_uuid(user_id, "user_id")

        with self.session_factory() as db:
            group = group_crud.get(db, str(group_id))
            if group is None or group.user_id != str(user_id):
                raise NotFoundError("Group not found or you don't have permission to access it")
            devices = device_crud.get_devices_by_group_id(db, group.id)

        # One window for the whole group so the devices line up
        time_range = self.resolve_history_range(history_range) if include_history else None
        semaphore = asyncio.Semaphore(self.group_concurrency)

        logger.info(f"[Group {group.id}] Building reports for {len(devices)} devices")

        async def build_one(device: Device):
            async with semaphore:
                try:
                    report = await self.build_device_report(device.id, user_id, include_history, time_range)
                    return device, report, None
                except Exception as e:
                    logger.warning(f"[Group {group.id}] Report for device {device.id} failed: {e}")
                    return device, None, e

        outcomes = await asyncio.gather(*(build_one(device) for device in devices))

        reports = []
        errors = []
        for device, report, error in outcomes:
            if report is not None:
                reports.append(report)
            else:
                errors.append(GroupReportError(
                    device_id=device.id,
                    device_name=device.name,
                    device_mac=device.mac,
                    error=getattr(error, "message", None) or str(error) or error.__class__.__name__,
                ))

        total = len(devices)
        with_history = sum(1 for report in reports if report.metadata.has_historical_data)
        with_soil = sum(1 for report in reports if report.metadata.has_soil_moisture_data)

        metadata = GroupReportMetadata(
            include_history=include_history,
            total_devices=total,
            successful_reports=len(reports),
            failed_reports=len(errors),
            has_errors=bool(errors),
            devices_with_historical_data=with_history,
            devices_with_soil_moisture_data=with_soil,
            success_rate=_percent(len(reports), total),
            historical_data_success_rate=_percent(with_history, total),
            soil_moisture_success_rate=_percent(with_soil, total),
            generated_at=_utc_now(),
        )

        return GroupReport(
            group=GroupSummary(id=group.id, name=group.name, description=group.description),
            devices=reports,
            errors=errors,
            time_range=(
                TimeRangeInfo(
                    start=time_range.start,
                    end=time_range.end,
                    description=describe_time_range(time_range.start, time_range.end),
                )
                if time_range
                else None
            ),
            metadata=metadata,
        )
