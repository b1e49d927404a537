"""
Report Models
=============
Pydantic models for normalized series and assembled weather reports.

A report is built fresh on every request and is never stored. Everything in
here serializes to plain JSON, which is all the export layer needs.

THE SHAPE OF A DEVICE REPORT:
    DeviceReport
    ├── device           (our DB row: id, name, mac, type)
    ├── characteristics  (what EcoWitt says about the station, or null)
    ├── realtime         (raw realtime snapshot, or null)
    ├── weather          (OpenWeather current + forecast, or null)
    ├── historical       (4 normalized series, or null)
    ├── time_range       (start, end, "last week")
    └── metadata         (which sub-fetches worked, and why not)
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Optional
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class SensorKind(str, Enum):
    """The four series we pull out of EcoWitt history payloads."""
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"
    SOIL_MOISTURE = "soil_moisture"


class ReportFormat(str, Enum):
    JSON = "json"
    PDF = "pdf"


class HistoryRangeType(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "3months"


# =============================================================================
# SERIES MODELS
# =============================================================================

class SeriesPoint(BaseModel):
    time: int = Field(..., description="Epoch milliseconds")
    value: float


class SeriesStats(BaseModel):
    """min/max/avg of a series. All zeros when the series is empty."""
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0


class NormalizedSeries(BaseModel):
    """
    One sensor's history, whatever shape EcoWitt sent it in.

    Fields:
        kind: Which sensor this is
        source: Dotted path the data was found under (None if not found)
        points: (time, value) pairs sorted by time ascending
        stats: min/max/avg over the values
        has_data: False means stats are placeholder zeros
        channel_count: Soil moisture only - how many soil_chN channels had data
        skipped_entries: Entries dropped because the time or value wasn't numeric
        unit: Unit label EcoWitt attached to the series, if any
    """
    kind: SensorKind
    source: Optional[str] = None
    points: list[SeriesPoint] = Field(default_factory=list)
    stats: SeriesStats = Field(default_factory=SeriesStats)
    has_data: bool = False
    channel_count: int = 0
    skipped_entries: int = 0
    unit: Optional[str] = None


class HistoricalSeries(BaseModel):
    temperature: NormalizedSeries
    humidity: NormalizedSeries
    pressure: NormalizedSeries
    soil_moisture: NormalizedSeries

    def any_data(self) -> bool:
        return any(series.has_data for series in self.series())

    def series(self) -> list[NormalizedSeries]:
        return [self.temperature, self.humidity, self.pressure, self.soil_moisture]


# =============================================================================
# REQUEST MODELS
# =============================================================================

class HistoryRange(BaseModel):
    """
    Which history window to include.

    Either a preset type ("week") or an explicit start/end.
    """
    type: Optional[HistoryRangeType] = Field(None, examples=["week"])
    start_time: Optional[str] = Field(None, examples=["2024-05-01T00:00:00Z"])
    end_time: Optional[str] = Field(None, examples=["2024-05-08T00:00:00Z"])


class DeviceReportRequest(BaseModel):
    """
    Example Request:
        POST /api/reports/device
        {
            "device_id": "...",
            "user_id": "...",
            "include_history": true,
            "history_range": {"type": "week"},
            "format": "json"
        }
    """
    device_id: str = Field(..., description="Device UUID")
    user_id: str = Field(..., description="Requesting user UUID")
    include_history: bool = False
    history_range: Optional[HistoryRange] = None
    format: ReportFormat = ReportFormat.JSON
    export: bool = Field(False, description="Also write the report to disk and record it")


class GroupReportRequest(BaseModel):
    group_id: str = Field(..., description="Group UUID")
    user_id: str = Field(..., description="Requesting user UUID")
    include_history: bool = False
    history_range: Optional[HistoryRange] = None
    format: ReportFormat = ReportFormat.JSON
    export: bool = False


# =============================================================================
# REPORT MODELS
# =============================================================================

class DeviceSummary(BaseModel):
    id: str
    name: str
    mac: str
    device_type: str
    status: str


class DeviceCharacteristics(BaseModel):
    """What EcoWitt's /device/info says about the station."""
    id: Optional[Any] = None
    name: Optional[str] = None
    mac: Optional[str] = None
    type: Optional[Any] = None
    station_type: Optional[str] = None
    timezone: Optional[str] = None
    created_at: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    last_update: Optional[Any] = None


class WeatherReport(BaseModel):
    current: dict[str, Any] = Field(default_factory=dict)
    forecast: dict[str, list] = Field(default_factory=lambda: {"daily": [], "hourly": []})
    location: dict[str, Any] = Field(default_factory=dict)


class TimeRangeInfo(BaseModel):
    start: datetime
    end: datetime
    description: str


class ReportMetadata(BaseModel):
    """
    Which parts of the report made it.

    A False flag plus a line in warnings is how a device report says
    "this part is missing" without failing.
    """
    include_history: bool = False
    has_device_info: bool = False
    has_realtime_data: bool = False
    has_weather_data: bool = False
    has_historical_data: bool = False
    has_soil_moisture_data: bool = False
    device_online: bool = False
    diagnostic_performed: bool = False
    historical_data_keys: list[str] = Field(default_factory=list)
    diagnostics: Optional[dict[str, Any]] = None
    warnings: list[str] = Field(default_factory=list)
    generated_at: datetime


class DeviceReport(BaseModel):
    device: DeviceSummary
    characteristics: Optional[DeviceCharacteristics] = None
    realtime: Optional[dict[str, Any]] = None
    weather: Optional[WeatherReport] = None
    historical: Optional[HistoricalSeries] = None
    time_range: Optional[TimeRangeInfo] = None
    metadata: ReportMetadata


class GroupSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class GroupReportError(BaseModel):
    device_id: str
    device_name: Optional[str] = None
    device_mac: Optional[str] = None
    error: str


class GroupReportMetadata(BaseModel):
    include_history: bool = False
    total_devices: int = 0
    successful_reports: int = 0
    failed_reports: int = 0
    has_errors: bool = False
    devices_with_historical_data: int = 0
    devices_with_soil_moisture_data: int = 0
    success_rate: int = 0
    historical_data_success_rate: int = 0
    soil_moisture_success_rate: int = 0
    generated_at: datetime


class GroupReport(BaseModel):
    group: GroupSummary
    devices: list[DeviceReport] = Field(default_factory=list)
    errors: list[GroupReportError] = Field(default_factory=list)
    time_range: Optional[TimeRangeInfo] = None
    metadata: GroupReportMetadata


# =============================================================================
# EXPORT MODELS
# =============================================================================

class ReportFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    file_name: str
    content_url: str
    status: str
    created_at: Optional[datetime] = None


class ReportFileListResponse(BaseModel):
    files: list[ReportFileResponse]
    total: int
