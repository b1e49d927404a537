"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from agritech.models import SensorKind, DeviceReport
"""

from .device import (
    # Device categories and status
    DeviceType,
    DeviceStatus,

    # What the frontend sends us
    CreateDeviceRequest,
    UpdateDeviceRequest,
    CreateGroupRequest,
    UpdateGroupRequest,
    CompareDevicesRequest,

    # What we send back
    DeviceResponse,
    DeviceListResponse,
    GroupResponse,
    GroupDetailResponse,
    GroupListResponse,
)
from .report import (
    # Series
    SensorKind,
    SeriesPoint,
    SeriesStats,
    NormalizedSeries,
    HistoricalSeries,

    # Report requests
    ReportFormat,
    HistoryRangeType,
    HistoryRange,
    DeviceReportRequest,
    GroupReportRequest,

    # Assembled reports
    DeviceSummary,
    DeviceCharacteristics,
    WeatherReport,
    TimeRangeInfo,
    ReportMetadata,
    DeviceReport,
    GroupSummary,
    GroupReportError,
    GroupReportMetadata,
    GroupReport,

    # Exported files
    ReportFileResponse,
    ReportFileListResponse,
)

__all__ = [
    "DeviceType",
    "DeviceStatus",
    "CreateDeviceRequest",
    "UpdateDeviceRequest",
    "CreateGroupRequest",
    "UpdateGroupRequest",
    "CompareDevicesRequest",
    "DeviceResponse",
    "DeviceListResponse",
    "GroupResponse",
    "GroupDetailResponse",
    "GroupListResponse",
    "SensorKind",
    "SeriesPoint",
    "SeriesStats",
    "NormalizedSeries",
    "HistoricalSeries",
    "ReportFormat",
    "HistoryRangeType",
    "HistoryRange",
    "DeviceReportRequest",
    "GroupReportRequest",
    "DeviceSummary",
    "DeviceCharacteristics",
    "WeatherReport",
    "TimeRangeInfo",
    "ReportMetadata",
    "DeviceReport",
    "GroupSummary",
    "GroupReportError",
    "GroupReportMetadata",
    "GroupReport",
    "ReportFileResponse",
    "ReportFileListResponse",
]
