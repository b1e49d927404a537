"""
Services Package
================

These are the "workers" that do the actual work.

- EcowittService: Talks to EcoWitt weather stations (realtime, history, info)
- WeatherService: Talks to OpenWeather for forecasts
- series_normalizer: Digs sensor series out of EcoWitt's many payload shapes
- ReportService: Puts device/group reports together
- ComparisonService: Up to 4 stations side by side
- ReportExporter: Saves reports and records them
"""

from .probe import ProbeResult, ProbeStatus, ProbeStep, probe
from .ecowitt_service import EcowittService
from .weather_service import WeatherService
from .series_normalizer import compute_stats, extract_all, extract_series, safe_navigate
from .report_service import ReportService
from .comparison_service import ComparisonService
from .report_export import ReportExporter, generate_file_name, report_to_json

__all__ = [
    "ProbeResult",
    "ProbeStatus",
    "ProbeStep",
    "probe",
    "EcowittService",
    "WeatherService",
    "compute_stats",
    "extract_all",
    "extract_series",
    "safe_navigate",
    "ReportService",
    "ComparisonService",
    "ReportExporter",
    "generate_file_name",
    "report_to_json",
]
