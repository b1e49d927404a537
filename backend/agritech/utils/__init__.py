"""
Utility modules for the AgriTech backend.
"""

from agritech.utils.validation import (
    DEVICE_TYPES,
    validate_uuid,
    validate_mac_address,
    validate_device_type,
    sanitize_filename,
)
from agritech.utils.time_ranges import (
    TimeRange,
    TimeRangeType,
    get_time_range,
    parse_datetime,
    resolve_time_range,
    describe_time_range,
)

__all__ = [
    "DEVICE_TYPES",
    "validate_uuid",
    "validate_mac_address",
    "validate_device_type",
    "sanitize_filename",
    "TimeRange",
    "TimeRangeType",
    "get_time_range",
    "parse_datetime",
    "resolve_time_range",
    "describe_time_range",
]
