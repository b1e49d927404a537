"""
Errors
======

The handful of things that can go wrong, and what HTTP status each one means.

- NotFoundError    -> 404  (device/group missing, or not yours)
- ValidationError  -> 400  (bad input: broken UUID, missing range, too many devices)
- VendorAPIError   -> 502  (EcoWitt or OpenWeather let us down)

Report assembly catches VendorAPIError itself and turns it into an empty field,
so callers of the report endpoints only ever see the first two.
"""

from typing import Optional


class AgriTechError(Exception):
    """Base class for every error raised by the services."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AgriTechError):
    """Something doesn't exist, or exists but belongs to somebody else."""

    status_code = 404


class ValidationError(AgriTechError):
    """The caller sent something we can't work with."""

    status_code = 400


class VendorAPIError(AgriTechError):
    """
    Any failure talking to a third-party API.

    Args:
        vendor: "ecowitt" or "openweather"
        message: Human-readable message (upstream message included)
        status_code: Upstream HTTP status, if we got that far
    """

    status_code = 502

    def __init__(self, vendor: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.vendor = vendor
        self.upstream_status = status_code
