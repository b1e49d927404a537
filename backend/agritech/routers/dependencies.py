"""
Router Dependencies
===================

The services are created once at startup (see main.py lifespan) and handed
to the routers through set_services(). Endpoints ask for them with
Depends(get_report_service) and friends.

Tests can call set_services() with fakes instead.
"""

from fastapi import HTTPException

from agritech.errors import AgriTechError


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================

_services = {}  # This gets filled when the app starts


def set_services(
    ecowitt=None,
    weather=None,
    reports=None,
    comparison=None,
    exporter=None,
):
    """Called when the app starts to give the routers their services."""
    _services.update({
        "ecowitt": ecowitt,
        "weather": weather,
        "reports": reports,
        "comparison": comparison,
        "exporter": exporter,
    })


def _get(name: str):
    service = _services.get(name)
    if service is None:
        raise HTTPException(status_code=500, detail=f"{name} service not initialized")
    return service


def get_ecowitt_service():
    return _get("ecowitt")


def get_weather_service():
    return _get("weather")


def get_report_service():
    return _get("reports")


def get_comparison_service():
    return _get("comparison")


def get_report_exporter():
    return _get("exporter")


def http_error(error: AgriTechError) -> HTTPException:
    """NotFound -> 404, Validation -> 400, Vendor -> 502."""
    return HTTPException(status_code=error.status_code, detail=error.message)
