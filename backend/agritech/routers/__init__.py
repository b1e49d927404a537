"""
Routers Package
===============

Routers are the reception desk - they take incoming requests and pass
them to the right service.
"""

from .dependencies import set_services
from .devices import router as devices_router
from .groups import router as groups_router
from .reports import router as reports_router
from .comparison import router as comparison_router
from .weather import router as weather_router

__all__ = [
    "devices_router",
    "groups_router",
    "reports_router",
    "comparison_router",
    "weather_router",
    "set_services",
]
