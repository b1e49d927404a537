"""
AgriTech Weather Reports - Backend API
======================================
FastAPI application that pulls data from EcoWitt weather stations and
OpenWeather and turns it into device and group reports.

ARCHITECTURE:
    [Frontend] --HTTPS--> [This Backend] ---> [EcoWitt Cloud API v3]
                                |
                                +------------> [OpenWeather One Call 3.0]
                                |
                                v
                          [SQL database]
                  (devices, groups, saved reports)

    EcoWitt is flaky: the same station can answer one set of parameters
    with an empty array and another with full data. The EcoWitt service
    tries a fixed list of parameter combinations until one works, and the
    report builder treats every vendor call as optional.

HOW TO RUN:
    # Install dependencies
    python -m venv venv
    source venv/bin/activate  # Windows: venv\\Scripts\\activate
    pip install -e ".[test]"

    # Put your settings in .env
    echo "OPENWEATHER_API_KEY=your-key" > .env

    # Run the server
    uvicorn agritech.main:app --reload --port 8000

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
    - OpenAPI JSON: http://localhost:8000/openapi.json

Author: AgriTech Backend Team
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agritech.config import Config
from agritech.database import SessionLocal, init_db
from agritech.routers import (
    comparison_router,
    devices_router,
    groups_router,
    reports_router,
    set_services,
    weather_router,
)
from agritech.services import (
    ComparisonService,
    EcowittService,
    ReportExporter,
    ReportService,
    WeatherService,
)


logging.basicConfig(
    level=Config.LOG_LEVEL.upper(),
    format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    STARTUP:
        1. Create database tables
        2. Initialize the EcoWitt and OpenWeather clients
        3. Build the report / comparison services on top of them
        4. Inject everything into the routers

    SHUTDOWN:
        1. Close HTTP clients
    """
    # ========== STARTUP ==========
    print("=" * 60)
    print("AGRITECH WEATHER REPORTS - Starting Backend")
    print("=" * 60)

    init_db()

    ecowitt_service = EcowittService(
        request_timeout=Config.VENDOR_TIMEOUT,
        rate_limit_delay=Config.RATE_LIMIT_RETRY_DELAY,
    )
    weather_service = WeatherService(
        api_key=Config.OPENWEATHER_API_KEY,
        request_timeout=Config.VENDOR_TIMEOUT,
    )
    report_service = ReportService(
        ecowitt=ecowitt_service,
        weather=weather_service,
        session_factory=SessionLocal,
        group_concurrency=Config.GROUP_REPORT_CONCURRENCY,
    )

    set_services(
        ecowitt=ecowitt_service,
        weather=weather_service,
        reports=report_service,
        comparison=ComparisonService(ecowitt_service, SessionLocal),
        exporter=ReportExporter(Config.REPORTS_DIR),
    )

    print("Services initialized")
    print(f"   Vendor timeout: {Config.VENDOR_TIMEOUT} seconds")
    print(f"   Group report workers: {Config.GROUP_REPORT_CONCURRENCY}")
    print(f"   OpenWeather key: {'configured' if Config.OPENWEATHER_API_KEY else 'MISSING'}")
    print(f"   Reports directory: {Config.REPORTS_DIR}")
    print(f"   CORS origins: {len(Config.CORS_ORIGINS)} configured")
    print()
    print("API Documentation: http://localhost:8000/docs")
    print("=" * 60)

    yield  # Application runs here

    # ========== SHUTDOWN ==========
    print()
    print("Shutting down...")
    await ecowitt_service.close()
    await weather_service.close()
    print("Shutdown complete")


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="AgriTech Weather Reports API",
    description="""
## Overview

Backend API for EcoWitt weather stations: register stations, read their
realtime and historical data, and build reports that combine them with
the OpenWeather forecast for the station's location.

## How It Works

1. **Register a station** - MAC address plus your EcoWitt application/API keys
2. **Group stations** - e.g. every station in one field
3. **Build a report** - device info, realtime readings, forecast and
   (optionally) temperature / humidity / pressure / soil moisture history

## Reports Never Half-Fail

If EcoWitt or OpenWeather has a problem, the report still comes back.
Missing parts are listed in `metadata.warnings`, and empty EcoWitt answers
come with `metadata.diagnostics` showing every parameter combination tried.

## Diagnostics

- `GET /api/devices/{id}/diagnose` - every realtime strategy, one by one
- `GET /api/devices/{id}/diagnose-history` - every history strategy
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(devices_router)
app.include_router(groups_router)
app.include_router(reports_router)
app.include_router(comparison_router)
app.include_router(weather_router)


# =============================================================================
# ROOT ENDPOINTS
# =============================================================================

@app.get(
    "/",
    summary="API Information",
    description="Get basic API information and available endpoints."
)
async def root():
    """Root endpoint with API overview."""
    return {
        "name": "AgriTech Weather Reports API",
        "version": "1.0.0",
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json"
        },
        "endpoints": {
            "devices": {
                "list": "GET /api/devices",
                "add": "POST /api/devices",
                "realtime": "GET /api/devices/{id}/realtime",
                "history": "GET /api/devices/{id}/history",
                "diagnose": "GET /api/devices/{id}/diagnose",
            },
            "groups": {
                "list": "GET /api/groups?user_id=",
                "add": "POST /api/groups",
                "members": "POST /api/groups/{id}/members/{device_id}",
            },
            "reports": {
                "device": "POST /api/reports/device",
                "group": "POST /api/reports/group",
                "saved": "GET /api/reports/user/{user_id}",
            },
            "compare": {
                "history": "POST /api/compare/history",
                "realtime": "POST /api/compare/realtime",
            },
            "weather": "GET /api/weather/overview?lat=&lon=",
        }
    }


@app.get(
    "/health",
    summary="Health Check",
    description="Check if the backend is running."
)
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "openweather_configured": bool(Config.OPENWEATHER_API_KEY),
        "group_report_concurrency": Config.GROUP_REPORT_CONCURRENCY,
    }
