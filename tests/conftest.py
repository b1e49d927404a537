"""
Shared test fixtures for the AgriTech backend test suite.

Provides:
- In-memory SQLite database with all tables created
- Factories for devices and groups
- Fake EcoWitt / OpenWeather services (no network)
- Sample vendor payloads

Usage:
    def test_example(make_device, fake_ecowitt):
        device = make_device(name="Greenhouse")
        assert device.mac
"""

import itertools
import logging
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agritech.database import device_crud, group_crud, init_db
from agritech.errors import VendorAPIError
from agritech.services.probe import ProbeAttempt, ProbeResult, ProbeStatus, build_diagnostics

# Keep test output clean
logging.getLogger("agritech").setLevel(logging.WARNING)


# =============================================================================
# SAMPLE PAYLOADS
# =============================================================================

DEVICE_INFO = {
    "code": 0,
    "msg": "success",
    "time": "1715176800",
    "data": {
        "id": 181406,
        "name": "Greenhouse North",
        "mac": "AA:BB:CC:DD:EE:01",
        "type": 1,
        "date_zone_id": "Europe/Berlin",
        "createtime": 1700000000,
        "longitude": 13.405,
        "latitude": 52.52,
        "stationtype": "GW2000A_V3.1.0",
        "last_update": {"outdoor": {"temperature": {"time": "1715176800", "unit": "℃", "value": "21.3"}}},
    },
}

REALTIME_RESPONSE = {
    "code": 0,
    "msg": "success",
    "time": "1715176800",
    "data": {
        "outdoor": {
            "temperature": {"time": "1715176800", "unit": "℃", "value": "21.3"},
            "humidity": {"time": "1715176800", "unit": "%", "value": "58"},
        },
        "pressure": {
            "relative": {"time": "1715176800", "unit": "hPa", "value": "1013.2"},
        },
    },
}

HISTORY_DATA = {
    "indoor": {
        "temperature": {
            "unit": "℃",
            "list": {"1700000300": "21.5", "1700000100": "20.0", "1700000200": "22.5"},
        },
        "humidity": {
            "unit": "%",
            "list": {"1700000100": "55", "1700000200": "57", "1700000300": "56"},
        },
    },
    "pressure": {
        "relative": {
            "unit": "hPa",
            "list": {"1700000100": "1012.0", "1700000200": "1013.0"},
        },
    },
    "soil_ch1": {
        "soilmoisture": {
            "unit": "%",
            "list": {"1700000100": "31", "1700000200": "33"},
        },
    },
}

HISTORY_RESPONSE = {"code": 0, "msg": "success", "time": "1715176800", "data": HISTORY_DATA}

WEATHER_OVERVIEW = {
    "location": {"lat": 52.52, "lon": 13.405, "timezone": "Europe/Berlin", "timezone_offset": 7200},
    "current": {
        "dt": 1715176800,
        "temp": 18.4,
        "feels_like": 17.9,
        "humidity": 62,
        "pressure": 1014,
        "wind_speed": 3.1,
        "weather": [{"id": 800, "main": "Clear", "description": "clear sky"}],
    },
    "daily": [{"dt": 1715176800 + day * 86400} for day in range(7)],
    "hourly": [{"dt": 1715176800 + hour * 3600} for hour in range(24)],
}


def ok_result(payload: dict) -> ProbeResult:
    return ProbeResult(ProbeStatus.OK, payload, [ProbeAttempt("base", {}, "data")])


def empty_result(message: str = "Device returned empty data array") -> ProbeResult:
    attempts = [ProbeAttempt("base", {}, "empty")]
    return ProbeResult(
        ProbeStatus.EMPTY,
        {"code": 0, "msg": "success", "data": []},
        attempts,
        diagnostics=build_diagnostics(message, attempts, {}),
    )


# =============================================================================
# FAKE VENDOR SERVICES
# =============================================================================

async def _answer(value, mac):
    if callable(value):
        value = value(mac)
    if isinstance(value, Exception):
        raise value
    return value


class FakeEcowitt:
    """
    Stands in for EcowittService.

    Each answer can be a value, an exception to raise, or a callable taking
    the MAC and returning either.
    """

    def __init__(self):
        self.device_info = DEVICE_INFO
        self.realtime = ok_result(REALTIME_RESPONSE)
        self.history = ok_result(HISTORY_RESPONSE)
        self.calls = []

    async def get_device_info(self, application_key, api_key, mac):
        self.calls.append(("info", mac))
        return await _answer(self.device_info, mac)

    async def get_realtime(self, application_key, api_key, mac):
        self.calls.append(("realtime", mac))
        return await _answer(self.realtime, mac)

    async def get_history(self, application_key, api_key, mac, start_time, end_time):
        self.calls.append(("history", mac))
        return await _answer(self.history, mac)

    async def get_multiple_realtime(self, devices):
        results = {}
        for device in devices:
            try:
                results[device.mac] = await self.get_realtime(device.application_key, device.api_key, device.mac)
            except VendorAPIError as e:
                results[device.mac] = e
        return results

    async def get_multiple_history(self, devices, start_time, end_time):
        results = {}
        for device in devices:
            try:
                results[device.mac] = await self.get_history(
                    device.application_key, device.api_key, device.mac, start_time, end_time
                )
            except VendorAPIError as e:
                results[device.mac] = e
        return results

    def called(self, kind):
        return [mac for name, mac in self.calls if name == kind]


class FakeWeather:
    """Stands in for WeatherService.get_weather_overview."""

    def __init__(self):
        self.overview = WEATHER_OVERVIEW
        self.calls = []

    async def get_weather_overview(self, lat, lon, units="metric"):
        self.calls.append((lat, lon))
        value = self.overview
        if isinstance(value, Exception):
            raise value
        return value


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture()
def engine():
    """In-memory SQLite database with all tables created.

    StaticPool keeps one connection, so every session sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def user_id():
    return str(uuid.uuid4())


@pytest.fixture()
def make_device(db, user_id):
    """Create devices with unique MACs / keys. Owned by `user_id` unless told otherwise."""
    counter = itertools.count(1)

    def _make(name=None, owner=None, **overrides):
        n = next(counter)
        data = {
            "user_id": owner or user_id,
            "name": name or f"Station {n}",
            "mac": f"AA:BB:CC:DD:EE:{n:02X}",
            "application_key": f"app-key-{n}",
            "api_key": f"api-key-{n}",
            "device_type": "Soil",
        }
        data.update(overrides)
        return device_crud.create(db, data)

    return _make


@pytest.fixture()
def make_group(db, user_id):
    """Create a group and add the given devices to it."""
    def _make(devices=(), name="North field", owner=None):
        group = group_crud.create(db, {"user_id": owner or user_id, "name": name, "description": "test group"})
        for device in devices:
            group_crud.add_member(db, group.id, device.id)
        return group

    return _make


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture()
def fake_ecowitt():
    return FakeEcowitt()


@pytest.fixture()
def fake_weather():
    return FakeWeather()
