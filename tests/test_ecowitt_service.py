"""
Tests for the EcoWitt client: fallback chains, rate limiting and error wrapping.

Uses httpx.MockTransport so nothing leaves the machine.
"""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from agritech.errors import VendorAPIError
from agritech.services.ecowitt_service import EcowittService
from agritech.services.probe import ProbeStatus

from conftest import HISTORY_RESPONSE, REALTIME_RESPONSE


EMPTY_REALTIME = {"code": 0, "msg": "success", "time": "1715176800", "data": []}
EMPTY_HISTORY = {"code": 0, "msg": "success", "time": "1715176800", "data": {}}
RATE_LIMITED = {"code": -1, "msg": "Operation too frequent", "time": "1715176800", "data": []}

START = datetime(2024, 5, 1, tzinfo=timezone.utc)
END = datetime(2024, 5, 8, tzinfo=timezone.utc)


class Recorder:
    """MockTransport handler that answers from a script and remembers every request."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, json=answer)

    def params(self, index):
        return dict(self.requests[index].url.params)


def make_service(recorder):
    client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return EcowittService(rate_limit_delay=0, http_client=client)


def realtime(service):
    return asyncio.run(service.get_realtime("app-key", "api-key", "AA:BB:CC:DD:EE:01"))


def history(service):
    return asyncio.run(service.get_history("app-key", "api-key", "AA:BB:CC:DD:EE:01", START, END))


class TestRealtime:

    def test_first_request_with_data(self):
        recorder = Recorder(REALTIME_RESPONSE)
        result = realtime(make_service(recorder))

        assert result.status == ProbeStatus.OK
        assert result.strategy == "base"
        assert len(recorder.requests) == 1

        params = recorder.params(0)
        assert recorder.requests[0].url.path == "/api/v3/device/real_time"
        assert params["call_back"] == "all"
        assert params["temp_unitid"] == "1"
        assert params["pressure_unitid"] == "3"
        assert params["mac"] == "AA:BB:CC:DD:EE:01"

    def test_falls_back_in_order(self):
        recorder = Recorder(EMPTY_REALTIME, EMPTY_REALTIME, REALTIME_RESPONSE)
        result = realtime(make_service(recorder))

        assert result.ok
        assert result.strategy == "call_back=indoor"
        assert "call_back" not in recorder.params(1)
        assert recorder.params(2)["call_back"] == "indoor"

    def test_root_level_keys_as_last_resort(self):
        odd = dict(EMPTY_REALTIME, outdoor={"temperature": {"value": "21.3"}})
        recorder = Recorder(odd)
        result = realtime(make_service(recorder))

        assert result.ok
        assert result.strategy == "root-level keys"
        assert result.data == {"outdoor": {"temperature": {"value": "21.3"}}}
        assert len(recorder.requests) == 3

    def test_root_level_keys_come_from_the_first_response(self):
        odd = dict(EMPTY_REALTIME, outdoor={"temperature": {"value": "21.3"}})
        recorder = Recorder(odd, EMPTY_REALTIME, EMPTY_REALTIME)
        result = realtime(make_service(recorder))

        assert result.ok
        assert result.strategy == "root-level keys"
        assert result.data == {"outdoor": {"temperature": {"value": "21.3"}}}
        assert [attempt.outcome for attempt in result.attempts] == ["empty", "empty", "empty", "data"]

    def test_empty_everywhere_comes_back_with_diagnostics(self):
        recorder = Recorder(EMPTY_REALTIME)
        result = realtime(make_service(recorder))

        assert result.status == ProbeStatus.EMPTY
        assert result.diagnostics["message"] == "Device returned empty data array"
        assert result.diagnostics["strategies_tried"] == [
            "base", "without call_back", "call_back=indoor", "root-level keys",
        ]
        assert "api_key" not in result.diagnostics["params_sent"]
        assert result.diagnostics["possible_causes"]


class TestRateLimit:

    def test_one_retry_then_data(self):
        recorder = Recorder(RATE_LIMITED, REALTIME_RESPONSE)
        result = realtime(make_service(recorder))

        assert result.ok
        assert len(recorder.requests) == 2

    def test_persistent_rate_limit(self):
        recorder = Recorder(RATE_LIMITED)
        result = realtime(make_service(recorder))

        assert result.status == ProbeStatus.RATE_LIMITED
        assert len(recorder.requests) == 2
        assert result.diagnostics["message"] == "Persistent rate limiting after retry"
        assert result.diagnostics["retry_attempted"] is True

    def test_waits_before_retrying(self, monkeypatch):
        delays = []

        async def fake_sleep(seconds):
            delays.append(seconds)

        monkeypatch.setattr("agritech.services.ecowitt_service.asyncio.sleep", fake_sleep)
        recorder = Recorder(RATE_LIMITED, REALTIME_RESPONSE)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        service = EcowittService(rate_limit_delay=2.0, http_client=client)

        realtime(service)

        assert delays == [2.0]


class TestErrors:

    def test_http_error_is_wrapped(self):
        recorder = Recorder(httpx.Response(500, text="oops"))

        with pytest.raises(VendorAPIError) as exc_info:
            realtime(make_service(recorder))

        assert exc_info.value.vendor == "ecowitt"
        assert exc_info.value.upstream_status == 500
        assert exc_info.value.message.startswith("Ecowitt API Error")

    def test_timeout_is_wrapped(self):
        recorder = Recorder(httpx.ReadTimeout("timed out"))

        with pytest.raises(VendorAPIError, match="timed out"):
            realtime(make_service(recorder))

    def test_vendor_error_code_is_raised(self):
        recorder = Recorder({"code": 40010, "msg": "Illegal Application_Key Parameter", "data": []})

        with pytest.raises(VendorAPIError, match="Illegal Application_Key"):
            realtime(make_service(recorder))

    def test_invalid_json_is_wrapped(self):
        recorder = Recorder(httpx.Response(200, text="<html>nope</html>"))

        with pytest.raises(VendorAPIError, match="not valid JSON"):
            realtime(make_service(recorder))


class TestHistory:

    def test_base_params(self):
        recorder = Recorder(HISTORY_RESPONSE)
        result = history(make_service(recorder))

        params = recorder.params(0)
        assert result.ok
        assert recorder.requests[0].url.path == "/api/v3/device/history"
        assert params["start_date"] == "2024-05-01 00:00:00"
        assert params["end_date"] == "2024-05-08 00:00:00"
        assert params["call_back"] == "indoor"
        assert params["cycle_type"] == "auto"
        assert params["temp_unitid"] == "2"

    def test_fallbacks_are_applied_to_the_base_params(self):
        recorder = Recorder(EMPTY_HISTORY)
        result = history(make_service(recorder))

        assert result.status == ProbeStatus.EMPTY
        assert [a.name for a in result.attempts] == [
            "base", "call_back=outdoor", "cycle_type=5min", "metric units",
        ]
        assert recorder.params(1)["call_back"] == "outdoor"
        # Each step starts again from the base params
        assert recorder.params(2)["call_back"] == "indoor"
        assert recorder.params(2)["cycle_type"] == "5min"
        assert recorder.params(3)["temp_unitid"] == "1"
        assert result.diagnostics["possible_causes"]

    def test_failed_step_does_not_stop_the_chain(self):
        recorder = Recorder(EMPTY_HISTORY, httpx.Response(503), HISTORY_RESPONSE)
        result = history(make_service(recorder))

        assert result.ok
        assert result.strategy == "cycle_type=5min"
        assert [a.outcome for a in result.attempts] == ["empty", "error", "data"]

    def test_list_data_counts_as_empty(self):
        recorder = Recorder({"code": 0, "msg": "success", "data": []})
        result = history(make_service(recorder))
        assert result.status == ProbeStatus.EMPTY


class TestDiagnose:

    def test_realtime_diagnose_tries_everything(self):
        recorder = Recorder(REALTIME_RESPONSE)
        result = asyncio.run(make_service(recorder).diagnose_realtime("app-key", "api-key", "AA:BB:CC:DD:EE:01"))

        assert len(recorder.requests) == 3
        assert result.ok
        assert result.diagnostics["strategies_tried"] == ["base", "without call_back", "call_back=indoor"]

    def test_history_diagnose_lists_data_keys(self):
        recorder = Recorder(HISTORY_RESPONSE)
        service = make_service(recorder)
        result = asyncio.run(service.diagnose_history("app-key", "api-key", "AA:BB:CC:DD:EE:01", START, END))

        assert len(recorder.requests) == 4
        assert result.diagnostics["data_keys"] == ["indoor", "pressure", "soil_ch1"]


class TestMultipleDevices:

    def test_one_failing_device_does_not_hide_the_others(self):
        def handler(request):
            if request.url.params["mac"] == "AA:BB:CC:DD:EE:02":
                return httpx.Response(500)
            return httpx.Response(200, json=REALTIME_RESPONSE)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        service = EcowittService(rate_limit_delay=0, http_client=client)
        devices = [
            SimpleNamespace(application_key="k1", api_key="a1", mac="AA:BB:CC:DD:EE:01"),
            SimpleNamespace(application_key="k2", api_key="a2", mac="AA:BB:CC:DD:EE:02"),
        ]

        results = asyncio.run(service.get_multiple_realtime(devices))

        assert results["AA:BB:CC:DD:EE:01"].ok
        assert isinstance(results["AA:BB:CC:DD:EE:02"], VendorAPIError)

    def test_unexpected_error_is_kept_to_its_device(self):
        service = make_service(Recorder(HISTORY_RESPONSE))
        real_get_history = service.get_history

        async def flaky_history(application_key, api_key, mac, start_time, end_time):
            if mac == "AA:BB:CC:DD:EE:02":
                raise RuntimeError("boom")
            return await real_get_history(application_key, api_key, mac, start_time, end_time)

        service.get_history = flaky_history
        devices = [
            SimpleNamespace(application_key="k1", api_key="a1", mac="AA:BB:CC:DD:EE:01"),
            SimpleNamespace(application_key="k2", api_key="a2", mac="AA:BB:CC:DD:EE:02"),
        ]

        results = asyncio.run(service.get_multiple_history(devices, START, END))

        assert results["AA:BB:CC:DD:EE:01"].ok
        assert isinstance(results["AA:BB:CC:DD:EE:02"], VendorAPIError)
        assert "boom" in results["AA:BB:CC:DD:EE:02"].message


class TestHelpers:

    def test_format_time(self):
        assert EcowittService.format_time("2024-05-01T12:30:00Z") == "2024-05-01 12:30:00"

    def test_sensor_units(self):
        assert EcowittService.get_sensor_unit("temperature") == "°C"
        assert EcowittService.get_sensor_unit("mystery") == "unknown"
