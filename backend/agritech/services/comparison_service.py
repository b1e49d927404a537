"""
Device Comparison Service
=========================

Side-by-side history or realtime data for up to 4 stations.

Only the caller's own devices are compared; IDs that belong to someone
else are ignored the same way missing IDs are.
"""

import logging
from typing import Optional

from agritech.database import Device, device_crud
from agritech.errors import NotFoundError, ValidationError, VendorAPIError
from agritech.services.ecowitt_service import EcowittService
from agritech.services.series_normalizer import extract_all
from agritech.utils.time_ranges import describe_time_range, resolve_time_range
from agritech.utils.validation import validate_uuid

logger = logging.getLogger(__name__)


class ComparisonService:

    MAX_DEVICES = 4

    def __init__(self, ecowitt: EcowittService, session_factory):
        self.ecowitt = ecowitt
        self.session_factory = session_factory

    def _load_devices(self, device_ids: list, user_id: str) -> list[Device]:
        if not device_ids:
            raise ValidationError("At least one device is required for comparison")
        if len(device_ids) > self.MAX_DEVICES:
            raise ValidationError(f"Cannot compare more than {self.MAX_DEVICES} devices at once")

        ids = [str(device_id) for device_id in device_ids]
        for device_id in ids + [str(user_id)]:
            if not validate_uuid(device_id):
                raise ValidationError(f"Invalid ID: {device_id}")

        with self.session_factory() as db:
            found = device_crud.get_devices_by_ids(db, ids)

        owned = {device.id: device for device in found if device.user_id == str(user_id)}
        devices = [owned[device_id] for device_id in dict.fromkeys(ids) if device_id in owned]
        if not devices:
            raise NotFoundError("No devices found")
        return devices

    @staticmethod
    def _device_entry(device: Device) -> dict:
        return {
            "id": device.id,
            "name": device.name,
            "type": device.device_type,
            "mac": device.mac,
        }

    async def compare_history(
        self,
        device_ids: list,
        user_id: str,
        range_type: Optional[str] = None,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> dict:
        """
        Historical series for each device over the same window.

        Raises:
            ValidationError: no devices, more than 4, bad IDs, bad range
            NotFoundError: none of the IDs are the caller's devices
        """
        devices = self._load_devices(device_ids, user_id)
        time_range = resolve_time_range(range_type, start_time, end_time)

        logger.info(f"[Compare] History for {len(devices)} devices ({describe_time_range(time_range.start, time_range.end)})")
        results = await self.ecowitt.get_multiple_history(devices, time_range.start, time_range.end)

        entries = []
        for device in devices:
            entry = self._device_entry(device)
            result = results.get(device.mac)

            if isinstance(result, VendorAPIError):
                entry.update({"status": "error", "error": result.message, "series": None})
            elif result.ok and isinstance(result.data, dict):
                entry.update({"status": "ok", "series": extract_all(result.data).model_dump()})
            else:
                entry.update({"status": result.status.value, "series": None, "diagnostics": result.diagnostics})
            entries.append(entry)

        return {
            "time_range": {
                "start": time_range.start.isoformat(),
                "end": time_range.end.isoformat(),
                "description": describe_time_range(time_range.start, time_range.end),
            },
            "devices": entries,
        }

    async def compare_realtime(self, device_ids: list, user_id: str) -> dict:
        """Current readings for each device."""
        devices = self._load_devices(device_ids, user_id)
        results = await self.ecowitt.get_multiple_realtime(devices)

        entries = []
        for device in devices:
            entry = self._device_entry(device)
            result = results.get(device.mac)

            if isinstance(result, VendorAPIError):
                entry.update({"status": "error", "error": result.message, "data": None})
            else:
                entry.update({
                    "status": result.status.value,
                    "data": result.data if result.ok else None,
                    "diagnostics": result.diagnostics,
                })
            entries.append(entry)

        return {"devices": entries}
