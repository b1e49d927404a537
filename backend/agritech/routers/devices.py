"""
Devices API Router
==================

Everything about a single EcoWitt station: registering it, editing it, and
asking EcoWitt what it's seeing.

ALL ENDPOINTS:
-------------
POST   /api/devices                          - Register a station
GET    /api/devices                          - List stations (?user_id=&device_type=)
GET    /api/devices/{id}                     - Get one station
PUT    /api/devices/{id}                     - Update a station
DELETE /api/devices/{id}                     - Delete a station

GET    /api/devices/{id}/realtime            - Current readings
GET    /api/devices/{id}/history             - Historical readings + normalized series
GET    /api/devices/{id}/info                - EcoWitt's /device/info
GET    /api/devices/{id}/characteristics     - Our row + EcoWitt's info
GET    /api/devices/{id}/diagnose            - Try every realtime strategy
GET    /api/devices/{id}/diagnose-history    - Try every history strategy
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from agritech.database import Device, device_crud, get_db
from agritech.errors import AgriTechError, VendorAPIError
from agritech.models import (
    CreateDeviceRequest,
    DeviceListResponse,
    DeviceResponse,
    DeviceType,
    UpdateDeviceRequest,
)
from agritech.routers.dependencies import get_ecowitt_service, http_error
from agritech.services.series_normalizer import extract_all
from agritech.utils.time_ranges import resolve_time_range


router = APIRouter(prefix="/api/devices", tags=["devices"])


def _get_device_or_404(db: Session, device_id: str) -> Device:
    device = device_crud.get_device_by_id(db, device_id)
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


# =============================================================================
# DEVICE MANAGEMENT
# =============================================================================

@router.post("", response_model=DeviceResponse, status_code=201)
def create_device(request: CreateDeviceRequest, db: Session = Depends(get_db)):
    """
    Register an EcoWitt station.

    MAC addresses and application keys have to be unique across all devices.
    """
    if device_crud.get_by_mac(db, request.mac):
        raise HTTPException(status_code=400, detail="A device with this MAC address already exists")
    if device_crud.get_by_application_key(db, request.application_key):
        raise HTTPException(status_code=400, detail="A device with this application key already exists")

    data = request.model_dump()
    data["user_id"] = str(request.user_id)
    data["device_type"] = request.device_type.value
    data["status"] = request.status.value
    return device_crud.create(db, data)


@router.get("", response_model=DeviceListResponse)
def list_devices(
    user_id: Optional[str] = None,
    device_type: Optional[DeviceType] = None,
    db: Session = Depends(get_db),
):
    """
    List stations.

    Filter by owner and/or category:
    - /api/devices?user_id=...
    - /api/devices?device_type=Soil
    """
    devices = device_crud.list(db, user_id=user_id, device_type=device_type.value if device_type else None)
    return DeviceListResponse(devices=devices, total=len(devices))


@router.get("/{device_id}", response_model=DeviceResponse)
def get_device(device_id: str, db: Session = Depends(get_db)):
    return _get_device_or_404(db, device_id)


@router.put("/{device_id}", response_model=DeviceResponse)
def update_device(device_id: str, request: UpdateDeviceRequest, db: Session = Depends(get_db)):
    """Update a station. Only the fields you send are changed."""
    device = _get_device_or_404(db, device_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)

    if "mac" in changes and changes["mac"] != device.mac:
        if device_crud.get_by_mac(db, changes["mac"]):
            raise HTTPException(status_code=400, detail="A device with this MAC address already exists")
    if "application_key" in changes and changes["application_key"] != device.application_key:
        if device_crud.get_by_application_key(db, changes["application_key"]):
            raise HTTPException(status_code=400, detail="A device with this application key already exists")

    for field in ("device_type", "status"):
        if field in changes:
            changes[field] = changes[field].value

    return device_crud.update(db, device, changes)


@router.delete("/{device_id}")
def delete_device(device_id: str, db: Session = Depends(get_db)):
    device = _get_device_or_404(db, device_id)
    device_crud.delete(db, device)
    return {"status": "deleted", "device_id": device_id}


# =============================================================================
# STATION DATA (from EcoWitt)
# =============================================================================

@router.get("/{device_id}/realtime")
async def get_device_realtime(
    device_id: str,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """
    Current readings from the station.

    If EcoWitt sends back nothing, the response has status "empty" and a
    diagnostics block listing what was tried.
    """
    device = _get_device_or_404(db, device_id)
    try:
        result = await ecowitt.get_realtime(device.application_key, device.api_key, device.mac)
    except VendorAPIError as e:
        raise http_error(e)
    return result.to_dict()


@router.get("/{device_id}/history")
async def get_device_history(
    device_id: str,
    range_type: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """
    Historical readings plus the normalized temperature / humidity /
    pressure / soil moisture series.

    Use either ?range_type=week or ?start_time=...&end_time=...
    """
    device = _get_device_or_404(db, device_id)
    try:
        time_range = resolve_time_range(range_type, start_time, end_time)
        result = await ecowitt.get_history(
            device.application_key, device.api_key, device.mac,
            time_range.start, time_range.end,
        )
    except AgriTechError as e:
        raise http_error(e)

    response = result.to_dict()
    response["time_range"] = {
        "start": time_range.start.isoformat(),
        "end": time_range.end.isoformat(),
        "description": time_range.description,
    }
    response["series"] = extract_all(result.data).model_dump() if result.ok else None
    return response


@router.get("/{device_id}/info")
async def get_device_info(
    device_id: str,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    device = _get_device_or_404(db, device_id)
    try:
        return await ecowitt.get_device_info(device.application_key, device.api_key, device.mac)
    except VendorAPIError as e:
        raise http_error(e)


@router.get("/{device_id}/characteristics")
async def get_device_characteristics(
    device_id: str,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """Our stored details plus whatever EcoWitt knows about the station."""
    device = _get_device_or_404(db, device_id)
    try:
        info = await ecowitt.get_device_info(device.application_key, device.api_key, device.mac)
    except VendorAPIError as e:
        raise http_error(e)

    return {
        "device": DeviceResponse.model_validate(device).model_dump(),
        "ecowitt_info": info,
    }


# =============================================================================
# DIAGNOSTICS
# =============================================================================

@router.get("/{device_id}/diagnose")
async def diagnose_device_realtime(
    device_id: str,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """Try every realtime parameter combination and show what each returned."""
    device = _get_device_or_404(db, device_id)
    try:
        result = await ecowitt.diagnose_realtime(device.application_key, device.api_key, device.mac)
    except VendorAPIError as e:
        raise http_error(e)
    return {"device_id": device.id, "device_name": device.name, **result.to_dict()}


@router.get("/{device_id}/diagnose-history")
async def diagnose_device_history(
    device_id: str,
    range_type: str = "week",
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """Try every history parameter combination for the given range."""
    device = _get_device_or_404(db, device_id)
    try:
        time_range = resolve_time_range(range_type)
        result = await ecowitt.diagnose_history(
            device.application_key, device.api_key, device.mac,
            time_range.start, time_range.end,
        )
    except AgriTechError as e:
        raise http_error(e)
    return {
        "device_id": device.id,
        "device_name": device.name,
        "range_type": range_type,
        **result.to_dict(),
    }
