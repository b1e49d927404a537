"""
Device Groups API Router
========================

Groups bundle a user's stations so they can be fetched or reported on together.

ALL ENDPOINTS:
-------------
POST   /api/groups                              - Create a group
GET    /api/groups?user_id=                     - List a user's groups
GET    /api/groups/{id}                         - Group + member devices
PUT    /api/groups/{id}                         - Update name/description/status
DELETE /api/groups/{id}                         - Delete group (devices stay)
POST   /api/groups/{id}/members/{device_id}     - Add a device
DELETE /api/groups/{id}/members/{device_id}     - Remove a device
GET    /api/groups/{id}/realtime                - Realtime for every member
GET    /api/groups/{id}/history                 - History for every member
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from agritech.database import DeviceGroup, device_crud, get_db, group_crud
from agritech.errors import AgriTechError, VendorAPIError
from agritech.models import (
    CreateGroupRequest,
    DeviceResponse,
    GroupDetailResponse,
    GroupListResponse,
    GroupResponse,
    UpdateGroupRequest,
)
from agritech.routers.dependencies import get_ecowitt_service, http_error
from agritech.services.series_normalizer import extract_all
from agritech.utils.time_ranges import resolve_time_range


router = APIRouter(prefix="/api/groups", tags=["groups"])


def _get_group_or_404(db: Session, group_id: str) -> DeviceGroup:
    group = group_crud.get(db, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


def _group_detail(db: Session, group: DeviceGroup) -> GroupDetailResponse:
    detail = GroupDetailResponse.model_validate(group)
    detail.devices = [
        DeviceResponse.model_validate(device)
        for device in device_crud.get_devices_by_group_id(db, group.id)
    ]
    return detail


def _add_owned_member(db: Session, group: DeviceGroup, device_id: str):
    device = device_crud.get_device_by_id(db, device_id)
    if not device:
        raise HTTPException(status_code=404, detail=f"Device {device_id} not found")
    if device.user_id != group.user_id:
        raise HTTPException(status_code=400, detail=f"Device {device_id} doesn't belong to the group owner")
    group_crud.add_member(db, group.id, device.id)


# =============================================================================
# GROUP MANAGEMENT
# =============================================================================

@router.post("", response_model=GroupDetailResponse, status_code=201)
def create_group(request: CreateGroupRequest, db: Session = Depends(get_db)):
    """Create a group, optionally with some devices already in it."""
    group = group_crud.create(db, {
        "user_id": str(request.user_id),
        "name": request.name,
        "description": request.description,
    })
    for device_id in request.device_ids:
        _add_owned_member(db, group, str(device_id))
    return _group_detail(db, group)


@router.get("", response_model=GroupListResponse)
def list_groups(user_id: str, db: Session = Depends(get_db)):
    groups = group_crud.get_user_groups(db, user_id)
    return GroupListResponse(groups=groups, total=len(groups))


@router.get("/{group_id}", response_model=GroupDetailResponse)
def get_group(group_id: str, db: Session = Depends(get_db)):
    return _group_detail(db, _get_group_or_404(db, group_id))


@router.put("/{group_id}", response_model=GroupResponse)
def update_group(group_id: str, request: UpdateGroupRequest, db: Session = Depends(get_db)):
    group = _get_group_or_404(db, group_id)
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    if "status" in changes:
        changes["status"] = changes["status"].value
    return group_crud.update(db, group, changes)


@router.delete("/{group_id}")
def delete_group(group_id: str, db: Session = Depends(get_db)):
    """Delete the group and its member links. The devices themselves stay."""
    group = _get_group_or_404(db, group_id)
    group_crud.delete(db, group)
    return {"status": "deleted", "group_id": group_id}


@router.post("/{group_id}/members/{device_id}", response_model=GroupDetailResponse)
def add_group_member(group_id: str, device_id: str, db: Session = Depends(get_db)):
    group = _get_group_or_404(db, group_id)
    _add_owned_member(db, group, device_id)
    return _group_detail(db, group)


@router.delete("/{group_id}/members/{device_id}", response_model=GroupDetailResponse)
def remove_group_member(group_id: str, device_id: str, db: Session = Depends(get_db)):
    group = _get_group_or_404(db, group_id)
    if not group_crud.remove_member(db, group.id, device_id):
        raise HTTPException(status_code=404, detail="Device is not in this group")
    return _group_detail(db, group)


# =============================================================================
# GROUP DATA (from EcoWitt)
# =============================================================================

def _member_entry(device, result) -> dict:
    entry = {"device_id": device.id, "device_name": device.name}
    if isinstance(result, VendorAPIError):
        entry["error"] = result.message
    else:
        entry.update(result.to_dict())
    return entry


@router.get("/{group_id}/realtime")
async def get_group_realtime(
    group_id: str,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """Realtime readings for every member, keyed by MAC. One dead station doesn't hide the rest."""
    group = _get_group_or_404(db, group_id)
    devices = device_crud.get_devices_by_group_id(db, group.id)
    results = await ecowitt.get_multiple_realtime(devices)
    return {
        "group_id": group.id,
        "devices": {device.mac: _member_entry(device, results[device.mac]) for device in devices},
    }


@router.get("/{group_id}/history")
async def get_group_history(
    group_id: str,
    range_type: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    db: Session = Depends(get_db),
    ecowitt = Depends(get_ecowitt_service),
):
    """History for every member over the same window, keyed by MAC."""
    group = _get_group_or_404(db, group_id)
    try:
        time_range = resolve_time_range(range_type, start_time, end_time)
    except AgriTechError as e:
        raise http_error(e)

    devices = device_crud.get_devices_by_group_id(db, group.id)
    results = await ecowitt.get_multiple_history(devices, time_range.start, time_range.end)

    members = {}
    for device in devices:
        result = results[device.mac]
        entry = _member_entry(device, result)
        if not isinstance(result, VendorAPIError):
            entry["series"] = extract_all(result.data).model_dump() if result.ok else None
        members[device.mac] = entry

    return {
        "group_id": group.id,
        "time_range": {
            "start": time_range.start.isoformat(),
            "end": time_range.end.isoformat(),
            "description": time_range.description,
        },
        "devices": members,
    }
