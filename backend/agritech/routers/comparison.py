"""
Comparison API Router
=====================

POST /api/compare/history   - Up to 4 stations' history over the same window
POST /api/compare/realtime  - Up to 4 stations' current readings
"""

from fastapi import APIRouter, Depends

from agritech.errors import AgriTechError
from agritech.models import CompareDevicesRequest
from agritech.routers.dependencies import get_comparison_service, http_error


router = APIRouter(prefix="/api/compare", tags=["compare"])


@router.post("/history")
async def compare_history(
    request: CompareDevicesRequest,
    comparison = Depends(get_comparison_service),
):
    """
    Normalized series for each station, side by side.

    Example body:
        {"user_id": "...", "device_ids": ["...", "..."], "range_type": "day"}
    """
    try:
        return await comparison.compare_history(
            request.device_ids,
            request.user_id,
            range_type=request.range_type,
            start_time=request.start_time,
            end_time=request.end_time,
        )
    except AgriTechError as e:
        raise http_error(e)


@router.post("/realtime")
async def compare_realtime(
    request: CompareDevicesRequest,
    comparison = Depends(get_comparison_service),
):
    try:
        return await comparison.compare_realtime(request.device_ids, request.user_id)
    except AgriTechError as e:
        raise http_error(e)
