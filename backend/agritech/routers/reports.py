"""
Reports API Router
==================

Builds device and group weather reports, and optionally saves them.

ALL ENDPOINTS:
-------------
POST /api/reports/device            - Report for one station
POST /api/reports/group             - Report for every station in a group
GET  /api/reports/user/{user_id}    - Reports a user has exported

A report never fails just because EcoWitt or OpenWeather is having a bad
day - the missing parts show up as warnings in report.metadata instead.
It only fails when the device/group doesn't exist or isn't yours (404) or
the request itself is bad (400).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from agritech.database import file_crud, get_db
from agritech.errors import AgriTechError
from agritech.models import (
    DeviceReportRequest,
    GroupReportRequest,
    ReportFileListResponse,
    ReportFileResponse,
    ReportFormat,
)
from agritech.routers.dependencies import get_report_exporter, get_report_service, http_error

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/reports", tags=["reports"])


def _check_format(report_format: ReportFormat):
    if report_format == ReportFormat.PDF:
        raise HTTPException(status_code=400, detail="PDF rendering is not available")


async def _respond(report, request, exporter, db: Session):
    """Plain report, or {report, file} when the caller asked for an export."""
    if not request.export:
        return report
    saved = await run_in_threadpool(exporter.export, db, report, request.user_id)
    return {"report": report, "file": ReportFileResponse.model_validate(saved)}


# =============================================================================
# BUILD REPORTS
# =============================================================================

@router.post("/device")
async def create_device_report(
    request: DeviceReportRequest,
    db: Session = Depends(get_db),
    reports = Depends(get_report_service),
    exporter = Depends(get_report_exporter),
):
    """
    Build the report for one station.

    Example body:
        {
            "device_id": "...",
            "user_id": "...",
            "include_history": true,
            "history_range": {"type": "week"}
        }
    """
    _check_format(request.format)
    try:
        report = await reports.build_device_report(
            request.device_id,
            request.user_id,
            include_history=request.include_history,
            history_range=request.history_range,
        )
        return await _respond(report, request, exporter, db)
    except AgriTechError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"[Reports] Device report for {request.device_id} failed")
        raise HTTPException(status_code=500, detail=f"Failed to generate device report: {e}")


@router.post("/group")
async def create_group_report(
    request: GroupReportRequest,
    db: Session = Depends(get_db),
    reports = Depends(get_report_service),
    exporter = Depends(get_report_exporter),
):
    """
    Build reports for every station in a group.

    Stations that fail end up in `errors`; the rest are still reported.
    """
    _check_format(request.format)
    try:
        report = await reports.build_group_report(
            request.group_id,
            request.user_id,
            include_history=request.include_history,
            history_range=request.history_range,
        )
        return await _respond(report, request, exporter, db)
    except AgriTechError as e:
        raise http_error(e)
    except Exception as e:
        logger.exception(f"[Reports] Group report for {request.group_id} failed")
        raise HTTPException(status_code=500, detail=f"Failed to generate group report: {e}")


# =============================================================================
# SAVED REPORTS
# =============================================================================

@router.get("/user/{user_id}", response_model=ReportFileListResponse)
def list_user_reports(user_id: str, db: Session = Depends(get_db)):
    """Every report this user has exported, newest first."""
    files = file_crud.get_user_files(db, user_id)
    return ReportFileListResponse(files=files, total=len(files))
