"""
Report Export
=============

Writes an assembled report to disk as JSON and records a report_files row
pointing at it, so the user can find it again later.

    weather-report-device-greenhouse-north-20240508143000.json
    weather-report-group-north-field-20240508143000.json

Rendering (HTML/PDF) and cloud uploads are someone else's job - what we
hand over is the plain JSON tree.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.orm import Session

from agritech.database import ReportFile, file_crud
from agritech.models import DeviceReport, GroupReport
from agritech.utils.validation import sanitize_filename

logger = logging.getLogger(__name__)


def generate_file_name(kind: str, name: str, fmt: str = "json", now: Optional[datetime] = None) -> str:
    """
    Build a report file name.

    Args:
        kind: "device" or "group"
        name: Device/group name (sanitized here)
        fmt: File extension
        now: Timestamp to use (default: current UTC time)
    """
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    return f"weather-report-{kind}-{sanitize_filename(name)}-{timestamp}.{fmt}"


def report_to_json(report: Union[DeviceReport, GroupReport]) -> str:
    return report.model_dump_json(indent=2)


class ReportExporter:
    """
    Saves reports under reports_dir and records them in the database.

    Args:
        reports_dir: Directory to write into (created if missing)
    """

    def __init__(self, reports_dir: str):
        self.reports_dir = Path(reports_dir)

    def export(
        self,
        db: Session,
        report: Union[DeviceReport, GroupReport],
        user_id: str,
    ) -> ReportFile:
        """Write the report as JSON and create its report_files row."""
        if isinstance(report, GroupReport):
            kind, name = "group", report.group.name
        else:
            kind, name = "device", report.device.name

        file_name = generate_file_name(kind, name, "json")

        self.reports_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.reports_dir / file_name
        file_path.write_text(report_to_json(report), encoding="utf-8")

        logger.info(f"[Export] Saved {kind} report to {file_path}")

        return file_crud.create(db, {
            "user_id": str(user_id),
            "file_name": file_name,
            "content_url": file_path.resolve().as_uri(),
        })
