"""
Database Tables
===============

ORM models for what we actually keep around:

- Device            - one EcoWitt weather station and its API credentials
- DeviceGroup       - a named bundle of devices owned by one user
- DeviceGroupMember - group <-> device link (no cascade onto devices)
- ReportFile        - pointer to an exported report

Normalized series and assembled reports are never stored. They're rebuilt
on every request.
"""

import uuid

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from agritech.database.session import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Device(Base):
    __tablename__ = "devices"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    mac = Column(String(17), nullable=False, unique=True)
    application_key = Column(String(255), nullable=False, unique=True)
    api_key = Column(String(255), nullable=False)
    device_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Device(id={self.id}, name={self.name}, mac={self.mac})>"


class DeviceGroup(Base):
    __tablename__ = "device_groups"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DeviceGroup(id={self.id}, name={self.name})>"


class DeviceGroupMember(Base):
    __tablename__ = "device_group_members"
    __table_args__ = (UniqueConstraint("group_id", "device_id", name="uq_group_device"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    group_id = Column(String(36), nullable=False, index=True)
    device_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<DeviceGroupMember(group={self.group_id}, device={self.device_id})>"


class ReportFile(Base):
    __tablename__ = "report_files"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    content_url = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ReportFile(id={self.id}, file_name={self.file_name})>"
