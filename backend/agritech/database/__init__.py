"""
Database Package
================

Everything that touches SQL lives here.

- session.py = engine, SessionLocal, Base, get_db()
- tables.py  = ORM tables (devices, groups, members, report files)
- crud.py    = the read/write helpers the rest of the app calls
"""

from .session import Base, SessionLocal, engine, get_db, init_db
from .tables import Device, DeviceGroup, DeviceGroupMember, ReportFile
from .crud import device_crud, group_crud, file_crud

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "init_db",
    "Device",
    "DeviceGroup",
    "DeviceGroupMember",
    "ReportFile",
    "device_crud",
    "group_crud",
    "file_crud",
]
