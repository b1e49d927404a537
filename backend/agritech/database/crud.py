from typing import Any, Dict, List, Optional

from sqlalchemy import and_, desc, select
from sqlalchemy.orm import Session

from agritech.database.tables import Device, DeviceGroup, DeviceGroupMember, ReportFile


class CRUDDevice:
    def create(self, db: Session, obj_in: Dict[str, Any]) -> Device:
        db_obj = Device(**obj_in)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_device_by_id(self, db: Session, device_id: str) -> Optional[Device]:
        return db.get(Device, device_id)

    def get_by_mac(self, db: Session, mac: str) -> Optional[Device]:
        result = db.execute(select(Device).where(Device.mac == mac))
        return result.scalar_one_or_none()

    def get_by_application_key(self, db: Session, application_key: str) -> Optional[Device]:
        result = db.execute(select(Device).where(Device.application_key == application_key))
        return result.scalar_one_or_none()

    def get_devices_by_ids(self, db: Session, device_ids: List[str]) -> List[Device]:
        if not device_ids:
            return []
        result = db.execute(select(Device).where(Device.id.in_(device_ids)))
        return list(result.scalars().all())

    def get_devices_by_group_id(self, db: Session, group_id: str) -> List[Device]:
        query = (
            select(Device)
            .join(DeviceGroupMember, DeviceGroupMember.device_id == Device.id)
            .where(
                and_(
                    DeviceGroupMember.group_id == group_id,
                    DeviceGroupMember.status == "active",
                )
            )
            .order_by(DeviceGroupMember.created_at, DeviceGroupMember.id)
        )
        result = db.execute(query)
        return list(result.scalars().all())

    def list(
        self,
        db: Session,
        user_id: Optional[str] = None,
        device_type: Optional[str] = None,
    ) -> List[Device]:
        query = select(Device)

        if user_id:
            query = query.where(Device.user_id == user_id)
        if device_type:
            query = query.where(Device.device_type == device_type)

        query = query.order_by(desc(Device.created_at))
        result = db.execute(query)
        return list(result.scalars().all())

    def update(self, db: Session, device: Device, changes: Dict[str, Any]) -> Device:
        for field, value in changes.items():
            setattr(device, field, value)
        db.commit()
        db.refresh(device)
        return device

    def delete(self, db: Session, device: Device) -> None:
        db.delete(device)
        db.commit()


class CRUDGroup:
    def create(self, db: Session, obj_in: Dict[str, Any]) -> DeviceGroup:
        db_obj = DeviceGroup(**obj_in)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get(self, db: Session, group_id: str) -> Optional[DeviceGroup]:
        return db.get(DeviceGroup, group_id)

    def get_user_groups(self, db: Session, user_id: str) -> List[DeviceGroup]:
        query = (
            select(DeviceGroup)
            .where(DeviceGroup.user_id == user_id)
            .order_by(desc(DeviceGroup.created_at))
        )
        result = db.execute(query)
        return list(result.scalars().all())

    def update(self, db: Session, group: DeviceGroup, changes: Dict[str, Any]) -> DeviceGroup:
        for field, value in changes.items():
            setattr(group, field, value)
        db.commit()
        db.refresh(group)
        return group

    def delete(self, db: Session, group: DeviceGroup) -> None:
        # Drop the membership links, never the devices themselves
        members = db.execute(
            select(DeviceGroupMember).where(DeviceGroupMember.group_id == group.id)
        ).scalars().all()
        for member in members:
            db.delete(member)
        db.delete(group)
        db.commit()

    def get_member(self, db: Session, group_id: str, device_id: str) -> Optional[DeviceGroupMember]:
        result = db.execute(
            select(DeviceGroupMember).where(
                and_(
                    DeviceGroupMember.group_id == group_id,
                    DeviceGroupMember.device_id == device_id,
                )
            )
        )
        return result.scalar_one_or_none()

    def add_member(self, db: Session, group_id: str, device_id: str) -> DeviceGroupMember:
        member = self.get_member(db, group_id, device_id)
        if member:
            member.status = "active"
        else:
            member = DeviceGroupMember(group_id=group_id, device_id=device_id)
            db.add(member)
        db.commit()
        db.refresh(member)
        return member

    def remove_member(self, db: Session, group_id: str, device_id: str) -> bool:
        member = self.get_member(db, group_id, device_id)
        if not member:
            return False
        db.delete(member)
        db.commit()
        return True


class CRUDReportFile:
    def create(self, db: Session, obj_in: Dict[str, Any]) -> ReportFile:
        db_obj = ReportFile(**obj_in)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_user_files(self, db: Session, user_id: str, limit: int = 100) -> List[ReportFile]:
        query = (
            select(ReportFile)
            .where(and_(ReportFile.user_id == user_id, ReportFile.status == "active"))
            .order_by(desc(ReportFile.created_at))
            .limit(limit)
        )
        result = db.execute(query)
        return list(result.scalars().all())


device_crud = CRUDDevice()
group_crud = CRUDGroup()
file_crud = CRUDReportFile()
