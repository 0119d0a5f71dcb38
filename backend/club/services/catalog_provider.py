"""
目录与排班提供者
为可用时段计算提供服务、场地、分部营业时间和员工当日工作窗口
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from club.errors import NotFoundError
from club.models.ontology import (
    Service, Resource, Unit, Staff, StaffScheduleOverride, OverrideType
)
from club.services.time_grid import WeeklySchedule, Window


class CatalogProvider:
    """服务 / 场地目录"""

    def __init__(self, db: Session):
        self.db = db

    def get_service(self, service_id: int) -> Service:
        """获取启用中的服务，不存在或停用时抛出 NotFoundError"""
        service = (
            self.db.query(Service)
            .options(selectinload(Service.staff))
            .filter(Service.id == service_id)
            .first()
        )
        if not service or not service.is_active:
            raise NotFoundError("Servicio no encontrado o inactivo", service_id=service_id)
        return service

    def get_resource(self, resource_id: int) -> Resource:
        resource = self.db.query(Resource).filter(Resource.id == resource_id).first()
        if not resource or not resource.is_active:
            raise NotFoundError("Recurso no encontrado o inactivo", resource_id=resource_id)
        return resource

    def get_service_staff(self, service: Service) -> List[Staff]:
        """服务下的在职员工，按 id 排序"""
        return sorted((s for s in service.staff if s.is_active), key=lambda s: s.id)

    def get_unit_operating_hours(self, unit_id: int, day: date) -> Optional[Window]:
        """
        分部当天营业时间，未配置时返回 None
        营业时间格式错误时抛出 ValueError
        """
        unit = self.db.query(Unit).filter(Unit.id == unit_id).first()
        if not unit:
            return None
        schedule = WeeklySchedule.from_json(unit.operating_hours, "open", "close")
        return schedule.window_for(day)


class StaffProvider:
    """员工排班：周模板 + 特定日期覆盖"""

    def __init__(self, db: Session):
        self.db = db

    def get_override(self, staff_id: int, day: date) -> Optional[StaffScheduleOverride]:
        return self.db.query(StaffScheduleOverride).filter(
            StaffScheduleOverride.staff_id == staff_id,
            StaffScheduleOverride.date == day
        ).first()

    def get_staff_schedule(self, staff: Staff, day: date) -> Optional[Window]:
        """
        员工当天的工作窗口
        休息/休假返回 None；特殊时段使用覆盖的起止时间；否则回落到周模板
        周模板无法解析时抛出 ValueError
        """
        override = self.get_override(staff.id, day)
        if override:
            if override.type in (OverrideType.DAY_OFF, OverrideType.VACATION):
                return None
            if override.type == OverrideType.CUSTOM_HOURS:
                if override.custom_start is None or override.custom_end is None:
                    raise ValueError(f"Horario especial sin horas para el día {day}")
                return override.custom_start, override.custom_end

        return WeeklySchedule.from_json(staff.schedule_template).window_for(day)
