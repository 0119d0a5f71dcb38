"""
可用时段服务
按员工排班 / 分部营业时间生成候选时段，并剔除与已有预约冲突的时段
写入时在同一事务内重新校验冲突
"""
import logging
import threading
from collections import defaultdict
from datetime import date, time
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from club.config import settings as default_settings
from club.errors import ConflictError, ValidationError
from club.models.ontology import (
    Reservation, Service, Resource, Staff, BLOCKING_STATUSES
)
from club.models.schemas import StaffSlots
from club.services.time_grid import (
    generate_slots, parse_hhmm, to_minutes, overlaps, Window
)
from club.services.catalog_provider import CatalogProvider, StaffProvider

logger = logging.getLogger(__name__)

Interval = Tuple[int, int]

_target_locks: Dict[Tuple[str, int], threading.Lock] = {}
_target_locks_guard = threading.Lock()


def target_lock(kind: str, target_id: int) -> threading.Lock:
    """同一成员 / 服务 / 员工 / 场地的写入在进程内串行化"""
    key = (kind, target_id)
    with _target_locks_guard:
        lock = _target_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _target_locks[key] = lock
        return lock


def _interval(reservation: Reservation) -> Interval:
    return to_minutes(reservation.start_time), to_minutes(reservation.end_time)


class AvailabilityService:
    """可用时段服务"""

    def __init__(self, db: Session, config=None):
        self.db = db
        self.config = config or default_settings
        self.catalog = CatalogProvider(db)
        self.staff_provider = StaffProvider(db)

    # ============== 预约批量加载 ==============

    def _blocking_query(self, day: date):
        return self.db.query(Reservation).filter(
            Reservation.date == day,
            Reservation.status.in_(BLOCKING_STATUSES)
        )

    def _busy_by_staff(self, staff_ids: List[int], day: date) -> Dict[int, List[Interval]]:
        busy: Dict[int, List[Interval]] = defaultdict(list)
        if not staff_ids:
            return busy
        rows = self._blocking_query(day).filter(Reservation.staff_id.in_(staff_ids)).all()
        for r in rows:
            busy[r.staff_id].append(_interval(r))
        return busy

    def _busy_for_service(self, service_id: int, day: date) -> List[Interval]:
        rows = self._blocking_query(day).filter(Reservation.service_id == service_id).all()
        return [_interval(r) for r in rows]

    def _busy_for_resource(self, resource_id: int, day: date) -> List[Interval]:
        rows = self._blocking_query(day).filter(Reservation.resource_id == resource_id).all()
        return [_interval(r) for r in rows]

    # ============== 窗口 ==============

    def staff_window(self, staff: Staff, day: date) -> Optional[Window]:
        """员工当天窗口，排班无法解析时记录告警并返回 None"""
        try:
            return self.staff_provider.get_staff_schedule(staff, day)
        except ValueError as e:
            logger.warning(f"Skipping staff {staff.id} on {day}: {e}")
            return None

    def resource_window(self, resource: Resource, day: date) -> Window:
        """场地当天窗口，未配置时使用默认营业时间"""
        try:
            window = self.catalog.get_unit_operating_hours(resource.unit_id, day)
        except ValueError as e:
            logger.warning(f"Unit {resource.unit_id} has unreadable operating hours: {e}")
            window = None
        if window is None:
            window = (parse_hhmm(self.config.DEFAULT_OPEN_TIME), parse_hhmm(self.config.DEFAULT_CLOSE_TIME))
        return window

    @staticmethod
    def _capacity_reached(service: Service, service_busy: List[Interval], start: int) -> bool:
        if not service.max_concurrent:
            return False
        end = start + service.duration_minutes
        count = sum(1 for b_start, b_end in service_busy if overlaps(b_start, b_end, start, end))
        return count >= service.max_concurrent

    # ============== 查询 ==============

    def resolve_service_slots(self, service_id: int, day: date) -> List[StaffSlots]:
        """
        服务在指定日期按员工分组的可用时段
        时段间隔 = 服务时长 + 缓冲；员工冲突区间 [start, start+时长+缓冲)
        """
        service = self.catalog.get_service(service_id)
        interval = service.duration_minutes + self.config.APPOINTMENT_BUFFER_MINUTES
        staff_list = self.catalog.get_service_staff(service)

        busy_by_staff = self._busy_by_staff([s.id for s in staff_list], day)
        service_busy = self._busy_for_service(service.id, day) if service.max_concurrent else []

        results = []
        for staff in staff_list:
            window = self.staff_window(staff, day)
            if window is None:
                continue

            staff_busy = busy_by_staff.get(staff.id, [])
            slots = []
            for slot in generate_slots(window[0], window[1], interval):
                start = to_minutes(parse_hhmm(slot))
                if any(overlaps(b_start, b_end, start, start + interval) for b_start, b_end in staff_busy):
                    continue
                if self._capacity_reached(service, service_busy, start):
                    continue
                slots.append(slot)

            if slots:
                results.append(StaffSlots(staff_id=staff.id, staff_name=staff.name, slots=slots))
        return results

    def resolve_resource_slots(self, resource_id: int, day: date) -> List[str]:
        """场地在指定日期的可用整点时段"""
        resource = self.catalog.get_resource(resource_id)
        window = self.resource_window(resource, day)
        slot_minutes = self.config.RESOURCE_SLOT_MINUTES

        busy = self._busy_for_resource(resource.id, day)
        slots = []
        for slot in generate_slots(window[0], window[1], slot_minutes):
            start = to_minutes(parse_hhmm(slot))
            if any(overlaps(b_start, b_end, start, start + slot_minutes) for b_start, b_end in busy):
                continue
            slots.append(slot)
        return slots

    # ============== 写入时校验 ==============

    def lock_staff(self, staff_id: int) -> Staff:
        """锁定员工行（支持 SELECT ... FOR UPDATE 的数据库上生效）"""
        staff = self.db.query(Staff).filter(Staff.id == staff_id).with_for_update().first()
        if not staff or not staff.is_active:
            raise ValidationError("Profesional no encontrado o inactivo", staff_id=staff_id)
        return staff

    def lock_resource(self, resource_id: int) -> Resource:
        return self.db.query(Resource).filter(Resource.id == resource_id).with_for_update().first()

    def lock_service(self, service_id: int) -> Service:
        """锁定服务行，并发上限在锁内重新统计"""
        return self.db.query(Service).filter(Service.id == service_id).with_for_update().first()

    def is_staff_slot_free(self, service: Service, staff: Staff, day: date, start_time: time) -> bool:
        window = self.staff_window(staff, day)
        if window is None:
            return False
        interval = service.duration_minutes + self.config.APPOINTMENT_BUFFER_MINUTES
        start = to_minutes(start_time)
        if start < to_minutes(window[0]) or start + interval > to_minutes(window[1]):
            return False

        staff_busy = self._busy_by_staff([staff.id], day).get(staff.id, [])
        if any(overlaps(b_start, b_end, start, start + interval) for b_start, b_end in staff_busy):
            return False
        if service.max_concurrent:
            service_busy = self._busy_for_service(service.id, day)
            if self._capacity_reached(service, service_busy, start):
                return False
        return True

    def ensure_staff_slot_free(self, service: Service, staff: Staff, day: date, start_time: time):
        if not self.is_staff_slot_free(service, staff, day, start_time):
            raise ConflictError(
                "El horario ya no está disponible", staff_id=staff.id, start_time=start_time.strftime("%H:%M")
            )

    def ensure_resource_slot_free(self, resource: Resource, day: date, start_time: time):
        window = self.resource_window(resource, day)
        slot_minutes = self.config.RESOURCE_SLOT_MINUTES
        start = to_minutes(start_time)
        if start < to_minutes(window[0]) or start + slot_minutes > to_minutes(window[1]):
            raise ConflictError("Fuera del horario de operación", resource_id=resource.id)

        busy = self._busy_for_resource(resource.id, day)
        if any(overlaps(b_start, b_end, start, start + slot_minutes) for b_start, b_end in busy):
            raise ConflictError(
                "El horario ya no está disponible",
                resource_id=resource.id, start_time=start_time.strftime("%H:%M")
            )
