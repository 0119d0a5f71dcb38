"""
预约服务 - 本体操作层
管理 Reservation 对象的创建、审批、取消及系统批量状态变更
"""
import logging
import secrets
from contextlib import contextmanager
from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from club.config import settings as default_settings
from club.errors import ClubError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from club.domain.reservation import ReservationEntity, initial_status
from club.models.ontology import (
    Reservation, ReservationStatus, MemberProfile, Membership, MembershipStatus,
    ProfileRole, Service, Resource, Staff, BLOCKING_STATUSES
)
from club.models.schemas import (
    ReservationCreate, BookingPermissionRequest, PermissionCheckResponse
)
from club.services.availability_service import AvailabilityService, target_lock
from club.services.time_grid import add_minutes
from club.services.notification_service import NotificationService
from club.services.payment_ledger import PaymentLedger
from club.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

APPROVER_ROLES = (ProfileRole.TITULAR, ProfileRole.SPOUSE)
CANCELLABLE_STATUSES = (ReservationStatus.PENDING_APPROVAL, ReservationStatus.CONFIRMED)

EXPIRY_REASON = "Timeout de aprobación familiar (2 horas)"
DEFAULT_REJECT_REASON = "Rechazada por el administrador familiar."
DEFAULT_CANCEL_REASON = "Cancelada por el usuario"


class ReservationService:
    """预约服务"""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None, config=None):
        self.db = db
        self.config = config or default_settings
        self.availability = AvailabilityService(db, self.config)
        self.permissions = PermissionService(db)
        self.ledger = PaymentLedger(db)
        self.notifier = notifier or NotificationService.for_session(db)

    def _generate_reservation_no(self) -> str:
        """生成预约号：R + 日期 + 随机后缀"""
        today = datetime.now().strftime('%Y%m%d')
        return f'R{today}{secrets.token_hex(3).upper()}'

    def get_reservation(self, reservation_id: int) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if not reservation:
            raise NotFoundError("Reserva no encontrada", reservation_id=reservation_id)
        return reservation

    # ============== 权限 / 授权 ==============

    def _ensure_membership_active(self, profile: MemberProfile):
        membership = self.db.query(Membership).filter(Membership.id == profile.membership_id).first()
        if not membership or membership.status != MembershipStatus.ACTIVE:
            raise ForbiddenError("membership", "La membresía no está activa")

    def _resolve_target(self, service_id: Optional[int], resource_id: Optional[int]
                        ) -> Tuple[Optional[Service], Optional[Resource]]:
        if service_id is not None:
            return self.availability.catalog.get_service(service_id), None
        if resource_id is not None:
            return None, self.availability.catalog.get_resource(resource_id)
        raise ValidationError("Indica service_id o resource_id")

    @staticmethod
    def _permission_request(service: Optional[Service], resource: Optional[Resource],
                            start_time: time) -> BookingPermissionRequest:
        target = service or resource
        return BookingPermissionRequest(
            category=service.category if service else None,
            resource_category=resource.category if resource else None,
            start_time=start_time,
            price=Decimal(target.price or 0),
        )

    def check_permission(self, profile: MemberProfile, service_id: Optional[int],
                         resource_id: Optional[int], start_time: time,
                         today: Optional[date] = None) -> PermissionCheckResponse:
        """只评估权限，不写入"""
        service, resource = self._resolve_target(service_id, resource_id)
        perms = self.permissions.evaluate_booking_permission(
            profile, self._permission_request(service, resource, start_time), today
        )
        return PermissionCheckResponse(allowed=True, requires_approval=perms.requires_approval)

    def _authorize_approver(self, actor: MemberProfile, reservation: Reservation):
        perms = self.permissions.get_permission_set(actor)
        if (
            not actor.is_active
            or actor.membership_id != reservation.membership_id
            or actor.role not in APPROVER_ROLES
            or not perms.can_approve_reservations
        ):
            raise ForbiddenError("authorization", "No tienes permiso para aprobar esta reserva")

    def _authorize_owner(self, actor: MemberProfile, reservation: Reservation, action: str):
        """本人，或同会籍的 titular / conyugue"""
        if actor.id == reservation.profile_id:
            return
        if actor.membership_id == reservation.membership_id and actor.role in APPROVER_ROLES:
            return
        raise ForbiddenError("authorization", f"No tienes permiso para {action} esta reserva")

    # ============== 创建 ==============

    @contextmanager
    def _write_guard(self, kind: str, target_id: int):
        """进程内按目标加锁，异常时回滚本次写入"""
        with target_lock(kind, target_id):
            try:
                yield
            except Exception:
                self.db.rollback()
                raise

    def _insert(self, profile: MemberProfile, data: ReservationCreate, end_time: time,
                price, requires_approval: bool, staff_id: Optional[int] = None) -> Reservation:
        reservation = Reservation(
            reservation_no=self._generate_reservation_no(),
            membership_id=profile.membership_id,
            profile_id=profile.id,
            booked_by_id=profile.id,
            service_id=data.service_id,
            resource_id=data.resource_id,
            staff_id=staff_id,
            date=data.date,
            start_time=data.start_time,
            end_time=end_time,
            status=initial_status(requires_approval),
            requires_approval=requires_approval,
            price=price or 0,
        )
        self.db.add(reservation)
        self.db.flush()
        self.ledger.record_for_reservation(reservation)
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def _lock_profile(self, profile_id: int) -> MemberProfile:
        """锁定成员行，活跃预约数与月度消费在锁内重新统计"""
        return self.db.query(MemberProfile).filter(MemberProfile.id == profile_id).with_for_update().first()

    def _book_staff(self, profile: MemberProfile, data: ReservationCreate, service: Service,
                    staff: Staff, requires_approval: bool) -> Optional[Reservation]:
        """锁定员工后重新校验并写入；时段已被占用时返回 None"""
        with self._write_guard("staff", staff.id):
            locked = self.availability.lock_staff(staff.id)
            if not self.availability.is_staff_slot_free(service, locked, data.date, data.start_time):
                return None
            end_time = add_minutes(data.start_time, service.duration_minutes)
            return self._insert(profile, data, end_time, service.price, requires_approval, staff_id=locked.id)

    def _book_first_free(self, profile: MemberProfile, data: ReservationCreate, service: Service,
                         candidates: List[Staff], requires_approval: bool) -> Optional[Reservation]:
        for staff in candidates:
            reservation = self._book_staff(profile, data, service, staff, requires_approval)
            if reservation is not None:
                return reservation
        return None

    def _book_service(self, profile: MemberProfile, data: ReservationCreate, service: Service,
                      requires_approval: bool) -> Reservation:
        """服务预约：有并发上限时先锁服务再锁员工"""
        candidates = self.availability.catalog.get_service_staff(service)
        if data.staff_id is not None:
            candidates = [s for s in candidates if s.id == data.staff_id]
            if not candidates:
                raise ValidationError(
                    "El profesional no ofrece este servicio", staff_id=data.staff_id
                )

        if service.max_concurrent:
            with self._write_guard("service", service.id):
                self.availability.lock_service(service.id)
                reservation = self._book_first_free(profile, data, service, candidates, requires_approval)
        else:
            reservation = self._book_first_free(profile, data, service, candidates, requires_approval)

        if reservation is None:
            raise ConflictError(
                "El horario ya no está disponible",
                service_id=service.id, start_time=data.start_time.strftime("%H:%M")
            )
        return reservation

    def _book_resource(self, profile: MemberProfile, data: ReservationCreate, resource: Resource,
                       requires_approval: bool) -> Reservation:
        with self._write_guard("resource", resource.id):
            locked = self.availability.lock_resource(resource.id)
            self.availability.ensure_resource_slot_free(locked, data.date, data.start_time)
            end_time = add_minutes(data.start_time, self.config.RESOURCE_SLOT_MINUTES)
            return self._insert(profile, data, end_time, resource.price, requires_approval)

    def create_reservation(self, profile: MemberProfile, data: ReservationCreate,
                           today: Optional[date] = None) -> Reservation:
        """
        创建预约
        加锁顺序：成员 -> 服务（有并发上限时）-> 员工 / 场地
        权限评估与冲突校验都在锁内完成，任一步失败都不留下部分数据
        """
        today = today or date.today()
        self._ensure_membership_active(profile)
        if data.date < today:
            raise ValidationError("No se puede reservar en una fecha pasada", date=data.date.isoformat())

        service, resource = self._resolve_target(data.service_id, data.resource_id)
        request = self._permission_request(service, resource, data.start_time)

        with self._write_guard("profile", profile.id):
            locked_profile = self._lock_profile(profile.id)
            perms = self.permissions.evaluate_booking_permission(locked_profile, request, today)
            requires_approval = perms.requires_approval

            if service is not None:
                reservation = self._book_service(locked_profile, data, service, requires_approval)
            else:
                reservation = self._book_resource(locked_profile, data, resource, requires_approval)

        logger.info(
            f"Reservation {reservation.reservation_no} created for profile {profile.id} "
            f"({reservation.status.value})"
        )
        if requires_approval:
            self._notify_approvers(reservation, profile)
        return reservation

    # ============== 状态变更 ==============

    def cancel_reservation(self, reservation_id: int, actor: MemberProfile,
                           reason: Optional[str] = None) -> Reservation:
        """用户取消：本人或同会籍的 titular / conyugue"""
        reservation = self.get_reservation(reservation_id)
        self._authorize_owner(actor, reservation, "cancelar")

        ReservationEntity(reservation).cancel(reason or DEFAULT_CANCEL_REASON)
        self.ledger.void_for_reservation(reservation)
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    def approve_reservation(self, reservation_id: int, actor: MemberProfile) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        self._authorize_approver(actor, reservation)

        ReservationEntity(reservation).approve(actor.id)
        self.db.commit()
        self.db.refresh(reservation)

        self.notifier.notify(
            reservation.profile_id,
            "Reserva aprobada",
            f"Tu reserva {reservation.reservation_no} del {reservation.date.isoformat()} "
            f"a las {reservation.start_time.strftime('%H:%M')} fue aprobada.",
            reservation_id=reservation.id,
        )
        return reservation

    def reject_reservation(self, reservation_id: int, actor: MemberProfile,
                           reason: Optional[str] = None) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        self._authorize_approver(actor, reservation)

        ReservationEntity(reservation).reject(reason or DEFAULT_REJECT_REASON)
        self.ledger.void_for_reservation(reservation)
        self.db.commit()
        self.db.refresh(reservation)

        self.notifier.notify(
            reservation.profile_id,
            "Reserva rechazada",
            f"Tu reserva {reservation.reservation_no} fue rechazada: {reservation.cancellation_reason}",
            reservation_id=reservation.id,
        )
        return reservation

    def mark_in_progress(self, reservation_id: int, actor: Optional[MemberProfile] = None) -> Reservation:
        """签到：confirmada -> en_curso"""
        reservation = self.get_reservation(reservation_id)
        if actor is not None:
            self._authorize_owner(actor, reservation, "registrar")
        ReservationEntity(reservation).start()
        self.db.commit()
        self.db.refresh(reservation)
        return reservation

    # ============== 批量（后台任务） ==============

    def expire_pending_approvals(self, now: Optional[datetime] = None) -> List[Reservation]:
        """审批超时：创建超过时限仍待审批的预约 -> expirada"""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(minutes=self.config.APPROVAL_TIMEOUT_MINUTES)
        pending = self.db.query(Reservation).filter(
            Reservation.status == ReservationStatus.PENDING_APPROVAL,
            Reservation.created_at < cutoff
        ).all()

        expired = []
        for reservation in pending:
            try:
                ReservationEntity(reservation).expire(EXPIRY_REASON, at=now)
                self.ledger.void_for_reservation(reservation)
                self.db.commit()
            except (ClubError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Could not expire reservation {reservation.id}: {e}")
                continue
            expired.append(reservation)
            self.notifier.notify(
                reservation.profile_id,
                "Reserva expirada",
                f"Tu reserva {reservation.reservation_no} expiró sin aprobación.",
                reservation_id=reservation.id,
            )

        if expired:
            logger.info(f"Expired {len(expired)} reservations pending approval")
        return expired

    def complete_finished(self, now: Optional[datetime] = None) -> List[Reservation]:
        """结束时间已过的 confirmada / en_curso 预约 -> completada"""
        now = now or datetime.now()
        candidates = self.db.query(Reservation).filter(
            Reservation.status.in_([ReservationStatus.CONFIRMED, ReservationStatus.IN_PROGRESS]),
            Reservation.date <= now.date()
        ).all()

        completed = []
        for reservation in candidates:
            if datetime.combine(reservation.date, reservation.end_time) > now:
                continue
            try:
                ReservationEntity(reservation).complete(at=now)
                self.db.commit()
            except (ClubError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.error(f"Could not complete reservation {reservation.id}: {e}")
                continue
            completed.append(reservation)

        if completed:
            logger.info(f"Completed {len(completed)} finished reservations")
        return completed

    def _system_cancel(self, query, reason: str) -> List[Reservation]:
        cancelled = []
        for reservation in query.all():
            ReservationEntity(reservation).system_cancel(reason)
            self.ledger.void_for_reservation(reservation)
            cancelled.append(reservation)
        self.db.commit()

        for reservation in cancelled:
            self.notifier.notify(
                reservation.profile_id,
                "Reserva cancelada",
                f"Tu reserva {reservation.reservation_no} fue cancelada: {reason}",
                reservation_id=reservation.id,
            )
        return cancelled

    def _future_cancellable(self, today: date):
        return self.db.query(Reservation).filter(
            Reservation.status.in_(CANCELLABLE_STATUSES),
            Reservation.date >= today
        )

    def cancel_for_membership(self, membership_id: int, reason: str,
                              today: Optional[date] = None) -> List[Reservation]:
        """会籍停用：未来未终结的预约 -> cancelada_sistema"""
        query = self._future_cancellable(today or date.today()).filter(
            Reservation.membership_id == membership_id
        )
        cancelled = self._system_cancel(query, reason)
        if cancelled:
            logger.info(f"Membership {membership_id}: {len(cancelled)} reservations cancelled by system")
        return cancelled

    def cancel_for_profile(self, profile_id: int, reason: str,
                           today: Optional[date] = None) -> List[Reservation]:
        """成员停用：未来未终结的预约 -> cancelada_sistema"""
        query = self._future_cancellable(today or date.today()).filter(
            Reservation.profile_id == profile_id
        )
        cancelled = self._system_cancel(query, reason)
        if cancelled:
            logger.info(f"Profile {profile_id}: {len(cancelled)} reservations cancelled by system")
        return cancelled

    # ============== 查询 ==============

    def list_upcoming(self, profile: MemberProfile, today: Optional[date] = None) -> List[Reservation]:
        return self.db.query(Reservation).filter(
            Reservation.profile_id == profile.id,
            Reservation.status.in_(BLOCKING_STATUSES),
            Reservation.date >= (today or date.today())
        ).order_by(Reservation.date, Reservation.start_time).all()

    def list_pending_approvals(self, actor: MemberProfile) -> List[Reservation]:
        """同会籍待审批预约，仅审批人可见"""
        perms = self.permissions.get_permission_set(actor)
        if actor.role not in APPROVER_ROLES or not perms.can_approve_reservations:
            raise ForbiddenError("authorization", "No tienes permiso para aprobar reservas")
        return self.db.query(Reservation).filter(
            Reservation.membership_id == actor.membership_id,
            Reservation.status == ReservationStatus.PENDING_APPROVAL
        ).order_by(Reservation.created_at).all()

    # ============== 通知 ==============

    def _notify_approvers(self, reservation: Reservation, booker: MemberProfile):
        approvers = self.db.query(MemberProfile).filter(
            MemberProfile.membership_id == reservation.membership_id,
            MemberProfile.is_active == True,  # noqa: E712
            MemberProfile.role.in_(APPROVER_ROLES),
            MemberProfile.id != booker.id
        ).all()
        for approver in approvers:
            if approver.permissions is None or not approver.permissions.can_approve_reservations:
                continue
            self.notifier.notify(
                approver.id,
                "Reserva pendiente de aprobación",
                f"{booker.full_name} solicitó una reserva para el {reservation.date.isoformat()} "
                f"a las {reservation.start_time.strftime('%H:%M')}.",
                reservation_id=reservation.id,
            )
