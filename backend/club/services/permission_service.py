"""
权限服务
角色默认权限集合 + 预约前的权限评估（类别、时段、数量上限、月度消费上限）
"""
import logging
from datetime import date, time
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from club.errors import ForbiddenError
from club.models.ontology import (
    MemberProfile, ProfilePermission, ProfileRole, Reservation, BLOCKING_STATUSES
)
from club.models.schemas import PermissionSet, BookingPermissionRequest
from club.services.payment_ledger import PaymentLedger

logger = logging.getLogger(__name__)

ADULT_AGE = 18

_CATEGORY_LABELS = {
    "spa": "spa",
    "barberia": "barbería",
    "deportes": "deportes",
    "alberca": "alberca",
}


def default_permissions(role: ProfileRole, is_minor: bool) -> PermissionSet:
    """创建成员时按角色分配的默认权限集合"""
    if role == ProfileRole.TITULAR:
        return PermissionSet(
            can_book_spa=True, can_book_barberia=True, can_book_deportes=True, can_book_alberca=True,
            can_rent_locker=True, can_make_payments=True, can_manage_beneficiaries=True,
            can_approve_reservations=True, can_view_account_statement=True,
            requires_approval=False,
        )
    if role == ProfileRole.SPOUSE or not is_minor:
        return PermissionSet(
            can_book_spa=True, can_book_barberia=True, can_book_deportes=True, can_book_alberca=True,
            can_rent_locker=True, can_make_payments=False, can_manage_beneficiaries=False,
            can_approve_reservations=True, can_view_account_statement=True,
            requires_approval=False,
        )
    # 未成年子女
    return PermissionSet(
        can_book_spa=False, can_book_barberia=False, can_book_deportes=True, can_book_alberca=True,
        can_rent_locker=False, can_make_payments=False, can_manage_beneficiaries=False,
        can_approve_reservations=False, can_view_account_statement=False,
        requires_approval=True,
        max_active_reservations=2,
        spending_limit_monthly=Decimal("2000"),
        allowed_hours_start=time(7, 0),
        allowed_hours_end=time(20, 0),
    )


def apply_permissions(profile: MemberProfile, permission_set: PermissionSet) -> ProfilePermission:
    """把权限集合写到成员的权限行上（不提交）"""
    row = profile.permissions
    if row is None:
        row = ProfilePermission()
        profile.permissions = row
    for field, value in permission_set.model_dump().items():
        setattr(row, field, value)
    return row


class PermissionService:
    """预约权限评估"""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = PaymentLedger(db)

    def get_permission_set(self, profile: MemberProfile) -> PermissionSet:
        """读取并校验成员权限；没有权限行时视为全部关闭"""
        if profile.permissions is None:
            return PermissionSet()
        return PermissionSet.model_validate(profile.permissions)

    def count_active_reservations(self, profile_id: int, today: date) -> int:
        return self.db.query(Reservation).filter(
            Reservation.profile_id == profile_id,
            Reservation.status.in_(BLOCKING_STATUSES),
            Reservation.date >= today
        ).count()

    def evaluate_booking_permission(self, profile: MemberProfile, request: BookingPermissionRequest,
                                    today: Optional[date] = None) -> PermissionSet:
        """
        依次检查类别、时段、活跃预约数、月度消费
        任一项不通过即抛出 ForbiddenError，不写入任何数据
        """
        today = today or date.today()
        perms = self.get_permission_set(profile)

        # 类别
        category = request.category or request.resource_category
        if category is not None and not perms.can_book(category):
            raise ForbiddenError(
                "category",
                f"No tienes permiso para reservar {_CATEGORY_LABELS[category.value]}",
                category=category.value
            )

        # 允许时段（按小时比较，区间 [start, end)）
        if perms.allowed_hours_start is not None and perms.allowed_hours_end is not None:
            hour = request.start_time.hour
            if hour < perms.allowed_hours_start.hour or hour >= perms.allowed_hours_end.hour:
                raise ForbiddenError(
                    "hours",
                    f"Solo puedes reservar entre {perms.allowed_hours_start.strftime('%H:%M')} "
                    f"y {perms.allowed_hours_end.strftime('%H:%M')}"
                )

        # 活跃预约上限
        if perms.max_active_reservations is not None:
            active = self.count_active_reservations(profile.id, today)
            if active >= perms.max_active_reservations:
                raise ForbiddenError(
                    "cap",
                    f"Máximo {perms.max_active_reservations} reservas activas permitidas",
                    active=active
                )

        # 月度消费上限
        if perms.spending_limit_monthly is not None and request.price > 0:
            month_start = today.replace(day=1)
            accumulated = self.ledger.sum_completed_or_pending_since(
                profile.id, profile.membership_id, month_start
            )
            if accumulated + request.price > perms.spending_limit_monthly:
                raise ForbiddenError(
                    "spending",
                    f"Has alcanzado tu límite de gasto mensual (${accumulated} de ${perms.spending_limit_monthly})",
                    accumulated=str(accumulated)
                )

        logger.debug(f"Permission granted for profile {profile.id}")
        return perms
