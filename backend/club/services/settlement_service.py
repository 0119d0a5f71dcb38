"""
结算服务
独立服务者按周期生成分成结算；固定租金者只输出租金行
"""
import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from club.config import settings as default_settings
from club.models.ontology import (
    Staff, EmploymentType, Reservation, ReservationStatus, Payment, PaymentStatus,
    StaffSettlement, SettlementStatus
)
from club.models.schemas import SettlementRunResult, SettlementResponse, FixedRentLine
from club.services.payment_ledger import PaymentLedger

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DUPLICATE_POLICIES = ("skip", "replace")


def split_revenue(gross: Decimal, rate: Decimal):
    """按分成比例拆分收入，返回 (员工所得, 会所佣金)"""
    payout = (gross * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return payout, gross - payout


class SettlementService:
    """结算服务"""

    def __init__(self, db: Session, config=None):
        self.db = db
        self.config = config or default_settings
        self.ledger = PaymentLedger(db)

    def list_settlements(self, staff_id: Optional[int] = None,
                         period_start: Optional[date] = None) -> List[StaffSettlement]:
        query = self.db.query(StaffSettlement)
        if staff_id is not None:
            query = query.filter(StaffSettlement.staff_id == staff_id)
        if period_start is not None:
            query = query.filter(StaffSettlement.period_start == period_start)
        return query.order_by(StaffSettlement.period_start.desc(), StaffSettlement.staff_id).all()

    def _qualifying_reservation_ids(self, staff_id: int, period_start: date, period_end: date) -> List[int]:
        """周期内已完成且已付款的预约"""
        rows = self.db.query(Reservation.id).join(
            Payment, Payment.reservation_id == Reservation.id
        ).filter(
            Reservation.staff_id == staff_id,
            Reservation.status == ReservationStatus.COMPLETED,
            Reservation.date >= period_start,
            Reservation.date <= period_end,
            Payment.status == PaymentStatus.COMPLETED
        ).all()
        return [r.id for r in rows]

    def _existing(self, staff_id: int, period_start: date, period_end: date) -> Optional[StaffSettlement]:
        return self.db.query(StaffSettlement).filter(
            StaffSettlement.staff_id == staff_id,
            StaffSettlement.period_start == period_start,
            StaffSettlement.period_end == period_end
        ).first()

    def _settle_staff(self, staff: Staff, period_start: date, period_end: date,
                      policy: str, result: SettlementRunResult):
        existing = self._existing(staff.id, period_start, period_end)
        if existing is not None:
            if policy == "skip":
                result.skipped_staff_ids.append(staff.id)
                return
            self.db.delete(existing)
            self.db.flush()

        ids = self._qualifying_reservation_ids(staff.id, period_start, period_end)
        if not ids:
            self.db.commit()
            return

        gross = self.ledger.sum_paid_for_reservations(ids)
        payout, commission = split_revenue(gross, Decimal(staff.commission_rate))

        settlement = StaffSettlement(
            staff_id=staff.id,
            period_start=period_start,
            period_end=period_end,
            total_services=len(ids),
            gross_revenue=gross,
            club_commission=commission,
            staff_payout=payout,
            status=SettlementStatus.PENDING
        )
        self.db.add(settlement)
        self.db.commit()
        self.db.refresh(settlement)
        result.created.append(SettlementResponse.model_validate(settlement))
        logger.info(f"Settlement for staff {staff.id} {period_start}..{period_end}: gross={gross} payout={payout}")

    def generate_settlements(self, period_start: date, period_end: date,
                             policy: Optional[str] = None) -> SettlementRunResult:
        """
        为在职的独立服务者生成周期结算
        固定租金 > 0：只输出租金行；否则按分成比例结算；两者都没有则跳过
        """
        policy = policy or self.config.SETTLEMENT_DUPLICATE_POLICY
        if policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Política de duplicados desconocida: {policy}")

        staff_list = self.db.query(Staff).filter(
            Staff.employment_type == EmploymentType.INDEPENDENT,
            Staff.is_active == True  # noqa: E712
        ).order_by(Staff.id).all()

        result = SettlementRunResult()
        for staff in staff_list:
            if staff.fixed_rent and Decimal(staff.fixed_rent) > 0:
                result.fixed_rent.append(FixedRentLine(
                    staff_id=staff.id, staff_name=staff.name, fixed_rent=Decimal(staff.fixed_rent)
                ))
                continue
            if not staff.commission_rate:
                continue

            try:
                self._settle_staff(staff, period_start, period_end, policy, result)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Settlement failed for staff {staff.id}: {e}")

        logger.info(
            f"Settlements {period_start}..{period_end}: {len(result.created)} created, "
            f"{len(result.fixed_rent)} fixed rent, {len(result.skipped_staff_ids)} skipped"
        )
        return result
