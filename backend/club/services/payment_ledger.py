"""
支付台账
网关调用视为外部不透明操作，这里只记录结果
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from club.errors import NotFoundError, InvalidTransitionError
from club.models.ontology import Payment, PaymentStatus, Reservation

logger = logging.getLogger(__name__)

# 计入月度消费上限的支付状态
SPENDING_STATUSES = (PaymentStatus.PENDING, PaymentStatus.COMPLETED)


class PaymentLedger:
    """支付台账"""

    def __init__(self, db: Session):
        self.db = db

    def get_payment(self, payment_id: int) -> Payment:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Pago no encontrado", payment_id=payment_id)
        return payment

    def sum_completed_or_pending_since(self, profile_id: int, membership_id: int, since: date) -> Decimal:
        """成员自某日起的已付 + 待付金额"""
        total = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.profile_id == profile_id,
            Payment.membership_id == membership_id,
            Payment.status.in_(SPENDING_STATUSES),
            Payment.created_at >= datetime.combine(since, datetime.min.time())
        ).scalar()
        return Decimal(str(total))

    def sum_paid_for_reservations(self, reservation_ids: Iterable[int]) -> Decimal:
        ids = list(reservation_ids)
        if not ids:
            return Decimal("0")
        total = self.db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
            Payment.reservation_id.in_(ids),
            Payment.status == PaymentStatus.COMPLETED
        ).scalar()
        return Decimal(str(total))

    def record_for_reservation(self, reservation: Reservation) -> Optional[Payment]:
        """为有价格的预约登记待付款项（不提交）"""
        if not reservation.price or Decimal(reservation.price) <= 0:
            return None
        payment = Payment(
            membership_id=reservation.membership_id,
            profile_id=reservation.profile_id,
            reservation_id=reservation.id,
            amount=reservation.price,
            status=PaymentStatus.PENDING
        )
        self.db.add(payment)
        return payment

    def confirm_payment(self, payment_id: int, gateway_txn_id: Optional[str] = None) -> Payment:
        """网关确认成功"""
        payment = self.get_payment(payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                "Solo se pueden confirmar pagos pendientes",
                current=payment.status.value, target=PaymentStatus.COMPLETED.value
            )
        payment.status = PaymentStatus.COMPLETED
        payment.gateway_txn_id = gateway_txn_id
        payment.paid_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} confirmed ({payment.amount})")
        return payment

    def fail_payment(self, payment_id: int) -> Payment:
        """网关返回失败"""
        payment = self.get_payment(payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                "Solo se pueden rechazar pagos pendientes",
                current=payment.status.value, target=PaymentStatus.FAILED.value
            )
        payment.status = PaymentStatus.FAILED
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"Payment {payment.id} failed")
        return payment

    def void_for_reservation(self, reservation: Reservation) -> Optional[Payment]:
        """预约未完成而终止时作废待付款项（不提交）"""
        payment = self.db.query(Payment).filter(Payment.reservation_id == reservation.id).first()
        if payment and payment.status == PaymentStatus.PENDING:
            payment.status = PaymentStatus.CANCELLED
        return payment

    def record_gateway_result(self, payment_id: int, success: bool,
                              gateway_txn_id: Optional[str] = None) -> Payment:
        """网关回调入口：按结果确认或标记失败"""
        if success:
            return self.confirm_payment(payment_id, gateway_txn_id)
        return self.fail_payment(payment_id)

    def list_for_profile(self, profile_id: int, status: Optional[PaymentStatus] = None):
        query = self.db.query(Payment).filter(Payment.profile_id == profile_id)
        if status:
            query = query.filter(Payment.status == status)
        return query.order_by(Payment.created_at.desc()).all()
