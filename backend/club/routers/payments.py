"""
支付路由
成员查看自己的支付记录；网关结果由管理端凭证回写
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from club.database import get_db
from club.models.ontology import MemberProfile, PaymentStatus
from club.models.schemas import PaymentGatewayResult, PaymentResponse
from club.services.payment_ledger import PaymentLedger
from club.security.auth import get_current_profile, require_admin

router = APIRouter(prefix="/payments", tags=["支付"])


@router.get("/me", response_model=List[PaymentResponse])
def list_my_payments(
    status: Optional[PaymentStatus] = None,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    return PaymentLedger(db).list_for_profile(current_profile.id, status)


@router.post("/{payment_id}/gateway-result", response_model=PaymentResponse)
def record_gateway_result(
    payment_id: int,
    data: PaymentGatewayResult,
    db: Session = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """网关回调：成功 -> completado，失败 -> fallido"""
    return PaymentLedger(db).record_gateway_result(payment_id, data.success, data.gateway_txn_id)
