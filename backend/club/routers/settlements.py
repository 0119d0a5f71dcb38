"""
员工结算路由（管理端）
"""
from typing import List, Optional
from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from club.database import get_db
from club.models.schemas import SettlementGenerate, SettlementResponse, SettlementRunResult
from club.services.settlement_service import SettlementService
from club.security.auth import require_admin

router = APIRouter(prefix="/settlements", tags=["员工结算"])


@router.post("/generate", response_model=SettlementRunResult)
def generate_settlements(
    data: SettlementGenerate,
    db: Session = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """生成周期结算"""
    return SettlementService(db).generate_settlements(data.period_start, data.period_end)


@router.get("", response_model=List[SettlementResponse])
def list_settlements(
    staff_id: Optional[int] = None,
    period_start: Optional[date] = None,
    db: Session = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """结算列表"""
    return SettlementService(db).list_settlements(staff_id, period_start)
