"""
预约路由
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from club.database import get_db
from club.models.ontology import MemberProfile
from club.models.schemas import (
    ReservationCreate, ReservationCancel, ReservationReject, ReservationResponse,
    PermissionCheckRequest, PermissionCheckResponse
)
from club.services.reservation_service import ReservationService
from club.security.auth import get_current_profile

router = APIRouter(prefix="/reservations", tags=["预约管理"])


@router.post("/permission-check", response_model=PermissionCheckResponse)
def check_permission(
    data: PermissionCheckRequest,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """预约权限预检（不写入）"""
    return ReservationService(db).check_permission(
        current_profile, data.service_id, data.resource_id, data.start_time
    )


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: ReservationCreate,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """创建预约"""
    return ReservationService(db).create_reservation(current_profile, data)


@router.get("/me", response_model=List[ReservationResponse])
def list_my_reservations(
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """我的未来预约"""
    return ReservationService(db).list_upcoming(current_profile)


@router.get("/pending-approvals", response_model=List[ReservationResponse])
def list_pending_approvals(
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """家庭待审批预约"""
    return ReservationService(db).list_pending_approvals(current_profile)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    data: ReservationCancel,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """取消预约"""
    return ReservationService(db).cancel_reservation(reservation_id, current_profile, data.reason)


@router.post("/{reservation_id}/approve", response_model=ReservationResponse)
def approve_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """审批通过"""
    return ReservationService(db).approve_reservation(reservation_id, current_profile)


@router.post("/{reservation_id}/reject", response_model=ReservationResponse)
def reject_reservation(
    reservation_id: int,
    data: ReservationReject,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """审批拒绝"""
    return ReservationService(db).reject_reservation(reservation_id, current_profile, data.reason)


@router.post("/{reservation_id}/check-in", response_model=ReservationResponse)
def check_in(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """签到：本人或同会籍审批人"""
    return ReservationService(db).mark_in_progress(reservation_id, current_profile)
