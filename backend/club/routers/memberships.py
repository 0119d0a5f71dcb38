"""
会籍与受益人路由
"""
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from club.database import get_db
from club.models.ontology import MemberProfile
from club.models.schemas import (
    BeneficiaryCreate, PermissionSet, ProfileResponse, MembershipSuspend, MembershipResponse
)
from club.services.membership_service import MembershipService
from club.security.auth import get_current_profile, require_admin

router = APIRouter(prefix="/memberships", tags=["会籍管理"])


@router.get("/{membership_id}/beneficiaries", response_model=List[ProfileResponse])
def list_beneficiaries(
    membership_id: int,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """家庭成员列表"""
    return MembershipService(db).list_beneficiaries(membership_id, current_profile)


@router.post("/{membership_id}/beneficiaries", response_model=ProfileResponse,
             status_code=status.HTTP_201_CREATED)
def create_beneficiary(
    membership_id: int,
    data: BeneficiaryCreate,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """新增受益人"""
    return MembershipService(db).create_beneficiary(membership_id, current_profile, data)


@router.patch("/{membership_id}/beneficiaries/{profile_id}/permissions", response_model=ProfileResponse)
def update_permissions(
    membership_id: int,
    profile_id: int,
    data: PermissionSet,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """修改受益人权限"""
    return MembershipService(db).update_permissions(membership_id, profile_id, current_profile, data)


@router.delete("/{membership_id}/beneficiaries/{profile_id}", response_model=ProfileResponse)
def deactivate_beneficiary(
    membership_id: int,
    profile_id: int,
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """停用受益人"""
    return MembershipService(db).deactivate_profile(membership_id, profile_id, current_profile)


@router.post("/{membership_id}/suspend", response_model=MembershipResponse)
def suspend_membership(
    membership_id: int,
    data: MembershipSuspend,
    db: Session = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """停用会籍（管理端）"""
    return MembershipService(db).suspend_membership(membership_id, data.reason)


@router.post("/{membership_id}/reactivate", response_model=MembershipResponse)
def reactivate_membership(
    membership_id: int,
    db: Session = Depends(get_db),
    admin: dict = Depends(require_admin)
):
    """恢复会籍（管理端）"""
    return MembershipService(db).reactivate_membership(membership_id)
