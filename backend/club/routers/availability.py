"""
可用时段路由
"""
from typing import List
from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from club.database import get_db
from club.models.ontology import MemberProfile
from club.models.schemas import StaffSlots, ResourceSlots
from club.services.availability_service import AvailabilityService
from club.security.auth import get_current_profile

router = APIRouter(prefix="/availability", tags=["可用时段"])


@router.get("/services/{service_id}", response_model=List[StaffSlots])
def get_service_slots(
    service_id: int,
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """服务可用时段（按员工分组）"""
    return AvailabilityService(db).resolve_service_slots(service_id, day)


@router.get("/resources/{resource_id}", response_model=ResourceSlots)
def get_resource_slots(
    resource_id: int,
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    current_profile: MemberProfile = Depends(get_current_profile)
):
    """场地可用时段"""
    slots = AvailabilityService(db).resolve_resource_slots(resource_id, day)
    return ResourceSlots(resource_id=resource_id, date=day, slots=slots)
