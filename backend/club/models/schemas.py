"""
Pydantic 模式定义
用于 API 请求/响应验证，以及权限集合的强类型校验
"""
from datetime import datetime, date, time
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, model_validator
from club.models.ontology import (
    ReservationStatus, ProfileRole, BookingCategory, SettlementStatus, MembershipStatus,
    PaymentStatus
)


# ============== 权限 Schemas ==============

class PermissionSet(BaseModel):
    """受益人权限集合"""
    can_book_spa: bool = False
    can_book_barberia: bool = False
    can_book_deportes: bool = False
    can_book_alberca: bool = False
    can_rent_locker: bool = False
    can_make_payments: bool = False
    can_manage_beneficiaries: bool = False
    can_approve_reservations: bool = False
    can_view_account_statement: bool = False
    requires_approval: bool = False
    max_active_reservations: Optional[int] = Field(None, ge=0)
    spending_limit_monthly: Optional[Decimal] = Field(None, ge=0)
    allowed_hours_start: Optional[time] = None
    allowed_hours_end: Optional[time] = None
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def _check_hour_window(self):
        start, end = self.allowed_hours_start, self.allowed_hours_end
        if (start is None) != (end is None):
            raise ValueError("allowed_hours_start y allowed_hours_end deben indicarse juntos")
        if start is not None and start >= end:
            raise ValueError("allowed_hours_start debe ser anterior a allowed_hours_end")
        return self

    def can_book(self, category: BookingCategory) -> bool:
        return bool(getattr(self, f"can_book_{category.value}"))


class BookingPermissionRequest(BaseModel):
    """权限评估输入：一次预约意向"""
    category: Optional[BookingCategory] = None           # 服务类别
    resource_category: Optional[BookingCategory] = None  # 场地类别
    start_time: time
    price: Decimal = Field(default=Decimal("0"), ge=0)


class PermissionCheckRequest(BaseModel):
    service_id: Optional[int] = None
    resource_id: Optional[int] = None
    start_time: time


class PermissionCheckResponse(BaseModel):
    allowed: bool
    requires_approval: bool


# ============== 可用时段 Schemas ==============

class StaffSlots(BaseModel):
    staff_id: int
    staff_name: str
    slots: List[str]


class ResourceSlots(BaseModel):
    resource_id: int
    date: date
    slots: List[str]


# ============== 预约 Schemas ==============

class ReservationCreate(BaseModel):
    service_id: Optional[int] = None
    resource_id: Optional[int] = None
    staff_id: Optional[int] = None
    date: date
    start_time: time

    @model_validator(mode="after")
    def _one_target(self):
        if (self.service_id is None) == (self.resource_id is None):
            raise ValueError("Indica service_id o resource_id (solo uno)")
        if self.staff_id is not None and self.service_id is None:
            raise ValueError("staff_id solo aplica a servicios")
        return self


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReservationReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReservationResponse(BaseModel):
    id: int
    reservation_no: str
    membership_id: int
    profile_id: int
    booked_by_id: Optional[int] = None
    service_id: Optional[int] = None
    resource_id: Optional[int] = None
    staff_id: Optional[int] = None
    date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    requires_approval: bool
    price: Decimal
    approved_by_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 会籍 / 受益人 Schemas ==============

class BeneficiaryCreate(BaseModel):
    first_name: str = Field(..., max_length=60)
    last_name: str = Field(..., max_length=60)
    role: ProfileRole
    date_of_birth: date
    email: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    pin: Optional[str] = Field(None, min_length=4, max_length=6, pattern=r"^\d+$")
    password: Optional[str] = Field(None, min_length=6)

    @model_validator(mode="after")
    def _no_second_titular(self):
        if self.role == ProfileRole.TITULAR:
            raise ValueError("Una membresía solo puede tener un titular")
        return self


class ProfileResponse(BaseModel):
    id: int
    membership_id: int
    first_name: str
    last_name: str
    role: ProfileRole
    date_of_birth: date
    is_minor: bool
    is_active: bool
    permissions: Optional[PermissionSet] = None
    model_config = ConfigDict(from_attributes=True)


class MembershipSuspend(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class MembershipResponse(BaseModel):
    id: int
    member_number: int
    status: MembershipStatus
    suspension_reason: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


# ============== 结算 Schemas ==============

class SettlementGenerate(BaseModel):
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def _period_order(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end debe ser posterior a period_start")
        return self


class SettlementResponse(BaseModel):
    id: int
    staff_id: int
    period_start: date
    period_end: date
    total_services: int
    gross_revenue: Decimal
    club_commission: Decimal
    staff_payout: Decimal
    status: SettlementStatus
    model_config = ConfigDict(from_attributes=True)


class FixedRentLine(BaseModel):
    """固定租金员工：收入全额归员工，租金另行收取"""
    staff_id: int
    staff_name: str
    fixed_rent: Decimal


class SettlementRunResult(BaseModel):
    created: List[SettlementResponse] = []
    fixed_rent: List[FixedRentLine] = []
    skipped_staff_ids: List[int] = []


# ============== 支付 Schemas ==============

class PaymentGatewayResult(BaseModel):
    """支付网关回调结果"""
    success: bool
    gateway_txn_id: Optional[str] = Field(None, max_length=64)


class PaymentResponse(BaseModel):
    id: int
    reservation_id: Optional[int] = None
    amount: Decimal
    status: PaymentStatus
    gateway_txn_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
