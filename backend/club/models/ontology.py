"""
本体对象定义 (Ontology Objects)
会员家庭、受益人权限、可预约目标（服务/场地）、员工排班、预约、支付与结算
"""
from datetime import datetime, date
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time, Table,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from club.database import Base


# ============== 枚举定义 ==============

class MembershipStatus(str, Enum):
    """会籍状态"""
    ACTIVE = "activa"
    SUSPENDED = "suspendida"


class ProfileRole(str, Enum):
    """家庭成员角色"""
    TITULAR = "titular"        # 会籍持有人
    SPOUSE = "conyugue"        # 配偶
    CHILD = "hijo"             # 子女


class BookingCategory(str, Enum):
    """预约类别，对应权限中的 can_book_* 开关"""
    SPA = "spa"
    BARBERSHOP = "barberia"
    SPORTS = "deportes"
    POOL = "alberca"


class EmploymentType(str, Enum):
    """员工雇佣类型"""
    STAFF = "planta"                # 正式员工
    COMMISSION = "comisionista"     # 提成员工
    INDEPENDENT = "independiente"   # 独立服务者（参与结算）


class OverrideType(str, Enum):
    """员工排班覆盖类型"""
    DAY_OFF = "dia_libre"
    VACATION = "vacaciones"
    CUSTOM_HOURS = "horario_especial"


class ReservationStatus(str, Enum):
    """预约状态枚举"""
    PENDING_APPROVAL = "pendiente_aprobacion"   # 待家庭审批
    CONFIRMED = "confirmada"                    # 已确认，占用时段
    IN_PROGRESS = "en_curso"                    # 进行中
    COMPLETED = "completada"                    # 已完成（可结算）
    CANCELLED = "cancelada"                     # 用户取消
    REJECTED = "rechazada"                      # 审批拒绝
    EXPIRED = "expirada"                        # 审批超时
    SYSTEM_CANCELLED = "cancelada_sistema"      # 系统取消（停用/停权）


# 占用时段的状态
BLOCKING_STATUSES = (
    ReservationStatus.CONFIRMED,
    ReservationStatus.IN_PROGRESS,
    ReservationStatus.PENDING_APPROVAL,
)

TERMINAL_STATUSES = (
    ReservationStatus.COMPLETED,
    ReservationStatus.CANCELLED,
    ReservationStatus.REJECTED,
    ReservationStatus.EXPIRED,
    ReservationStatus.SYSTEM_CANCELLED,
)


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "pendiente"
    COMPLETED = "completado"
    FAILED = "fallido"
    CANCELLED = "cancelado"
    REFUNDED = "reembolsado"


class SettlementStatus(str, Enum):
    """结算状态"""
    PENDING = "pendiente"
    PAID = "pagada"


class NotificationStatus(str, Enum):
    SENT = "enviada"
    FAILED = "fallida"


# ============== 本体对象定义 ==============

class Unit(Base):
    """
    会所分部
    operating_hours: JSON，7 项列表（周一=0），每项 {"open","close"} 或 null
    """
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    operating_hours = Column(Text)                          # 营业时间(JSON)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    services = relationship("Service", back_populates="unit")
    resources = relationship("Resource", back_populates="unit")


class Membership(Base):
    """
    会籍对象 - 一个家庭账户
    """
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    member_number = Column(Integer, unique=True, nullable=False)   # 会员号
    tier = Column(String(20), default="clasica")                  # 等级
    status = Column(SQLEnum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False)
    monthly_fee = Column(Numeric(10, 2), default=0)              # 月度维护费
    join_date = Column(Date, default=date.today)
    next_payment_date = Column(Date)
    suspended_at = Column(DateTime)
    suspension_reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profiles = relationship("MemberProfile", back_populates="membership")


class MemberProfile(Base):
    """
    家庭成员对象
    未成年人使用短 PIN，成年人使用密码
    """
    __tablename__ = "member_profiles"

    id = Column(Integer, primary_key=True, index=True)
    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=False, index=True)
    first_name = Column(String(60), nullable=False)
    last_name = Column(String(60), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    role = Column(SQLEnum(ProfileRole), nullable=False)
    is_minor = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    email = Column(String(100))
    phone = Column(String(20))
    pin_hash = Column(String(100))
    password_hash = Column(String(100))
    deactivated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    membership = relationship("Membership", back_populates="profiles")
    permissions = relationship(
        "ProfilePermission", back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )
    reservations = relationship(
        "Reservation", back_populates="profile", foreign_keys="Reservation.profile_id"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def age_on(self, day: date) -> int:
        """指定日期时的周岁"""
        dob = self.date_of_birth
        return day.year - dob.year - ((day.month, day.day) < (dob.month, dob.day))


class ProfilePermission(Base):
    """
    受益人权限集合（强类型列，与 MemberProfile 一对一）
    """
    __tablename__ = "profile_permissions"

    profile_id = Column(Integer, ForeignKey("member_profiles.id"), primary_key=True)
    can_book_spa = Column(Boolean, default=False, nullable=False)
    can_book_barberia = Column(Boolean, default=False, nullable=False)
    can_book_deportes = Column(Boolean, default=False, nullable=False)
    can_book_alberca = Column(Boolean, default=False, nullable=False)
    can_rent_locker = Column(Boolean, default=False, nullable=False)
    can_make_payments = Column(Boolean, default=False, nullable=False)
    can_manage_beneficiaries = Column(Boolean, default=False, nullable=False)
    can_approve_reservations = Column(Boolean, default=False, nullable=False)
    can_view_account_statement = Column(Boolean, default=False, nullable=False)
    requires_approval = Column(Boolean, default=False, nullable=False)
    max_active_reservations = Column(Integer)                # null = 不限
    spending_limit_monthly = Column(Numeric(10, 2))          # null = 不限
    allowed_hours_start = Column(Time)
    allowed_hours_end = Column(Time)

    profile = relationship("MemberProfile", back_populates="permissions")


staff_services = Table(
    "staff_services",
    Base.metadata,
    Column("staff_id", Integer, ForeignKey("staff.id"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id"), primary_key=True),
)


class Staff(Base):
    """
    员工对象
    schedule_template: JSON，7 项列表（周一=0），每项 {"start","end"} 或 null
    """
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"))
    name = Column(String(100), nullable=False)
    role = Column(String(40))                                   # masajista, barbero...
    employment_type = Column(SQLEnum(EmploymentType), default=EmploymentType.STAFF, nullable=False)
    commission_rate = Column(Numeric(5, 4))                     # 员工分成比例
    fixed_rent = Column(Numeric(10, 2))                         # 固定租金
    schedule_template = Column(Text)                            # 周排班(JSON)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    services = relationship("Service", secondary=staff_services, back_populates="staff")
    overrides = relationship("StaffScheduleOverride", back_populates="staff")


class StaffScheduleOverride(Base):
    """员工特定日期的排班覆盖"""
    __tablename__ = "staff_schedule_overrides"
    __table_args__ = (UniqueConstraint("staff_id", "date", name="uq_staff_override_date"),)

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    date = Column(Date, nullable=False)
    type = Column(SQLEnum(OverrideType), nullable=False)
    custom_start = Column(Time)
    custom_end = Column(Time)
    reason = Column(String(200))

    staff = relationship("Staff", back_populates="overrides")


class Service(Base):
    """
    员工提供的服务（按摩、理发等）
    max_concurrent: 同一时段全体员工合计的接待上限
    """
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"))
    name = Column(String(100), nullable=False)
    category = Column(SQLEnum(BookingCategory), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), default=0)
    max_concurrent = Column(Integer)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    unit = relationship("Unit", back_populates="services")
    staff = relationship("Staff", secondary=staff_services, back_populates="services")


class Resource(Base):
    """物理场地（球场等），按所属分部营业时间开放"""
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    type = Column(String(40))                                   # Tenis, Padel
    category = Column(SQLEnum(BookingCategory), default=BookingCategory.SPORTS, nullable=False)
    price = Column(Numeric(10, 2), default=0)
    is_active = Column(Boolean, default=True)

    unit = relationship("Unit", back_populates="resources")


class Reservation(Base):
    """
    预约对象 - 核心交易实体
    同一员工/场地在同一天的非终态预约，[start, end) 区间互不重叠
    """
    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_reservation_time_order"),
        Index("ix_reservation_staff_date", "staff_id", "date"),
        Index("ix_reservation_resource_date", "resource_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    reservation_no = Column(String(20), unique=True, nullable=False)
    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=False, index=True)
    profile_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    booked_by_id = Column(Integer, ForeignKey("member_profiles.id"))
    service_id = Column(Integer, ForeignKey("services.id"))
    resource_id = Column(Integer, ForeignKey("resources.id"))
    staff_id = Column(Integer, ForeignKey("staff.id"))
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(SQLEnum(ReservationStatus), nullable=False)
    requires_approval = Column(Boolean, default=False)
    price = Column(Numeric(10, 2), default=0)                   # 下单时价格快照
    approved_by_id = Column(Integer, ForeignKey("member_profiles.id"))
    approved_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancellation_reason = Column(Text)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    profile = relationship("MemberProfile", back_populates="reservations", foreign_keys=[profile_id])
    booked_by = relationship("MemberProfile", foreign_keys=[booked_by_id])
    approved_by = relationship("MemberProfile", foreign_keys=[approved_by_id])
    service = relationship("Service")
    resource = relationship("Resource")
    staff = relationship("Staff")
    payment = relationship("Payment", back_populates="reservation", uselist=False)


class Payment(Base):
    """支付记录（网关视为外部不透明调用）"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    membership_id = Column(Integer, ForeignKey("memberships.id"), nullable=False, index=True)
    profile_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), unique=True)
    type = Column(String(20), default="servicio")               # servicio, mantenimiento, locker
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(20), default="tarjeta")
    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    gateway_txn_id = Column(String(64))
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    reservation = relationship("Reservation", back_populates="payment")


class StaffSettlement(Base):
    """员工周期结算（生成后只读）"""
    __tablename__ = "staff_settlements"
    __table_args__ = (
        UniqueConstraint("staff_id", "period_start", "period_end", name="uq_settlement_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_services = Column(Integer, default=0)
    gross_revenue = Column(Numeric(12, 2), default=0)
    club_commission = Column(Numeric(12, 2), default=0)
    staff_payout = Column(Numeric(12, 2), default=0)
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.PENDING)
    created_at = Column(DateTime, default=datetime.utcnow)

    staff = relationship("Staff")


class Notification(Base):
    """站内通知"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(Integer, ForeignKey("member_profiles.id"), nullable=False, index=True)
    channel = Column(String(20), default="internal")
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id"))
    status = Column(SQLEnum(NotificationStatus), default=NotificationStatus.SENT)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
