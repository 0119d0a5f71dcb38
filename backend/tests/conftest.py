"""
Pytest 配置和共享 fixtures
"""
import json
import os

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from club.database import Base, get_db
from club.models import ontology  # noqa: F401
from club.models.ontology import (
    Unit, Membership, MemberProfile, ProfileRole, Staff, EmploymentType,
    Service, Resource, BookingCategory
)
from club.security.auth import create_access_token, ADMIN_SCOPE
from club.services.permission_service import default_permissions, apply_permissions
from club.main import app

# 2030-01-07 是周一
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def weekly(start: str, end: str, days=range(7), start_key="start", end_key="end") -> str:
    """构造 7 项周排班 JSON"""
    return json.dumps([
        {start_key: start, end_key: end} if i in days else None
        for i in range(7)
    ])


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 实体相关 Fixtures ==============

def make_profile(db_session, membership, first_name, role, dob, is_minor=False, is_active=True):
    profile = MemberProfile(
        membership_id=membership.id,
        first_name=first_name,
        last_name="García",
        date_of_birth=dob,
        role=role,
        is_minor=is_minor,
        is_active=is_active,
    )
    apply_permissions(profile, default_permissions(role, is_minor))
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture
def profile_factory(db_session):
    """按角色创建成员（带默认权限）"""
    def factory(membership, first_name, role, dob, is_minor=False, is_active=True):
        return make_profile(db_session, membership, first_name, role, dob, is_minor, is_active)
    return factory


@pytest.fixture
def unit(db_session):
    """分部：周一 08:00-12:00，其余日期未配置"""
    unit = Unit(
        name="Club Norte",
        code="NORTE",
        operating_hours=weekly("08:00", "12:00", days=[0], start_key="open", end_key="close"),
    )
    db_session.add(unit)
    db_session.commit()
    db_session.refresh(unit)
    return unit


@pytest.fixture
def membership(db_session):
    membership = Membership(member_number=1001, monthly_fee=Decimal("3500"))
    db_session.add(membership)
    db_session.commit()
    db_session.refresh(membership)
    return membership


@pytest.fixture
def other_membership(db_session):
    membership = Membership(member_number=2002)
    db_session.add(membership)
    db_session.commit()
    db_session.refresh(membership)
    return membership


@pytest.fixture
def titular(db_session, membership):
    return make_profile(db_session, membership, "Ana", ProfileRole.TITULAR, date(1980, 3, 2))


@pytest.fixture
def spouse(db_session, membership):
    return make_profile(db_session, membership, "Luis", ProfileRole.SPOUSE, date(1981, 6, 9))


@pytest.fixture
def minor(db_session, membership):
    return make_profile(db_session, membership, "Sofía", ProfileRole.CHILD, date(2016, 4, 20), is_minor=True)


@pytest.fixture
def adult_child(db_session, membership):
    return make_profile(db_session, membership, "Diego", ProfileRole.CHILD, date(2000, 1, 15))


@pytest.fixture
def outsider(db_session, other_membership):
    return make_profile(db_session, other_membership, "Marta", ProfileRole.TITULAR, date(1975, 8, 30))


@pytest.fixture
def staff(db_session, unit):
    """独立按摩师：每天 09:00-11:00，分成 60%"""
    staff = Staff(
        unit_id=unit.id,
        name="Carla Masajista",
        role="masajista",
        employment_type=EmploymentType.INDEPENDENT,
        commission_rate=Decimal("0.6000"),
        schedule_template=weekly("09:00", "11:00"),
    )
    db_session.add(staff)
    db_session.commit()
    db_session.refresh(staff)
    return staff


@pytest.fixture
def spa_service(db_session, unit, staff):
    """45 分钟按摩"""
    service = Service(
        unit_id=unit.id,
        name="Masaje relajante",
        category=BookingCategory.SPA,
        duration_minutes=45,
        price=Decimal("500.00"),
    )
    service.staff.append(staff)
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


@pytest.fixture
def swim_service(db_session, unit, staff):
    """免费游泳课"""
    service = Service(
        unit_id=unit.id,
        name="Clase de natación",
        category=BookingCategory.POOL,
        duration_minutes=50,
        price=Decimal("0"),
    )
    service.staff.append(staff)
    db_session.add(service)
    db_session.commit()
    db_session.refresh(service)
    return service


@pytest.fixture
def court(db_session, unit):
    resource = Resource(
        unit_id=unit.id,
        code="TEN-1",
        name="Cancha de tenis 1",
        type="Tenis",
        category=BookingCategory.SPORTS,
        price=Decimal("0"),
    )
    db_session.add(resource)
    db_session.commit()
    db_session.refresh(resource)
    return resource


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def tuesday():
    return TUESDAY


@pytest.fixture
def weekly_schedule():
    """周排班 JSON 构造函数"""
    return weekly


# ============== 认证相关 Fixtures ==============

def bearer(profile_id: int, scope=None) -> dict:
    return {"Authorization": f"Bearer {create_access_token(profile_id, scope=scope)}"}


@pytest.fixture
def titular_headers(titular):
    return bearer(titular.id)


@pytest.fixture
def spouse_headers(spouse):
    return bearer(spouse.id)


@pytest.fixture
def minor_headers(minor):
    return bearer(minor.id)


@pytest.fixture
def admin_headers():
    return bearer(0, scope=ADMIN_SCOPE)


@pytest.fixture
def auth_headers_for():
    """按成员 ID 构造认证头"""
    return bearer
