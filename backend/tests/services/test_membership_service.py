"""
会籍服务测试
"""
import pytest
from datetime import date, time
from decimal import Decimal

from club.errors import ForbiddenError, ValidationError, NotFoundError
from club.models.ontology import (
    MembershipStatus, ProfileRole, Reservation, ReservationStatus
)
from club.models.schemas import BeneficiaryCreate, PermissionSet, ReservationCreate
from club.services.membership_service import MembershipService, DEACTIVATION_REASON
from club.services.notification_service import NotificationService
from club.services.permission_service import default_permissions
from club.services.reservation_service import ReservationService
from club.security.auth import verify_password

TODAY = date(2030, 1, 1)


@pytest.fixture
def memberships(db_session):
    return MembershipService(db_session)


def beneficiary(role=ProfileRole.CHILD, dob=date(2018, 5, 1), **kwargs):
    return BeneficiaryCreate(first_name="Nuevo", last_name="García", role=role, date_of_birth=dob, **kwargs)


class TestSuspension:
    """停用会籍与取消级联"""

    def test_suspend_cancels_future_reservations(self, db_session, memberships, membership, titular,
                                                 court, monday):
        reservations = ReservationService(db_session)
        future = reservations.create_reservation(
            titular, ReservationCreate(resource_id=court.id, date=monday, start_time=time(9, 0)), today=TODAY
        )
        done = Reservation(
            reservation_no="DONE1", membership_id=membership.id, profile_id=titular.id,
            resource_id=court.id, date=date(2029, 12, 20), start_time=time(9, 0), end_time=time(10, 0),
            status=ReservationStatus.COMPLETED, price=Decimal("0"),
        )
        db_session.add(done)
        db_session.commit()

        result = memberships.suspend_membership(membership.id, "Falta de pago", today=TODAY)
        assert result.status == MembershipStatus.SUSPENDED
        assert result.suspension_reason == "Falta de pago"

        db_session.refresh(future)
        db_session.refresh(done)
        assert future.status == ReservationStatus.SYSTEM_CANCELLED
        assert "Falta de pago" in future.cancellation_reason
        assert done.status == ReservationStatus.COMPLETED

        titles = [n.title for n in NotificationService.list_for(db_session, titular.id)]
        assert "Reserva cancelada" in titles

    def test_suspend_is_repeatable(self, memberships, membership):
        memberships.suspend_membership(membership.id, "Falta de pago", today=TODAY)
        again = memberships.suspend_membership(membership.id, "Otro motivo", today=TODAY)
        assert again.suspension_reason == "Falta de pago"

    def test_reactivate(self, memberships, membership):
        memberships.suspend_membership(membership.id, "Falta de pago", today=TODAY)
        result = memberships.reactivate_membership(membership.id)
        assert result.status == MembershipStatus.ACTIVE
        assert result.suspension_reason is None
        assert memberships.is_active(membership.id)

    def test_sweep_catches_reservations_made_while_suspended(self, db_session, memberships,
                                                             membership, titular, court, monday):
        memberships.suspend_membership(membership.id, "Falta de pago", today=TODAY)
        stray = Reservation(
            reservation_no="STRAY1", membership_id=membership.id, profile_id=titular.id,
            resource_id=court.id, date=monday, start_time=time(9, 0), end_time=time(10, 0),
            status=ReservationStatus.CONFIRMED, price=Decimal("0"),
        )
        db_session.add(stray)
        db_session.commit()

        assert memberships.sweep_suspended(today=TODAY) == 1
        db_session.refresh(stray)
        assert stray.status == ReservationStatus.SYSTEM_CANCELLED
        assert memberships.sweep_suspended(today=TODAY) == 0

    def test_unknown_membership(self, memberships):
        with pytest.raises(NotFoundError):
            memberships.suspend_membership(999, "x")


class TestBeneficiaries:
    """受益人管理"""

    def test_minor_gets_minor_defaults(self, memberships, membership, titular):
        profile = memberships.create_beneficiary(membership.id, titular, beneficiary(pin="1234"), today=TODAY)
        assert profile.is_minor is True
        assert profile.permissions.requires_approval is True
        assert profile.permissions.max_active_reservations == 2
        assert verify_password("1234", profile.pin_hash)

    def test_adult_child_gets_adult_defaults(self, memberships, membership, titular):
        profile = memberships.create_beneficiary(
            membership.id, titular, beneficiary(dob=date(2005, 1, 1), password="secreto1"), today=TODAY
        )
        assert profile.is_minor is False
        assert profile.permissions.requires_approval is False
        assert profile.password_hash and profile.pin_hash is None

    def test_single_active_spouse(self, memberships, membership, titular, spouse):
        with pytest.raises(ValidationError):
            memberships.create_beneficiary(
                membership.id, titular, beneficiary(ProfileRole.SPOUSE, date(1985, 1, 1)), today=TODAY
            )

    def test_second_titular_rejected(self):
        with pytest.raises(ValueError):
            beneficiary(ProfileRole.TITULAR, date(1985, 1, 1))

    def test_only_managers_add(self, memberships, membership, spouse):
        with pytest.raises(ForbiddenError):
            memberships.create_beneficiary(membership.id, spouse, beneficiary(), today=TODAY)

    def test_other_membership_cannot_add(self, memberships, membership, outsider):
        with pytest.raises(ForbiddenError):
            memberships.create_beneficiary(membership.id, outsider, beneficiary(), today=TODAY)

    def test_future_birth_date(self, memberships, membership, titular):
        with pytest.raises(ValidationError):
            memberships.create_beneficiary(membership.id, titular, beneficiary(dob=date(2031, 1, 1)), today=TODAY)

    def test_list_beneficiaries(self, memberships, membership, titular, spouse, minor, outsider):
        ids = [p.id for p in memberships.list_beneficiaries(membership.id, titular)]
        assert ids == [titular.id, spouse.id, minor.id]
        with pytest.raises(ForbiddenError):
            memberships.list_beneficiaries(membership.id, outsider)

    def test_update_permissions(self, memberships, membership, titular, minor):
        perms = default_permissions(ProfileRole.CHILD, True).model_copy(update={"max_active_reservations": 5})
        profile = memberships.update_permissions(membership.id, minor.id, titular, perms)
        assert profile.permissions.max_active_reservations == 5

    def test_titular_permissions_locked(self, memberships, membership, titular):
        with pytest.raises(ForbiddenError):
            memberships.update_permissions(membership.id, titular.id, titular, PermissionSet())

    @pytest.mark.parametrize("flag", ["can_make_payments", "can_manage_beneficiaries", "can_approve_reservations"])
    def test_minor_cannot_receive_restricted_flags(self, memberships, membership, titular, minor, flag):
        perms = default_permissions(ProfileRole.CHILD, True).model_copy(update={flag: True})
        with pytest.raises(ValidationError):
            memberships.update_permissions(membership.id, minor.id, titular, perms)
        assert getattr(minor.permissions, flag) is False

    def test_adult_child_may_approve_but_not_pay(self, memberships, membership, titular, adult_child):
        perms = default_permissions(ProfileRole.CHILD, False)
        assert memberships.update_permissions(
            membership.id, adult_child.id, titular, perms
        ).permissions.can_approve_reservations is True

        with pytest.raises(ValidationError):
            memberships.update_permissions(
                membership.id, adult_child.id, titular, perms.model_copy(update={"can_make_payments": True})
            )

    def test_spouse_may_hold_payment_permission(self, memberships, membership, titular, spouse):
        perms = default_permissions(ProfileRole.SPOUSE, False).model_copy(update={"can_make_payments": True})
        profile = memberships.update_permissions(membership.id, spouse.id, titular, perms)
        assert profile.permissions.can_make_payments is True

    def test_deactivate_cancels_reservations(self, db_session, memberships, membership, titular,
                                             minor, swim_service, monday):
        r = ReservationService(db_session).create_reservation(
            minor, ReservationCreate(service_id=swim_service.id, date=monday, start_time=time(9, 0)), today=TODAY
        )
        profile = memberships.deactivate_profile(membership.id, minor.id, titular, today=TODAY)
        assert profile.is_active is False
        assert profile.deactivated_at is not None
        db_session.refresh(r)
        assert r.status == ReservationStatus.SYSTEM_CANCELLED
        assert r.cancellation_reason == DEACTIVATION_REASON

    def test_titular_cannot_be_deactivated(self, memberships, membership, titular):
        with pytest.raises(ValidationError):
            memberships.deactivate_profile(membership.id, titular.id, titular)

    def test_deactivated_spouse_frees_spouse_slot(self, memberships, membership, titular, spouse):
        memberships.deactivate_profile(membership.id, spouse.id, titular, today=TODAY)
        profile = memberships.create_beneficiary(
            membership.id, titular, beneficiary(ProfileRole.SPOUSE, date(1985, 1, 1)), today=TODAY
        )
        assert profile.role == ProfileRole.SPOUSE


class TestAdultPromotion:

    def test_promotes_on_eighteenth_birthday(self, db_session, memberships, minor):
        promoted = memberships.promote_adult_profiles(today=date(2034, 4, 20))
        assert [p.id for p in promoted] == [minor.id]
        db_session.refresh(minor)
        assert minor.is_minor is False
        assert minor.permissions.requires_approval is False
        assert minor.permissions.can_book_spa is True
        assert minor.permissions.allowed_hours_start is None
        assert NotificationService.list_for(db_session, minor.id)

    def test_day_before_birthday(self, memberships, minor):
        assert memberships.promote_adult_profiles(today=date(2034, 4, 19)) == []
