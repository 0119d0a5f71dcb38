"""
Reservation 领域实体测试
"""
import pytest
from datetime import date, time

from club.domain.reservation import ReservationEntity, initial_status
from club.errors import InvalidTransitionError
from club.models.ontology import Reservation, ReservationStatus, TERMINAL_STATUSES


def make_reservation(status: ReservationStatus) -> Reservation:
    return Reservation(
        reservation_no="R1",
        membership_id=1,
        profile_id=1,
        date=date(2030, 1, 7),
        start_time=time(9, 0),
        end_time=time(9, 45),
        status=status,
    )


class TestInitialStatus:

    def test_requires_approval(self):
        assert initial_status(True) == ReservationStatus.PENDING_APPROVAL

    def test_no_approval(self):
        assert initial_status(False) == ReservationStatus.CONFIRMED


class TestTransitions:
    """预约状态机"""

    def test_approve_records_approver(self):
        r = make_reservation(ReservationStatus.PENDING_APPROVAL)
        ReservationEntity(r).approve(approver_id=7)
        assert r.status == ReservationStatus.CONFIRMED
        assert r.approved_by_id == 7
        assert r.approved_at is not None

    def test_reject_records_reason(self):
        r = make_reservation(ReservationStatus.PENDING_APPROVAL)
        ReservationEntity(r).reject("No esta semana")
        assert r.status == ReservationStatus.REJECTED
        assert r.cancellation_reason == "No esta semana"

    def test_cancel_from_confirmed(self):
        r = make_reservation(ReservationStatus.CONFIRMED)
        ReservationEntity(r).cancel("Viaje")
        assert r.status == ReservationStatus.CANCELLED
        assert r.cancelled_at is not None

    def test_expire_only_from_pending(self):
        r = make_reservation(ReservationStatus.CONFIRMED)
        with pytest.raises(InvalidTransitionError):
            ReservationEntity(r).expire("timeout")
        assert r.status == ReservationStatus.CONFIRMED

    def test_start_then_complete(self):
        r = make_reservation(ReservationStatus.CONFIRMED)
        entity = ReservationEntity(r)
        entity.start()
        assert r.status == ReservationStatus.IN_PROGRESS
        entity.complete()
        assert r.status == ReservationStatus.COMPLETED
        assert r.completed_at is not None

    def test_in_progress_cannot_be_cancelled(self):
        r = make_reservation(ReservationStatus.IN_PROGRESS)
        with pytest.raises(InvalidTransitionError):
            ReservationEntity(r).cancel("tarde")

    def test_system_cancel_requires_reason(self):
        r = make_reservation(ReservationStatus.CONFIRMED)
        with pytest.raises(ValueError):
            ReservationEntity(r).system_cancel("")
        assert r.status == ReservationStatus.CONFIRMED

    @pytest.mark.parametrize("status", TERMINAL_STATUSES)
    def test_terminal_states_reject_every_trigger(self, status):
        r = make_reservation(status)
        entity = ReservationEntity(r)
        assert entity.is_terminal
        for action in (
            lambda: entity.approve(1),
            lambda: entity.reject("x"),
            lambda: entity.expire("x"),
            lambda: entity.cancel("x"),
            lambda: entity.system_cancel("x"),
            entity.start,
            entity.complete,
        ):
            with pytest.raises(InvalidTransitionError) as exc:
                action()
            assert exc.value.current == status.value
        assert r.status == status
