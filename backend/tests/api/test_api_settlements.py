"""
员工结算 API 测试
"""
from datetime import date, time
from decimal import Decimal

from fastapi.testclient import TestClient

from club.models.ontology import Payment, PaymentStatus, Reservation, ReservationStatus


def seed_completed(db_session, profile, staff):
    reservation = Reservation(
        reservation_no="API0001", membership_id=profile.membership_id, profile_id=profile.id,
        staff_id=staff.id, date=date(2030, 1, 3), start_time=time(9, 0), end_time=time(9, 45),
        status=ReservationStatus.COMPLETED, price=Decimal("800"),
    )
    db_session.add(reservation)
    db_session.flush()
    db_session.add(Payment(
        membership_id=profile.membership_id, profile_id=profile.id, reservation_id=reservation.id,
        amount=Decimal("800"), status=PaymentStatus.COMPLETED,
    ))
    db_session.commit()


class TestSettlementsApi:

    def test_generate_and_list(self, client: TestClient, db_session, admin_headers, titular, staff):
        seed_completed(db_session, titular, staff)
        response = client.post("/settlements/generate",
                               json={"period_start": "2030-01-01", "period_end": "2030-01-15"},
                               headers=admin_headers)
        assert response.status_code == 200
        created = response.json()["created"]
        assert len(created) == 1
        assert Decimal(created[0]["staff_payout"]) == Decimal("480.00")
        assert Decimal(created[0]["club_commission"]) == Decimal("320.00")

        listed = client.get("/settlements", params={"staff_id": staff.id}, headers=admin_headers)
        assert len(listed.json()) == 1

    def test_inverted_period(self, client, admin_headers):
        response = client.post("/settlements/generate",
                               json={"period_start": "2030-01-15", "period_end": "2030-01-01"},
                               headers=admin_headers)
        assert response.status_code == 422

    def test_member_token_rejected(self, client, titular_headers):
        response = client.get("/settlements", headers=titular_headers)
        assert response.status_code == 403
