"""
可用时段 API 测试
"""
from fastapi.testclient import TestClient


class TestServiceAvailability:

    def test_slots_grouped_by_staff(self, client: TestClient, titular_headers, spa_service, staff, monday):
        response = client.get(f"/availability/services/{spa_service.id}",
                              params={"date": monday.isoformat()}, headers=titular_headers)
        assert response.status_code == 200
        assert response.json() == [
            {"staff_id": staff.id, "staff_name": staff.name, "slots": ["09:00", "09:55"]}
        ]

    def test_missing_date(self, client, titular_headers, spa_service):
        response = client.get(f"/availability/services/{spa_service.id}", headers=titular_headers)
        assert response.status_code == 422

    def test_unknown_service(self, client, titular_headers, monday):
        response = client.get("/availability/services/999",
                              params={"date": monday.isoformat()}, headers=titular_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestResourceAvailability:

    def test_resource_slots(self, client, titular_headers, court, monday):
        response = client.get(f"/availability/resources/{court.id}",
                              params={"date": monday.isoformat()}, headers=titular_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["resource_id"] == court.id
        assert data["date"] == monday.isoformat()
        assert data["slots"] == ["08:00", "09:00", "10:00", "11:00"]

    def test_booked_slot_disappears(self, client, titular_headers, court, monday):
        client.post("/reservations", json={
            "resource_id": court.id, "date": monday.isoformat(), "start_time": "10:00"
        }, headers=titular_headers)
        slots = client.get(f"/availability/resources/{court.id}",
                           params={"date": monday.isoformat()}, headers=titular_headers).json()["slots"]
        assert "10:00" not in slots


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200
