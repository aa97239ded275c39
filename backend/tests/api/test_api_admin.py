"""
管理端 API 测试
覆盖 /api/admin 端点
"""
import pytest
from fastapi.testclient import TestClient

from factories import auth_headers, booking_payload, days_from_today


@pytest.fixture
def two_bookings(client, user_token, other_token, sample_room, suite_room):
    """Alice 订 101，Bob 订 501 并确认"""
    first = client.post("/api/bookings", headers=auth_headers(user_token),
                        json=booking_payload(sample_room.id, days_from_today(10), days_from_today(12)))
    second = client.post("/api/bookings", headers=auth_headers(other_token),
                         json=booking_payload(suite_room.id, days_from_today(20), days_from_today(22)))
    client.put(f"/api/bookings/{second.json()['data']['id']}/payment",
               headers=auth_headers(other_token), json={"status": "completed"})
    return first.json()["data"], second.json()["data"]


class TestAdminUsers:
    def test_list_users(self, client: TestClient, admin_token, sample_user, other_user):
        response = client.get("/api/admin/users", headers=auth_headers(admin_token))
        assert response.status_code == 200
        assert response.json()["total"] == 3

    def test_search_users(self, client: TestClient, admin_token, sample_user, other_user):
        response = client.get("/api/admin/users", headers=auth_headers(admin_token),
                              params={"search": "alice"})
        assert [u["email"] for u in response.json()["data"]] == ["guest@example.com"]

    def test_requires_admin(self, client: TestClient, user_token):
        response = client.get("/api/admin/users", headers=auth_headers(user_token))
        assert response.status_code == 403

    def test_deactivate_user(self, client: TestClient, admin_token, user_token, sample_user):
        response = client.put(f"/api/admin/users/{sample_user.id}/status",
                              headers=auth_headers(admin_token), json={"is_active": False})
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        # 停用后原 token 失效
        response = client.get("/api/auth/profile", headers=auth_headers(user_token))
        assert response.status_code == 401

    def test_cannot_deactivate_admin(self, client: TestClient, admin_token, admin_user):
        response = client.put(f"/api/admin/users/{admin_user.id}/status",
                              headers=auth_headers(admin_token), json={"is_active": False})
        assert response.status_code == 400

    def test_unknown_user(self, client: TestClient, admin_token):
        response = client.put("/api/admin/users/9999/status",
                              headers=auth_headers(admin_token), json={"is_active": True})
        assert response.status_code == 404


class TestAdminBookings:
    def test_list_all(self, client: TestClient, admin_token, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token))
        assert response.json()["total"] == 2

    def test_filter_by_status(self, client: TestClient, admin_token, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token),
                              params={"status": "confirmed"})
        data = response.json()["data"]
        assert [b["id"] for b in data] == [two_bookings[1]["id"]]

    def test_filter_by_room(self, client: TestClient, admin_token, sample_room, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token),
                              params={"room_id": sample_room.id})
        assert [b["id"] for b in response.json()["data"]] == [two_bookings[0]["id"]]

    def test_filter_by_check_in_window(self, client: TestClient, admin_token, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token), params={
            "check_in": days_from_today(15).isoformat(),
            "check_out": days_from_today(25).isoformat(),
        })
        assert [b["id"] for b in response.json()["data"]] == [two_bookings[1]["id"]]

    def test_keyword_search(self, client: TestClient, admin_token, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token),
                              params={"search": "other@example"})
        assert [b["id"] for b in response.json()["data"]] == [two_bookings[1]["id"]]

        number = two_bookings[0]["booking_number"]
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token),
                              params={"search": number})
        assert [b["id"] for b in response.json()["data"]] == [two_bookings[0]["id"]]

    def test_sort_by_check_in(self, client: TestClient, admin_token, two_bookings):
        response = client.get("/api/admin/bookings", headers=auth_headers(admin_token),
                              params={"sort_by": "check_in", "order": "asc"})
        ids = [b["id"] for b in response.json()["data"]]
        assert ids == [two_bookings[0]["id"], two_bookings[1]["id"]]

    def test_requires_admin(self, client: TestClient, user_token):
        response = client.get("/api/admin/bookings", headers=auth_headers(user_token))
        assert response.status_code == 403
