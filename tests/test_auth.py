"""Tests for JSON session auth (/auth/*)."""

from leadpipe.extensions import db


class TestLogin:

    def test_login_success(self, client, seed_data):
        response = client.post("/auth/login", json={
            "email": "Admin@LeadPipe.local", "password": "admin123",
        })
        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["user"]["isSuperadmin"] is True

    def test_wrong_password(self, client, seed_data):
        response = client.post("/auth/login", json={
            "email": "admin@leadpipe.local", "password": "nope",
        })
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid email or password."

    def test_unknown_email(self, client, seed_data):
        response = client.post("/auth/login", json={
            "email": "ghost@leadpipe.local", "password": "admin123",
        })
        assert response.status_code == 401

    def test_missing_fields(self, client, seed_data):
        response = client.post("/auth/login", json={"email": "admin@leadpipe.local"})
        assert response.status_code == 400

    def test_deactivated_user(self, client, seed_data):
        seed_data["admin"].is_active = False
        db.session.commit()
        response = client.post("/auth/login", json={
            "email": "admin@leadpipe.local", "password": "admin123",
        })
        assert response.status_code == 403

    def test_login_is_post_only(self, client, seed_data):
        response = client.get("/auth/login")
        assert response.status_code == 405
        assert response.get_json()["message"] == "Method not allowed"


class TestSession:

    def test_me_requires_login(self, client, seed_data):
        assert client.get("/auth/me").status_code == 401

    def test_me_returns_current_user(self, superadmin_client):
        body = superadmin_client.get("/auth/me").get_json()
        assert body["user"]["email"] == "admin@leadpipe.local"
        assert body["user"]["name"] == "Admin User"

    def test_logout_ends_session(self, superadmin_client):
        assert superadmin_client.post("/auth/logout").status_code == 200
        assert superadmin_client.get("/api/superadmin/leads").status_code == 401
