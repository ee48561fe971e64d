from datetime import datetime, timedelta

import pytest

from app.core.security import create_room_token, verify_token

# Test data
test_user_data = {
    "email": "test@example.com",
    "password": "TestPassword123",
    "role": "patient",
    "name": "Test User"
}

test_login_data = {
    "email": "test@example.com",
    "password": "TestPassword123"
}

class TestAuthentication:

    def test_register_user(self, client):
        """Test user registration."""
        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 201

        data = response.json()
        assert data["email"] == test_user_data["email"]
        assert data["role"] == test_user_data["role"]
        assert "password" not in data
        assert "password_hash" not in data

    def test_register_duplicate_email(self, client):
        """Test registration with duplicate email."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/register", json=test_user_data)
        assert response.status_code == 409
        assert "already registered" in response.json()["message"]

    @pytest.mark.parametrize("password", ["weak", "onlyletters", "1234567890"])
    def test_register_invalid_password(self, client, password):
        """Test registration with invalid password."""
        invalid_data = test_user_data.copy()
        invalid_data["password"] = password

        response = client.post("/api/v1/auth/register", json=invalid_data)
        assert response.status_code == 422

    def test_register_admin_rejected(self, client):
        """Admin accounts cannot be created through the public endpoint."""
        admin_data = test_user_data.copy()
        admin_data["role"] = "admin"

        response = client.post("/api/v1/auth/register", json=admin_data)
        assert response.status_code == 422

    def test_login_success(self, client):
        """Test successful login."""
        client.post("/api/v1/auth/register", json=test_user_data)

        response = client.post("/api/v1/auth/login", json=test_login_data)
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == test_user_data["email"]

    def test_login_invalid_credentials(self, client):
        """Test login with unknown email."""
        invalid_login = {
            "email": "nonexistent@example.com",
            "password": "wrongpassword1"
        }

        response = client.post("/api/v1/auth/login", json=invalid_login)
        assert response.status_code == 401

    def test_login_wrong_password(self, client):
        """Test login with wrong password."""
        client.post("/api/v1/auth/register", json=test_user_data)

        wrong_login = test_login_data.copy()
        wrong_login["password"] = "wrongpassword1"

        response = client.post("/api/v1/auth/login", json=wrong_login)
        assert response.status_code == 401

    def test_get_current_user(self, client):
        """Test getting current user info."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        token = login_response.json()["access_token"]
        headers = {"Authorization": f"Bearer {token}"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["email"] == test_user_data["email"]

    def test_get_current_user_invalid_token(self, client):
        """Test get current user with invalid token."""
        headers = {"Authorization": "Bearer invalid_token"}

        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client):
        """Refresh tokens are only accepted by the refresh endpoint."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        headers = {"Authorization": f"Bearer {login_response.json()['refresh_token']}"}
        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401

    def test_refresh_token(self, client):
        """Test token refresh."""
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        refresh_token = login_response.json()["refresh_token"]

        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh_token}
        )
        assert response.status_code == 200

        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data

    def test_refresh_invalid_token(self, client):
        """Test refresh with invalid token."""
        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": "invalid_token"}
        )
        assert response.status_code == 401

    def test_refresh_rejects_access_token(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)
        login_response = client.post("/api/v1/auth/login", json=test_login_data)

        response = client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login_response.json()["access_token"]}
        )
        assert response.status_code == 401

class TestTokens:

    def test_subject_round_trips_as_user_id(self, client):
        client.post("/api/v1/auth/register", json=test_user_data)
        login = client.post("/api/v1/auth/login", json=test_login_data).json()

        payload = verify_token(login["access_token"])
        assert payload.user_id == login["user"]["id"]
        assert payload.token_type == "access"

    def test_room_token_is_not_a_session_token(self, client):
        token = create_room_token("room-1", 7, datetime.utcnow() + timedelta(minutes=5))
        payload = verify_token(token)

        assert payload.room == "room-1"
        assert payload.user_id == 7
        assert payload.token_type == "room"

        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
