from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from prokiii.main import create_app
from prokiii.store import InMemoryDocumentStore

PASSWORD = "Secret123"

@pytest.fixture
def client():
    with TestClient(create_app(store=InMemoryDocumentStore())) as test_client:
        yield test_client

def login(client: TestClient, email: str = "player@example.com", password: str = PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})

def bearer(response) -> dict:
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestAuthRoutes:

    def test_signup_login_and_me(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "player@example.com", "prokiii_id": "player01", "password": PASSWORD})
        assert response.status_code == 201
        assert "password_hash" not in response.json()

        response = login(client)
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

        me = client.get("/users/me", headers=bearer(response))
        assert me.status_code == 200
        assert me.json()["prokiii_id"] == "player01"
        assert me.json()["auth_provider"] == "email"

    def test_signup_invalid_password(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "player@example.com", "prokiii_id": "player01", "password": "weak"})
        assert response.status_code == 400

    def test_signup_rejected_email_is_400(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "bob@club.test", "prokiii_id": "bobby01", "password": PASSWORD})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid email address."

    def test_signup_and_login_with_mixed_case_email(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "Bob@Example.COM", "prokiii_id": "bobby01", "password": PASSWORD})
        assert response.status_code == 201
        assert login(client, email="Bob@Example.COM").status_code == 200

        again = client.post("/auth/signup", json={"email": "Bob@example.com", "prokiii_id": "bobby02", "password": PASSWORD})
        assert again.status_code == 400

    def test_login_wrong_password(self, client: TestClient):
        client.post("/auth/signup", json={"email": "player@example.com", "prokiii_id": "player01", "password": PASSWORD})
        assert login(client, password="Wrong1234").status_code == 401

    def test_me_with_bad_token(self, client: TestClient):
        response = client.get("/users/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_google_login(self, client: TestClient):
        claims = {"sub": "google-sub-1", "email": "g@example.com", "picture": "https://img/a.png"}
        with patch("prokiii.services.auth_service.id_token.verify_oauth2_token", return_value=claims):
            response = client.post("/auth/google", json={"token": "google-id-token"})

        assert response.status_code == 200
        me = client.get("/users/me", headers=bearer(response))
        assert me.json()["id"] == "google-sub-1"
        assert me.json()["auth_provider"] == "google"
        assert me.json()["prokiii_id"].startswith("prokiii_")

    def test_google_login_with_unusable_email(self, client: TestClient):
        claims = {"sub": "google-sub-2", "email": "g@club.test"}
        with patch("prokiii.services.auth_service.id_token.verify_oauth2_token", return_value=claims):
            response = client.post("/auth/google", json={"token": "google-id-token"})
        assert response.status_code == 400

    def test_google_login_invalid_token(self, client: TestClient):
        with patch("prokiii.services.auth_service.id_token.verify_oauth2_token", side_effect=ValueError("Wrong audience")):
            response = client.post("/auth/google", json={"token": "bad"})
        assert response.status_code == 401


class TestProfileRoutes:

    @pytest.fixture
    def headers(self, client: TestClient):
        client.post("/auth/signup", json={"email": "player@example.com", "prokiii_id": "player01", "password": PASSWORD})
        return bearer(login(client))

    def test_change_prokiii_id(self, client: TestClient, headers):
        response = client.put("/users/me/prokiii-id", json={"prokiii_id": "champion9"}, headers=headers)
        assert response.status_code == 200
        assert client.get("/users/me", headers=headers).json()["prokiii_id"] == "champion9"

        response = client.put("/users/me/prokiii-id", json={"prokiii_id": "bad id"}, headers=headers)
        assert response.status_code == 400

    def test_avatar_upload_and_fetch(self, client: TestClient, headers):
        assert client.get("/users/me/avatar", headers=headers).status_code == 404

        image_data = b"\xff\xd8\xff\xe0fake-jpeg"
        response = client.put("/users/me/avatar", files={"image": ("avatar.jpg", image_data, "image/jpeg")}, headers=headers)
        assert response.status_code == 200
        assert response.json()["has_profile_image"] is True

        response = client.get("/users/me/avatar", headers=headers)
        assert response.status_code == 200
        assert response.content == image_data
