"""Access control tests: header identity, bearer tokens and role checks."""

from datetime import datetime, timedelta, timezone

from jose import jwt
from pydantic import SecretStr
import pytest

from conftest import auth_headers
from meeting_signaling.config import settings

CONFIG_PATH = f"{settings.API_PREFIX}/config"
SECRET = "test-secret-key"


def _token(claims: dict, secret: str = SECRET, expires_in: int = 300) -> str:
    payload = {**claims, "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in)}
    return jwt.encode(payload, secret, algorithm=settings.ALGORITHM)


@pytest.fixture
def jwt_enabled(monkeypatch):
    monkeypatch.setattr(settings, "SECRET_KEY", SecretStr(SECRET))


class TestHeaderIdentity:
    def test_forwarded_headers_authenticate(self, client):
        response = client.get(CONFIG_PATH, headers=auth_headers("teacher-1", "teacher"))

        assert response.status_code == 200

    def test_missing_identity_is_unauthenticated(self, client):
        response = client.get(CONFIG_PATH)

        assert response.status_code == 401
        assert response.json()["error_code"] == "unauthenticated"

    def test_missing_role_is_unauthenticated(self, client):
        response = client.get(CONFIG_PATH, headers={"X-User-Id": "teacher-1"})

        assert response.status_code == 401

    def test_bearer_token_ignored_without_secret(self, client):
        response = client.get(CONFIG_PATH, headers={"Authorization": f"Bearer {_token({'sub': 'teacher-1'})}"})

        assert response.status_code == 401


class TestBearerIdentity:
    def test_valid_token_authenticates(self, client, jwt_enabled):
        token = _token({"sub": "teacher-1", "role": "teacher"})

        response = client.get(CONFIG_PATH, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200

    def test_user_id_claim_is_accepted(self, client, jwt_enabled):
        token = _token({"user_id": "admin-1", "role": "admin"})

        response = client.get(f"{settings.API_PREFIX}/rooms", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200

    def test_expired_token_is_unauthenticated(self, client, jwt_enabled):
        token = _token({"sub": "teacher-1", "role": "teacher"}, expires_in=-60)

        response = client.get(CONFIG_PATH, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_token_signed_with_other_key_is_unauthenticated(self, client, jwt_enabled):
        token = _token({"sub": "teacher-1", "role": "teacher"}, secret="another-key")

        response = client.get(CONFIG_PATH, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_token_without_role_is_unauthenticated(self, client, jwt_enabled):
        token = _token({"sub": "teacher-1"})

        response = client.get(CONFIG_PATH, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_headers_used_when_no_bearer_token(self, client, jwt_enabled):
        response = client.get(CONFIG_PATH, headers=auth_headers("parent-1", "parent"))

        assert response.status_code == 200


class TestRoleCheck:
    def test_admin_can_list_rooms(self, client, admin_headers):
        response = client.get(f"{settings.API_PREFIX}/rooms", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"rooms": []}

    @pytest.mark.parametrize("role", ["teacher", "parent", "student"])
    def test_non_admin_cannot_list_rooms(self, client, role):
        response = client.get(f"{settings.API_PREFIX}/rooms", headers=auth_headers("someone", role))

        assert response.status_code == 403
        assert response.json()["error_code"] == "unauthorized"

    def test_unauthenticated_listing_is_401_not_403(self, client):
        response = client.get(f"{settings.API_PREFIX}/rooms")

        assert response.status_code == 401
