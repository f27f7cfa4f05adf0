"""
Tests for registration and login.
"""

import logging

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import models
from tests.conftest import TEST_PASSWORD

logger = logging.getLogger(__name__)

REGISTRATION = {
    "email": "New.User@Test.com",
    "password": "Str0ng!pass",
    "first_name": "New",
    "last_name": "User",
}


def test_register_creates_member_and_returns_token(client: TestClient, test_db: Session):
    response = client.post("/api/auth/register", json=REGISTRATION)

    assert response.status_code == 201, response.json()
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["user"]["email"] == "new.user@test.com"
    assert body["user"]["role"] == "MEMBER"
    assert "password_hash" not in body["user"]

    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_register_cannot_choose_role(client: TestClient):
    response = client.post("/api/auth/register", json={**REGISTRATION, "role": "ADMIN"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"


def test_register_duplicate_email_conflicts(client: TestClient, member_user: models.User):
    response = client.post("/api/auth/register", json={**REGISTRATION, "email": "MEMBER@test.com"})

    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_register_weak_password_lists_field_errors(client: TestClient):
    response = client.post(
        "/api/auth/register",
        json={**REGISTRATION, "password": "alllowercase", "first_name": ""},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_failed"
    assert any(message.startswith("password") for message in body["errors"])
    assert any(message.startswith("first_name") for message in body["errors"])


def test_login_success(client: TestClient, member_user: models.User):
    response = client.post("/api/auth/login", json={"email": "member@test.com", "password": TEST_PASSWORD})

    assert response.status_code == 200, response.json()
    assert response.json()["user"]["id"] == member_user.id


def test_login_wrong_password(client: TestClient, member_user: models.User):
    response = client.post("/api/auth/login", json={"email": "member@test.com", "password": "Wr0ng!pass"})

    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_login_unknown_email_matches_wrong_password(client: TestClient):
    response = client.post("/api/auth/login", json={"email": "nobody@test.com", "password": TEST_PASSWORD})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_login_inactive_user(client: TestClient, inactive_user: models.User):
    response = client.post("/api/auth/login", json={"email": "inactive@test.com", "password": TEST_PASSWORD})

    assert response.status_code == 401
    logger.info("✓ Inactive accounts cannot log in")


def test_public_route_ignores_bad_token(client: TestClient, member_user: models.User):
    response = client.post(
        "/api/auth/login",
        json={"email": "member@test.com", "password": TEST_PASSWORD},
        headers={"Authorization": "Bearer garbage"},
    )

    assert response.status_code == 200
