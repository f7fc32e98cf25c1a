from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from crm_backend.application import create_app
from crm_backend.core.config import AppConfig
from tests.fakes import build_app_config

PASSWORD = "Passw0rd1"


@pytest.fixture
def client(app_config: AppConfig) -> Iterator[TestClient]:
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


def _session(client: TestClient, email: str) -> dict[str, Any]:
    registered = client.post(
        "/auth/register",
        json={"email": email, "password": PASSWORD, "displayName": email.split("@")[0]},
    )
    assert registered.status_code == 201
    login = client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200
    return login.json()


def _auth(session: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {session['accessToken']}"}


def test_health_is_public(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["Cache-Control"] == "no-store"


def test_register_login_and_use_protected_route(client: TestClient) -> None:
    session = _session(client, "alice@example.com")

    contacts = client.get("/contacts", headers=_auth(session))
    verify = client.get("/auth/verify", headers=_auth(session))

    assert session["tokenType"] == "bearer"
    assert session["user"]["email"] == "alice@example.com"
    assert contacts.status_code == 200
    assert contacts.json()["pagination"]["total"] == 0
    assert verify.json()["user"]["email"] == "alice@example.com"


def test_register_duplicate_email_conflicts(client: TestClient) -> None:
    _session(client, "alice@example.com")

    response = client.post(
        "/auth/register", json={"email": "ALICE@example.com", "password": PASSWORD}
    )

    assert response.status_code == 409
    assert response.json()["code"] == "USER_EXISTS"


def test_protected_route_without_token(client: TestClient) -> None:
    response = client.get("/contacts")

    assert response.status_code == 401
    assert response.json() == {"code": "NO_TOKEN", "error": "Access token required"}


def test_protected_route_with_garbage_token(client: TestClient) -> None:
    response = client.get("/contacts", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_login_with_wrong_password(client: TestClient) -> None:
    _session(client, "alice@example.com")

    response = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "Wrong0000"}
    )

    assert response.status_code == 401
    assert response.json() == {"code": "INVALID_CREDENTIALS", "error": "Invalid credentials"}


def test_other_user_cannot_touch_contact(client: TestClient) -> None:
    alice = _session(client, "alice@example.com")
    bob = _session(client, "bob@example.com")
    created = client.post(
        "/contacts", json={"name": "Jane Buyer"}, headers=_auth(alice)
    )
    contact_id = created.json()["id"]

    update = client.put(
        f"/contacts/{contact_id}", json={"name": "Stolen"}, headers=_auth(bob)
    )
    read = client.get(f"/contacts/{contact_id}", headers=_auth(bob))
    bulk = client.request(
        "DELETE", "/contacts", json={"contactIds": [contact_id]}, headers=_auth(bob)
    )
    own = client.get(f"/contacts/{contact_id}", headers=_auth(alice))

    assert created.status_code == 201
    assert update.status_code == 403
    assert update.json()["code"] == "ACCESS_DENIED"
    assert read.status_code == 403
    assert bulk.json()["deleted"] == 0
    assert own.json()["name"] == "Jane Buyer"


def test_refresh_rotates_and_reuse_fails(client: TestClient) -> None:
    session = _session(client, "alice@example.com")

    rotated = client.post("/auth/refresh", json={"refreshToken": session["refreshToken"]})
    reused = client.post("/auth/refresh", json={"refreshToken": session["refreshToken"]})

    assert rotated.status_code == 200
    assert rotated.json()["refreshToken"] != session["refreshToken"]
    assert reused.status_code == 401
    assert reused.json()["code"] == "INVALID_REFRESH_TOKEN"


def test_logout_always_succeeds_and_revokes(client: TestClient) -> None:
    session = _session(client, "alice@example.com")

    first = client.post("/auth/logout", json={"refreshToken": session["refreshToken"]})
    garbage = client.post("/auth/logout", json={"refreshToken": "garbage"})
    empty = client.post("/auth/logout")
    refresh = client.post("/auth/refresh", json={"refreshToken": session["refreshToken"]})

    assert [first.status_code, garbage.status_code, empty.status_code] == [200, 200, 200]
    assert first.json() == {"message": "Logged out successfully"}
    assert refresh.status_code == 401


def test_logout_with_unencodable_token_still_succeeds(client: TestClient) -> None:
    response = client.post(
        "/auth/logout",
        content=b'{"refreshToken": "\\ud800.a.b"}',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 200


def test_logout_all_revokes_every_session(client: TestClient) -> None:
    first = _session(client, "alice@example.com")
    second = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": PASSWORD}
    ).json()

    response = client.post("/auth/logout-all", headers=_auth(first))
    refresh = client.post("/auth/refresh", json={"refreshToken": second["refreshToken"]})

    assert response.json()["revoked"] == 2
    assert refresh.status_code == 401


def test_login_is_rate_limited(tmp_path: Path) -> None:
    config = build_app_config(tmp_path, login_rate_limit_max_attempts=2)
    with TestClient(create_app(config)) as client:
        statuses = [
            client.post(
                "/auth/login", json={"email": "x@example.com", "password": "Wrong0000"}
            ).status_code
            for _ in range(3)
        ]
        last = client.post(
            "/auth/login", json={"email": "x@example.com", "password": "Wrong0000"}
        )

    assert statuses == [401, 401, 429]
    assert last.json()["code"] == "RATE_LIMITED"


def test_validation_errors_use_envelope(client: TestClient) -> None:
    response = client.post("/auth/login", json={"email": "alice@example.com"})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_contact_lifecycle_with_children(client: TestClient) -> None:
    alice = _session(client, "alice@example.com")
    contact = client.post(
        "/contacts",
        json={"name": "Jane", "email": "jane@example.com", "contactType": "BUYER"},
        headers=_auth(alice),
    ).json()

    task = client.post(
        f"/contacts/{contact['id']}/tasks",
        json={"title": "Call back", "priority": "HIGH"},
        headers=_auth(alice),
    )
    note = client.post(
        f"/contacts/{contact['id']}/notes",
        json={"content": "Prefers mornings"},
        headers=_auth(alice),
    )
    detail = client.get(f"/contacts/{contact['id']}", headers=_auth(alice)).json()
    deleted = client.delete(f"/contacts/{contact['id']}", headers=_auth(alice))
    missing = client.get(f"/contacts/{contact['id']}", headers=_auth(alice))

    assert task.status_code == 201
    assert note.status_code == 201
    assert detail["contactType"] == "BUYER"
    assert [item["title"] for item in detail["tasks"]] == ["Call back"]
    assert [item["content"] for item in detail["notes"]] == ["Prefers mornings"]
    assert deleted.status_code == 200
    assert missing.status_code == 404
    assert missing.json()["code"] == "CONTACT_NOT_FOUND"


def test_password_change_ends_other_sessions(client: TestClient) -> None:
    session = _session(client, "alice@example.com")

    changed = client.put(
        "/users/password",
        json={
            "currentPassword": PASSWORD,
            "newPassword": "N3wPassword",
            "confirmPassword": "N3wPassword",
        },
        headers=_auth(session),
    )
    refresh = client.post("/auth/refresh", json={"refreshToken": session["refreshToken"]})
    relogin = client.post(
        "/auth/login", json={"email": "alice@example.com", "password": "N3wPassword"}
    )

    assert changed.status_code == 200
    assert refresh.status_code == 401
    assert relogin.status_code == 200


def test_null_required_fields_are_rejected_without_breaking_listing(
    client: TestClient,
) -> None:
    alice = _session(client, "alice@example.com")
    contact = client.post("/contacts", json={"name": "Jane"}, headers=_auth(alice)).json()
    task = client.post(
        f"/contacts/{contact['id']}/tasks", json={"title": "Call back"}, headers=_auth(alice)
    ).json()

    statuses = [
        client.put(f"/contacts/{contact['id']}", json=body, headers=_auth(alice)).status_code
        for body in ({"name": None}, {"status": None}, {"contactType": None})
    ]
    task_update = client.put(
        f"/tasks/{task['id']}", json={"title": None}, headers=_auth(alice)
    )
    listing = client.get("/contacts", headers=_auth(alice))

    assert statuses == [422, 422, 422]
    assert task_update.status_code == 422
    assert task_update.json()["code"] == "VALIDATION_ERROR"
    assert listing.status_code == 200
    assert [item["name"] for item in listing.json()["contacts"]] == ["Jane"]
