from __future__ import annotations

from pathlib import Path

import pytest

from crm_backend.auth import repository as repository_module
from crm_backend.auth.repository import (
    USER_ID_LENGTH,
    UserIdExhaustedError,
    UserRepository,
    generate_user_id,
    normalize_email,
)
from crm_backend.core.store import DuplicateRecordError, LocalCollection


def _repo(path: Path | None = None) -> UserRepository:
    return UserRepository(LocalCollection("users", path=path, unique_fields=("id", "email")))


def test_generate_user_id_is_numeric_without_leading_zero() -> None:
    for _ in range(50):
        user_id = generate_user_id()
        assert len(user_id) == USER_ID_LENGTH
        assert user_id.isdigit()
        assert user_id[0] != "0"


def test_normalize_email_trims_and_lowercases() -> None:
    assert normalize_email("  User@Test.Local ") == "user@test.local"


def test_user_repository_create_and_lookup_case_insensitive(tmp_path: Path) -> None:
    repo = _repo(tmp_path / "users.json")

    user = repo.create(email="User@Test.Local", password_hash="hash", display_name=None)
    reloaded = _repo(tmp_path / "users.json")

    assert user.email == "user@test.local"
    assert reloaded.get_by_email("USER@test.local") == user
    assert reloaded.get_by_id(user.id) == user


def test_user_repository_rejects_duplicate_email() -> None:
    repo = _repo()
    repo.create(email="user@test.local", password_hash="hash", display_name=None)

    with pytest.raises(DuplicateRecordError):
        repo.create(email="USER@test.local", password_hash="hash", display_name=None)


def test_user_repository_draws_new_id_on_collision(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    repo = _repo()
    ids = iter(["1111111111", "1111111111", "2222222222"])
    monkeypatch.setattr(repository_module, "generate_user_id", lambda: next(ids))

    first = repo.create(email="first@test.local", password_hash="hash", display_name=None)
    second = repo.create(email="second@test.local", password_hash="hash", display_name=None)

    assert (first.id, second.id) == ("1111111111", "2222222222")


def test_user_repository_gives_up_after_colliding_ids(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    repo = _repo()
    monkeypatch.setattr(repository_module, "generate_user_id", lambda: "1111111111")
    repo.create(email="first@test.local", password_hash="hash", display_name=None)

    with pytest.raises(UserIdExhaustedError):
        repo.create(email="second@test.local", password_hash="hash", display_name=None)


def test_user_repository_update_normalizes_email_and_touches_timestamp() -> None:
    repo = _repo()
    user = repo.create(email="user@test.local", password_hash="hash", display_name=None)

    updated = repo.update(user.id, {"email": " New@Test.Local"})

    assert updated is not None
    assert updated.email == "new@test.local"
    assert updated.updated_at >= user.updated_at
    assert repo.update("missing", {"display_name": "x"}) is None
