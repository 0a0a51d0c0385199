from __future__ import annotations

import json
from pathlib import Path

import jwt
import pytest

from fastsewa.credentials import TokenIssuer
from fastsewa.errors import DuplicateEmailError, InvalidCredentialsError, NotFoundError, ValidationFailedError
from fastsewa.store import USERS, RecordStore
from fastsewa.users import UserDirectory

SECRET = "test-signing-secret-for-the-user-directory"


@pytest.fixture()
def store(tmp_path: Path) -> RecordStore:
    record_store = RecordStore(tmp_path)
    record_store.initialize()
    return record_store


@pytest.fixture()
def directory(store: RecordStore) -> UserDirectory:
    return UserDirectory(store, TokenIssuer(SECRET))


def _persisted_users(store: RecordStore) -> list:
    return json.loads(store.path_for(USERS).read_text(encoding="utf-8"))


def test_register_returns_public_view(directory: UserDirectory, store: RecordStore) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456", {"name": "Alice", "city": "Pokhara"})

    assert user.role == "user"
    assert user.is_active
    assert user.profile is not None and user.profile.city == "Pokhara"
    assert "password" not in user.to_dict()

    stored = store.get_user(user.id)
    assert stored is not None
    assert stored.password != "pw123456"
    assert any(item["email"] == "alice@example.com" for item in _persisted_users(store))


def test_duplicate_email_rejected_even_when_inactive(directory: UserDirectory, store: RecordStore) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")
    directory.deactivate(user.id)
    before = _persisted_users(store)

    with pytest.raises(DuplicateEmailError):
        directory.register("alice2", "alice@example.com", "another-pw")

    assert _persisted_users(store) == before
    assert len(store.users()) == 2


def test_email_match_is_case_sensitive(directory: UserDirectory) -> None:
    directory.register("alice", "alice@example.com", "pw123456")
    other = directory.register("alice-upper", "Alice@example.com", "pw123456")
    assert other.email == "Alice@example.com"


def test_register_collects_every_validation_problem(directory: UserDirectory) -> None:
    with pytest.raises(ValidationFailedError) as excinfo:
        directory.register("al", "not-an-email", "123")
    assert len(excinfo.value.messages) == 3


def test_authenticate_issues_token_with_user_claims(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")

    result = directory.authenticate("alice@example.com", "pw123456")

    claims = jwt.decode(result.token, SECRET, algorithms=["HS256"])
    assert claims["userId"] == user.id
    assert claims["username"] == "alice"
    assert claims["email"] == "alice@example.com"
    assert claims["role"] == "user"
    assert "exp" in claims
    assert result.user == user
    assert directory.resolve_token(result.token) == user


def test_authenticate_wrong_password(directory: UserDirectory) -> None:
    directory.register("alice", "alice@example.com", "pw123456")
    with pytest.raises(InvalidCredentialsError):
        directory.authenticate("alice@example.com", "wrong-password")


def test_authenticate_inactive_user_always_fails(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")
    token = directory.authenticate("alice@example.com", "pw123456").token
    directory.deactivate(user.id)

    with pytest.raises(NotFoundError):
        directory.authenticate("alice@example.com", "pw123456")
    with pytest.raises(NotFoundError):
        directory.authenticate("alice@example.com", "wrong-password")
    assert directory.resolve_token(token) is None


def test_resolve_token_rejects_garbage(directory: UserDirectory) -> None:
    assert directory.resolve_token("not-a-token") is None
    foreign = jwt.encode({"userId": 1}, "some-other-secret-that-is-long-enough", algorithm="HS256")
    assert directory.resolve_token(foreign) is None


def test_password_update_is_hashed(directory: UserDirectory, store: RecordStore) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")

    directory.update(user.id, password="newpass")

    stored = store.get_user(user.id)
    assert stored is not None
    assert stored.password != "newpass"
    assert all(item["password"] != "newpass" for item in _persisted_users(store))
    assert directory.authenticate("alice@example.com", "newpass").user.id == user.id


def test_update_ignores_immutable_fields(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")

    updated = directory.update(user.id, id=999, created_at="1999-01-01T00:00:00Z", username="alicia")

    assert updated.id == user.id
    assert updated.created_at == user.created_at
    assert updated.username == "alicia"
    assert updated.updated_at is not None


def test_update_rejects_unknown_fields_and_roles(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")
    with pytest.raises(ValidationFailedError):
        directory.update(user.id, favourite_colour="green")
    with pytest.raises(ValidationFailedError):
        directory.update(user.id, role="superuser")
    with pytest.raises(NotFoundError):
        directory.update(12345, username="ghost")


def test_deactivate_keeps_the_record(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")

    directory.deactivate(user.id)

    found = directory.get(user.id)
    assert found is not None
    assert found.is_active is False
    assert any(listed.id == user.id and not listed.is_active for listed in directory.list_users())


def test_change_role(directory: UserDirectory) -> None:
    user = directory.register("alice", "alice@example.com", "pw123456")
    promoted = directory.change_role(user.id, "admin")
    assert promoted.role == "admin"
