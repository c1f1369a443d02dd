"""Unit tests for auth/store.py -- UserStore persistence and uniqueness.

Covers:
- create() normalizes email, derives name, and returns the stored record
- UNIQUE(email) raises ConflictError, including under concurrent inserts
- update_by_id() patches fields, recomputes name, and reports missing ids
- OAuth identity lookup and linking
"""

from __future__ import annotations

import threading

import pytest

from auth.models import User
from auth.store import UserStore
from core.config import get_settings
from core.errors import ConflictError, NotFoundError


def _new_user(email: str = "a@b.com", **overrides) -> User:
    fields = {"email": email, "first_name": "A", "last_name": "B", "hashed_password": "$2b$04$placeholder"}
    fields.update(overrides)
    return User(**fields)


class TestCreate:
    def test_default_roles_follow_settings(self, user_store: UserStore, monkeypatch):
        settings = get_settings().model_copy(update={"default_role": "member"})
        monkeypatch.setattr("auth.models.get_settings", lambda: settings)
        user = user_store.create(_new_user())
        assert user.roles == ["member"]
        assert user_store.find_by_id(user.id).roles == ["member"]

    def test_create_returns_persisted_record(self, user_store: UserStore):
        user = user_store.create(_new_user(email="  Mixed@Example.COM "))
        assert user.id is not None
        assert user.email == "mixed@example.com"
        assert user.name == "A B"
        assert user.roles == ["user"]
        assert user.email_notifications is True
        assert user.created_at

    def test_find_by_email_is_case_insensitive(self, user_store: UserStore):
        created = user_store.create(_new_user())
        assert user_store.find_by_email("A@B.COM").id == created.id

    def test_find_missing_returns_none(self, user_store: UserStore):
        assert user_store.find_by_email("nobody@example.com") is None
        assert user_store.find_by_id(999) is None

    def test_duplicate_email_conflicts(self, user_store: UserStore):
        user_store.create(_new_user())
        with pytest.raises(ConflictError):
            user_store.create(_new_user(email="A@b.com", first_name="Other"))

    def test_concurrent_duplicate_creates_one_wins(self, user_store: UserStore):
        """Both threads skip any pre-check; the UNIQUE constraint decides."""
        attempts = 4
        barrier = threading.Barrier(attempts)
        outcomes: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            try:
                user_store.create(_new_user(email="race@example.com"))
                result = "created"
            except ConflictError:
                result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("created") == 1
        assert outcomes.count("conflict") == attempts - 1


class TestUpdate:
    def test_partial_update_recomputes_name(self, user_store: UserStore):
        user = user_store.create(_new_user())
        updated = user_store.update_by_id(user.id, first_name="Ada", phone_no="555-0100")
        assert updated.name == "Ada B"
        assert updated.phone_no == "555-0100"
        assert updated.last_name == "B"
        assert updated.hashed_password == user.hashed_password

    def test_toggle_notifications(self, user_store: UserStore):
        user = user_store.create(_new_user())
        assert user_store.update_by_id(user.id, email_notifications=False).email_notifications is False
        assert user_store.find_by_id(user.id).email_notifications is False

    def test_missing_id_raises_not_found(self, user_store: UserStore):
        with pytest.raises(NotFoundError):
            user_store.update_by_id(12345, first_name="X")

    def test_email_collision_on_update_conflicts(self, user_store: UserStore):
        user_store.create(_new_user(email="taken@example.com"))
        other = user_store.create(_new_user(email="free@example.com"))
        with pytest.raises(ConflictError):
            user_store.update_by_id(other.id, email="taken@example.com")
        assert user_store.find_by_id(other.id).email == "free@example.com"

    def test_unknown_field_rejected(self, user_store: UserStore):
        user = user_store.create(_new_user())
        with pytest.raises(ValueError):
            user_store.update_by_id(user.id, id=99)


class TestOAuthLink:
    def test_link_then_find(self, user_store: UserStore):
        user = user_store.create(_new_user())
        linked = user_store.link_oauth(user.id, "google", "sub-123")
        assert linked.oauth_provider == "google"
        assert user_store.find_by_oauth("google", "sub-123").id == user.id

    def test_identity_cannot_be_linked_twice(self, user_store: UserStore):
        first = user_store.create(_new_user(email="one@example.com"))
        second = user_store.create(_new_user(email="two@example.com"))
        user_store.link_oauth(first.id, "google", "sub-123")
        with pytest.raises(ConflictError):
            user_store.link_oauth(second.id, "google", "sub-123")
