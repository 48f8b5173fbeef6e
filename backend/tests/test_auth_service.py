"""Unit tests for the auth service, password hashing and demo data."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from vesseltrack.models.auth_session import AuthSession
from vesseltrack.models.base import utcnow
from vesseltrack.models.trip import Trip
from vesseltrack.modules import auth_service
from vesseltrack.modules.auth_service import AuthError
from vesseltrack.modules.demo_data import DEMO_PASSWORD, DEMO_VOYAGES, load_demo_data
from vesseltrack.utils.security import email_local_part, hash_password, new_token, verify_password


class TestPasswordHashing:
    def test_verify_round_trip(self):
        stored = hash_password("password123")
        assert verify_password("password123", stored)
        assert not verify_password("password124", stored)

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_never_verifies(self):
        assert not verify_password("x", "not-a-hash")
        assert not verify_password("x", "%%%$%%%")

    def test_tokens_are_unique(self):
        assert new_token() != new_token()

    @pytest.mark.parametrize("email,expected", [
        ("ann@example.com", "ann"),
        ("no-at-sign", "no-at-sign"),
        ("@example.com", None),
        (None, None),
    ])
    def test_email_local_part(self, email, expected):
        assert email_local_part(email) == expected


class TestSignUpSignIn:
    def test_sign_up_flushes_without_commit(self):
        mock_db = MagicMock()
        mock_db.query.return_value.filter.return_value.first.return_value = None
        auth_service.sign_up(mock_db, "a@example.com", "secret123", "ann")
        mock_db.flush.assert_called()
        mock_db.commit.assert_not_called()

    def test_blank_username(self, db):
        with pytest.raises(AuthError) as exc:
            auth_service.sign_up(db, "a@example.com", "secret123", "   ")
        assert exc.value.status_code == 422

    def test_sign_in_sets_expiry(self, db):
        auth_service.sign_up(db, "a@example.com", "secret123", "ann")
        session = auth_service.sign_in(db, "A@Example.com", "secret123")
        assert session.user.last_sign_in_at is not None
        assert session.expires_at > utcnow() + timedelta(hours=1)

    def test_resolve_session_ignores_unknown_and_empty(self, db):
        assert auth_service.resolve_session(db, None) is None
        assert auth_service.resolve_session(db, "nope") is None


class TestSessionsHousekeeping:
    def test_purge_expired(self, db):
        user = auth_service.sign_up(db, "a@example.com", "secret123", "ann")
        now = utcnow()
        db.add(AuthSession(token="old", user_id=user.id, created_at=now, expires_at=now - timedelta(minutes=1)))
        db.add(AuthSession(token="live", user_id=user.id, created_at=now, expires_at=now + timedelta(hours=1)))
        db.flush()

        assert auth_service.purge_expired_sessions(db, now=now) == 1
        assert [s.token for s in db.query(AuthSession).all()] == ["live"]


class TestRoles:
    def test_grant_revoke(self, db):
        user = auth_service.sign_up(db, "a@example.com", "secret123", "ann")
        assert not auth_service.is_admin(db, user.id)
        auth_service.grant_admin(db, user.id)
        assert auth_service.is_admin(db, user.id)
        assert auth_service.revoke_admin(db, user.id) is True
        assert auth_service.revoke_admin(db, user.id) is False

    def test_delete_missing_user(self, db):
        with pytest.raises(AuthError) as exc:
            auth_service.delete_user(db, "missing")
        assert exc.value.status_code == 404


class TestDemoData:
    def test_loads_accounts_and_voyages(self, db):
        result = load_demo_data(db)
        assert result == {"users": 2, "voyages": len(DEMO_VOYAGES)}

        admin = auth_service.get_user_by_email(db, "admin@vesseltrack.local")
        assert auth_service.is_admin(db, admin.id)
        assert auth_service.sign_in(db, "operator@vesseltrack.local", DEMO_PASSWORD)

        statuses = {t.vessel_name: t.status for t in db.query(Trip).all()}
        assert statuses == {
            "Atlantic Voyager": "in-transit",
            "Pacific Explorer": "delayed",
            "Nordic Star": "docked",
        }

    def test_idempotent(self, db):
        load_demo_data(db)
        assert load_demo_data(db) == {"users": 0, "voyages": 0}
        assert db.query(Trip).count() == len(DEMO_VOYAGES)
