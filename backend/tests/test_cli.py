"""Tests for VesselTrack CLI commands."""
from __future__ import annotations

import json
import time
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console
from sqlalchemy.orm import sessionmaker
from typer.testing import CliRunner

from vesseltrack import cli
from vesseltrack.cli import app
from vesseltrack.client.api import BackendClient
from vesseltrack.config import settings
from vesseltrack.modules import auth_service


runner = CliRunner()


@pytest.fixture
def session_file(live_client, monkeypatch, tmp_path):
    """Point the CLI at the in-process API and a temporary session file."""
    path = tmp_path / "session.json"
    monkeypatch.setattr(settings, "SESSION_FILE", str(path))
    monkeypatch.setattr(cli, "console", Console(width=200))
    monkeypatch.setattr(
        cli, "_make_client",
        lambda: BackendClient(base_url="http://testserver/api/v1", http=live_client),
    )
    return path


def _login(email="ops@example.com", password="secret123"):
    result = runner.invoke(app, ["login", "--email", email, "--password", password])
    assert result.exit_code == 0, result.output
    return result


# ---------------------------------------------------------------------------
# Service commands
# ---------------------------------------------------------------------------


@patch("vesseltrack.database.init_db")
def test_init_db(mock_init):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "Database ready" in result.output
    mock_init.assert_called_once()


@patch("vesseltrack.database.init_db", side_effect=Exception("database locked"))
def test_init_db_failure(mock_init):
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 1
    assert "failed" in result.output.lower()


def test_seed_without_demo_flag():
    result = runner.invoke(app, ["seed"])
    assert result.exit_code == 0
    assert "Nothing to seed" in result.output


@patch("vesseltrack.modules.demo_data.load_demo_data", return_value={"users": 2, "voyages": 3})
@patch("vesseltrack.database.SessionLocal")
@patch("vesseltrack.database.init_db")
def test_seed_demo(mock_init, mock_sl, mock_load):
    mock_db = MagicMock()
    mock_sl.return_value = mock_db
    result = runner.invoke(app, ["seed", "--demo"])
    assert result.exit_code == 0
    assert "2 users, 3 voyages" in result.output
    mock_load.assert_called_once_with(mock_db)
    mock_db.commit.assert_called_once()
    mock_db.close.assert_called_once()


@patch("vesseltrack.modules.demo_data.load_demo_data", side_effect=Exception("constraint failed"))
@patch("vesseltrack.database.SessionLocal")
@patch("vesseltrack.database.init_db")
def test_seed_demo_failure_rolls_back(mock_init, mock_sl, mock_load):
    mock_db = MagicMock()
    mock_sl.return_value = mock_db
    result = runner.invoke(app, ["seed", "--demo"])
    assert result.exit_code == 1
    mock_db.rollback.assert_called_once()
    mock_db.commit.assert_not_called()


def test_grant_admin(engine, db, make_account):
    user = make_account("ops@example.com", "ops")
    with patch("vesseltrack.database.SessionLocal", sessionmaker(bind=engine)):
        result = runner.invoke(app, ["grant-admin", "ops@example.com"])
    assert result.exit_code == 0
    assert "now an admin" in result.output
    assert auth_service.is_admin(db, user.id)


def test_grant_admin_unknown_email(engine):
    with patch("vesseltrack.database.SessionLocal", sessionmaker(bind=engine)):
        result = runner.invoke(app, ["grant-admin", "ghost@example.com"])
    assert result.exit_code == 1
    assert "No account" in result.output


# ---------------------------------------------------------------------------
# Auth commands
# ---------------------------------------------------------------------------


def test_login_persists_token(session_file, make_account):
    make_account("ops@example.com", "ops")
    result = _login()
    assert "Signed in as ops" in result.output
    assert json.loads(session_file.read_text())["access_token"]


def test_login_failure_leaves_no_session(session_file, make_account):
    make_account("ops@example.com", "ops")
    result = runner.invoke(app, ["login", "--email", "ops@example.com", "--password", "wrong"])
    assert result.exit_code == 1
    assert "Invalid login credentials" in result.output
    assert not session_file.exists()


def test_whoami_and_logout(session_file, make_account):
    make_account("ops@example.com", "ops", name="Olive Ops")
    _login()

    result = runner.invoke(app, ["whoami"])
    assert result.exit_code == 0
    assert "ops@example.com" in result.output
    assert "Olive Ops" in result.output

    result = runner.invoke(app, ["logout"])
    assert result.exit_code == 0
    assert not session_file.exists()
    assert runner.invoke(app, ["whoami"]).exit_code == 1


def test_not_logged_in(session_file):
    result = runner.invoke(app, ["voyages"])
    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_stale_session_file_removed(session_file):
    session_file.write_text(json.dumps({"access_token": "revoked"}))
    result = runner.invoke(app, ["whoami"])
    assert result.exit_code == 1
    assert not session_file.exists()


def test_register_password_mismatch(session_file):
    result = runner.invoke(app, [
        "register", "--email", "new@example.com", "--username", "newbie", "--name", "New",
        "--password", "secret123", "--confirm-password", "secret999",
    ])
    assert result.exit_code == 1
    assert "Passwords don't match" in result.output


def test_register_then_login(session_file):
    result = runner.invoke(app, [
        "register", "--email", "new@example.com", "--username", "newbie", "--name", "New",
        "--password", "secret123", "--confirm-password", "secret123",
    ])
    assert result.exit_code == 0, result.output
    assert "Registration successful" in result.output
    _login("new@example.com")


def test_reset_password_request(session_file, make_account):
    make_account("ops@example.com", "ops")
    result = runner.invoke(app, ["reset-password", "--email", "ops@example.com"])
    assert result.exit_code == 0
    assert "password reset instructions" in result.output


def test_change_password_too_short(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["change-password", "--password", "short", "--confirm-password", "short"])
    assert result.exit_code == 1
    assert "at least 8 characters" in result.output


# ---------------------------------------------------------------------------
# Dashboard commands
# ---------------------------------------------------------------------------


def _add(name, vessel_id, status=None):
    result = runner.invoke(app, [
        "add-vessel", "--name", name, "--vessel-id", vessel_id,
        "--destination", "Port of Rotterdam", "--eta-date", "2025-04-15", "--eta-time", "14:30",
    ])
    assert result.exit_code == 0, result.output
    return result


def test_add_vessel_missing_fields(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["add-vessel", "--name", "Atlantic Voyager"])
    assert result.exit_code == 1
    assert "Missing information" in result.output


def test_voyage_lifecycle(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    assert "voyage #1" in _add("Atlantic Voyager", "AV-2023-01").output
    _add("Pacific Explorer", "PE-2023-02")

    result = runner.invoke(app, ["voyages"])
    assert result.exit_code == 0
    assert "Active Voyages (2)" in result.output
    assert result.output.index("PE-2023-02") < result.output.index("AV-2023-01")

    result = runner.invoke(app, ["set-status", "2", "delayed"])
    assert result.exit_code == 0
    assert "Status updated" in result.output

    result = runner.invoke(app, ["voyages", "--status", "delayed"])
    assert "PE-2023-02" in result.output
    assert "AV-2023-01" not in result.output

    result = runner.invoke(app, ["complete", "1", "--notes", "Berth 4"])
    assert result.exit_code == 0
    assert "Trip completed" in result.output

    result = runner.invoke(app, ["voyages"])
    assert "AV-2023-01" not in result.output

    result = runner.invoke(app, ["trips"])
    assert "Successful Trips (1)" in result.output
    assert "Berth 4" in result.output


def test_set_status_rejects_unknown_value(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["set-status", "1", "sunk"])
    assert result.exit_code == 2


def test_complete_unknown_voyage(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["complete", "42"])
    assert result.exit_code == 1
    assert "No active voyage #42" in result.output


def test_empty_voyage_list(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["voyages"])
    assert result.exit_code == 0
    assert "No vessels are currently being tracked" in result.output


def test_voyages_refresh(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    _add("Atlantic Voyager", "AV-2023-01")
    result = runner.invoke(app, ["voyages", "--refresh"])
    assert result.exit_code == 0
    assert "Data refreshed" in result.output
    assert "AV-2023-01" in result.output


@pytest.fixture
def new_york_tz(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_eta_shown_in_local_time(session_file, make_account, new_york_tz):
    make_account("ops@example.com", "ops")
    _login()
    runner.invoke(app, [
        "add-vessel", "--name", "Atlantic Voyager", "--vessel-id", "AV-2023-01",
        "--destination", "Port of Rotterdam", "--eta-date", "2025-05-01", "--eta-time", "12:00",
    ])
    result = runner.invoke(app, ["voyages"])
    assert "May 1, 2025 12:00 PM" in result.output
    assert "4:00 PM" not in result.output


# ---------------------------------------------------------------------------
# Admin commands
# ---------------------------------------------------------------------------


def test_admin_users_access_denied(session_file, make_account):
    make_account("ops@example.com", "ops")
    _login()
    result = runner.invoke(app, ["admin", "users"])
    assert result.exit_code == 1
    assert "Access denied" in result.output


def test_admin_users_table(session_file, make_account):
    make_account("chief@example.com", "chief", admin=True)
    make_account("ops@example.com", "ops")
    _login("chief@example.com")
    result = runner.invoke(app, ["admin", "users"])
    assert result.exit_code == 0
    assert "Users (2)" in result.output
    assert "ops@example.com" in result.output


def test_admin_toggle_and_delete(session_file, make_account, db):
    make_account("chief@example.com", "chief", admin=True)
    ops_id = make_account("ops@example.com", "ops").id
    _login("chief@example.com")

    result = runner.invoke(app, ["admin", "toggle", ops_id])
    assert result.exit_code == 0
    assert "Admin added" in result.output
    assert auth_service.is_admin(db, ops_id)

    result = runner.invoke(app, ["admin", "delete", ops_id, "--yes"])
    assert result.exit_code == 0
    assert "User deleted" in result.output


def test_admin_delete_cancelled(session_file, make_account):
    make_account("chief@example.com", "chief", admin=True)
    ops_id = make_account("ops@example.com", "ops").id
    _login("chief@example.com")
    result = runner.invoke(app, ["admin", "delete", ops_id], input="n\n")
    assert result.exit_code == 0
    assert "Cancelled" in result.output


def test_format_timestamp_none():
    assert cli._format_timestamp(None) == "-"
