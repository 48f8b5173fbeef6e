"""Tests for voyage (all_trips) and archive (successful_trips) endpoints."""
from __future__ import annotations

import pytest

from vesseltrack.models.audit_log import AuditLog
from vesseltrack.models.successful_trip import SuccessfulTrip

API = "/api/v1"


@pytest.fixture
def headers(make_account, auth_headers):
    make_account("ops@example.com", "harbormaster")
    return auth_headers("ops@example.com")


def _trip(client, headers, **overrides):
    body = {
        "vessel_name": "Atlantic Voyager",
        "vessel_id": "AV-2023-01",
        "destination": "Port of Rotterdam",
        "eta": "2025-04-15T14:30:00Z",
    }
    body.update(overrides)
    resp = client.post(f"{API}/trips", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _archive(client, headers, trip, **overrides):
    body = {
        "trip_id": trip["id"],
        "vessel_id": trip["vessel_id"],
        "vessel_name": trip["vessel_name"],
        "destination": trip["destination"],
        "arrival_time": "2025-04-15T15:00:00Z",
    }
    body.update(overrides)
    return client.post(f"{API}/successful-trips", json=body, headers=headers)


class TestCreateTrip:
    def test_requires_auth(self, live_client):
        resp = live_client.post(f"{API}/trips", json={})
        assert resp.status_code == 401

    def test_defaults(self, live_client, headers):
        trip = _trip(live_client, headers)
        assert trip["status"] == "in-transit"
        assert trip["added_by"] == "harbormaster"
        assert trip["id"] > 0
        assert trip["added_at"]

    def test_explicit_added_by_kept(self, live_client, headers):
        trip = _trip(live_client, headers, added_by="night-shift")
        assert trip["added_by"] == "night-shift"

    def test_missing_field_rejected(self, live_client, headers):
        resp = live_client.post(f"{API}/trips", json={"vessel_name": "X"}, headers=headers)
        assert resp.status_code == 422

    def test_blank_name_rejected(self, live_client, headers):
        resp = live_client.post(f"{API}/trips", json={
            "vessel_name": "", "vessel_id": "A-1", "destination": "Oslo", "eta": "2025-04-15T14:30:00Z",
        }, headers=headers)
        assert resp.status_code == 422

    def test_audited(self, live_client, headers, db):
        trip = _trip(live_client, headers)
        entry = db.query(AuditLog).filter(AuditLog.action == "create").one()
        assert entry.entity_type == "trip"
        assert entry.entity_id == str(trip["id"])


class TestListTrips:
    def test_newest_first(self, live_client, headers):
        first = _trip(live_client, headers, vessel_id="A-1")
        second = _trip(live_client, headers, vessel_id="A-2")
        ids = [t["id"] for t in live_client.get(f"{API}/trips", headers=headers).json()]
        assert ids == [second["id"], first["id"]]

    def test_status_filter(self, live_client, headers):
        _trip(live_client, headers, vessel_id="A-1", status="delayed")
        _trip(live_client, headers, vessel_id="A-2")
        rows = live_client.get(f"{API}/trips", params={"status": "delayed"}, headers=headers).json()
        assert [r["vessel_id"] for r in rows] == ["A-1"]

    def test_archived_excluded_unless_requested(self, live_client, headers):
        done = _trip(live_client, headers, vessel_id="A-1")
        active = _trip(live_client, headers, vessel_id="A-2")
        assert _archive(live_client, headers, done).status_code == 201

        rows = live_client.get(f"{API}/trips", headers=headers).json()
        assert [r["id"] for r in rows] == [active["id"]]
        everything = live_client.get(f"{API}/trips", params={"include_archived": "true"}, headers=headers).json()
        assert {r["id"] for r in everything} == {done["id"], active["id"]}


class TestUpdateStatus:
    def test_last_write_wins(self, live_client, headers):
        trip = _trip(live_client, headers)
        live_client.patch(f"{API}/trips/{trip['id']}", json={"status": "delayed"}, headers=headers)
        resp = live_client.patch(f"{API}/trips/{trip['id']}", json={"status": "docked"}, headers=headers)
        assert resp.status_code == 200
        assert live_client.get(f"{API}/trips/{trip['id']}", headers=headers).json()["status"] == "docked"

    def test_free_form_status_accepted(self, live_client, headers):
        trip = _trip(live_client, headers)
        resp = live_client.patch(f"{API}/trips/{trip['id']}", json={"status": "anchored"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "anchored"

    def test_unknown_trip(self, live_client, headers):
        resp = live_client.patch(f"{API}/trips/9999", json={"status": "docked"}, headers=headers)
        assert resp.status_code == 404

    def test_status_change_audited(self, live_client, headers, db):
        trip = _trip(live_client, headers)
        live_client.patch(f"{API}/trips/{trip['id']}", json={"status": "delayed"}, headers=headers)
        entry = db.query(AuditLog).filter(AuditLog.action == "status_change").one()
        assert entry.details == {"old_status": "in-transit", "new_status": "delayed"}


class TestSuccessfulTrips:
    def test_archive_entry_created(self, live_client, headers):
        trip = _trip(live_client, headers)
        resp = _archive(live_client, headers, trip, completion_notes="On schedule")
        assert resp.status_code == 201
        data = resp.json()
        assert data["trip_id"] == trip["id"]
        assert data["completion_notes"] == "On schedule"
        assert data["completed_at"]

    def test_archive_does_not_change_status(self, live_client, headers):
        trip = _trip(live_client, headers)
        _archive(live_client, headers, trip)
        assert live_client.get(f"{API}/trips/{trip['id']}", headers=headers).json()["status"] == "in-transit"

    def test_second_archive_conflicts(self, live_client, headers, db):
        trip = _trip(live_client, headers)
        _archive(live_client, headers, trip)
        resp = _archive(live_client, headers, trip)
        assert resp.status_code == 409
        assert db.query(SuccessfulTrip).filter(SuccessfulTrip.trip_id == trip["id"]).count() == 1

    def test_missing_trip(self, live_client, headers):
        resp = _archive(live_client, headers, {
            "id": 424242, "vessel_id": "X", "vessel_name": "Ghost", "destination": "Nowhere",
        })
        assert resp.status_code == 404

    def test_list_most_recent_first(self, live_client, headers):
        a = _trip(live_client, headers, vessel_id="A-1")
        b = _trip(live_client, headers, vessel_id="A-2")
        _archive(live_client, headers, a)
        _archive(live_client, headers, b)
        rows = live_client.get(f"{API}/successful-trips", headers=headers).json()
        assert [r["trip_id"] for r in rows] == [b["id"], a["id"]]
