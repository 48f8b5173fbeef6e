"""Voyage data layer: active voyages, status changes and the completion archive.

Reads are cached per key in a :class:`QueryCache`; every successful mutation
invalidates the keys it affects so the next read refetches. Failures are
reported through the session's notifier and never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

from vesseltrack.client.api import BackendClient, BackendError
from vesseltrack.client.cache import SUCCESSFUL_TRIPS, VESSELS, QueryCache
from vesseltrack.client.notifications import Notifier
from vesseltrack.client.session import UserSession, parse_timestamp
from vesseltrack.models.base import TripStatusEnum

logger = logging.getLogger(__name__)

ALL_STATUSES = "all"
KNOWN_STATUSES = [s.value for s in TripStatusEnum]
DEFAULT_ETA_TIME = "12:00"
# Matches the server's default page size for /trips and /successful-trips.
PAGE_SIZE = 500


@dataclass
class Voyage:
    id: int
    name: str
    vessel_id: str
    destination: str
    eta: datetime
    status: str
    added_by: Optional[str]
    added_at: datetime

    @classmethod
    def from_api(cls, data: dict) -> "Voyage":
        return cls(
            id=data["id"],
            name=data["vessel_name"],
            vessel_id=data["vessel_id"],
            destination=data["destination"],
            eta=parse_timestamp(data["eta"]),
            status=data["status"],
            added_by=data.get("added_by"),
            added_at=parse_timestamp(data["added_at"]),
        )


@dataclass
class ArchiveEntry:
    id: int
    trip_id: int
    vessel_name: str
    vessel_id: str
    destination: str
    arrival_time: datetime
    completed_at: datetime
    completion_notes: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "ArchiveEntry":
        return cls(
            id=data["id"],
            trip_id=data["trip_id"],
            vessel_name=data["vessel_name"],
            vessel_id=data["vessel_id"],
            destination=data["destination"],
            arrival_time=parse_timestamp(data["arrival_time"]),
            completed_at=parse_timestamp(data["completed_at"]),
            completion_notes=data.get("completion_notes"),
        )


@dataclass
class VoyageForm:
    """Raw add-vessel form input."""
    name: str = ""
    vessel_id: str = ""
    destination: str = ""
    eta_date: Optional[date] = None
    eta_time: str = DEFAULT_ETA_TIME

    def missing_fields(self) -> list[str]:
        missing = [f for f in ("name", "vessel_id", "destination") if not (getattr(self, f) or "").strip()]
        if self.eta_date is None:
            missing.append("eta_date")
        return missing

    def eta(self) -> datetime:
        """Combine date and local time of day into a UTC timestamp."""
        hours, minutes = (int(p) for p in (self.eta_time or DEFAULT_ETA_TIME).split(":", 1))
        local = datetime.combine(self.eta_date, time(hours, minutes))
        return local.astimezone(timezone.utc)


def filter_by_status(voyages: Iterable[Voyage], status: str | None) -> list[Voyage]:
    """Keep voyages whose status equals *status*; ``None``/``"all"`` keeps everything."""
    if not status or status == ALL_STATUSES:
        return list(voyages)
    return [v for v in voyages if v.status == status]


def _fetch_all(list_page) -> list[dict]:
    """Read every row of a paged list endpoint, PAGE_SIZE rows per request."""
    rows: list[dict] = []
    while True:
        page = list_page(skip=len(rows), limit=PAGE_SIZE)
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            return rows


class VoyageStore:
    def __init__(
        self,
        client: BackendClient,
        session: UserSession,
        notifier: Notifier | None = None,
        cache: QueryCache | None = None,
    ):
        self.client = client
        self.session = session
        self.notifier = notifier or session.notifier
        self.cache = cache or QueryCache()

    # -- reads --------------------------------------------------------------

    def _load_active(self) -> list[Voyage]:
        voyages = [Voyage.from_api(row) for row in _fetch_all(self.client.list_trips)]
        return sorted(voyages, key=lambda v: (v.added_at, v.id), reverse=True)

    def list(self) -> list[Voyage]:
        """Active voyages (not archived), newest first."""
        try:
            return self.cache.fetch(VESSELS, self._load_active)
        except BackendError as e:
            logger.error("Error fetching vessels: %s", e.message)
            self.notifier.error("Error fetching vessels", e.message)
            return []

    def refresh(self) -> list[Voyage]:
        self.cache.invalidate(VESSELS)
        voyages = self.list()
        self.notifier.notify("Data refreshed", "Vessel tracking data has been updated")
        return voyages

    def successful_trips(self) -> list[ArchiveEntry]:
        """Archive entries, most recently completed first."""
        def load() -> list[ArchiveEntry]:
            return [ArchiveEntry.from_api(row) for row in _fetch_all(self.client.list_successful_trips)]

        try:
            return self.cache.fetch(SUCCESSFUL_TRIPS, load)
        except BackendError as e:
            logger.error("Error fetching successful trips: %s", e.message)
            self.notifier.error("Error fetching data", e.message)
            return []

    # -- mutations ----------------------------------------------------------

    def create(self, form: VoyageForm) -> Optional[Voyage]:
        """Register a voyage. Incomplete forms never reach the network."""
        if form.missing_fields():
            self.notifier.error("Missing information", "Please fill in all required fields")
            return None
        try:
            eta = form.eta()
        except ValueError:
            self.notifier.error("Missing information", "ETA time must be in HH:MM format")
            return None
        if not self.session.is_authenticated:
            self.notifier.error("Failed to add vessel", "User not authenticated")
            return None

        payload = {
            "vessel_name": form.name.strip(),
            "vessel_id": form.vessel_id.strip(),
            "destination": form.destination.strip(),
            "eta": eta.isoformat(),
            "status": TripStatusEnum.IN_TRANSIT.value,
            "added_by": self.session.display_name or "unknown",
        }
        try:
            row = self.client.create_trip(payload)
        except BackendError as e:
            self.notifier.error("Failed to add vessel", e.message)
            return None

        self.cache.invalidate(VESSELS)
        return Voyage.from_api(row)

    def update_status(self, voyage_id: int, status: str) -> Optional[Voyage]:
        """Overwrite the status unconditionally; the last write wins."""
        try:
            row = self.client.update_trip_status(voyage_id, status)
        except BackendError as e:
            self.notifier.error("Failed to update status", e.message)
            return None

        self.cache.invalidate(VESSELS)
        self.notifier.notify("Status updated", "Vessel status has been updated successfully")
        return Voyage.from_api(row)

    def mark_successful(self, voyage: Voyage, notes: str | None = None) -> Optional[ArchiveEntry]:
        """Force the voyage to ``docked``, then archive it.

        The two writes are separate requests. If the archive insert fails the
        voyage stays docked and active; nothing is rolled back.
        """
        if not self.session.is_authenticated:
            self.notifier.error("Failed to mark as successful", "User not authenticated")
            return None

        docked = TripStatusEnum.DOCKED.value
        try:
            if voyage.status != docked:
                self.client.update_trip_status(voyage.id, docked)
                voyage.status = docked
                self.cache.invalidate(VESSELS)

            row = self.client.create_successful_trip({
                "trip_id": voyage.id,
                "vessel_id": voyage.vessel_id,
                "vessel_name": voyage.name,
                "destination": voyage.destination,
                "arrival_time": datetime.now(timezone.utc).isoformat(),
                "completion_notes": notes,
            })
        except BackendError as e:
            self.notifier.error("Failed to mark as successful", e.message)
            return None

        self.cache.invalidate(VESSELS, SUCCESSFUL_TRIPS)
        self.notifier.notify("Trip completed", "Vessel has been marked as successfully completed")
        return ArchiveEntry.from_api(row)
