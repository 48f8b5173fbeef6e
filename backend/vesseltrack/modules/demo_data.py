"""Demo accounts and voyages for a fresh install (``vesseltrack seed --demo``).

Uses flush, not commit; the caller owns the transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from vesseltrack.models.auth_user import AuthUser
from vesseltrack.models.trip import Trip
from vesseltrack.modules import auth_service

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    {"email": "admin@vesseltrack.local", "username": "admin", "name": "Admin User", "admin": True},
    {"email": "operator@vesseltrack.local", "username": "operator", "name": "John Operator", "admin": False},
]

DEMO_VOYAGES = [
    {
        "vessel_name": "Atlantic Voyager",
        "vessel_id": "AV-2023-01",
        "destination": "Port of Rotterdam",
        "eta": datetime(2025, 4, 15, 14, 30, tzinfo=timezone.utc),
        "status": "in-transit",
        "added_by": "admin",
        "added_at": datetime(2025, 4, 10, 9, 15, tzinfo=timezone.utc),
    },
    {
        "vessel_name": "Pacific Explorer",
        "vessel_id": "PE-2023-02",
        "destination": "Port of Singapore",
        "eta": datetime(2025, 4, 18, 10, 0, tzinfo=timezone.utc),
        "status": "delayed",
        "added_by": "operator",
        "added_at": datetime(2025, 4, 9, 16, 45, tzinfo=timezone.utc),
    },
    {
        "vessel_name": "Nordic Star",
        "vessel_id": "NS-2023-05",
        "destination": "Port of New York",
        "eta": datetime(2025, 4, 12, 8, 15, tzinfo=timezone.utc),
        "status": "docked",
        "added_by": "admin",
        "added_at": datetime(2025, 4, 8, 11, 30, tzinfo=timezone.utc),
    },
]


def load_demo_data(db: Session) -> dict:
    """Create the demo accounts and voyages that are not present yet.

    Returns counts of what was inserted. Running it twice inserts nothing
    the second time.
    """
    users_created = 0
    accounts: dict[str, AuthUser] = {}
    for account in DEMO_USERS:
        user = auth_service.get_user_by_email(db, account["email"])
        if user is None:
            user = auth_service.sign_up(db, account["email"], DEMO_PASSWORD, account["username"], account["name"])
            users_created += 1
            if account["admin"]:
                auth_service.grant_admin(db, user.id)
        accounts[account["username"]] = user

    trips_created = 0
    existing = {vid for (vid,) in db.query(Trip.vessel_id).all()}
    for voyage in DEMO_VOYAGES:
        if voyage["vessel_id"] in existing:
            continue
        owner = accounts.get(voyage["added_by"])
        db.add(Trip(user_id=owner.id if owner else None, **voyage))
        trips_created += 1

    db.flush()
    logger.info("Demo data loaded: %d users, %d voyages", users_created, trips_created)
    return {"users": users_created, "voyages": trips_created}
