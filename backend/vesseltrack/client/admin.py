"""Admin user management: merged user view, deletion and role toggling."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from vesseltrack.client.api import BackendClient, BackendError
from vesseltrack.client.cache import USERS, QueryCache
from vesseltrack.client.notifications import Notifier
from vesseltrack.client.session import UserSession, parse_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_USERNAME = "Unknown"


@dataclass
class ManagedUser:
    id: str
    email: str
    username: str
    created_at: Optional[datetime]
    last_sign_in_at: Optional[datetime]
    is_admin: bool


class AdminConsole:
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

    def _read_optional(self, label: str, loader) -> list[dict]:
        try:
            return loader() or []
        except BackendError as e:
            logger.error("Error fetching %s: %s", label, e.message)
            return []

    def _load_users(self) -> list[ManagedUser]:
        auth_users = self.client.list_auth_users()
        admin_ids = {row["user_id"] for row in self._read_optional("admin users", self.client.list_admin_users)}
        usernames = {
            row["id"]: row["username"]
            for row in self._read_optional("profiles", self.client.list_profiles)
        }
        return [
            ManagedUser(
                id=u["id"],
                email=u["email"],
                username=usernames.get(u["id"], UNKNOWN_USERNAME),
                created_at=parse_timestamp(u.get("created_at")),
                last_sign_in_at=parse_timestamp(u.get("last_sign_in_at")),
                is_admin=u["id"] in admin_ids,
            )
            for u in auth_users
        ]

    def list_users(self) -> list[ManagedUser]:
        """All accounts with their username and admin flag. Empty for non-admins."""
        if not self.session.is_admin:
            return []
        try:
            return self.cache.fetch(USERS, self._load_users)
        except BackendError as e:
            self.notifier.error("Error fetching users", e.message)
            return []

    def delete_user(self, user_id: str) -> bool:
        if self.session.user is not None and user_id == self.session.user.id:
            self.notifier.error("Failed to delete user", "You cannot delete your own account")
            return False
        try:
            self.client.delete_auth_user(user_id)
        except BackendError as e:
            self.notifier.error("Failed to delete user", e.message)
            return False

        self.cache.invalidate(USERS)
        self.notifier.notify("User deleted", "The user has been removed from the system")
        return True

    def toggle_admin(self, user_id: str, make_admin: bool) -> bool:
        try:
            if make_admin:
                self.client.add_admin_user(user_id)
            else:
                self.client.remove_admin_user(user_id)
        except BackendError as e:
            self.notifier.error("Failed to update admin status", e.message)
            return False

        self.cache.invalidate(USERS)
        if self.session.user is not None and user_id == self.session.user.id:
            self.session.forget_admin_status()
        if make_admin:
            self.notifier.notify("Admin added", "The user has been given admin privileges")
        else:
            self.notifier.notify("Admin removed", "Admin privileges have been revoked from the user")
        return True
