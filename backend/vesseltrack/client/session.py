"""Session/identity layer: the signed-in principal, its profile and role.

A :class:`UserSession` is created once at application start and passed
explicitly to the voyage and admin layers. Auth failures never raise out of
this class; they become notifications and a ``False`` result.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from vesseltrack.client.api import BackendClient, BackendError
from vesseltrack.client.notifications import Notifier
from vesseltrack.utils.security import email_local_part

logger = logging.getLogger(__name__)


class AuthEventEnum(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SIGNUP_MIN_PASSWORD = 6
NEW_PASSWORD_MIN = 8
NAME_MIN = 2


def parse_timestamp(value: str | None) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    # SQLite drops the offset; the server only stores UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Principal:
    id: str
    email: str
    created_at: Optional[datetime] = None
    last_sign_in_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: dict) -> "Principal":
        return cls(
            id=data["id"],
            email=data["email"],
            created_at=parse_timestamp(data.get("created_at")),
            last_sign_in_at=parse_timestamp(data.get("last_sign_in_at")),
        )


@dataclass
class Profile:
    id: str
    username: str
    name: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "Profile":
        return cls(id=data["id"], username=data["username"], name=data.get("name"))


AuthListener = Callable[[str, Optional[Principal]], None]


class UserSession:
    def __init__(self, client: BackendClient, notifier: Notifier | None = None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.user: Optional[Principal] = None
        self.profile: Optional[Profile] = None
        self.access_token: Optional[str] = None
        self.is_loading = False
        self._listeners: list[AuthListener] = []
        self._is_admin: Optional[bool] = None

    # -- subscription -------------------------------------------------------

    def on_change(self, callback: AuthListener) -> Callable[[], None]:
        """Subscribe to auth state changes. Returns an unsubscribe callable."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: AuthEventEnum) -> None:
        logger.debug("Auth state changed: %s %s", event.value, self.user.id if self.user else None)
        for listener in list(self._listeners):
            listener(event.value, self.user)

    # -- state --------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def display_name(self) -> Optional[str]:
        """Profile username if known, else the email local part."""
        if self.profile and self.profile.username:
            return self.profile.username
        if self.user:
            return email_local_part(self.user.email)
        return None

    @property
    def is_admin(self) -> bool:
        """Admin membership, resolved once per signed-in principal.

        No answer or a failed lookup counts as not admin.
        """
        if self.user is None:
            return False
        if self._is_admin is None:
            try:
                self._is_admin = bool(self.client.is_admin(self.user.id))
            except BackendError as e:
                logger.error("Error checking admin status: %s", e.message)
                self._is_admin = False
        return self._is_admin

    def forget_admin_status(self) -> None:
        self._is_admin = None

    def _apply_session(self, payload: dict) -> None:
        self.access_token = payload["access_token"]
        self.client.token = self.access_token
        self.user = Principal.from_api(payload["user"])
        self.profile = Profile.from_api(payload["profile"]) if payload.get("profile") else None
        self._is_admin = None

    def _clear(self) -> None:
        self.access_token = None
        self.client.token = None
        self.user = None
        self.profile = None
        self._is_admin = None

    # -- operations ---------------------------------------------------------

    def restore(self, token: str | None) -> bool:
        """Load the principal behind a stored token. Silent on failure."""
        if not token:
            return False
        self.is_loading = True
        self.client.token = token
        try:
            payload = self.client.get_session()
        except BackendError as e:
            logger.info("Stored session is no longer valid: %s", e.message)
            self._clear()
            return False
        finally:
            self.is_loading = False
        self._apply_session(payload)
        self._emit(AuthEventEnum.SIGNED_IN)
        return True

    def login(self, email: str, password: str) -> bool:
        if not email or not password:
            return False
        self.is_loading = True
        try:
            payload = self.client.sign_in(email, password)
        except BackendError as e:
            self.notifier.error("Login failed", e.message)
            return False
        finally:
            self.is_loading = False

        self._apply_session(payload)
        self.notifier.notify("Login successful", "Welcome back!")
        self._emit(AuthEventEnum.SIGNED_IN)
        return True

    def signup(self, email: str, password: str, username: str, name: str,
               confirm_password: str | None = None) -> bool:
        if confirm_password is not None and password != confirm_password:
            self.notifier.error("Passwords don't match", "Please ensure both passwords match")
            return False
        if len(password) < SIGNUP_MIN_PASSWORD:
            self.notifier.error(
                "Password too short",
                f"Password must be at least {SIGNUP_MIN_PASSWORD} characters long",
            )
            return False

        self.is_loading = True
        try:
            try:
                existing = self.client.list_profiles(username=username)
            except BackendError as e:
                logger.error("Username check error: %s", e.message)
                self.notifier.error("Registration failed", "Error checking username availability")
                return False
            if existing:
                self.notifier.error("Username already taken", "Please choose a different username")
                return False

            try:
                self.client.sign_up(email, password, username, name)
            except BackendError as e:
                self.notifier.error("Registration failed", e.message)
                return False
        finally:
            self.is_loading = False

        self.notifier.notify("Registration successful", "Your account has been created. You can now log in.")
        return True

    def logout(self) -> None:
        if self.access_token:
            try:
                self.client.sign_out()
            except BackendError as e:
                # The local session is dropped regardless
                logger.warning("Sign-out request failed: %s", e.message)
        self._clear()
        self.notifier.notify("Logged out", "You have been successfully logged out")
        self._emit(AuthEventEnum.SIGNED_OUT)

    def request_password_reset(self, email: str, redirect_to: str | None = None) -> bool:
        if not email:
            return False
        try:
            self.client.reset_password_for_email(email, redirect_to=redirect_to)
        except BackendError as e:
            self.notifier.error("Error", e.message)
            return False
        self.notifier.notify(
            "Success",
            "If an account exists with this email, you will receive password reset instructions.",
        )
        return True

    def complete_password_reset(self, token: str, new_password: str, confirm_password: str) -> bool:
        """Set a new password from an emailed reset token. Does not sign in."""
        if not self._valid_new_password(new_password, confirm_password):
            return False
        try:
            self.client.confirm_password_reset(token, new_password)
        except BackendError as e:
            self.notifier.error("Password update failed", e.message)
            return False
        self.notifier.notify("Password updated", "You can now log in with your new password.")
        return True

    def _valid_new_password(self, new_password: str, confirm_password: str) -> bool:
        if len(new_password) < NEW_PASSWORD_MIN:
            self.notifier.error(
                "Password update failed",
                f"New password must be at least {NEW_PASSWORD_MIN} characters.",
            )
            return False
        if new_password != confirm_password:
            self.notifier.error("Password update failed", "Passwords don't match")
            return False
        return True

    def update_password(self, new_password: str, confirm_password: str) -> bool:
        if not self._valid_new_password(new_password, confirm_password):
            return False
        try:
            self.client.update_user(password=new_password)
        except BackendError as e:
            self.notifier.error("Password update failed", e.message)
            return False
        self.notifier.notify("Password updated", "Your password has been successfully updated.")
        return True

    def update_contact(self, email: str, name: str) -> bool:
        if self.user is None:
            self.notifier.error("Update failed", "User not authenticated")
            return False
        if not _EMAIL_RE.match(email or ""):
            self.notifier.error("Update failed", "Please enter a valid email address.")
            return False
        if len((name or "").strip()) < NAME_MIN:
            self.notifier.error("Update failed", f"Name must be at least {NAME_MIN} characters.")
            return False

        if email != self.user.email:
            try:
                updated = self.client.update_user(email=email)
            except BackendError as e:
                self.notifier.error("Email update failed", e.message)
                return False
            self.user = Principal.from_api(updated)

        if self.profile:
            try:
                updated_profile = self.client.update_profile(self.user.id, name.strip())
            except BackendError as e:
                self.notifier.error("Profile update failed", e.message)
                return False
            self.profile = Profile.from_api(updated_profile)

        self.notifier.notify(
            "Contact information updated",
            "Your contact information has been successfully updated.",
        )
        self._emit(AuthEventEnum.USER_UPDATED)
        return True
