"""Auth provider: accounts, bearer sessions, password recovery and admin roles.

All functions take a SQLAlchemy session and flush instead of committing;
the caller (route or CLI command) owns the transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from vesseltrack.config import settings
from vesseltrack.models.admin_user import AdminUser
from vesseltrack.models.auth_session import AuthSession
from vesseltrack.models.auth_user import AuthUser
from vesseltrack.models.base import utcnow
from vesseltrack.models.password_reset import PasswordResetToken
from vesseltrack.models.profile import Profile
from vesseltrack.utils.security import hash_password, new_token, verify_password

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Auth failure carrying the HTTP status it maps to."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_password(password: str) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise AuthError(
            f"Password should be at least {settings.PASSWORD_MIN_LENGTH} characters",
            status_code=422,
        )


def get_user_by_email(db: Session, email: str) -> Optional[AuthUser]:
    return db.query(AuthUser).filter(func.lower(AuthUser.email) == _normalize_email(email)).first()


def username_taken(db: Session, username: str) -> bool:
    return db.query(Profile).filter(Profile.username == username.strip()).first() is not None


# ---------------------------------------------------------------------------
# Sign-up / sign-in / sign-out
# ---------------------------------------------------------------------------

def sign_up(db: Session, email: str, password: str, username: str, name: str | None = None) -> AuthUser:
    """Create an account and its profile row from the sign-up metadata."""
    _check_password(password)
    username = username.strip()
    if not username:
        raise AuthError("Username is required", status_code=422)
    if get_user_by_email(db, email) is not None:
        raise AuthError("User already registered", status_code=409)
    if username_taken(db, username):
        raise AuthError("Username already taken", status_code=409)

    user = AuthUser(email=_normalize_email(email), password_hash=hash_password(password))
    db.add(user)
    db.flush()
    db.add(Profile(id=user.id, username=username, name=(name or "").strip() or None))
    db.flush()
    logger.info("Registered user %s (%s)", user.id, username)
    return user


def sign_in(db: Session, email: str, password: str) -> AuthSession:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed sign-in for %s", email)
        raise AuthError("Invalid login credentials", status_code=400)

    now = utcnow()
    user.last_sign_in_at = now
    session = AuthSession(
        token=new_token(),
        user_id=user.id,
        created_at=now,
        expires_at=now + timedelta(hours=settings.SESSION_TTL_HOURS),
    )
    db.add(session)
    db.flush()
    return session


def sign_out(db: Session, token: str) -> bool:
    deleted = db.query(AuthSession).filter(AuthSession.token == token).delete()
    db.flush()
    return deleted > 0


def resolve_session(db: Session, token: str | None) -> Optional[AuthSession]:
    """Return the live session for *token*; expired sessions are removed."""
    if not token:
        return None
    session = db.query(AuthSession).filter(AuthSession.token == token).first()
    if session is None:
        return None
    if session.is_expired():
        db.delete(session)
        db.flush()
        return None
    return session


def update_user(db: Session, user: AuthUser, email: str | None = None, password: str | None = None) -> AuthUser:
    if email is not None and _normalize_email(email) != user.email:
        existing = get_user_by_email(db, email)
        if existing is not None and existing.id != user.id:
            raise AuthError("A user with this email address has already been registered", status_code=409)
        user.email = _normalize_email(email)
    if password is not None:
        _check_password(password)
        user.password_hash = hash_password(password)
    db.flush()
    return user


# ---------------------------------------------------------------------------
# Password recovery
# ---------------------------------------------------------------------------

def send_password_reset_email(email: str, link: str) -> None:
    """Deliver the reset link. There is no SMTP transport; the link is logged."""
    logger.info("Password reset requested for %s: %s", email, link)


def request_password_reset(db: Session, email: str, redirect_to: str | None = None) -> Optional[str]:
    """Issue a reset token if the account exists.

    Returns the token (or None) for the caller's bookkeeping; the HTTP layer
    never exposes it, so responses do not reveal whether an account exists.
    """
    user = get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown address %s", email)
        return None

    now = utcnow()
    token = new_token()
    db.add(PasswordResetToken(
        token=token,
        user_id=user.id,
        created_at=now,
        expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
    ))
    db.flush()
    base = (redirect_to or f"{settings.APP_URL.rstrip('/')}/login").rstrip("/")
    send_password_reset_email(user.email, f"{base}?reset_token={token}")
    return token


def confirm_password_reset(db: Session, token: str, password: str) -> AuthUser:
    reset = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if reset is None or not reset.is_usable():
        raise AuthError("Reset link is invalid or has expired", status_code=400)
    _check_password(password)

    user = db.get(AuthUser, reset.user_id)
    user.password_hash = hash_password(password)
    reset.used_at = utcnow()
    # Existing sessions do not survive a password reset
    db.query(AuthSession).filter(AuthSession.user_id == user.id).delete()
    db.flush()
    return user


# ---------------------------------------------------------------------------
# Roles and account administration
# ---------------------------------------------------------------------------

def is_admin(db: Session, user_id: str) -> bool:
    return db.get(AdminUser, user_id) is not None


def grant_admin(db: Session, user_id: str) -> AdminUser:
    if db.get(AuthUser, user_id) is None:
        raise AuthError("User not found", status_code=404)
    membership = db.get(AdminUser, user_id)
    if membership is not None:
        raise AuthError("User is already an admin", status_code=409)
    membership = AdminUser(user_id=user_id)
    db.add(membership)
    db.flush()
    return membership


def revoke_admin(db: Session, user_id: str) -> bool:
    deleted = db.query(AdminUser).filter(AdminUser.user_id == user_id).delete()
    db.flush()
    return deleted > 0


def list_users(db: Session) -> list[AuthUser]:
    return db.query(AuthUser).order_by(AuthUser.created_at.asc()).all()


def delete_user(db: Session, user_id: str) -> None:
    """Hard-delete an account; profile, sessions and admin grant cascade."""
    user = db.get(AuthUser, user_id)
    if user is None:
        raise AuthError("User not found", status_code=404)
    db.delete(user)
    db.flush()
    logger.info("Deleted user %s", user_id)


def purge_expired_sessions(db: Session, now: datetime | None = None) -> int:
    now = now or utcnow()
    deleted = db.query(AuthSession).filter(AuthSession.expires_at <= now).delete()
    db.flush()
    return deleted
