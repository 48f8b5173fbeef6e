"""Request dependencies: bearer-token authentication and the admin guard."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from vesseltrack.database import get_db
from vesseltrack.models.auth_session import AuthSession
from vesseltrack.models.auth_user import AuthUser
from vesseltrack.modules.auth_service import is_admin, resolve_session


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_session(request: Request, db: Session = Depends(get_db)) -> AuthSession:
    session = resolve_session(db, bearer_token(request))
    if session is None:
        # resolve_session may have removed an expired row
        db.commit()
        raise HTTPException(status_code=401, detail="Invalid or missing session token")
    return session


def get_current_user(session: AuthSession = Depends(get_current_session)) -> AuthUser:
    return session.user


def require_admin(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)) -> AuthUser:
    if not is_admin(db, user.id):
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return user
