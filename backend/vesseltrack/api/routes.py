import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from vesseltrack.api.deps import get_current_session, get_current_user, require_admin
from vesseltrack.api.rate_limit import limiter
from vesseltrack.config import settings
from vesseltrack.database import get_db
from vesseltrack.models.admin_user import AdminUser
from vesseltrack.models.auth_session import AuthSession
from vesseltrack.models.auth_user import AuthUser
from vesseltrack.models.profile import Profile
from vesseltrack.models.successful_trip import SuccessfulTrip
from vesseltrack.models.trip import Trip
from vesseltrack.modules import auth_service
from vesseltrack.schemas.admin import AdminUserCreateRequest, AdminUserOut
from vesseltrack.schemas.auth import (
    IsAdminRequest,
    ProfileOut,
    ProfileUpdateRequest,
    RecoverConfirmRequest,
    RecoverRequest,
    SessionOut,
    SignInRequest,
    SignUpRequest,
    UserOut,
    UserUpdateRequest,
)
from vesseltrack.schemas.error import ErrorResponse
from vesseltrack.schemas.trip import (
    SuccessfulTripCreateRequest,
    SuccessfulTripOut,
    TripCreateRequest,
    TripOut,
    TripStatusUpdate,
)
from vesseltrack.utils.security import email_local_part

logger = logging.getLogger(__name__)

router = APIRouter()

_AUTH_ERRORS = {400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


def _audit_log(db: Session, action: str, entity_type: str, entity_id=None,
               details: dict = None, request: Request = None, actor: AuthUser = None) -> None:
    """Record a mutating action for the audit trail."""
    from vesseltrack.models.audit_log import AuditLog
    log = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        actor_id=actor.id if actor else None,
        details=details,
        user_agent=request.headers.get("user-agent") if request else None,
        ip_address=request.client.host if request and request.client else None,
    )
    db.add(log)


def _session_payload(session: AuthSession) -> dict:
    user = session.user
    return {
        "access_token": session.token,
        "token_type": "bearer",
        "expires_at": session.expires_at,
        "user": UserOut.model_validate(user).model_dump(),
        "profile": ProfileOut.model_validate(user.profile).model_dump() if user.profile else None,
    }


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@router.post("/auth/signup", status_code=201, tags=["auth"], responses=_AUTH_ERRORS)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def sign_up(request: Request, body: SignUpRequest, db: Session = Depends(get_db)):
    """Register an account. The profile row is created from the sign-up metadata."""
    user = auth_service.sign_up(db, body.email, body.password, body.username, body.name)
    db.commit()
    return {
        "user": UserOut.model_validate(user).model_dump(),
        "profile": ProfileOut.model_validate(user.profile).model_dump(),
    }


@router.post("/auth/token", response_model=SessionOut, tags=["auth"], responses=_AUTH_ERRORS)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def sign_in(request: Request, body: SignInRequest, db: Session = Depends(get_db)):
    """Exchange an email/password pair for a bearer session."""
    session = auth_service.sign_in(db, body.email, body.password)
    db.commit()
    return _session_payload(session)


@router.post("/auth/logout", tags=["auth"])
def sign_out(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)):
    auth_service.sign_out(db, session.token)
    db.commit()
    return {"status": "signed_out"}


@router.get("/auth/session", response_model=SessionOut, tags=["auth"])
def get_session(session: AuthSession = Depends(get_current_session)):
    """Return the session behind the bearer token, with user and profile."""
    return _session_payload(session)


@router.put("/auth/user", response_model=UserOut, tags=["auth"], responses=_AUTH_ERRORS)
def update_user(
    body: UserUpdateRequest,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = body.model_dump(exclude_unset=True)
    auth_service.update_user(db, user, email=updates.get("email"), password=updates.get("password"))
    _audit_log(db, "update", "auth_user", user.id,
               details={"fields": sorted(updates.keys())}, request=request, actor=user)
    db.commit()
    return user


@router.post("/auth/recover", tags=["auth"])
@limiter.limit(settings.AUTH_RATE_LIMIT)
def recover(request: Request, body: RecoverRequest, redirect_to: Optional[str] = None,
            db: Session = Depends(get_db)):
    """Send password reset instructions. The response is the same for unknown addresses."""
    auth_service.request_password_reset(db, body.email, redirect_to=redirect_to)
    db.commit()
    return {"status": "ok"}


@router.post("/auth/recover/confirm", tags=["auth"], responses=_AUTH_ERRORS)
def recover_confirm(body: RecoverConfirmRequest, db: Session = Depends(get_db)):
    auth_service.confirm_password_reset(db, body.token, body.password)
    db.commit()
    return {"status": "password_updated"}


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

@router.get("/profiles", response_model=list[ProfileOut], tags=["profiles"])
def list_profiles(username: Optional[str] = None, db: Session = Depends(get_db)):
    """List profiles (public: used by sign-up to check username availability)."""
    q = db.query(Profile)
    if username is not None:
        q = q.filter(Profile.username == username.strip())
    return q.order_by(Profile.username.asc()).all()


@router.get("/profiles/{profile_id}", response_model=ProfileOut, tags=["profiles"])
def get_profile(profile_id: str, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.patch("/profiles/{profile_id}", response_model=ProfileOut, tags=["profiles"])
def update_profile(
    profile_id: str,
    body: ProfileUpdateRequest,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a profile. Users may only edit their own row."""
    if profile_id != user.id:
        raise HTTPException(status_code=403, detail="You can only update your own profile")
    profile = db.get(Profile, profile_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    updates = body.model_dump(exclude_unset=True)
    if "name" in updates:
        profile.name = (updates["name"] or "").strip() or None
    db.commit()
    return profile


# ---------------------------------------------------------------------------
# Voyages (all_trips)
# ---------------------------------------------------------------------------

@router.get("/trips", response_model=list[TripOut], tags=["trips"])
def list_trips(
    include_archived: bool = False,
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List voyages, newest first. Archived voyages are excluded unless requested."""
    q = db.query(Trip)
    if not include_archived:
        archived_ids = select(SuccessfulTrip.trip_id)
        q = q.filter(Trip.id.not_in(archived_ids))
    if status:
        q = q.filter(Trip.status == status)
    return q.order_by(Trip.added_at.desc(), Trip.id.desc()).offset(skip).limit(limit).all()


@router.get("/trips/{trip_id}", response_model=TripOut, tags=["trips"])
def get_trip(trip_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    trip = db.get(Trip, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


@router.post("/trips", response_model=TripOut, status_code=201, tags=["trips"])
def create_trip(
    body: TripCreateRequest,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register a vessel voyage. The server assigns id and added_at."""
    added_by = body.added_by
    if not added_by:
        added_by = (user.profile.username if user.profile else None) or email_local_part(user.email) or "unknown"

    trip = Trip(
        vessel_name=body.vessel_name.strip(),
        vessel_id=body.vessel_id.strip(),
        destination=body.destination.strip(),
        eta=body.eta,
        status=body.status,
        added_by=added_by,
        user_id=user.id,
    )
    db.add(trip)
    db.flush()
    _audit_log(db, "create", "trip", trip.id, details={
        "vessel_name": trip.vessel_name, "vessel_id": trip.vessel_id,
    }, request=request, actor=user)
    db.commit()
    return trip


@router.patch("/trips/{trip_id}", response_model=TripOut, tags=["trips"])
def update_trip_status(
    trip_id: int,
    body: TripStatusUpdate,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Overwrite a voyage's status. No version check: the last write wins."""
    trip = db.get(Trip, trip_id)
    if not trip:
        raise HTTPException(status_code=404, detail="Trip not found")

    old_status = trip.status
    trip.status = body.status
    _audit_log(db, "status_change", "trip", trip_id,
               {"old_status": old_status, "new_status": body.status}, request, actor=user)
    db.commit()
    return trip


# ---------------------------------------------------------------------------
# Successful-trip archive
# ---------------------------------------------------------------------------

@router.get("/successful-trips", response_model=list[SuccessfulTripOut], tags=["trips"])
def list_successful_trips(
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return (
        db.query(SuccessfulTrip)
        .order_by(SuccessfulTrip.completed_at.desc(), SuccessfulTrip.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


@router.post("/successful-trips", response_model=SuccessfulTripOut, status_code=201, tags=["trips"])
def create_successful_trip(
    body: SuccessfulTripCreateRequest,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Archive a voyage. Does not touch the voyage's status."""
    if db.get(Trip, body.trip_id) is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    existing = db.query(SuccessfulTrip).filter(SuccessfulTrip.trip_id == body.trip_id).first()
    if existing:
        raise HTTPException(status_code=409, detail="Trip has already been marked as successful")

    entry = SuccessfulTrip(
        trip_id=body.trip_id,
        vessel_id=body.vessel_id,
        vessel_name=body.vessel_name,
        destination=body.destination,
        arrival_time=body.arrival_time,
        completion_notes=body.completion_notes,
        user_id=user.id,
    )
    db.add(entry)
    db.flush()
    _audit_log(db, "archive", "trip", body.trip_id, details={"successful_trip_id": entry.id},
               request=request, actor=user)
    db.commit()
    return entry


# ---------------------------------------------------------------------------
# Admin memberships and account administration
# ---------------------------------------------------------------------------

@router.post("/rpc/is_admin", tags=["admin"])
def rpc_is_admin(body: IsAdminRequest, user: AuthUser = Depends(get_current_user),
                 db: Session = Depends(get_db)) -> bool:
    """Remote predicate: is the given user an admin."""
    return auth_service.is_admin(db, body.user_id)


@router.get("/admin-users", response_model=list[AdminUserOut], tags=["admin"])
def list_admin_users(admin: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return db.query(AdminUser).order_by(AdminUser.created_at.asc()).all()


@router.post("/admin-users", response_model=AdminUserOut, status_code=201, tags=["admin"])
def add_admin_user(
    body: AdminUserCreateRequest,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    membership = auth_service.grant_admin(db, body.user_id)
    _audit_log(db, "grant_admin", "auth_user", body.user_id, request=request, actor=admin)
    db.commit()
    return membership


@router.delete("/admin-users/{user_id}", tags=["admin"])
def remove_admin_user(
    user_id: str,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    removed = auth_service.revoke_admin(db, user_id)
    _audit_log(db, "revoke_admin", "auth_user", user_id, details={"removed": removed},
               request=request, actor=admin)
    db.commit()
    return {"status": "removed", "removed": removed}


@router.get("/admin/users", response_model=list[UserOut], tags=["admin"])
def list_auth_users(admin: AuthUser = Depends(require_admin), db: Session = Depends(get_db)):
    return auth_service.list_users(db)


@router.delete("/admin/users/{user_id}", tags=["admin"])
def delete_auth_user(
    user_id: str,
    request: Request,
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Hard-delete an account. Admins cannot delete themselves."""
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    auth_service.delete_user(db, user_id)
    _audit_log(db, "delete", "auth_user", user_id, request=request, actor=admin)
    db.commit()
    return {"status": "deleted", "user_id": user_id}


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

@router.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    """Health check with DB latency measurement."""
    from sqlalchemy import text

    t0 = time.time()
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {e}"
    latency_ms = round((time.time() - t0) * 1000, 1)

    return {
        "status": "ok",
        "version": settings.VERSION,
        "database": {"status": db_status, "latency_ms": latency_ms},
    }


@router.get("/audit-log", tags=["admin"])
def list_audit_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    admin: AuthUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """List audit log entries, newest first."""
    from vesseltrack.models.audit_log import AuditLog
    q = db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.audit_id.desc())
    if action:
        q = q.filter(AuditLog.action == action)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)
    total = q.count()
    logs = q.offset(skip).limit(limit).all()
    return {
        "total": total,
        "logs": [
            {
                "audit_id": l.audit_id,
                "action": l.action,
                "entity_type": l.entity_type,
                "entity_id": l.entity_id,
                "actor_id": l.actor_id,
                "details": l.details,
                "created_at": l.created_at.isoformat() if l.created_at else None,
            }
            for l in logs
        ],
    }
