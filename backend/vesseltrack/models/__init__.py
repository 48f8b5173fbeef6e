"""Import all models to register them with SQLAlchemy metadata."""
from vesseltrack.models.base import Base
from vesseltrack.models.auth_user import AuthUser
from vesseltrack.models.auth_session import AuthSession
from vesseltrack.models.password_reset import PasswordResetToken
from vesseltrack.models.profile import Profile
from vesseltrack.models.trip import Trip
from vesseltrack.models.successful_trip import SuccessfulTrip
from vesseltrack.models.admin_user import AdminUser
from vesseltrack.models.audit_log import AuditLog

__all__ = [
    "Base",
    "AuthUser",
    "AuthSession",
    "PasswordResetToken",
    "Profile",
    "Trip",
    "SuccessfulTrip",
    "AdminUser",
    "AuditLog",
]
