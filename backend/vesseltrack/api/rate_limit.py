from slowapi import Limiter
from slowapi.util import get_remote_address

from vesseltrack.config import settings

# Applied per-route on the credential endpoints; reads are not limited.
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
