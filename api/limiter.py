"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. This is a per-IP limit on the login endpoint and is separate
from the per-identity lockout in auth/throttle.py: the limiter slows one
client hammering many accounts, the throttle protects one account from many
clients.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Resolve LOGIN_RATE_LIMIT at request time so tests can override it."""
    return get_settings().login_rate_limit
