"""
auth/tokens.py -- Access and refresh token issuing and verification.

Security design decisions:
  JWT: python-jose with HS256. Access tokens carry the user id (sub), email,
       role and access level; refresh tokens carry only the user id. Each class
       is signed with its own secret and carries a "type" claim, so a refresh
       token never verifies as an access token and vice versa -- even if the
       two secrets were ever configured to the same value.

  Verification returns None on any failure (bad signature, malformed token,
       wrong type, missing claims, expiry). Callers treat every failure as
       "unauthenticated" and never learn which check failed; the route layer
       turns None into a 401.

  Expiry is checked against the service's injected clock rather than jose's
       wall clock, so tests can move time forward without sleeping. A token is
       valid while now < exp.

  Lifetimes come from compact duration strings ("45s", "30m", "24h", "7d").
       A malformed string falls back to 24 hours with a warning instead of
       refusing to start.

Layer rule: no imports from api/ or core/. TokenService takes plain
constructor arguments; api/main.py builds it from core.config settings.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable

from jose import JWTError, jwt

from auth.models import AccessClaims, AccessLevel, RefreshClaims, User, UserRole

logger = logging.getLogger("rxauth.tokens")

ALGORITHM = "HS256"
DEFAULT_EXPIRY_SECONDS = 24 * 60 * 60

_ACCESS_TYPE = "access"
_REFRESH_TYPE = "refresh"

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_duration(value: str) -> int:
    """Convert "24h" / "7d" / "30m" / "45s" to seconds.

    Anything else -- unknown unit, missing magnitude, zero, extra text --
    falls back to DEFAULT_EXPIRY_SECONDS (24h).
    """
    match = _DURATION_RE.match(value.strip()) if isinstance(value, str) else None
    if match is None or int(match.group(1)) == 0:
        logger.warning("Unrecognized duration %r, falling back to 24h", value)
        return DEFAULT_EXPIRY_SECONDS
    magnitude, unit = match.groups()
    return int(magnitude) * _UNIT_SECONDS[unit]


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an exact "Bearer <token>" header value, else None."""
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TokenService:
    """Issue and verify signed access/refresh tokens.

    Usage:
        tokens = TokenService(access_secret, refresh_secret, "24h", "7d")
        token = tokens.issue_access_token(user)
        claims = tokens.verify_access_token(token)   # AccessClaims or None
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_expire: str = "24h",
        refresh_expire: str = "7d",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._access_ttl = parse_duration(access_expire)
        self._refresh_ttl = parse_duration(refresh_expire)
        self._clock = clock

    @property
    def access_expires_in(self) -> int:
        return self._access_ttl

    @property
    def refresh_expires_in(self) -> int:
        return self._refresh_ttl

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, user: User) -> str:
        """Encode a signed access token for the given user."""
        now = self._now()
        payload = {
            "sub": user.id,
            "email": user.email,
            "role": UserRole(user.role).value,
            "access_level": int(user.access_level),
            "type": _ACCESS_TYPE,
            "iat": now,
            "exp": now + self._access_ttl,
        }
        return jwt.encode(payload, self._access_secret, algorithm=ALGORITHM)

    def issue_refresh_token(self, subject_id: str) -> str:
        """Encode a signed refresh token for the given user id."""
        now = self._now()
        payload = {
            "sub": subject_id,
            "type": _REFRESH_TYPE,
            "iat": now,
            "exp": now + self._refresh_ttl,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def _decode(self, token: str, secret: str, expected_type: str) -> dict | None:
        if not isinstance(token, str) or not token:
            return None
        try:
            # jose's own exp check uses the wall clock; expiry is checked below
            # against the injected clock instead.
            payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"verify_exp": False})
        except JWTError:
            logger.debug("Rejected %s token: signature or structure invalid", expected_type)
            return None
        if payload.get("type") != expected_type:
            logger.debug("Rejected %s token: wrong type claim", expected_type)
            return None
        exp = payload.get("exp")
        if not isinstance(exp, int) or self._now() >= exp:
            logger.debug("Rejected %s token: expired", expected_type)
            return None
        return payload

    def verify_access_token(self, token: str) -> AccessClaims | None:
        """Return the verified claims of an access token, or None on any failure."""
        payload = self._decode(token, self._access_secret, _ACCESS_TYPE)
        if payload is None:
            return None
        try:
            return AccessClaims(
                sub=str(payload["sub"]),
                email=str(payload["email"]),
                role=UserRole(payload["role"]),
                access_level=AccessLevel(int(payload["access_level"])),
                iat=int(payload["iat"]),
                exp=int(payload["exp"]),
            )
        except (KeyError, ValueError, TypeError):
            return None

    def verify_refresh_token(self, token: str) -> RefreshClaims | None:
        """Return the verified claims of a refresh token, or None on any failure."""
        payload = self._decode(token, self._refresh_secret, _REFRESH_TYPE)
        if payload is None:
            return None
        try:
            return RefreshClaims(sub=str(payload["sub"]), iat=int(payload["iat"]), exp=int(payload["exp"]))
        except (KeyError, ValueError, TypeError):
            return None
