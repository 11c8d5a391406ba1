"""
auth/service.py -- Register / login / refresh / profile flows.

AuthService is the only component with business-flow state transitions. It
composes the password hasher, token service and login throttle around an
injected UserStore, and is built once per process (api/main.py lifespan) or
per test.

Login ordering:
  1. The whole attempt runs under throttle.guard(email), so checking the lock
     and recording the failure are one atomic step per identity.
  2. The lockout check comes before any bcrypt work. A locked identity gets
     LockedOutError without its password ever being compared.
  3. Unknown email and wrong password both record a throttle failure and
     raise the same InvalidCredentialsError. Unknown emails still pay for one
     bcrypt comparison (verify_dummy) so timing does not reveal which case
     occurred.

Emails are normalised (strip + lower-case) before every lookup, so identity
uniqueness and throttle keys are case-insensitive.

Logging: events are logged without passwords, hashes or tokens.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from auth.errors import (
    AlreadyExistsError,
    InvalidCredentialsError,
    InvalidTokenError,
    LockedOutError,
    NotFoundError,
    ValidationError,
)
from auth.models import (
    DEFAULT_ACCESS_LEVEL,
    DEFAULT_ROLE,
    AccessLevel,
    AuthContext,
    LoginResult,
    RefreshResult,
    User,
    UserProfile,
    UserRole,
    UserSummary,
)
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.throttle import LoginThrottle
from auth.tokens import TokenService

logger = logging.getLogger("rxauth.auth")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not value or not str(value).strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuthService:
    """Usage:
    service = AuthService(InMemoryUserStore(), PasswordHasher(), tokens, LoginThrottle())
    profile = service.register("a@x.com", "Str0ng!Pass123", "Ana")
    result = service.login("a@x.com", "Str0ng!Pass123")
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        throttle: LoginThrottle,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.throttle = throttle

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str) -> UserProfile:
        """Create a user with the default role and access level.

        Raises ValidationError, AlreadyExistsError, WeakPasswordError or
        HashingError.
        """
        _require(email=email, password=password, name=name)
        email = normalize_email(email)

        # Cheap early exit before bcrypt. insert_if_absent() below is the
        # authoritative check when two registrations race.
        if self.store.get_by_email(email) is not None:
            raise AlreadyExistsError()

        user = User(
            id=uuid.uuid4().hex,
            email=email,
            name=name.strip(),
            hashed_password=self.hasher.hash(password),
            role=DEFAULT_ROLE,
            access_level=DEFAULT_ACCESS_LEVEL,
            created_at=_now_iso(),
        )
        if not self.store.insert_if_absent(user):
            raise AlreadyExistsError()
        logger.info("Registered user %s", user.id)
        return UserProfile.from_user(user)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        """Verify credentials and issue an access/refresh token pair.

        Raises ValidationError, LockedOutError, InvalidCredentialsError or
        HashingError.
        """
        _require(email=email, password=password)
        email = normalize_email(email)

        with self.throttle.guard(email):
            if self.throttle.is_locked(email):
                logger.warning("Login rejected: identity locked out")
                raise LockedOutError(retry_after=self.throttle.retry_after(email))

            user = self.store.get_by_email(email)
            if user is None:
                self.hasher.verify_dummy(password)
                self.throttle.record_failure(email)
                logger.info("Login failed: invalid credentials")
                raise InvalidCredentialsError()

            if not self.hasher.verify(password, user.hashed_password):
                self.throttle.record_failure(email)
                logger.info("Login failed: invalid credentials for user %s", user.id)
                raise InvalidCredentialsError()

            self.throttle.reset(email)

        logger.info("Login succeeded for user %s", user.id)
        return LoginResult(
            access_token=self.tokens.issue_access_token(user),
            refresh_token=self.tokens.issue_refresh_token(user.id),
            expires_in=self.tokens.access_expires_in,
            user=UserSummary.from_user(user),
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> RefreshResult:
        """Exchange a valid refresh token for a new access token.

        The refresh token itself is not rotated. Every failure -- bad token or
        vanished subject -- raises the same InvalidTokenError.
        """
        _require(refresh_token=refresh_token)
        claims = self.tokens.verify_refresh_token(refresh_token)
        if claims is None:
            raise InvalidTokenError()
        user = self.store.get_by_id(claims.sub)
        if user is None:
            logger.info("Refresh rejected: subject no longer exists")
            raise InvalidTokenError()
        return RefreshResult(
            access_token=self.tokens.issue_access_token(user),
            expires_in=self.tokens.access_expires_in,
        )

    # ------------------------------------------------------------------
    # Request authentication
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str | None) -> AuthContext | None:
        """Return the request context for a valid access token, else None."""
        if not access_token:
            return None
        claims = self.tokens.verify_access_token(access_token)
        return AuthContext.from_claims(claims) if claims is not None else None

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> UserProfile:
        user = self.store.get_by_id(user_id) if user_id else None
        if user is None:
            raise NotFoundError()
        return UserProfile.from_user(user)

    def update_role(self, user_id: str, role: UserRole | str) -> UserProfile:
        try:
            role = UserRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role!r}") from exc
        return self._update(user_id, role=role)

    def update_access_level(self, user_id: str, access_level: AccessLevel | int) -> UserProfile:
        try:
            access_level = AccessLevel(access_level)
        except ValueError as exc:
            raise ValidationError(f"Access level must be between 0 and 4, got {access_level!r}") from exc
        return self._update(user_id, access_level=access_level)

    def _update(self, user_id: str, **fields) -> UserProfile:
        user = self.store.update(user_id, **fields) if user_id else None
        if user is None:
            raise NotFoundError()
        logger.info("Updated user %s: %s", user_id, ", ".join(sorted(fields)))
        return UserProfile.from_user(user)
