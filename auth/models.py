"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projections).
Stores and services do the work; these types own the domain shape.

hashed_password is excluded from repr() so a User that ends up in a log line
or a traceback never prints its hash. The projections (UserProfile,
UserSummary) have no password field at all -- they are the only shapes that
leave the core.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


class UserRole(str, Enum):
    ADMIN = "admin"
    PHARMACIST = "pharmacist"
    OPERATOR = "operator"
    VIEWER = "viewer"
    USER = "user"


class AccessLevel(IntEnum):
    """Ordered permission tier. Compared with >=, never by set membership."""

    NONE = 0
    READ = 1
    WRITE = 2
    DELETE = 3
    ADMIN = 4


DEFAULT_ROLE = UserRole.USER
DEFAULT_ACCESS_LEVEL = AccessLevel.READ


@dataclass
class User:
    """A stored identity. Only the auth core ever sees this shape."""

    id: str
    email: str  # normalised: stripped, lower-case
    name: str
    hashed_password: str = field(repr=False)
    role: UserRole = DEFAULT_ROLE
    access_level: AccessLevel = DEFAULT_ACCESS_LEVEL
    created_at: str = ""  # ISO 8601, UTC


@dataclass(frozen=True)
class UserProfile:
    """Password-free projection returned by register and profile operations."""

    id: str
    email: str
    name: str
    role: UserRole
    access_level: AccessLevel
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> UserProfile:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            access_level=user.access_level,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class UserSummary:
    """Compact projection embedded in a login result."""

    id: str
    email: str
    role: UserRole
    access_level: AccessLevel

    @classmethod
    def from_user(cls, user: User) -> UserSummary:
        return cls(id=user.id, email=user.email, role=user.role, access_level=user.access_level)


@dataclass(frozen=True)
class AccessClaims:
    """Decoded claims of a verified access token."""

    sub: str
    email: str
    role: UserRole
    access_level: AccessLevel
    iat: int
    exp: int


@dataclass(frozen=True)
class RefreshClaims:
    """Decoded claims of a verified refresh token."""

    sub: str
    iat: int
    exp: int


@dataclass(frozen=True)
class AuthContext:
    """The verified identity attached to an in-flight request."""

    user_id: str
    email: str
    role: UserRole
    access_level: AccessLevel

    @classmethod
    def from_claims(cls, claims: AccessClaims) -> AuthContext:
        return cls(
            user_id=claims.sub,
            email=claims.email,
            role=claims.role,
            access_level=claims.access_level,
        )


@dataclass(frozen=True)
class Permissions:
    can_read: bool
    can_write: bool
    can_delete: bool
    can_admin: bool


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds
    user: UserSummary
    token_type: str = "bearer"


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_in: int
    token_type: str = "bearer"
