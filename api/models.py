"""
API request and response models for RxAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models carry input-shape checks only (required, length, email shape).
Password strength is NOT checked here -- the core's WeakPasswordError reports
every violated rule, which a pydantic error could not do as clearly.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import LoginResult, Permissions, RefreshResult, UserProfile, UserRole, UserSummary

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    email: Annotated[str, StringConstraints(strip_whitespace=True, max_length=254, pattern=EMAIL_PATTERN)]
    # Not stripped: the password is hashed exactly as typed, as login compares it.
    password: str = Field(min_length=1, max_length=255)
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=100)]


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class RoleUpdate(BaseModel):
    role: UserRole


class AccessLevelUpdate(BaseModel):
    access_level: int = Field(ge=0, le=4)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserSummaryResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: str
    access_level: int

    @classmethod
    def from_summary(cls, summary: UserSummary) -> "UserSummaryResponse":
        return cls(
            id=summary.id,
            email=summary.email,
            role=summary.role.value,
            access_level=int(summary.access_level),
        )


class UserProfileResponse(BaseModel):
    """Password-free user projection. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str
    access_level: int
    created_at: str

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserProfileResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            name=profile.name,
            role=profile.role.value,
            access_level=int(profile.access_level),
            created_at=profile.created_at,
        )


class PermissionsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    can_read: bool
    can_write: bool
    can_delete: bool
    can_admin: bool

    @classmethod
    def from_permissions(cls, perms: Permissions) -> "PermissionsResponse":
        return cls(
            can_read=perms.can_read,
            can_write=perms.can_write,
            can_delete=perms.can_delete,
            can_admin=perms.can_admin,
        )


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: UserProfileResponse
    permissions: PermissionsResponse


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    user: UserSummaryResponse

    @classmethod
    def from_result(cls, result: LoginResult) -> "LoginResponse":
        return cls(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            token_type=result.token_type,
            expires_in=result.expires_in,
            user=UserSummaryResponse.from_summary(result.user),
        )


class RefreshResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str
    expires_in: int

    @classmethod
    def from_result(cls, result: RefreshResult) -> "RefreshResponse":
        return cls(access_token=result.access_token, token_type=result.token_type, expires_in=result.expires_in)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    errors: Optional[list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
