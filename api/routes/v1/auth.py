"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST  /api/v1/auth/register                    -- create account (public)
  POST  /api/v1/auth/login                       -- password login; token pair
  POST  /api/v1/auth/refresh                     -- new access token from refresh token
  GET   /api/v1/auth/me                          -- current profile + permissions
  GET   /api/v1/auth/users/{id}                  -- profile lookup (access level READ+)
  PATCH /api/v1/auth/users/{id}/role             -- change role (admin role)
  PATCH /api/v1/auth/users/{id}/access-level     -- change access level (access level ADMIN)

Handlers are plain `def`, not `async def`: FastAPI runs them on its worker
threadpool, so bcrypt and token signing never block the event loop.

Errors: handlers let auth.errors exceptions propagate. api/main.py maps each
error code to a status (401 / 403 / 409 / 429 ...) in one place.

Security:
  [R1] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute)
       on top of the per-identity lockout in the core.
  [R2] Cache-Control: no-store on responses carrying tokens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    AccessLevelUpdate,
    LoginRequest,
    LoginResponse,
    MeResponse,
    PermissionsResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RoleUpdate,
    UserProfileResponse,
)
from auth.dependencies import get_auth_context, get_auth_service, require_access_level, require_roles
from auth.models import AccessLevel, AuthContext, UserRole
from auth.policy import permissions_for
from auth.service import AuthService

# Auth policy:
# - POST  /auth/register:                 public
# - POST  /auth/login:                    public, rate-limited [R1]
# - POST  /auth/refresh:                  public -- the refresh token is the credential
# - GET   /auth/me:                       requires auth (get_auth_context)
# - GET   /auth/users/{id}:               requires access level READ
# - PATCH /auth/users/{id}/role:          requires role admin
# - PATCH /auth/users/{id}/access-level:  requires access level ADMIN
router = APIRouter()


def _no_store(content: dict, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [R2]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserProfileResponse, status_code=201)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> UserProfileResponse:
    """Create an account with the default role and access level.

    Weak passwords come back as 400 weak_password with every violated rule
    listed under error.errors.
    """
    profile = service.register(body.email, body.password, body.name)
    return UserProfileResponse.from_profile(profile)


@limiter.limit(login_rate_limit)  # [R1] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return an access/refresh token pair.

    Unknown email and wrong password produce the same 401 invalid_credentials
    body. A locked identity gets 429 locked_out with Retry-After.
    """
    service = get_auth_service(request)
    result = service.login(body.email, body.password)
    return _no_store(LoginResponse.from_result(result).model_dump())


@router.post("/auth/refresh", response_model=RefreshResponse)
def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Exchange a refresh token for a new access token. The refresh token is not rotated."""
    result = service.refresh(body.refresh_token)
    return _no_store(RefreshResponse.from_result(result).model_dump())


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(
    context: AuthContext = Depends(get_auth_context),
    service: AuthService = Depends(get_auth_service),
) -> MeResponse:
    """Return the current user's stored profile and the permissions their access level grants."""
    profile = service.get_profile(context.user_id)
    return MeResponse(
        user=UserProfileResponse.from_profile(profile),
        permissions=PermissionsResponse.from_permissions(permissions_for(profile.access_level)),
    )


@router.get("/auth/users/{user_id}", response_model=UserProfileResponse)
def get_user(
    user_id: str,
    context: AuthContext = Depends(require_access_level(AccessLevel.READ)),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    return UserProfileResponse.from_profile(service.get_profile(user_id))


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


@router.patch("/auth/users/{user_id}/role", response_model=UserProfileResponse)
def update_role(
    user_id: str,
    body: RoleUpdate,
    context: AuthContext = Depends(require_roles(UserRole.ADMIN)),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Change a user's role. Admin role only.

    Takes effect on the user's next issued access token; tokens already
    issued keep the role they were signed with until they expire.
    """
    return UserProfileResponse.from_profile(service.update_role(user_id, body.role))


@router.patch("/auth/users/{user_id}/access-level", response_model=UserProfileResponse)
def update_access_level(
    user_id: str,
    body: AccessLevelUpdate,
    context: AuthContext = Depends(require_access_level(AccessLevel.ADMIN)),
    service: AuthService = Depends(get_auth_service),
) -> UserProfileResponse:
    """Change a user's access level. Requires access level ADMIN."""
    return UserProfileResponse.from_profile(service.update_access_level(user_id, body.access_level))
