"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and gating.

Only the Authorization: Bearer <access token> header is accepted. The token is
verified by the AuthService on app.state; the resulting AuthContext is what
the policy gates in auth/policy.py operate on.

try_get_auth_context() is the soft variant (returns None on failure).
get_auth_context() raises NotAuthenticatedError if unauthenticated.
require_roles() / require_access_level() build dependencies that additionally
raise ForbiddenError. api/main.py maps both errors to 401 / 403.

Layer rule: auth/dependencies.py may import from fastapi (for Depends/Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth import policy
from auth.errors import NotAuthenticatedError
from auth.models import AccessLevel, AuthContext, UserRole
from auth.service import AuthService
from auth.tokens import extract_bearer_token


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def try_get_auth_context(request: Request) -> AuthContext | None:
    """Return the verified AuthContext for the request, or None. Never raises."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return None
    return get_auth_service(request).authenticate(token)


def get_auth_context(request: Request) -> AuthContext:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(ctx: AuthContext = Depends(get_auth_context)): ...
    """
    context = try_get_auth_context(request)
    if context is None:
        raise NotAuthenticatedError()
    return context


def require_roles(*roles: UserRole | str) -> Callable[[Request], AuthContext]:
    """Dependency factory admitting only the given roles.

        @router.patch("/admin-only")
        def route(ctx: AuthContext = Depends(require_roles(UserRole.ADMIN))): ...
    """
    gate = policy.role_gate(*roles)

    def dependency(request: Request) -> AuthContext:
        return gate(try_get_auth_context(request))

    return dependency


def require_access_level(level: AccessLevel | int) -> Callable[[Request], AuthContext]:
    """Dependency factory admitting access levels at or above `level`."""
    gate = policy.access_level_gate(level)

    def dependency(request: Request) -> AuthContext:
        return gate(try_get_auth_context(request))

    return dependency
