"""
auth/policy.py -- Role and access-level gates over a verified AuthContext.

Gates are plain functions with no state and no framework imports. Each one
either returns the context unchanged or raises:

  NotAuthenticatedError -- no identity attached at all (maps to 401)
  ForbiddenError        -- identity present but not allowed (maps to 403)

Keeping the two apart lets the HTTP layer answer "log in" versus "you may
not" correctly. auth/dependencies.py wraps these as FastAPI dependencies.

Roles are compared by set membership; access levels by >= on the ordered
AccessLevel scale.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from auth.errors import ForbiddenError, NotAuthenticatedError
from auth.models import AccessLevel, AuthContext, Permissions, UserRole

Gate = Callable[[AuthContext | None], AuthContext]


def require_role(context: AuthContext | None, allowed: Iterable[UserRole | str]) -> AuthContext:
    if context is None:
        raise NotAuthenticatedError()
    allowed_roles = {UserRole(r) for r in allowed}
    if context.role not in allowed_roles:
        raise ForbiddenError("Insufficient permissions.")
    return context


def require_access_level(context: AuthContext | None, level: AccessLevel | int) -> AuthContext:
    if context is None:
        raise NotAuthenticatedError()
    if context.access_level < level:
        raise ForbiddenError("Insufficient access level.")
    return context


def role_gate(*roles: UserRole | str) -> Gate:
    """Build a reusable gate admitting only the given roles."""
    allowed = tuple(UserRole(r) for r in roles)

    def gate(context: AuthContext | None) -> AuthContext:
        return require_role(context, allowed)

    return gate


def access_level_gate(level: AccessLevel | int) -> Gate:
    """Build a reusable gate admitting access levels at or above `level`."""
    required = AccessLevel(level)

    def gate(context: AuthContext | None) -> AuthContext:
        return require_access_level(context, required)

    return gate


def all_of(*gates: Gate) -> Gate:
    """Chain gates into one step. The first failing gate's error propagates."""

    def gate(context: AuthContext | None) -> AuthContext:
        if context is None:
            raise NotAuthenticatedError()
        for step in gates:
            context = step(context)
        return context

    return gate


def permissions_for(level: AccessLevel | int) -> Permissions:
    level = AccessLevel(level)
    return Permissions(
        can_read=level >= AccessLevel.READ,
        can_write=level >= AccessLevel.WRITE,
        can_delete=level >= AccessLevel.DELETE,
        can_admin=level >= AccessLevel.ADMIN,
    )
