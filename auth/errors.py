"""
auth/errors.py -- Typed error signals raised by the auth core.

Every failure the core can report is one of these classes. The core never
decides on transport semantics: api/main.py maps each `code` to an HTTP
status. Messages are safe to show to a client -- they never contain secret
material, hashes, or tokens.

InvalidCredentialsError is deliberately generic. The same message is used for
"unknown email" and "wrong password" so responses cannot be used to enumerate
registered identities.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all auth-core errors."""

    code: str = "auth_error"
    default_message: str = "Authentication error."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """A required field is missing or malformed. The caller can fix the input."""

    code = "validation_error"
    default_message = "Invalid input."


class WeakPasswordError(ValidationError):
    """Password fails the strength policy. `errors` lists every violated rule."""

    code = "weak_password"
    default_message = "Password does not meet the strength requirements."

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"{self.default_message} {'; '.join(self.errors)}")


class AlreadyExistsError(AuthError):
    code = "already_exists"
    default_message = "A user with that email already exists."


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class LockedOutError(AuthError):
    """Too many failed logins for this identity within the lockout window."""

    code = "locked_out"
    default_message = "Account locked due to too many failed login attempts."

    def __init__(self, retry_after: int = 0) -> None:
        self.retry_after = retry_after
        super().__init__()


class InvalidTokenError(AuthError):
    """Signature, structure, type or expiry failure. Never subdivided further."""

    code = "invalid_token"
    default_message = "Invalid or expired token."


class NotFoundError(AuthError):
    code = "not_found"
    default_message = "User not found."


class HashingError(AuthError):
    """The underlying bcrypt primitive failed. Operational, not user-correctable."""

    code = "hashing_error"
    default_message = "Password hashing failed."


class NotAuthenticatedError(AuthError):
    """No verified identity is attached to the request."""

    code = "unauthorized"
    default_message = "Authentication required."


class ForbiddenError(AuthError):
    """Identity is known but lacks the required role or access level."""

    code = "forbidden"
    default_message = "Insufficient permissions."
