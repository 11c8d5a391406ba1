"""
auth/passwords.py -- Password strength policy and bcrypt hashing.

Security design decisions:
  Hashing: bcrypt used directly (no passlib wrapper). The cost factor is fixed
       when the PasswordHasher is built (BCRYPT_ROUNDS, default 10) and cannot
       be tuned per call.

  72-byte limit: bcrypt only looks at the first 72 bytes of input. Recent
       bcrypt releases refuse longer input instead of truncating it, so hash()
       rejects it up front with ValidationError, and verify() reports a
       mismatch -- no stored hash can have been produced from such a password.

  Timing equalization: a dummy hash is computed once per hasher. Login runs
       verify_dummy() for unknown identities so "no such email" costs the same
       bcrypt work as "wrong password".

  Strength rules are evaluated independently so the caller gets every
       violation at once instead of fixing them one round-trip at a time.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field

import bcrypt

from auth.errors import HashingError, ValidationError, WeakPasswordError

MIN_PASSWORD_LENGTH = 12
BCRYPT_MAX_BYTES = 72
SPECIAL_CHARACTERS = "@$!%*?&"

_LOWERCASE = string.ascii_lowercase
_UPPERCASE = string.ascii_uppercase
_DIGITS = string.digits
_ALPHABET = _LOWERCASE + _UPPERCASE + _DIGITS + SPECIAL_CHARACTERS

_RULE_LENGTH = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
_RULE_LOWER = "Password must contain at least one lowercase letter"
_RULE_UPPER = "Password must contain at least one uppercase letter"
_RULE_DIGIT = "Password must contain at least one number"
_RULE_SPECIAL = f"Password must contain at least one special character ({SPECIAL_CHARACTERS})"

_sysrandom = secrets.SystemRandom()


@dataclass(frozen=True)
class StrengthReport:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_strength(password: str) -> StrengthReport:
    """Check a password against every strength rule and report all violations."""
    errors: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(_RULE_LENGTH)
    if not any(c in _LOWERCASE for c in password):
        errors.append(_RULE_LOWER)
    if not any(c in _UPPERCASE for c in password):
        errors.append(_RULE_UPPER)
    if not any(c in _DIGITS for c in password):
        errors.append(_RULE_DIGIT)
    if not any(c in SPECIAL_CHARACTERS for c in password):
        errors.append(_RULE_SPECIAL)
    return StrengthReport(valid=not errors, errors=errors)


def generate_compliant_secret(length: int = 16) -> str:
    """Return a random password that satisfies every strength rule.

    One character is drawn from each required class, the rest from the full
    alphabet, then the whole thing is shuffled so the required characters do
    not sit at predictable positions. Lengths below the policy minimum are
    raised to it.
    """
    length = max(length, MIN_PASSWORD_LENGTH)
    chars = [
        secrets.choice(_UPPERCASE),
        secrets.choice(_LOWERCASE),
        secrets.choice(_DIGITS),
        secrets.choice(SPECIAL_CHARACTERS),
    ]
    chars.extend(secrets.choice(_ALPHABET) for _ in range(length - len(chars)))
    _sysrandom.shuffle(chars)
    return "".join(chars)


class PasswordHasher:
    """bcrypt hashing with a cost factor fixed at construction.

    Usage:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
        hashed = hasher.hash("Str0ng!Pass123")
        hasher.verify("Str0ng!Pass123", hashed)   # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self._rounds = rounds
        self._dummy_hash = bcrypt.hashpw(b"rxauth_timing_dummy", bcrypt.gensalt(rounds=rounds))

    @property
    def rounds(self) -> int:
        return self._rounds

    validate_strength = staticmethod(validate_strength)
    generate_compliant_secret = staticmethod(generate_compliant_secret)

    def hash(self, password: str) -> str:
        """Return a salted bcrypt hash, enforcing the strength policy first.

        Raises WeakPasswordError with the full violation list, ValidationError
        for input beyond bcrypt's 72-byte limit, HashingError if bcrypt fails.
        """
        report = validate_strength(password)
        if not report.valid:
            raise WeakPasswordError(report.errors)
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            raise ValidationError(f"Password must not exceed {BCRYPT_MAX_BYTES} bytes.")
        try:
            return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            raise HashingError() from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed.

        A mismatch is a normal False. Only a malformed stored hash raises
        HashingError.
        """
        if not hashed:
            raise HashingError("Stored password hash is empty.")
        encoded = plain.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            # Never a match, but still pay for one comparison so a known
            # email answers as slowly as an unknown one.
            self.verify_dummy(plain)
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError as exc:
            raise HashingError("Stored password hash is malformed.") from exc

    def verify_dummy(self, plain: str) -> None:
        """Spend one bcrypt comparison's worth of time without a real target."""
        bcrypt.checkpw(plain.encode("utf-8")[:BCRYPT_MAX_BYTES], self._dummy_hash)
