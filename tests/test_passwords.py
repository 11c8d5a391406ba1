"""Unit tests for auth/passwords.py -- strength policy and bcrypt hashing.

Covers:
- validate_strength reports every violated rule, not only the first
- generate_compliant_secret always passes validate_strength
- hash/verify agree for the same password and disagree for a different one
- weak passwords, over-long passwords and malformed hashes raise the right errors
"""

from __future__ import annotations

import bcrypt
import pytest

from auth.errors import HashingError, ValidationError, WeakPasswordError
from auth.passwords import (
    MIN_PASSWORD_LENGTH,
    SPECIAL_CHARACTERS,
    PasswordHasher,
    generate_compliant_secret,
    validate_strength,
)

STRONG = "Str0ng!Pass123"


class TestValidateStrength:
    def test_strong_password_is_valid(self) -> None:
        report = validate_strength(STRONG)
        assert report.valid
        assert report.errors == []

    def test_all_rules_reported_together(self) -> None:
        """An empty-ish password breaks every rule at once; all five must be listed."""
        report = validate_strength("")
        assert not report.valid
        assert len(report.errors) == 5

    @pytest.mark.parametrize(
        ("password", "expected_fragments"),
        [
            ("Sh0rt!a", ["12 characters"]),
            ("ALLUPPER123!!", ["lowercase"]),
            ("alllower123!!", ["uppercase"]),
            ("NoDigitsHere!!", ["number"]),
            ("NoSpecial12345", ["special character"]),
            ("short", ["12 characters", "uppercase", "number", "special character"]),
            ("abcdefghijklm", ["uppercase", "number", "special character"]),
        ],
    )
    def test_exact_violation_set(self, password: str, expected_fragments: list[str]) -> None:
        report = validate_strength(password)
        assert not report.valid
        assert len(report.errors) == len(expected_fragments)
        for fragment, error in zip(expected_fragments, report.errors):
            assert fragment in error

    def test_special_characters_outside_set_do_not_count(self) -> None:
        report = validate_strength("Abcdefgh1234#^")
        assert not report.valid
        assert any("special character" in e for e in report.errors)


class TestGenerateCompliantSecret:
    def test_always_passes_policy(self) -> None:
        for _ in range(200):
            assert validate_strength(generate_compliant_secret()).valid

    def test_respects_length(self) -> None:
        assert len(generate_compliant_secret(24)) == 24

    def test_short_length_raised_to_minimum(self) -> None:
        secret = generate_compliant_secret(4)
        assert len(secret) == MIN_PASSWORD_LENGTH
        assert validate_strength(secret).valid

    def test_required_classes_not_pinned_to_front(self) -> None:
        """The first character must not always be uppercase, i.e. output is shuffled."""
        firsts = {generate_compliant_secret()[0].isupper() for _ in range(100)}
        assert firsts == {True, False}

    def test_only_allowed_alphabet(self) -> None:
        secret = generate_compliant_secret(64)
        assert all(c.isascii() and (c.isalnum() or c in SPECIAL_CHARACTERS) for c in secret)


class TestPasswordHasher:
    def test_round_trip(self, hasher: PasswordHasher) -> None:
        hashed = hasher.hash(STRONG)
        assert hashed != STRONG
        assert hasher.verify(STRONG, hashed)

    def test_other_password_does_not_match(self, hasher: PasswordHasher) -> None:
        hashed = hasher.hash("Other!Passw0rd99")
        assert not hasher.verify(STRONG, hashed)

    def test_hashes_are_salted(self, hasher: PasswordHasher) -> None:
        assert hasher.hash(STRONG) != hasher.hash(STRONG)

    def test_cost_factor_fixed_at_construction(self, hasher: PasswordHasher) -> None:
        hashed = hasher.hash(STRONG)
        assert hashed.startswith("$2b$04$")
        assert hasher.rounds == 4

    def test_weak_password_rejected_with_rules(self, hasher: PasswordHasher) -> None:
        with pytest.raises(WeakPasswordError) as exc_info:
            hasher.hash("weak")
        assert len(exc_info.value.errors) == 4

    def test_password_over_72_bytes_rejected(self, hasher: PasswordHasher) -> None:
        with pytest.raises(ValidationError):
            hasher.hash("Aa1!" + "x" * 80)

    def test_verify_over_72_bytes_is_mismatch(self, hasher: PasswordHasher) -> None:
        hashed = hasher.hash(STRONG)
        assert hasher.verify(STRONG + "x" * 80, hashed) is False

    def test_malformed_hash_raises_hashing_error(self, hasher: PasswordHasher) -> None:
        with pytest.raises(HashingError):
            hasher.verify(STRONG, "not-a-bcrypt-hash")

    def test_empty_hash_raises_hashing_error(self, hasher: PasswordHasher) -> None:
        with pytest.raises(HashingError):
            hasher.verify(STRONG, "")

    def test_primitive_failure_becomes_hashing_error(
        self, hasher: PasswordHasher, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(*_args, **_kwargs):
            raise ValueError("boom")

        monkeypatch.setattr(bcrypt, "hashpw", broken)
        with pytest.raises(HashingError):
            hasher.hash(STRONG)

    def test_verify_dummy_returns_nothing(self, hasher: PasswordHasher) -> None:
        assert hasher.verify_dummy("anything at all") is None
