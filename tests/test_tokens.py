"""Unit tests for auth/tokens.py -- issuing, verifying and parsing.

Covers:
- access token round-trip while now < exp, None once the clock passes exp
- refresh and access tokens are never accepted in each other's place,
  including when verified with the other class's secret
- tampered, malformed and foreign-secret tokens verify to None
- extract_bearer_token accepts only the exact "Bearer <token>" form
- parse_duration units and the 24h fallback policy
"""

from __future__ import annotations

import pytest
from jose import jwt

from auth.models import AccessLevel, User, UserRole
from auth.tokens import DEFAULT_EXPIRY_SECONDS, TokenService, extract_bearer_token, parse_duration

from conftest import ACCESS_SECRET, REFRESH_SECRET, FakeClock


def _user() -> User:
    return User(
        id="u-1",
        email="ana@rx.example",
        name="Ana",
        hashed_password="$2b$04$unused",
        role=UserRole.PHARMACIST,
        access_level=AccessLevel.WRITE,
    )


class TestAccessTokens:
    def test_round_trip(self, tokens: TokenService, clock: FakeClock) -> None:
        claims = tokens.verify_access_token(tokens.issue_access_token(_user()))
        assert claims is not None
        assert claims.sub == "u-1"
        assert claims.email == "ana@rx.example"
        assert claims.role is UserRole.PHARMACIST
        assert claims.access_level is AccessLevel.WRITE
        assert claims.iat == int(clock.now)
        assert claims.exp == int(clock.now) + 24 * 3600

    def test_valid_until_just_before_exp(self, tokens: TokenService, clock: FakeClock) -> None:
        token = tokens.issue_access_token(_user())
        clock.advance(24 * 3600 - 1)
        assert tokens.verify_access_token(token) is not None

    def test_expired_at_exp(self, tokens: TokenService, clock: FakeClock) -> None:
        token = tokens.issue_access_token(_user())
        clock.advance(24 * 3600)
        assert tokens.verify_access_token(token) is None

    def test_configured_lifetime(self, clock: FakeClock) -> None:
        service = TokenService(ACCESS_SECRET, REFRESH_SECRET, "30m", "7d", clock=clock)
        token = service.issue_access_token(_user())
        assert service.access_expires_in == 1800
        clock.advance(1801)
        assert service.verify_access_token(token) is None

    def test_standard_jwt_readable_by_any_verifier(self, tokens: TokenService) -> None:
        token = tokens.issue_access_token(_user())
        payload = jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"], options={"verify_exp": False})
        assert payload["sub"] == "u-1"
        assert payload["role"] == "pharmacist"

    def test_wrong_secret_rejected(self, tokens: TokenService, clock: FakeClock) -> None:
        other = TokenService("x" * 48, "y" * 48, clock=clock)
        assert tokens.verify_access_token(other.issue_access_token(_user())) is None

    def test_tampered_token_rejected(self, tokens: TokenService) -> None:
        token = tokens.issue_access_token(_user())
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        assert tokens.verify_access_token(tampered) is None

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "Bearer x.y.z", None, 42])
    def test_malformed_input_returns_none(self, tokens: TokenService, garbage) -> None:
        assert tokens.verify_access_token(garbage) is None

    def test_missing_claims_rejected(self, tokens: TokenService, clock: FakeClock) -> None:
        token = jwt.encode(
            {"sub": "u-1", "type": "access", "iat": int(clock.now), "exp": int(clock.now) + 60},
            ACCESS_SECRET,
            algorithm="HS256",
        )
        assert tokens.verify_access_token(token) is None

    def test_unknown_role_rejected(self, tokens: TokenService, clock: FakeClock) -> None:
        token = jwt.encode(
            {
                "sub": "u-1",
                "email": "e@x.com",
                "role": "superuser",
                "access_level": 4,
                "type": "access",
                "iat": int(clock.now),
                "exp": int(clock.now) + 60,
            },
            ACCESS_SECRET,
            algorithm="HS256",
        )
        assert tokens.verify_access_token(token) is None


class TestRefreshTokens:
    def test_round_trip(self, tokens: TokenService, clock: FakeClock) -> None:
        claims = tokens.verify_refresh_token(tokens.issue_refresh_token("u-1"))
        assert claims is not None
        assert claims.sub == "u-1"
        assert claims.exp == int(clock.now) + 7 * 86400

    def test_expires(self, tokens: TokenService, clock: FakeClock) -> None:
        token = tokens.issue_refresh_token("u-1")
        clock.advance(7 * 86400)
        assert tokens.verify_refresh_token(token) is None


class TestTokenClassSeparation:
    def test_refresh_token_not_accepted_as_access(self, tokens: TokenService) -> None:
        assert tokens.verify_access_token(tokens.issue_refresh_token("u-1")) is None

    def test_access_token_not_accepted_as_refresh(self, tokens: TokenService) -> None:
        assert tokens.verify_refresh_token(tokens.issue_access_token(_user())) is None

    def test_rejected_even_with_swapped_secrets(self, tokens: TokenService, clock: FakeClock) -> None:
        """A verifier holding each class's secret in the other slot still refuses cross-use."""
        swapped = TokenService(REFRESH_SECRET, ACCESS_SECRET, clock=clock)
        assert swapped.verify_access_token(tokens.issue_refresh_token("u-1")) is None
        assert swapped.verify_refresh_token(tokens.issue_access_token(_user())) is None

    def test_type_claim_enforced_when_secrets_collide(self, clock: FakeClock) -> None:
        same = TokenService(ACCESS_SECRET, ACCESS_SECRET, clock=clock)
        assert same.verify_access_token(same.issue_refresh_token("u-1")) is None
        assert same.verify_refresh_token(same.issue_access_token(_user())) is None


class TestExtractBearerToken:
    def test_exact_form(self) -> None:
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize(
        "header",
        [None, "", "Token abc", "bearer abc", "Bearer", "Bearer ", "Bearer a b", "abc.def.ghi", "Bearer  abc"],
    )
    def test_rejects_other_shapes(self, header) -> None:
        assert extract_bearer_token(header) is None


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [("45s", 45), ("30m", 1800), ("24h", 86400), ("7d", 604800), (" 2h ", 7200)],
    )
    def test_units(self, value: str, seconds: int) -> None:
        assert parse_duration(value) == seconds

    @pytest.mark.parametrize("value", ["", "24", "h", "10w", "1.5h", "24hours", "-5m", "0h"])
    def test_malformed_falls_back_to_24h(self, value: str) -> None:
        assert parse_duration(value) == DEFAULT_EXPIRY_SECONDS

    def test_service_uses_fallback(self, clock: FakeClock) -> None:
        service = TokenService(ACCESS_SECRET, REFRESH_SECRET, "soon", "later", clock=clock)
        assert service.access_expires_in == DEFAULT_EXPIRY_SECONDS
        assert service.refresh_expires_in == DEFAULT_EXPIRY_SECONDS
