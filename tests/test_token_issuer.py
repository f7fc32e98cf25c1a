from __future__ import annotations

import pytest

from crm_backend.auth.errors import InvalidToken, TokenExpired
from crm_backend.auth.models import TokenState
from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.tokens import TokenIssuer, TokenSigner
from crm_backend.core.security import decode_signed_token
from tests.fakes import TEST_SECRET, FakeClock


def test_issue_token_pair_verifies_to_same_user(issuer: TokenIssuer) -> None:
    pair = issuer.issue_token_pair("1234567890", "alice@example.com")

    claims = issuer.verify_access_token(pair.access_token)

    assert claims.user_id == "1234567890"
    assert claims.email == "alice@example.com"
    assert pair.token_type == "bearer"
    assert pair.access_token_expiry == claims.expires_at


def test_access_token_fails_after_ttl(issuer: TokenIssuer, clock: FakeClock) -> None:
    pair = issuer.issue_token_pair("1234567890", "alice@example.com")

    clock.advance(299)
    issuer.verify_access_token(pair.access_token)
    clock.advance(1)

    with pytest.raises(TokenExpired):
        issuer.verify_access_token(pair.access_token)


def test_access_token_claims_layout(issuer: TokenIssuer, clock: FakeClock) -> None:
    pair = issuer.issue_token_pair("1234567890", "alice@example.com")

    payload = decode_signed_token(pair.access_token, TEST_SECRET, now=clock())

    assert payload["type"] == "access"
    assert payload["iss"] == "crm-test"
    assert payload["iat"] == int(clock())
    assert payload["exp"] == int(clock()) + 300
    assert payload["jti"]


def test_refresh_token_is_not_accepted_as_access_token(issuer: TokenIssuer) -> None:
    pair = issuer.issue_token_pair("1234567890", "alice@example.com")

    with pytest.raises(InvalidToken):
        issuer.verify_access_token(pair.refresh_token)


def test_access_token_from_other_issuer_is_rejected(
    issuer: TokenIssuer, clock: FakeClock
) -> None:
    foreign = TokenSigner(TEST_SECRET, "someone-else").sign(
        {"sub": "1", "type": "access", "exp": int(clock()) + 60}
    )

    with pytest.raises(InvalidToken):
        issuer.verify_access_token(foreign)


def test_access_token_signed_with_other_secret_is_rejected(
    issuer: TokenIssuer, clock: FakeClock
) -> None:
    forged = TokenSigner("another-secret", "crm-test").sign(
        {"sub": "1", "type": "access", "exp": int(clock()) + 60}
    )

    with pytest.raises(InvalidToken):
        issuer.verify_access_token(forged)


def test_issue_token_pair_registers_refresh_token(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    pair = issuer.issue_token_pair("1234567890", "alice@example.com")

    claims = registry.verify(pair.refresh_token)
    record = registry.get(claims.token_id)

    assert claims.user_id == "1234567890"
    assert record is not None
    assert record.expires_at - record.issued_at == 1200
    assert registry.lifecycle_state(claims.token_id) is TokenState.ACTIVE


def test_each_pair_gets_a_fresh_refresh_token_id(issuer: TokenIssuer) -> None:
    first = issuer.issue_token_pair("1", "a@example.com")
    second = issuer.issue_token_pair("1", "a@example.com")

    assert first.refresh_token != second.refresh_token
