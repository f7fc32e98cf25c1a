from __future__ import annotations

import threading

import pytest

from crm_backend.auth.errors import InvalidToken, TokenExpired, TokenRevoked
from crm_backend.auth.models import RefreshTokenRecord, TokenState
from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.tokens import TokenIssuer, TokenSigner
from tests.fakes import FakeClock


def test_consume_makes_token_single_use(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    token = issuer.issue_refresh_token("u1")

    claims = registry.consume(token)

    assert claims.user_id == "u1"
    assert registry.lifecycle_state(claims.token_id) is TokenState.ROTATED
    with pytest.raises(TokenRevoked):
        registry.verify(token)
    with pytest.raises(TokenRevoked):
        registry.consume(token)


def test_concurrent_consume_succeeds_once(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    token = issuer.issue_refresh_token("u1")
    results: list[str] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        try:
            registry.consume(token)
            results.append("ok")
        except TokenRevoked:
            results.append("revoked")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count("ok") == 1
    assert results.count("revoked") == 7


def test_verify_reports_expired_token(
    issuer: TokenIssuer, registry: RefreshTokenRegistry, clock: FakeClock
) -> None:
    token = issuer.issue_refresh_token("u1")

    clock.advance(1200)

    with pytest.raises(TokenExpired):
        registry.verify(token)


def test_verify_rejects_access_token_and_garbage(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    pair = issuer.issue_token_pair("u1", "u1@example.com")

    with pytest.raises(InvalidToken):
        registry.verify(pair.access_token)
    with pytest.raises(InvalidToken):
        registry.verify("not-a-token")


def test_verify_rejects_unregistered_token(
    signer: TokenSigner, registry: RefreshTokenRegistry, clock: FakeClock
) -> None:
    token = signer.sign(
        {"sub": "u1", "type": "refresh", "exp": int(clock()) + 60, "jti": "ghost"}
    )

    with pytest.raises(TokenRevoked):
        registry.verify(token)


def test_verify_rejects_subject_mismatch(
    issuer: TokenIssuer,
    signer: TokenSigner,
    registry: RefreshTokenRegistry,
    clock: FakeClock,
) -> None:
    claims = registry.verify(issuer.issue_refresh_token("u1"))
    forged = signer.sign(
        {
            "sub": "u2",
            "type": "refresh",
            "exp": int(clock()) + 60,
            "jti": claims.token_id,
        }
    )

    with pytest.raises(InvalidToken):
        registry.verify(forged)


def test_revoke_is_idempotent(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    token = issuer.issue_refresh_token("u1")
    token_id = registry.verify(token).token_id

    assert registry.revoke(token_id) is True
    assert registry.revoke(token_id) is False
    assert registry.revoke("missing") is False
    assert registry.lifecycle_state(token_id) is TokenState.REVOKED
    with pytest.raises(TokenRevoked):
        registry.verify(token)


def test_revoke_all_only_touches_one_user(
    issuer: TokenIssuer, registry: RefreshTokenRegistry
) -> None:
    alice_tokens = [issuer.issue_refresh_token("alice") for _ in range(3)]
    bob_token = issuer.issue_refresh_token("bob")

    assert registry.revoke_all("alice") == 3

    for token in alice_tokens:
        with pytest.raises(TokenRevoked):
            registry.verify(token)
    assert registry.verify(bob_token).user_id == "bob"
    assert registry.revoke_all("alice") == 0


def test_sweep_removes_only_expired_records(
    registry: RefreshTokenRegistry, clock: FakeClock
) -> None:
    now = int(clock())
    registry.register(
        RefreshTokenRecord(
            token_id="old", user_id="u1", issued_at=now - 100, expires_at=now - 1
        )
    )
    registry.register(
        RefreshTokenRecord(
            token_id="live", user_id="u1", issued_at=now, expires_at=now + 100
        )
    )

    assert registry.sweep() == 1
    assert registry.lifecycle_state("old") is TokenState.PURGED
    assert registry.lifecycle_state("live") is TokenState.ACTIVE
    assert registry.sweep() == 0


def test_lifecycle_reports_expired_before_sweep(
    issuer: TokenIssuer, registry: RefreshTokenRegistry, clock: FakeClock
) -> None:
    token_id = registry.verify(issuer.issue_refresh_token("u1")).token_id

    clock.advance(5000)

    assert registry.lifecycle_state(token_id) is TokenState.EXPIRED
    assert registry.sweep() == 1
    assert registry.lifecycle_state(token_id) is TokenState.PURGED
