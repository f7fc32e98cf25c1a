"""Server-side refresh token registry with one-time-use rotation."""

from __future__ import annotations

import logging
import time
from typing import Callable

from crm_backend.auth.errors import InvalidToken, TokenExpired, TokenRevoked
from crm_backend.auth.models import RefreshClaims, RefreshTokenRecord, TokenState
from crm_backend.auth.tokens import REFRESH_TOKEN_TYPE, TokenSigner
from crm_backend.core.store import Collection

LOGGER = logging.getLogger(__name__)

ROTATED_REASON = "rotated"


class RefreshTokenRegistry:
    """Track issued refresh tokens by token id.

    Revocation goes through ``find_one_and_update`` filtered on
    ``revoked == False`` so two concurrent rotations of one token cannot both
    succeed.
    """

    def __init__(
        self,
        collection: Collection,
        signer: TokenSigner,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._collection = collection
        self._signer = signer
        self._clock = clock

    def register(self, record: RefreshTokenRecord) -> None:
        """Persist a freshly issued refresh token record."""
        self._collection.insert_one(record.model_dump())

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        doc = self._collection.find_one({"token_id": token_id})
        return RefreshTokenRecord.model_validate(doc) if doc else None

    def verify(self, token: str) -> RefreshClaims:
        """Return claims of a refresh token that may still be used.

        Raises ``InvalidToken`` for signature, type, issuer or subject
        problems, ``TokenExpired`` once ``exp`` has passed and
        ``TokenRevoked`` when the record was revoked, rotated or purged.
        """
        now_ts = int(self._clock())
        payload = self._signer.decode(
            token, expected_type=REFRESH_TOKEN_TYPE, now=now_ts
        )
        token_id = str(payload.get("jti") or "")
        user_id = str(payload.get("sub") or "")
        if not token_id:
            raise InvalidToken("Refresh token has no id")

        record = self.get(token_id)
        if record is None:
            raise TokenRevoked("Refresh token is not registered")
        if record.user_id != user_id:
            raise InvalidToken("Refresh token subject mismatch")
        if record.revoked:
            LOGGER.warning(
                "Revoked refresh token presented",
                extra={"user_id": user_id, "token_id": token_id},
            )
            raise TokenRevoked()
        if record.expires_at <= now_ts:
            raise TokenExpired()
        return RefreshClaims(user_id=user_id, token_id=token_id)

    def consume(self, token: str) -> RefreshClaims:
        """Verify a refresh token and mark it rotated in one atomic step."""
        claims = self.verify(token)
        previous = self._collection.find_one_and_update(
            {"token_id": claims.token_id, "revoked": False},
            self._revocation(ROTATED_REASON),
        )
        if previous is None:
            LOGGER.warning(
                "Refresh token rotation lost a race",
                extra={"user_id": claims.user_id, "token_id": claims.token_id},
            )
            raise TokenRevoked()
        LOGGER.info(
            "Refresh token rotated",
            extra={"user_id": claims.user_id, "token_id": claims.token_id},
        )
        return claims

    def revoke(self, token_id: str, *, reason: str = "logout") -> bool:
        """Revoke one token; returns ``False`` if it was not active."""
        previous = self._collection.find_one_and_update(
            {"token_id": token_id, "revoked": False},
            self._revocation(reason),
        )
        if previous is not None:
            LOGGER.info(
                "Refresh token revoked",
                extra={"user_id": previous.get("user_id"), "token_id": token_id},
            )
        return previous is not None

    def revoke_all(self, user_id: str, *, reason: str = "revoke_all") -> int:
        """Revoke every active token of ``user_id`` and return how many."""
        revoked = self._collection.update_many(
            {"user_id": user_id, "revoked": False},
            self._revocation(reason),
        )
        LOGGER.info(
            "Revoked all refresh tokens",
            extra={"user_id": user_id, "removed": revoked},
        )
        return revoked

    def sweep(self, now: float | None = None) -> int:
        """Delete records whose expiry has passed and return the count."""
        now_ts = int(self._clock() if now is None else now)
        removed = self._collection.delete_many({"expires_at": {"$lte": now_ts}})
        if removed:
            LOGGER.info("Swept expired refresh tokens", extra={"removed": removed})
        return removed

    def lifecycle_state(self, token_id: str, now: float | None = None) -> TokenState:
        record = self.get(token_id)
        if record is None:
            return TokenState.PURGED
        if record.revoked:
            if record.revoked_reason == ROTATED_REASON:
                return TokenState.ROTATED
            return TokenState.REVOKED
        now_ts = int(self._clock() if now is None else now)
        if record.expires_at <= now_ts:
            return TokenState.EXPIRED
        return TokenState.ACTIVE

    def _revocation(self, reason: str) -> dict[str, object]:
        return {
            "revoked": True,
            "revoked_at": int(self._clock()),
            "revoked_reason": reason,
        }
