"""Access and refresh token minting and verification."""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING, Any, Callable

from crm_backend.auth.errors import InvalidToken, TokenExpired
from crm_backend.auth.models import AccessClaims, RefreshTokenRecord, TokenPair
from crm_backend.core.config import AuthConfig
from crm_backend.core.security import (
    TokenDecodeError,
    TokenExpiredError,
    build_signed_token,
    decode_signed_token,
)

if TYPE_CHECKING:
    from crm_backend.auth.registry import RefreshTokenRegistry

LOGGER = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenSigner:
    """Sign and decode compact tokens bound to one secret and issuer."""

    def __init__(self, secret_key: str, issuer: str) -> None:
        self._secret_key = secret_key
        self._issuer = issuer

    @property
    def issuer(self) -> str:
        return self._issuer

    def sign(self, claims: dict[str, Any]) -> str:
        """Return a signed token carrying ``claims`` plus the issuer."""
        return build_signed_token({"iss": self._issuer, **claims}, self._secret_key)

    def decode(
        self, token: str, *, expected_type: str, now: float | None = None
    ) -> dict[str, Any]:
        """Verify signature, expiry, issuer and type; return the claims."""
        try:
            payload = decode_signed_token(token, self._secret_key, now=now)
        except TokenExpiredError as exc:
            raise TokenExpired() from exc
        except TokenDecodeError as exc:
            raise InvalidToken(str(exc)) from exc

        if str(payload.get("iss") or "") != self._issuer:
            raise InvalidToken("Invalid token issuer")
        if str(payload.get("type") or "") != expected_type:
            raise InvalidToken("Invalid token type")
        if not str(payload.get("sub") or ""):
            raise InvalidToken("Token has no subject")
        return payload


class TokenIssuer:
    """Mint access/refresh token pairs and register refresh tokens."""

    def __init__(
        self,
        signer: TokenSigner,
        registry: "RefreshTokenRegistry",
        config: AuthConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signer = signer
        self._registry = registry
        self._config = config
        self._clock = clock

    def issue_access_token(self, user_id: str, email: str) -> tuple[str, int]:
        """Return a signed access token and its expiry timestamp."""
        now_ts = int(self._clock())
        expires_at = now_ts + self._config.access_token_ttl_seconds
        token = self._signer.sign(
            {
                "sub": user_id,
                "email": email,
                "type": ACCESS_TOKEN_TYPE,
                "iat": now_ts,
                "exp": expires_at,
                "jti": uuid.uuid4().hex,
            }
        )
        return token, expires_at

    def issue_refresh_token(self, user_id: str) -> str:
        """Return a signed refresh token whose record is now in the registry."""
        now_ts = int(self._clock())
        record = RefreshTokenRecord(
            token_id=uuid.uuid4().hex,
            user_id=user_id,
            issued_at=now_ts,
            expires_at=now_ts + self._config.refresh_token_ttl_seconds,
        )
        token = self._signer.sign(
            {
                "sub": user_id,
                "type": REFRESH_TOKEN_TYPE,
                "iat": record.issued_at,
                "exp": record.expires_at,
                "jti": record.token_id,
            }
        )
        self._registry.register(record)
        return token

    def issue_token_pair(self, user_id: str, email: str) -> TokenPair:
        """Mint a fresh access token and a registered refresh token."""
        access_token, access_expiry = self.issue_access_token(user_id, email)
        refresh_token = self.issue_refresh_token(user_id)
        LOGGER.info("Issued token pair", extra={"user_id": user_id})
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expiry=access_expiry,
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        """Validate an access token and return its claims."""
        payload = self._signer.decode(
            token, expected_type=ACCESS_TOKEN_TYPE, now=self._clock()
        )
        return AccessClaims(
            user_id=str(payload["sub"]),
            email=str(payload.get("email") or ""),
            expires_at=int(payload["exp"]),
        )
