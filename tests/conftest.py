from __future__ import annotations

from pathlib import Path

import pytest

from crm_backend.auth.registry import RefreshTokenRegistry
from crm_backend.auth.tokens import TokenIssuer, TokenSigner
from crm_backend.core.config import AppConfig, AuthConfig
from crm_backend.core.store import LocalCollection
from tests.fakes import FakeClock, build_app_config, build_auth_config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def auth_config() -> AuthConfig:
    return build_auth_config()


@pytest.fixture
def signer(auth_config: AuthConfig) -> TokenSigner:
    return TokenSigner(auth_config.secret_key, auth_config.issuer)


@pytest.fixture
def registry(signer: TokenSigner, clock: FakeClock) -> RefreshTokenRegistry:
    return RefreshTokenRegistry(
        LocalCollection("refresh_tokens", unique_fields=("token_id",)),
        signer,
        clock=clock,
    )


@pytest.fixture
def issuer(
    signer: TokenSigner,
    registry: RefreshTokenRegistry,
    auth_config: AuthConfig,
    clock: FakeClock,
) -> TokenIssuer:
    return TokenIssuer(signer, registry, auth_config, clock=clock)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return build_app_config(tmp_path)
