"""Shared pytest fixtures for bedbook tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import (  # noqa: E402
    TEST_AUDIENCE,
    TEST_CLIENT_ID,
    TEST_ISSUER,
    TEST_JWKS_URL,
    create_jwks,
    generate_rsa_keypair,
)


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset the module-level JWKS cache so keys never leak between tests."""
    import bedbook.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture
def rsa_keypair():
    return generate_rsa_keypair()


@pytest.fixture
def jwks(rsa_keypair):
    _, public_key = rsa_keypair
    return create_jwks(public_key)


@pytest.fixture
def oidc_env(monkeypatch):
    """OIDC environment for a Keycloak realm."""
    monkeypatch.setenv("OIDC_ISSUER", TEST_ISSUER)
    monkeypatch.setenv("OIDC_AUDIENCE", TEST_AUDIENCE)
    monkeypatch.setenv("OIDC_JWKS_URL", TEST_JWKS_URL)
    monkeypatch.setenv("OIDC_CLIENT_ID", TEST_CLIENT_ID)
    monkeypatch.delenv("OIDC_AUTHORIZED_PARTIES", raising=False)


@pytest.fixture
def mock_jwks_fetch(jwks, monkeypatch):
    """Serve the test JWKS instead of fetching it over HTTP."""
    import bedbook.api.auth as auth_module

    monkeypatch.setattr(auth_module, "_fetch_jwks", lambda url: jwks)
