"""Tests for OIDC authentication against a Keycloak realm."""

from __future__ import annotations

import time
from unittest.mock import patch

import requests
from fastapi.testclient import TestClient

from bedbook.api.auth import extract_roles, user_from_claims
from bedbook.api.factory import create_app
from helpers import TEST_CLIENT_ID, create_jwks, create_token, generate_rsa_keypair


def _get_me(token: str | None = None, header: str | None = None):
    client = TestClient(create_app())
    headers = {}
    if header is not None:
        headers["Authorization"] = header
    elif token is not None:
        headers["Authorization"] = f"Bearer {token}"
    return client.get("/me", headers=headers)


class TestAuthNoToken:
    """Test 401 when no Authorization header."""

    def test_missing_auth_header(self, oidc_env):
        response = _get_me()
        assert response.status_code == 401
        assert "Missing authorization header" in response.json()["detail"]

    def test_invalid_bearer_format(self, oidc_env):
        response = _get_me(header="Basic abc")
        assert response.status_code == 401
        assert "Invalid authorization header" in response.json()["detail"]


class TestAuthInvalidToken:
    """Test 401 for invalid tokens."""

    def test_malformed_token(self, oidc_env, mock_jwks_fetch):
        response = _get_me("abc")
        assert response.status_code == 401
        assert "Invalid token" in response.json()["detail"]

    def test_expired_token(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, exp=int(time.time()) - 3600)
        response = _get_me(token)
        assert response.status_code == 401
        assert "Token expired" in response.json()["detail"]

    def test_wrong_issuer(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, iss="https://wrong-issuer.example.com")
        assert _get_me(token).status_code == 401

    def test_wrong_audience(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, aud="wrong-audience")
        assert _get_me(token).status_code == 401

    def test_unknown_kid(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(private_key, kid="unknown-key")
        assert _get_me(token).status_code == 401

    def test_signed_by_other_key(self, oidc_env, mock_jwks_fetch):
        other_private, _ = generate_rsa_keypair()
        token = create_token(other_private)
        assert _get_me(token).status_code == 401

    def test_oidc_not_configured(self, monkeypatch, rsa_keypair):
        monkeypatch.delenv("OIDC_ISSUER", raising=False)
        private_key, _ = rsa_keypair
        response = _get_me(create_token(private_key))
        assert response.status_code == 401
        assert "OIDC not configured" in response.json()["detail"]

    def test_unauthorized_party(self, oidc_env, monkeypatch, rsa_keypair, mock_jwks_fetch):
        monkeypatch.setenv("OIDC_AUTHORIZED_PARTIES", "bedbook-portal")
        private_key, _ = rsa_keypair
        token = create_token(private_key, azp="some-other-client")
        assert _get_me(token).status_code == 401


class TestJwksFetch:
    def test_jwks_unreachable_returns_503(self, oidc_env, rsa_keypair):
        private_key, _ = rsa_keypair
        token = create_token(private_key)
        with patch(
            "bedbook.api.auth._fetch_jwks",
            side_effect=requests.ConnectionError("down"),
        ):
            response = _get_me(token)
        assert response.status_code == 503

    def test_rotated_key_triggers_refresh(self, oidc_env, rsa_keypair, jwks):
        private_key, _ = rsa_keypair
        token = create_token(private_key)
        _, stale_public = generate_rsa_keypair()
        stale = create_jwks(stale_public)

        with patch("bedbook.api.auth._fetch_jwks", side_effect=[stale, jwks]) as fetch:
            response = _get_me(token)

        assert response.status_code == 200
        assert fetch.call_count == 2


class TestAuthSuccess:
    def test_valid_token_returns_user(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        token = create_token(
            private_key,
            sub="kc-user-1",
            preferred_username="10012345",
            name="Siti Rahma",
            email="siti@example.com",
            realm_roles=["offline_access"],
            client_roles=["Requester"],
        )
        response = _get_me(token)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "kc-user-1"
        assert data["nik"] == "10012345"
        assert data["name"] == "Siti Rahma"
        assert data["role"] == "requester"

    def test_valid_token_without_portal_role(self, oidc_env, rsa_keypair, mock_jwks_fetch):
        private_key, _ = rsa_keypair
        response = _get_me(create_token(private_key, realm_roles=["offline_access"]))
        assert response.status_code == 200
        assert response.json()["role"] is None


class TestClaimsMapping:
    def test_realm_and_client_roles_merged(self):
        claims = {
            "sub": "u",
            "realm_access": {"roles": ["Admin"]},
            "resource_access": {
                TEST_CLIENT_ID: {"roles": ["requester"]},
                "other-client": {"roles": ["superadmin"]},
            },
        }
        assert extract_roles(claims, TEST_CLIENT_ID) == frozenset({"admin", "requester"})

    def test_client_roles_ignored_without_client_id(self):
        claims = {"sub": "u", "resource_access": {TEST_CLIENT_ID: {"roles": ["admin"]}}}
        assert extract_roles(claims) == frozenset()

    def test_nik_claim_preferred_over_username(self):
        user = user_from_claims({"sub": "u", "nik": "999", "preferred_username": "jdoe"})
        assert user.nik == "999"

    def test_name_from_given_and_family(self):
        user = user_from_claims({"sub": "u", "given_name": "Budi", "family_name": "Santoso"})
        assert user.name == "Budi Santoso"

    def test_name_falls_back_to_sub(self):
        user = user_from_claims({"sub": "kc-42"})
        assert user.name == "kc-42"
        assert user.actor == "kc-42"
