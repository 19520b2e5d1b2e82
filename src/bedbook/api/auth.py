"""OIDC JWT authentication for Keycloak.

Provides:
- verify_token(): Validates a JWT against the realm JWKS and returns its claims
- user_from_claims(): Builds the user context from token claims
- get_current_user(): FastAPI dependency for authenticated user context

The portal keeps no user table: identity, NIK and roles come from the token.
Realm roles (``realm_access.roles``) and roles of the portal client
(``resource_access[OIDC_CLIENT_ID].roles``) are merged.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import jwt
import requests
from fastapi import Depends, HTTPException, Request

from bedbook.observability.logging import get_logger
from bedbook.observability.redaction import safe_log_context

logger = get_logger(__name__)

_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600  # seconds


@dataclass
class CurrentUser:
    """Authenticated user context."""

    id: str
    name: str
    nik: str | None = None
    email: str | None = None
    company: str | None = None
    department: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def actor(self) -> str:
        """Name recorded as ``performed_by`` in history."""
        return self.name or self.nik or self.id


def _get_settings() -> dict[str, Any]:
    """Load OIDC settings from environment."""
    authorized_parties_raw = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    authorized_parties = [p.strip() for p in authorized_parties_raw.split(",") if p.strip()]

    return {
        "issuer": os.environ.get("OIDC_ISSUER"),
        "audience": os.environ.get("OIDC_AUDIENCE"),
        "jwks_url": os.environ.get("OIDC_JWKS_URL"),
        "authorized_parties": authorized_parties or None,
        "client_id": os.environ.get("OIDC_CLIENT_ID") or None,
    }


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    """Get JWKS, cached for ``_JWKS_CACHE_TTL`` seconds."""
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        fresh = _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL
        if fresh and not force_refresh:
            return _jwks_cache

        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException as exc:
            logger.warning(
                "jwks fetch failed",
                extra={"extra_fields": safe_log_context(error=type(exc).__name__)},
            )
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def _decode(token: str, jwk_data: dict[str, Any], settings: dict[str, Any]) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(jwk_data)
    except (ValueError, TypeError, KeyError):
        raise HTTPException(status_code=401, detail="Invalid token")

    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=settings["issuer"],
        audience=settings["audience"],
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> dict[str, Any]:
    """Verify a JWT and return its claims.

    Unknown key IDs and bad signatures trigger one JWKS refresh, since
    Keycloak rotates realm keys.

    Raises:
        HTTPException: 401 if the token is invalid or OIDC is not configured,
            503 if the JWKS cannot be fetched.
    """
    settings = _get_settings()
    jwks_url = settings["jwks_url"]
    if not settings["issuer"] or not settings["audience"] or not jwks_url:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token")

    key_data = _find_key(_get_jwks(jwks_url), kid)
    if key_data is None:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
    if key_data is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        claims = _decode(token, key_data, settings)
    except jwt.InvalidSignatureError:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
        if key_data is None:
            raise HTTPException(status_code=401, detail="Invalid token")
        try:
            claims = _decode(token, key_data, settings)
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    authorized_parties = settings["authorized_parties"]
    if authorized_parties and "azp" in claims and claims["azp"] not in authorized_parties:
        raise HTTPException(status_code=401, detail="Invalid token")

    if not claims.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return claims


def extract_roles(claims: dict[str, Any], client_id: str | None = None) -> frozenset[str]:
    """Realm roles plus the roles of ``client_id``, lowercased."""
    roles: set[str] = set()
    realm = claims.get("realm_access") or {}
    roles.update(realm.get("roles") or [])
    if client_id:
        client = (claims.get("resource_access") or {}).get(client_id) or {}
        roles.update(client.get("roles") or [])
    return frozenset(role.lower() for role in roles if isinstance(role, str))


def user_from_claims(claims: dict[str, Any], client_id: str | None = None) -> CurrentUser:
    """Map Keycloak claims to the user context.

    ``nik`` comes from a custom ``nik`` claim, falling back to
    ``preferred_username`` (employees log in with their NIK).
    """
    nik = claims.get("nik") or claims.get("preferred_username")
    name = (
        claims.get("name")
        or " ".join(p for p in (claims.get("given_name"), claims.get("family_name")) if p)
        or nik
        or claims["sub"]
    )
    return CurrentUser(
        id=claims["sub"],
        name=name,
        nik=nik,
        email=claims.get("email"),
        company=claims.get("company"),
        department=claims.get("department"),
        roles=extract_roles(claims, client_id),
    )


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    token = _extract_bearer_token(request)
    claims = verify_token(token)
    return user_from_claims(claims, _get_settings()["client_id"])


CurrentUserDep = Depends(get_current_user)
