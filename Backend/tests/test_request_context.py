"""
Tests for principal resolution.

Covers bearer token parsing, JWT verification failures and the user and
outfitter lookups that turn a token subject into a tenant.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from guidebook.core.config import get_settings
from guidebook.core.request_context import create_access_token, decode_access_token
from guidebook.core.errors import AuthenticationError


def _token(claims: dict, secret: str = None) -> str:
    settings = get_settings()
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


class TestTokens:
    def test_access_token_carries_identity_only(self):
        claims = decode_access_token(create_access_token("admin_a"))

        assert claims["sub"] == "admin_a"
        assert "exp" in claims
        assert "outfitter_id" not in claims
        assert "role" not in claims

    def test_expired_token_is_rejected(self):
        token = create_access_token("admin_a", expires_in=timedelta(seconds=-30))

        with pytest.raises(AuthenticationError, match="Session expired"):
            decode_access_token(token)

    def test_wrong_signature_is_rejected(self):
        token = _token(
            {"sub": "admin_a", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            secret="some-other-secret-that-is-long-enough",
        )

        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_token_without_expiry_is_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_access_token(_token({"sub": "admin_a"}))

    def test_garbage_is_rejected(self):
        with pytest.raises(AuthenticationError):
            decode_access_token("not-a-jwt")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "authorization",
    [
        None,
        "",
        "Bearer",
        "Bearer ",
        "Basic YWRtaW46cGFzcw==",
        "Token abc",
        "Bearer not-a-jwt",
    ],
)
async def test_bad_credentials_get_401(client, tenants, authorization):
    request_headers = {} if authorization is None else {"Authorization": authorization}

    response = await client.get("/api/customers", headers=request_headers)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["success"] is False
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_expired_token_gets_401(client, tenants):
    token = create_access_token("admin_a", expires_in=timedelta(seconds=-30))

    response = await client.get("/api/customers", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert "expired" in response.json()["message"].lower()


@pytest.mark.asyncio
async def test_unknown_subject_gets_401(client, tenants):
    token = create_access_token("usr_does_not_exist")

    response = await client.get("/api/customers", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_lowercase_bearer_scheme_is_accepted(client, tenants):
    token = tenants["tokens"]["admin_a"]

    response = await client.get("/api/customers", headers={"Authorization": f"bearer {token}"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_me_reports_the_resolved_tenant(client, headers, tenants):
    response = await client.get("/api/auth/me", headers=headers["guide_a"])

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["id"] == "guide_a"
    assert body["user"]["role"] == "guide"
    assert body["user"]["outfitter_id"] == tenants["a"].id
    assert body["outfitter"]["id"] == tenants["a"].id
    assert body["outfitter"]["name"] == "Ridge Line Outfitters"


@pytest.mark.asyncio
async def test_role_comes_from_user_record(client, tenants):
    """A guide cannot promote itself by putting role=admin in its token."""
    token = _token(
        {
            "sub": "guide_a",
            "role": "admin",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        }
    )

    response = await client.get("/api/users", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
