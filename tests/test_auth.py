import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

import auth
from config import FIREBASE_ISSUER, FIREBASE_PROJECT_ID


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def jwk_for(private_key, kid):
    key = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    key["kid"] = kid
    return key


def make_token(private_key, kid="k1", **overrides):
    now = int(time.time())
    claims = {
        "sub": "user-123",
        "aud": FIREBASE_PROJECT_ID,
        "iss": FIREBASE_ISSUER,
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


@pytest.fixture
def jwks(monkeypatch, private_key):
    monkeypatch.setattr(auth, "_jwks_cache", {"keys": [jwk_for(private_key, "k1")]})


def test_valid_token_is_accepted(jwks, private_key):
    payload = auth.verify_jwt_token(make_token(private_key))
    assert payload["sub"] == "user-123"


def test_wrong_audience_is_rejected(jwks, private_key):
    assert auth.verify_jwt_token(make_token(private_key, aud="another-project")) is None


def test_wrong_issuer_is_rejected(jwks, private_key):
    assert auth.verify_jwt_token(make_token(private_key, iss="https://evil.example")) is None


def test_expired_token_is_rejected(jwks, private_key):
    past = int(time.time()) - 7200
    assert auth.verify_jwt_token(make_token(private_key, iat=past, exp=past + 60)) is None


def test_token_signed_by_other_key_is_rejected(jwks):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    assert auth.verify_jwt_token(make_token(other)) is None


def test_garbage_token_is_rejected(jwks):
    assert auth.verify_jwt_token("not-a-jwt") is None


def test_unknown_kid_refreshes_jwks_once(monkeypatch, private_key):
    monkeypatch.setattr(auth, "_jwks_cache", {"keys": [jwk_for(private_key, "old")]})
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"keys": [jwk_for(private_key, "rotated")]}

    def fake_get(url, timeout=None):
        calls.append(url)
        return FakeResponse()

    monkeypatch.setattr(auth.httpx, "get", fake_get)

    payload = auth.verify_jwt_token(make_token(private_key, kid="rotated"))

    assert payload["sub"] == "user-123"
    assert calls == [auth.FIREBASE_JWKS_URL]


# Middleware

def test_public_paths_need_no_credentials(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/plans").status_code == 200


def test_missing_credentials_get_401(client):
    response = client.get("/api/users")
    assert response.status_code == 401
    assert "Authentication required" in response.json()["detail"]


def test_invalid_token_gets_401(client):
    response = client.get("/api/users", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"


def test_wrong_api_key_gets_403(client, monkeypatch):
    monkeypatch.setattr(auth, "API_KEY", "server-key")
    response = client.get("/api/users", headers={"X-API-Key": "wrong"})
    assert response.status_code == 403


def test_api_key_caller_acts_as_admin(client, monkeypatch, users):
    monkeypatch.setattr(auth, "API_KEY", "server-key")
    response = client.get("/api/users", headers={"X-API-Key": "server-key"})
    assert response.status_code == 200
    assert len(response.json()) == 2


def test_non_admin_gets_403(client, user_headers):
    response = client.get("/api/users", headers=user_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied. Admin privileges required."


def test_token_without_profile_gets_403(client):
    response = client.get("/api/users", headers={"Authorization": "Bearer uid:ghost"})
    assert response.status_code == 403
