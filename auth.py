#!/usr/bin/env python3
"""
Request authentication for the GPT Cells API.

Two kinds of callers are accepted:
- services holding the shared API key (X-API-Key header)
- signed-in users holding a Firebase ID token (Authorization: Bearer ...)
"""

from typing import Optional, Dict, Any

import httpx
import jwt
from fastapi import HTTPException, status, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from config import API_KEY, FIREBASE_ISSUER, FIREBASE_JWKS_URL, FIREBASE_PROJECT_ID

API_KEY_HEADER_NAME = "X-API-Key"

print(f"[AUTH CONFIG] FIREBASE_PROJECT_ID: {FIREBASE_PROJECT_ID}")
print(f"[AUTH CONFIG] FIREBASE_JWKS_URL: {FIREBASE_JWKS_URL}")

# Reachable without credentials (exact match)
EXCLUDED_PATHS = {
    "/",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/admin",  # Console entry point redirects on its own
    "/api/auth/signup",
    "/api/auth/signin",
    "/api/auth/federated",
    "/api/auth/refresh",
    "/api/plans",  # Public plan list; admin plan routes check the role themselves
}

# Read-only routes under these prefixes are public too
PUBLIC_GET_PREFIXES = ("/api/plans/",)

# Identity provider public keys, fetched lazily
_jwks_cache: Optional[Dict[str, Any]] = None


def _load_jwks(refresh: bool = False) -> Dict[str, Any]:
    global _jwks_cache
    if _jwks_cache is not None and not refresh:
        return _jwks_cache
    print(f"[AUTH] Loading JWKS from {FIREBASE_JWKS_URL}")
    try:
        response = httpx.get(FIREBASE_JWKS_URL, timeout=10.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        print(f"[AUTH] JWKS request failed: {e}")
        return _jwks_cache or {"keys": []}
    _jwks_cache = response.json()
    print(f"[AUTH] JWKS loaded, {len(_jwks_cache.get('keys', []))} keys")
    return _jwks_cache


def _public_key_for(kid: str):
    """Look up the RSA key for `kid`, reloading the key set once on a miss (keys rotate)."""
    for refresh in (False, True):
        matches = [k for k in _load_jwks(refresh).get("keys", []) if k.get("kid") == kid]
        if matches:
            return jwt.PyJWK(matches[0], algorithm="RS256").key
    return None


def verify_jwt_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a Firebase ID token. None when the token is unusable for any reason."""
    try:
        kid = jwt.get_unverified_header(token).get("kid")
        public_key = _public_key_for(kid) if kid else None
        if public_key is None:
            print("[AUTH] No public key matches the token's kid")
            return None
        claims = jwt.decode(
            token,
            public_key,
            algorithms=["RS256"],
            audience=FIREBASE_PROJECT_ID,
            issuer=FIREBASE_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        print("[AUTH] Rejected expired ID token")
        return None
    except jwt.PyJWTError as e:
        print(f"[AUTH] Rejected ID token: {e}")
        return None

    if not claims.get("sub"):
        print("[AUTH] Rejected ID token without subject")
        return None
    return claims


def get_bearer_token(request: Request) -> Optional[str]:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme == "Bearer" and credentials:
        return credentials
    return None


def _is_excluded(method: str, path: str) -> bool:
    if path in EXCLUDED_PATHS or path.rstrip("/") in EXCLUDED_PATHS:
        return True
    # "/api/plans/all" and "/api/plans/subscribers" still run their own admin check
    return method == "GET" and path.startswith(PUBLIC_GET_PREFIXES)


def _reject(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Resolves the caller before any route runs.

    Server-to-server callers send X-API-Key; browsers and the generation
    client send `Authorization: Bearer <ID token>`. A verified token is kept
    in `request.state.user`, including on public paths.
    """

    async def dispatch(self, request: Request, call_next):
        # CORS preflight carries no credentials
        if request.method == "OPTIONS":
            return await call_next(request)

        token = get_bearer_token(request)
        user = verify_jwt_token(token) if token else None
        if user:
            request.state.user = user

        api_key = request.headers.get(API_KEY_HEADER_NAME)
        if api_key and API_KEY and api_key == API_KEY:
            request.state.api_client = True

        if _is_excluded(request.method, request.url.path):
            return await call_next(request)

        if api_key:
            if not getattr(request.state, "api_client", False):
                return _reject(status.HTTP_403_FORBIDDEN, "Invalid API key")
        elif user is None:
            if token:
                return _reject(status.HTTP_401_UNAUTHORIZED, "Invalid or expired token")
            return _reject(
                status.HTTP_401_UNAUTHORIZED,
                "Authentication required. Send an X-API-Key header or an Authorization: Bearer <ID token> header.",
            )

        return await call_next(request)


def get_user_from_request(request: Request) -> Optional[Dict[str, Any]]:
    """Verified token claims stashed by the middleware, or None for API-key and anonymous callers."""
    return getattr(request.state, "user", None)


def get_user_id(request: Request) -> Optional[str]:
    claims = get_user_from_request(request) or {}
    return claims.get("sub")


def require_user_id(request: Request) -> str:
    """uid of the signed-in caller; 401 when the request carries no ID token."""
    uid = get_user_id(request)
    if uid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required.",
        )
    return uid
