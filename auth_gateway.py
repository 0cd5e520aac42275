#!/usr/bin/env python3
"""
Auth gateway over the identity provider's REST API (Google Identity Toolkit).

Every operation returns {"success": bool, ...} with an "error" message on
failure. Nothing raises past this boundary.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

import httpx
from pymongo.errors import PyMongoError

from config import APP_ORIGIN, FIREBASE_WEB_API_KEY, IDENTITY_TOOLKIT_URL, SECURE_TOKEN_URL
from role_helpers import is_admin_user

# Identity provider error codes -> messages shown to the user
ERROR_MESSAGES = {
    "EMAIL_EXISTS": "The email address is already in use by another account.",
    "EMAIL_NOT_FOUND": "Invalid email or password.",
    "INVALID_PASSWORD": "Invalid email or password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "INVALID_EMAIL": "The email address is badly formatted.",
    "USER_DISABLED": "This account has been disabled.",
    "WEAK_PASSWORD": "Password should be at least 6 characters.",
    "OPERATION_NOT_ALLOWED": "This sign-in method is not enabled. Please contact support.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later.",
    "INVALID_IDP_RESPONSE": "Federated sign-in failed. Please try again.",
    "TOKEN_EXPIRED": "Your session has expired. Please sign in again.",
    "INVALID_REFRESH_TOKEN": "Your session has expired. Please sign in again.",
    "INVALID_RESPONSE": "Unexpected response from the sign-in service. Please try again.",
}

# Seconds before expiry at which a cached ID token is refreshed
TOKEN_REFRESH_MARGIN = 60


def default_profile(email: str, display_name: Optional[str], photo_url: Optional[str] = None) -> dict:
    """Profile written the first time a user signs up or signs in."""
    profile = {
        "email": email,
        "displayName": display_name,
        "createdAt": datetime.utcnow(),
        "subscription": "free",
        "role": "user",
        "isAdmin": False,
        "isActive": True,
        "usage": {
            "apiCalls": 0,
            "storageUsed": 0,
            "sheetsCreated": 0,
        },
    }
    if photo_url:
        profile["photoURL"] = photo_url
    return profile


@dataclass
class AuthSession:
    uid: str
    email: Optional[str]
    display_name: Optional[str]
    id_token: str
    refresh_token: Optional[str]
    expires_at: float

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "idToken": self.id_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
        }


def _seconds(value, default: int = 3600) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class IdentityProviderError(Exception):
    def __init__(self, code: str):
        self.code = code
        super().__init__(ERROR_MESSAGES.get(code, code))


class AuthGateway:
    def __init__(self, db, http_client: Optional[httpx.AsyncClient] = None, api_key: Optional[str] = None):
        self.db = db
        self.http_client = http_client
        self.api_key = api_key if api_key is not None else FIREBASE_WEB_API_KEY
        self.current_user: Optional[AuthSession] = None

    # --- Identity provider calls ---

    async def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        if not self.api_key:
            raise IdentityProviderError("Authentication is not configured")
        params = {"key": self.api_key}
        if self.http_client is not None:
            response = await self.http_client.post(url, params=params, **kwargs)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, params=params, **kwargs)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if not response.is_success:
            error = data.get("error")
            message = (error.get("message") if isinstance(error, dict) else None) or response.reason_phrase
            # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters"
            raise IdentityProviderError(message.split(" : ")[0].strip())
        return data

    def _start_session(self, data: Dict[str, Any]) -> AuthSession:
        if not data.get("localId") or not data.get("idToken"):
            raise IdentityProviderError("INVALID_RESPONSE")
        self.current_user = AuthSession(
            uid=data["localId"],
            email=data.get("email"),
            display_name=data.get("displayName"),
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_at=time.time() + _seconds(data.get("expiresIn")),
        )
        return self.current_user

    def _ensure_profile(self, uid: str, email: str, display_name: Optional[str], photo_url: Optional[str] = None) -> bool:
        """Create the user profile unless it exists. Returns True when created."""
        result = self.db.users.update_one(
            {"_id": uid},
            {"$setOnInsert": default_profile(email, display_name, photo_url)},
            upsert=True,
        )
        return result.upserted_id is not None

    # --- Public operations ---

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> dict:
        try:
            data = await self._post(
                f"{IDENTITY_TOOLKIT_URL}/accounts:signUp",
                json={"email": email, "password": password, "returnSecureToken": True},
            )
            session = self._start_session(dict(data, displayName=display_name))
            self._ensure_profile(session.uid, session.email or email, display_name)
            print(f"[auth] Signed up {email}")
            return {"success": True, "user": session.to_dict()}
        except (IdentityProviderError, httpx.HTTPError, PyMongoError) as e:
            print(f"[auth] Sign-up failed for {email}: {e}")
            return {"success": False, "error": str(e)}

    async def sign_in(self, email: str, password: str) -> dict:
        try:
            data = await self._post(
                f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
                json={"email": email, "password": password, "returnSecureToken": True},
            )
            session = self._start_session(data)
            return {"success": True, "user": session.to_dict()}
        except (IdentityProviderError, httpx.HTTPError) as e:
            print(f"[auth] Sign-in failed for {email}: {e}")
            return {"success": False, "error": str(e)}

    async def sign_in_with_idp(self, provider_id: str, id_token: str, request_uri: str = APP_ORIGIN) -> dict:
        """Federated sign-in (e.g. provider_id="google.com") with the provider's ID token."""
        try:
            data = await self._post(
                f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithIdp",
                json={
                    "postBody": f"id_token={id_token}&providerId={provider_id}",
                    "requestUri": request_uri,
                    "returnIdpCredential": True,
                    "returnSecureToken": True,
                },
            )
            session = self._start_session(data)
            created = self._ensure_profile(session.uid, session.email, session.display_name, data.get("photoUrl"))
            if created:
                print(f"[auth] Created new user profile for: {session.email}")
            return {"success": True, "user": session.to_dict(), "isNewUser": created}
        except (IdentityProviderError, httpx.HTTPError, PyMongoError) as e:
            print(f"[auth] Federated sign-in failed: {e}")
            return {"success": False, "error": str(e)}

    async def sign_out(self) -> dict:
        self.current_user = None
        return {"success": True}

    async def refresh(self, refresh_token: str) -> dict:
        try:
            data = await self._post(
                f"{SECURE_TOKEN_URL}/token",
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            )
            if not data.get("id_token"):
                raise IdentityProviderError("INVALID_RESPONSE")
            return {
                "success": True,
                "token": data["id_token"],
                "refreshToken": data.get("refresh_token", refresh_token),
                "expiresIn": _seconds(data.get("expires_in")),
                "uid": data.get("user_id"),
            }
        except (IdentityProviderError, httpx.HTTPError) as e:
            return {"success": False, "error": str(e)}

    async def get_id_token(self, force_refresh: bool = False) -> dict:
        session = self.current_user
        if session is None:
            return {"success": False, "error": "No authenticated user"}

        expiring = time.time() >= session.expires_at - TOKEN_REFRESH_MARGIN
        if (force_refresh or expiring) and session.refresh_token:
            result = await self.refresh(session.refresh_token)
            if not result["success"]:
                return result
            session.id_token = result["token"]
            session.refresh_token = result["refreshToken"]
            session.expires_at = time.time() + result["expiresIn"]

        return {"success": True, "token": session.id_token}

    def is_current_user_admin(self) -> bool:
        if self.current_user is None:
            return False
        try:
            user = self.db.users.find_one({"_id": self.current_user.uid})
        except PyMongoError as e:
            print(f"[auth] Error checking admin status: {e}")
            return False
        return is_admin_user(user)

    def get_current_user_profile(self) -> dict:
        if self.current_user is None:
            return {"success": False, "error": "No user logged in"}
        try:
            user = self.db.users.find_one({"_id": self.current_user.uid})
        except PyMongoError as e:
            return {"success": False, "error": str(e)}
        if not user:
            return {"success": False, "error": "User profile not found"}
        user["id"] = user.pop("_id")
        return {"success": True, "data": user}
