#!/usr/bin/env python3
"""
Role-based access control helpers for the GPT Cells admin console.
"""

from fastapi import HTTPException, Request
from auth import require_user_id


def is_admin_user(user: dict) -> bool:
    """Admin status comes from the stored user document, never from a token claim."""
    return bool(user) and (user.get("isAdmin") is True or user.get("role") == "admin")


def require_admin(request: Request, db) -> dict:
    """
    Verify the caller is an authenticated admin.
    Returns the user document or raises 401/403.
    """
    # Server-to-server callers holding the API key act as admin
    if getattr(request.state, "api_client", False):
        return {"_id": "api-client", "role": "admin", "isAdmin": True}

    user_id = require_user_id(request)
    user = db.users.find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")

    if not is_admin_user(user):
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user


def require_confirmation(confirm: bool, what: str):
    """Deletes go through only when the caller explicitly confirmed them."""
    if not confirm:
        raise HTTPException(
            status_code=400,
            detail=f"Deleting this {what} cannot be undone. Repeat the request with confirm=true."
        )
