#!/usr/bin/env python3
"""
Users API - sign-up/sign-in through the identity provider, self-service
profile, and admin user management
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr
from typing import Optional, Dict, Any
from datetime import datetime
from bson import ObjectId

from auth import require_user_id
from auth_gateway import AuthGateway, default_profile
from database import get_db
from role_helpers import is_admin_user, require_admin, require_confirmation

# Create routers
router = APIRouter(prefix="/api/users", tags=["users"])
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

ROLES = ("user", "admin")


# Pydantic Models
class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    displayName: Optional[str] = None


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class FederatedSignInRequest(BaseModel):
    """ID token issued by the federated provider (e.g. a Google popup)"""
    idToken: str
    providerId: str = "google.com"
    requestUri: Optional[str] = None


class RefreshRequest(BaseModel):
    refreshToken: str


class UserCreate(BaseModel):
    """Admin-created user record"""
    email: EmailStr
    uid: Optional[str] = None
    displayName: Optional[str] = None
    role: str = "user"
    subscription: str = "free"


class UserUpdate(BaseModel):
    displayName: Optional[str] = None
    role: Optional[str] = None
    subscription: Optional[str] = None
    isActive: Optional[bool] = None


class ProfileUpdate(BaseModel):
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


# Helper functions
def user_helper(user) -> dict:
    """Convert MongoDB user to dict"""
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "displayName": user.get("displayName"),
        "photoURL": user.get("photoURL"),
        "role": user.get("role") or "user",
        "isAdmin": is_admin_user(user),
        "subscription": user.get("subscription") or "free",
        "usage": user.get("usage") or {"apiCalls": 0, "storageUsed": 0, "sheetsCreated": 0},
        "isActive": user.get("isActive", True) is not False,
        "settings": user.get("settings") or {},
        "createdAt": user.get("createdAt"),
        "updatedAt": user.get("updatedAt"),
    }


def validate_subscription(db, plan_id: str):
    """A user's tier must name a plan in the catalog (or the built-in free tier)."""
    if plan_id == "free":
        return
    if not db.subscriptions.find_one({"_id": plan_id}):
        raise HTTPException(status_code=400, detail=f"Unknown subscription plan: {plan_id}")


def validate_role(role: str):
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role: {role}. Must be one of {list(ROLES)}")


def get_auth_gateway(db=Depends(get_db)) -> AuthGateway:
    return AuthGateway(db)


# Auth routes

@auth_router.post("/signup")
async def sign_up(body: SignUpRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    result = await gateway.sign_up(body.email, body.password, body.displayName)
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["error"])
    return result


@auth_router.post("/signin")
async def sign_in(body: SignInRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    result = await gateway.sign_in(body.email, body.password)
    if not result["success"]:
        raise HTTPException(status_code=401, detail=result["error"])
    return result


@auth_router.post("/federated")
async def federated_sign_in(body: FederatedSignInRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    kwargs = {"request_uri": body.requestUri} if body.requestUri else {}
    result = await gateway.sign_in_with_idp(body.providerId, body.idToken, **kwargs)
    if not result["success"]:
        raise HTTPException(status_code=401, detail=result["error"])
    return result


@auth_router.post("/refresh")
async def refresh_token(body: RefreshRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    result = await gateway.refresh(body.refreshToken)
    if not result["success"]:
        raise HTTPException(status_code=401, detail=result["error"])
    return result


@auth_router.post("/signout")
async def sign_out():
    """ID tokens are stateless; the client drops its session"""
    return {"success": True}


@auth_router.get("/me")
async def whoami(request: Request, db=Depends(get_db)):
    """Profile of the token holder plus the admin flag from the stored document"""
    user_id = require_user_id(request)
    try:
        user = db.users.find_one({"_id": user_id})
        if not user:
            raise HTTPException(status_code=404, detail="User profile not found")
        return user_helper(user)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# Self-service routes

@router.get("/me")
async def get_my_profile(request: Request, db=Depends(get_db)):
    return await whoami(request, db)


@router.patch("/me")
async def update_my_profile(body: ProfileUpdate, request: Request, db=Depends(get_db)):
    """Users may edit their display name, photo and settings; never role or tier"""
    user_id = require_user_id(request)
    try:
        update = body.model_dump(exclude_none=True)
        update["updatedAt"] = datetime.utcnow()
        result = db.users.update_one({"_id": user_id}, {"$set": update})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="User profile not found")
        return user_helper(db.users.find_one({"_id": user_id}))
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update profile: {str(e)}")


# Admin routes

@router.get("")
async def list_users(request: Request, db=Depends(get_db)):
    """Get all users (admin only)"""
    require_admin(request, db)
    try:
        users = list(db.users.find().sort("createdAt", -1))
        return [user_helper(user) for user in users]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load users: {str(e)}")


@router.post("")
async def create_user(body: UserCreate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    validate_role(body.role)
    validate_subscription(db, body.subscription)
    try:
        uid = body.uid or str(ObjectId())
        if db.users.find_one({"_id": uid}):
            raise HTTPException(status_code=409, detail=f"User {uid} already exists")

        doc = default_profile(body.email, body.displayName)
        doc.update({
            "_id": uid,
            "role": body.role,
            "isAdmin": body.role == "admin",
            "subscription": body.subscription,
            "updatedAt": datetime.utcnow(),
        })
        db.users.insert_one(doc)
        print(f"[users] Created user {body.email} ({uid})")
        return {"message": "User created successfully", "user": user_helper(doc)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create user: {str(e)}")


@router.get("/{user_id}")
async def get_user(user_id: str, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    try:
        user = db.users.find_one({"_id": user_id})
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user_helper(user)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{user_id}")
async def update_user(user_id: str, body: UserUpdate, request: Request, db=Depends(get_db)):
    """Edit a user's display name, role, tier or account status"""
    require_admin(request, db)
    update = body.model_dump(exclude_none=True)
    if "role" in update:
        validate_role(update["role"])
        update["isAdmin"] = update["role"] == "admin"
    if "subscription" in update:
        validate_subscription(db, update["subscription"])

    try:
        update["updatedAt"] = datetime.utcnow()
        result = db.users.update_one({"_id": user_id}, {"$set": update})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="User not found")
        return {"message": "User updated successfully", "user": user_helper(db.users.find_one({"_id": user_id}))}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update user: {str(e)}")


@router.delete("/{user_id}")
async def delete_user(user_id: str, request: Request, confirm: bool = False, db=Depends(get_db)):
    """Delete a user and every project they own"""
    require_admin(request, db)
    require_confirmation(confirm, "user")
    try:
        result = db.users.delete_one({"_id": user_id})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="User not found")
        projects = db.projects.delete_many({"userId": user_id})
        print(f"[users] Deleted user {user_id} and {projects.deleted_count} projects")
        return {
            "message": "User deleted successfully",
            "deletedProjects": projects.deleted_count,
        }
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete user: {str(e)}")
