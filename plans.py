"""
Plans API
Handles subscription plans and the per-user tier view
"""

import re
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from database import get_db
from role_helpers import require_admin, require_confirmation

router = APIRouter(prefix="/api/plans", tags=["plans"])

INTERVALS = ("monthly", "yearly")

# Default plans
DEFAULT_PLANS = [
    {
        "_id": "free",
        "planName": "Free",
        "price": 0,
        "interval": "monthly",
        "features": [
            "3 projects",
            "100 AI generations per month",
            "Community support",
        ],
        "isActive": True,
    },
    {
        "_id": "premium",
        "planName": "Premium",
        "price": 19.99,
        "interval": "monthly",
        "features": [
            "Unlimited projects",
            "5,000 AI generations per month",
            "Image generation",
            "Priority support",
        ],
        "isActive": True,
    },
    {
        "_id": "enterprise",
        "planName": "Enterprise",
        "price": 99.99,
        "interval": "monthly",
        "features": [
            "Unlimited projects",
            "Unlimited AI generations",
            "Image generation",
            "Team workspaces",
            "Dedicated support",
        ],
        "isActive": True,
    },
]


class PlanCreate(BaseModel):
    planName: str
    price: float
    interval: str = "monthly"
    features: List[str] = []
    isActive: bool = True
    id: Optional[str] = None


class PlanUpdate(BaseModel):
    planName: Optional[str] = None
    price: Optional[float] = None
    interval: Optional[str] = None
    features: Optional[List[str]] = None
    isActive: Optional[bool] = None


def plan_helper(plan) -> dict:
    """Convert MongoDB plan to dict"""
    return {
        "id": plan["_id"],
        "planName": plan.get("planName"),
        "price": plan.get("price", 0),
        "interval": plan.get("interval") or "monthly",
        "features": plan.get("features") or [],
        "isActive": plan.get("isActive", False),
        "createdAt": plan.get("createdAt"),
        "updatedAt": plan.get("updatedAt"),
    }


def plan_slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def seed_default_plans(db) -> int:
    """Insert any default plan missing from the catalog. Returns how many were added."""
    added = 0
    for plan in DEFAULT_PLANS:
        now = datetime.utcnow()
        result = db.subscriptions.update_one(
            {"_id": plan["_id"]},
            {"$setOnInsert": dict(plan, createdAt=now, updatedAt=now)},
            upsert=True,
        )
        if result.upserted_id is not None:
            added += 1
    if added:
        print(f"[plans] Seeded {added} default plans")
    return added


def _validate_interval(interval: Optional[str]):
    if interval is not None and interval not in INTERVALS:
        raise HTTPException(status_code=400, detail=f"Invalid interval. Must be one of {list(INTERVALS)}")


@router.get("")
async def get_plans(db=Depends(get_db)):
    """
    Get all active plans
    """
    try:
        plans = db.subscriptions.find({"isActive": True}).sort("price", 1)
        return [plan_helper(plan) for plan in plans]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/all")
async def get_all_plans(request: Request, db=Depends(get_db)):
    """
    Get every plan, including inactive ones (admin only)
    """
    require_admin(request, db)
    try:
        plans = db.subscriptions.find().sort("price", 1)
        return [plan_helper(plan) for plan in plans]
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/subscribers")
async def get_subscribers(request: Request, db=Depends(get_db)):
    """
    Per-user subscription tiers with a count per plan (admin only)
    """
    require_admin(request, db)
    try:
        plan_names = {p["_id"]: p.get("planName") for p in db.subscriptions.find()}
        subscribers = []
        counts = {}
        for user in db.users.find().sort("email", 1):
            tier = user.get("subscription") or "free"
            counts[tier] = counts.get(tier, 0) + 1
            subscribers.append({
                "userId": user["_id"],
                "email": user.get("email"),
                "displayName": user.get("displayName"),
                "subscription": tier,
                "planName": plan_names.get(tier, "Free" if tier == "free" else None),
            })
        return {"subscribers": subscribers, "counts": counts}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load subscribers: {str(e)}")


@router.get("/{plan_id}")
async def get_plan(plan_id: str, db=Depends(get_db)):
    """
    Get a specific plan by ID
    """
    try:
        plan = db.subscriptions.find_one({"_id": plan_id})
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan_helper(plan)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("")
async def create_plan(body: PlanCreate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_interval(body.interval)
    plan_id = body.id or plan_slug(body.planName)
    if not plan_id:
        raise HTTPException(status_code=400, detail="Plan name must contain letters or digits")

    try:
        if db.subscriptions.find_one({"_id": plan_id}):
            raise HTTPException(status_code=409, detail=f"Plan '{plan_id}' already exists")

        now = datetime.utcnow()
        doc = body.model_dump(exclude={"id"})
        doc.update({"_id": plan_id, "createdAt": now, "updatedAt": now})
        db.subscriptions.insert_one(doc)
        return {"message": "Plan created successfully", "plan": plan_helper(doc)}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create plan: {str(e)}")


@router.put("/{plan_id}")
async def update_plan(plan_id: str, body: PlanUpdate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_interval(body.interval)
    try:
        update = body.model_dump(exclude_none=True)
        update["updatedAt"] = datetime.utcnow()
        result = db.subscriptions.update_one({"_id": plan_id}, {"$set": update})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Plan not found")
        return {"message": "Plan updated successfully", "plan": plan_helper(db.subscriptions.find_one({"_id": plan_id}))}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update plan: {str(e)}")


@router.delete("/{plan_id}")
async def delete_plan(plan_id: str, request: Request, confirm: bool = False, db=Depends(get_db)):
    """
    Delete a plan. Plans that still have subscribers are kept.
    """
    require_admin(request, db)
    require_confirmation(confirm, "plan")
    try:
        subscribers = db.users.count_documents({"subscription": plan_id})
        if subscribers:
            raise HTTPException(
                status_code=409,
                detail=f"Plan '{plan_id}' has {subscribers} subscribers. Move them to another plan first."
            )
        result = db.subscriptions.delete_one({"_id": plan_id})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="Plan not found")
        return {"message": "Plan deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete plan: {str(e)}")
