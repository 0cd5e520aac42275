"""
Payments API
Admin view over the mock payment records. Not a live ledger.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from bson import ObjectId

from console_state import AdminSnapshot, filter_payments
from database import get_db
from role_helpers import require_admin, require_confirmation

router = APIRouter(prefix="/api/admin/payments", tags=["admin"])

PAYMENT_STATUSES = ("completed", "pending", "failed")

# Seed data shown in the console until a payment processor is wired in
MOCK_PAYMENTS = [
    {
        "_id": "pay_001",
        "userId": "demo-user-1",
        "userEmail": "alice@example.com",
        "amount": 19.99,
        "status": "completed",
        "date": datetime(2024, 1, 15, 10, 30),
        "description": "Premium plan - monthly",
    },
    {
        "_id": "pay_002",
        "userId": "demo-user-2",
        "userEmail": "bob@example.com",
        "amount": 99.99,
        "status": "completed",
        "date": datetime(2024, 1, 20, 14, 0),
        "description": "Enterprise plan - monthly",
    },
    {
        "_id": "pay_003",
        "userId": "demo-user-3",
        "userEmail": "carol@example.com",
        "amount": 19.99,
        "status": "pending",
        "date": datetime(2024, 2, 1, 9, 15),
        "description": "Premium plan - monthly",
    },
    {
        "_id": "pay_004",
        "userId": "demo-user-1",
        "userEmail": "alice@example.com",
        "amount": 19.99,
        "status": "failed",
        "date": datetime(2024, 2, 15, 10, 30),
        "description": "Premium plan - monthly",
    },
]


class PaymentCreate(BaseModel):
    userId: str
    userEmail: Optional[str] = None
    amount: float
    status: str = "pending"
    date: Optional[datetime] = None
    description: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Optional[float] = None
    status: Optional[str] = None
    description: Optional[str] = None


def payment_helper(payment) -> dict:
    """Convert MongoDB payment to dict"""
    return {
        "id": str(payment["_id"]),
        "userId": payment.get("userId"),
        "userEmail": payment.get("userEmail"),
        "amount": payment.get("amount", 0),
        "status": payment.get("status") or "pending",
        "date": payment.get("date"),
        "description": payment.get("description") or "",
    }


def seed_mock_payments(db) -> int:
    """Insert any mock payment not yet present. Returns how many were added."""
    added = 0
    for payment in MOCK_PAYMENTS:
        result = db.payments.update_one({"_id": payment["_id"]}, {"$setOnInsert": payment}, upsert=True)
        if result.upserted_id is not None:
            added += 1
    if added:
        print(f"[payments] Seeded {added} mock payments")
    return added


def _validate_status(status: Optional[str]):
    if status is not None and status not in PAYMENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of {list(PAYMENT_STATUSES)}")


@router.get("")
async def list_payments(
    request: Request,
    search: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    db=Depends(get_db),
):
    require_admin(request, db)
    try:
        payments = tuple(payment_helper(p) for p in db.payments.find().sort("date", -1))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load payments: {str(e)}")
    snapshot = filter_payments(AdminSnapshot(payments=payments), search, status, date_from, date_to)
    return list(snapshot.payments)


@router.post("")
async def create_payment(body: PaymentCreate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_status(body.status)
    try:
        doc = body.model_dump()
        doc["_id"] = f"pay_{ObjectId()}"
        doc["date"] = body.date or datetime.utcnow()
        if not doc["userEmail"]:
            user = db.users.find_one({"_id": body.userId}, {"email": 1})
            doc["userEmail"] = user.get("email") if user else None
        db.payments.insert_one(doc)
        return {"message": "Payment created successfully", "payment": payment_helper(doc)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create payment: {str(e)}")


@router.get("/{payment_id}")
async def get_payment(payment_id: str, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    try:
        payment = db.payments.find_one({"_id": payment_id})
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        return payment_helper(payment)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{payment_id}")
async def update_payment(payment_id: str, body: PaymentUpdate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_status(body.status)
    try:
        update = body.model_dump(exclude_none=True)
        if not update:
            raise HTTPException(status_code=400, detail="No fields to update")
        result = db.payments.update_one({"_id": payment_id}, {"$set": update})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Payment not found")
        return {"message": "Payment updated successfully", "payment": payment_helper(db.payments.find_one({"_id": payment_id}))}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update payment: {str(e)}")


@router.delete("/{payment_id}")
async def delete_payment(payment_id: str, request: Request, confirm: bool = False, db=Depends(get_db)):
    require_admin(request, db)
    require_confirmation(confirm, "payment")
    try:
        result = db.payments.delete_one({"_id": payment_id})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="Payment not found")
        return {"message": "Payment deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete payment: {str(e)}")
