#!/usr/bin/env python3
"""
FastAPI application for the GPT Cells admin console
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from admin import router as admin_router
from ai_models import router as models_router, admin_router as admin_models_router
from payments import router as payments_router, seed_mock_payments
from plans import router as plans_router, seed_default_plans
from projects import router as projects_router
from provider_settings import router as providers_router
from users import router as users_router, auth_router
from auth import AuthMiddleware
from config import CORS_ORIGINS, PORT
from database import db, ensure_indexes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create indexes and seed default plans; a down database does not stop startup."""
    try:
        ensure_indexes(db)
        seed_default_plans(db)
        seed_mock_payments(db)
    except PyMongoError as e:
        print(f"[startup] Database setup skipped: {e}")
    yield


app = FastAPI(title="GPT Cells Admin API", version="1.0.0", lifespan=lifespan)

# Last added runs first: CORS wraps auth so 401/403 responses still carry CORS headers
app.add_middleware(AuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for api_router in (
    auth_router,
    users_router,
    projects_router,
    models_router,
    admin_models_router,
    plans_router,
    payments_router,
    providers_router,
    admin_router,
):
    app.include_router(api_router)


@app.get("/")
async def root():
    return {"message": "GPT Cells Admin API", "version": "1.0.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
