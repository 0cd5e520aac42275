"""
AI Models API
Public list of active models plus admin management of the catalog:
content edits, activation, provider sync and the legacy status migration.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import Optional

import model_catalog
from console_state import AdminSnapshot, filter_models
from database import get_db
from errors import ConfigurationMissing, PersistenceError, ProviderError
from generation.providers import MODEL_TYPES, get_adapter
from generation.sources import ProviderKeyCache
from model_catalog import ModelStatus
from provider_settings import get_key_cache
from role_helpers import require_admin, require_confirmation

router = APIRouter(prefix="/api/models", tags=["models"])
admin_router = APIRouter(prefix="/api/admin/models", tags=["admin"])


class ModelCreate(BaseModel):
    originalId: str
    name: str
    type: str = "text"
    provider: str
    description: Optional[str] = None
    status: ModelStatus = ModelStatus.INACTIVE


class ModelUpdate(BaseModel):
    """Content edit; activation goes through the status endpoint"""
    name: Optional[str] = None
    description: Optional[str] = None
    provider: Optional[str] = None
    type: Optional[str] = None


class StatusUpdate(BaseModel):
    status: ModelStatus


def _validate_type(model_type: Optional[str]):
    if model_type is not None and model_type not in MODEL_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid model type. Must be one of {list(MODEL_TYPES)}")


# Public routes (any authenticated caller)

@router.get("")
async def get_active_models(type: Optional[str] = None, db=Depends(get_db)):
    """Models enabled for generation"""
    try:
        return model_catalog.get_active_models(db, type)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load models: {str(e)}")


@router.get("/lookup")
async def lookup_model(originalId: Optional[str] = None, id: Optional[str] = None, db=Depends(get_db)):
    """Translate between a provider's original model id and the catalog id"""
    if not originalId and not id:
        raise HTTPException(status_code=400, detail="Provide originalId or id")
    try:
        if originalId:
            return {"originalId": originalId, "id": model_catalog.get_sanitized_id(db, originalId)}
        return {"id": id, "originalId": model_catalog.get_original_id(db, id)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# Admin routes

@admin_router.get("")
async def list_models(
    request: Request,
    search: Optional[str] = None,
    type: Optional[str] = None,
    provider: Optional[str] = None,
    status: Optional[str] = None,
    db=Depends(get_db),
):
    require_admin(request, db)
    try:
        snapshot = AdminSnapshot(models=tuple(model_catalog.list_models(db)))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load models: {str(e)}")
    return list(filter_models(snapshot, search, type, provider, status).models)


@admin_router.post("")
async def create_model(body: ModelCreate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_type(body.type)
    sanitized_id = model_catalog.sanitize_model_id(body.originalId)
    if model_catalog.get_model(db, sanitized_id):
        raise HTTPException(status_code=409, detail=f"Model {sanitized_id} already exists")
    try:
        model = model_catalog.create_model(
            db,
            original_id=body.originalId,
            name=body.name,
            model_type=body.type,
            provider=body.provider,
            description=body.description,
            status=body.status.value,
        )
        return {"message": "Model created successfully", "model": model}
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


@admin_router.post("/sync/{provider}")
async def sync_provider_models(
    provider: str,
    request: Request,
    live: bool = False,
    db=Depends(get_db),
    key_cache: ProviderKeyCache = Depends(get_key_cache),
):
    """Upsert the provider's models into the catalog. New models start inactive."""
    require_admin(request, db)
    adapter = get_adapter(provider)
    if adapter is None:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")

    try:
        api_key = await key_cache.get(provider)
        candidates = await adapter.fetch_models(api_key, live=live)
    except ConfigurationMissing as e:
        raise HTTPException(status_code=400, detail=f"{e}. Please configure it in the admin panel.")
    except ProviderError as e:
        raise HTTPException(status_code=502, detail=str(e))

    report = model_catalog.sync_models(db, candidates, provider)
    return {"message": f"Synced {report.synced} models from {adapter.label}", **report.to_dict()}


@admin_router.post("/migrate")
async def migrate_status(request: Request, db=Depends(get_db)):
    """Convert legacy isActive entries to status. Safe to re-run."""
    require_admin(request, db)
    try:
        report = model_catalog.migrate_model_status(db)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to migrate models: {str(e)}")
    return {"message": f"Migrated {len(report.migrated)} models", **report.to_dict()}


@admin_router.get("/{model_id}")
async def get_model(model_id: str, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    model = model_catalog.get_model(db, model_id)
    if not model:
        raise HTTPException(status_code=404, detail=f"Model {model_id} not found")
    return model


@admin_router.put("/{model_id}")
async def update_model(model_id: str, body: ModelUpdate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    _validate_type(body.type)
    try:
        model = model_catalog.update_model(db, model_id, body.model_dump(exclude_none=True))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if model is None:
        raise HTTPException(status_code=404, detail=f"Model {model_id} not found")
    return {"message": "Model updated successfully", "model": model}


@admin_router.patch("/{model_id}/status")
async def set_model_status(model_id: str, body: StatusUpdate, request: Request, db=Depends(get_db)):
    """Enable or disable a model for generation"""
    require_admin(request, db)
    try:
        model = model_catalog.set_model_status(db, model_id, body.status.value)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if model is None:
        raise HTTPException(status_code=404, detail=f"Model {model_id} not found")
    action = "enabled" if body.status == ModelStatus.ACTIVE else "disabled"
    return {"message": f"Model {action} successfully", "model": model}


@admin_router.delete("/{model_id}")
async def delete_model(model_id: str, request: Request, confirm: bool = False, db=Depends(get_db)):
    require_admin(request, db)
    require_confirmation(confirm, "model")
    try:
        deleted = model_catalog.delete_model(db, model_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete model: {e}")
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Model {model_id} not found")
    return {"message": "Model deleted successfully"}
