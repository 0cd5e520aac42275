"""
Provider Settings API
Admins store the OpenRouter and Fal.ai keys; authenticated clients read them
to call the providers directly.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from auth import get_user_id
from database import get_db
from errors import ConfigurationMissing, ProviderError
from generation.providers import get_adapter
from generation.sources import CONFIG_DOC_IDS, MongoCatalogSource, ProviderKeyCache
from role_helpers import require_admin

router = APIRouter(prefix="/api/providers", tags=["providers"])

# Shared by the sync endpoint; dropped whenever a key is saved
_key_cache: Optional[ProviderKeyCache] = None


class ProviderConfigUpdate(BaseModel):
    apiKey: str
    enabled: bool = True
    validateKey: bool = True


def get_key_cache(db=Depends(get_db)) -> ProviderKeyCache:
    global _key_cache
    if _key_cache is None or _key_cache.source.db is not db:
        _key_cache = ProviderKeyCache(MongoCatalogSource(db))
    return _key_cache


def mask_key(api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


def _doc_id(provider: str) -> str:
    doc_id = CONFIG_DOC_IDS.get(provider)
    if not doc_id:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
    return doc_id


@router.get("")
async def get_provider_status(request: Request, db=Depends(get_db)):
    """Configuration status of every provider, keys masked (admin only)"""
    require_admin(request, db)
    try:
        providers = []
        for provider, doc_id in CONFIG_DOC_IDS.items():
            config = db.admin.find_one({"_id": doc_id}) or {}
            providers.append({
                "provider": provider,
                "configured": bool(config.get("apiKey")),
                "enabled": config.get("enabled", False),
                "apiKey": mask_key(config.get("apiKey")),
                "updatedAt": config.get("updatedAt"),
            })
        return providers
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load provider settings: {str(e)}")


@router.put("/{provider}")
async def save_provider_config(
    provider: str,
    body: ProviderConfigUpdate,
    request: Request,
    db=Depends(get_db),
    key_cache: ProviderKeyCache = Depends(get_key_cache),
):
    """Save a provider key. validateKey only rejects an empty key; no request is sent to the provider."""
    require_admin(request, db)
    doc_id = _doc_id(provider)

    if body.validateKey:
        try:
            await get_adapter(provider).fetch_models(body.apiKey)
        except (ConfigurationMissing, ProviderError) as e:
            raise HTTPException(status_code=400, detail=f"API key validation failed: {e}")

    try:
        db.admin.update_one(
            {"_id": doc_id},
            {"$set": {"apiKey": body.apiKey, "enabled": body.enabled, "updatedAt": datetime.utcnow()}},
            upsert=True,
        )
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to save provider settings: {str(e)}")

    key_cache.invalidate(provider)
    print(f"[providers] Saved {provider} configuration (enabled: {body.enabled})")
    return {"message": f"{provider} configuration saved", "apiKey": mask_key(body.apiKey), "enabled": body.enabled}


@router.get("/{provider}/config")
async def get_provider_config(provider: str, request: Request, db=Depends(get_db)):
    """Key for direct client-side invocation; any signed-in user may read it"""
    if not get_user_id(request) and not getattr(request.state, "api_client", False):
        raise HTTPException(status_code=401, detail="Sign in required.")
    doc_id = _doc_id(provider)
    try:
        config = db.admin.find_one({"_id": doc_id})
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not config:
        raise HTTPException(status_code=404, detail=f"{provider} is not configured")
    return {
        "provider": provider,
        "apiKey": config.get("apiKey"),
        "enabled": config.get("enabled", False),
        "updatedAt": config.get("updatedAt"),
    }
