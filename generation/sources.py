"""
Where the generation dispatcher reads provider keys and the model list from.

MongoCatalogSource reads the store directly (server side, admin scripts).
RemoteCatalogSource reads the same data through the API with a bearer token,
which is how end-user clients get their keys.
ProviderKeyCache sits in front of either one.
"""

import time
from typing import Dict, List, Optional

import httpx
from pymongo.errors import PyMongoError

from config import CONFIG_CACHE_SECONDS, FAL_AI_API_KEY, OPENROUTER_API_KEY
from errors import ConfigStoreUnavailable

# Provider name -> document id in the admin collection
CONFIG_DOC_IDS = {
    "fal-ai": "fal-ai-config",
    "openrouter": "openrouter-config",
}

ENV_KEYS = {
    "fal-ai": FAL_AI_API_KEY,
    "openrouter": OPENROUTER_API_KEY,
}


class MongoCatalogSource:
    def __init__(self, db):
        self.db = db

    async def get_provider_config(self, provider: str) -> Optional[dict]:
        doc_id = CONFIG_DOC_IDS.get(provider)
        if not doc_id:
            return None
        try:
            return self.db.admin.find_one({"_id": doc_id})
        except PyMongoError as e:
            raise ConfigStoreUnavailable(f"Could not read {doc_id}: {e}") from e

    async def list_active_models(self) -> List[dict]:
        try:
            docs = list(self.db.models.find({"status": "active"}))
        except PyMongoError as e:
            raise ConfigStoreUnavailable(f"Could not read models: {e}") from e
        return [
            {
                "id": doc["_id"],
                "originalId": doc.get("originalId") or doc["_id"],
                "name": doc.get("name"),
                "type": doc.get("type"),
                "provider": doc.get("provider"),
            }
            for doc in docs
        ]


class RemoteCatalogSource:
    """Reads provider config and active models from the GPT Cells API."""

    def __init__(self, base_url: str, id_token: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.id_token = id_token
        self.client = client

    async def _get(self, path: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.id_token}"}
        try:
            if self.client is not None:
                return await self.client.get(f"{self.base_url}{path}", headers=headers)
            async with httpx.AsyncClient() as client:
                return await client.get(f"{self.base_url}{path}", headers=headers)
        except httpx.HTTPError as e:
            raise ConfigStoreUnavailable(f"Could not reach {self.base_url}: {e}") from e

    async def get_provider_config(self, provider: str) -> Optional[dict]:
        response = await self._get(f"/api/providers/{provider}/config")
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise ConfigStoreUnavailable(f"Provider config request failed: {response.status_code}")
        return response.json()

    async def list_active_models(self) -> List[dict]:
        response = await self._get("/api/models")
        if not response.is_success:
            raise ConfigStoreUnavailable(f"Model list request failed: {response.status_code}")
        return response.json()


class ProviderKeyCache:
    """
    Read-through cache of provider API keys, keyed by provider name.

    A provider whose config is missing, disabled or unreadable falls back to
    the environment key (if any). Unreadable configs are never cached.
    """

    def __init__(self, source, ttl_seconds: float = CONFIG_CACHE_SECONDS, env_keys: Optional[Dict[str, Optional[str]]] = None):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self.env_keys = ENV_KEYS if env_keys is None else env_keys
        self._entries: Dict[str, tuple] = {}

    async def get(self, provider: str) -> Optional[str]:
        cached = self._entries.get(provider)
        if cached and time.monotonic() - cached[1] < self.ttl_seconds:
            return cached[0]

        try:
            config = await self.source.get_provider_config(provider)
        except ConfigStoreUnavailable as e:
            print(f"[provider_keys] Config store unavailable for {provider}: {e}")
            return self.env_keys.get(provider)

        api_key = None
        if config and config.get("enabled", True) and config.get("apiKey"):
            api_key = config["apiKey"]
        else:
            api_key = self.env_keys.get(provider)

        self._entries[provider] = (api_key, time.monotonic())
        return api_key

    async def load_all(self) -> Dict[str, Optional[str]]:
        return {provider: await self.get(provider) for provider in CONFIG_DOC_IDS}

    def invalidate(self, provider: Optional[str] = None):
        if provider is None:
            self._entries.clear()
        else:
            self._entries.pop(provider, None)
