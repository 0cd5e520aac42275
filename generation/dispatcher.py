"""
Generation dispatcher: route a prompt to the right provider for a model.
"""

from typing import Dict, List, Optional

import httpx

from config import PROVIDER_TIMEOUT_SECONDS
from errors import ConfigStoreUnavailable, ConfigurationMissing, ModelNotFound, UnsupportedModelType
from generation.providers import FalAIAdapter, OpenRouterAdapter
from generation.results import GenerationResult
from generation.sources import ProviderKeyCache

# Used when the catalog cannot be read or has no active models
FALLBACK_MODELS = [
    {"id": "gpt-3.5-turbo", "originalId": "openai/gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "type": "text", "provider": "openrouter"},
    {"id": "gpt-4", "originalId": "openai/gpt-4", "name": "GPT-4", "type": "text", "provider": "openrouter"},
    {"id": "gpt-4o", "originalId": "openai/gpt-4o", "name": "GPT-4o", "type": "text", "provider": "openrouter"},
    {"id": "claude-3.5-sonnet", "originalId": "anthropic/claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "type": "text", "provider": "openrouter"},
    {"id": "flux-dev", "originalId": "fal-ai/flux/dev", "name": "FLUX Dev", "type": "image", "provider": "fal-ai"},
    {"id": "recraft-v3", "originalId": "fal-ai/recraft-v3", "name": "Recraft V3", "type": "image", "provider": "fal-ai"},
]


class GenerationDispatcher:
    """
    Generate text or images with the provider API keys held in the config store.

    Both provider keys are loaded on every call (through the key cache), the
    model is looked up in the known model list, and the request is sent to
    OpenRouter for text models or Fal.ai for image models.
    """

    def __init__(
        self,
        source,
        client: Optional[httpx.AsyncClient] = None,
        key_cache: Optional[ProviderKeyCache] = None,
        fallback_models: Optional[List[dict]] = None,
    ):
        self.source = source
        self.client = client
        self.keys = key_cache if key_cache is not None else ProviderKeyCache(source)
        self.fallback_models = FALLBACK_MODELS if fallback_models is None else fallback_models
        self.openrouter = OpenRouterAdapter()
        self.falai = FalAIAdapter()

    async def known_models(self) -> List[dict]:
        try:
            models = await self.source.list_active_models()
        except ConfigStoreUnavailable as e:
            print(f"[generation] Model catalog unavailable, using fallback models: {e}")
            return list(self.fallback_models)
        return models or list(self.fallback_models)

    async def find_model(self, model_id: str) -> Optional[dict]:
        """
        Match on id or original id. A built-in id such as "flux-dev" also
        matches the catalog entry seeded for the same original id.
        """
        wanted = {model_id}
        for builtin in self.fallback_models:
            if model_id in (builtin["id"], builtin["originalId"]):
                wanted.update((builtin["id"], builtin["originalId"]))
        for model in await self.known_models():
            if wanted & {model.get("id"), model.get("originalId")}:
                return model
        return None

    async def generate(self, prompt: str, model_id: str, temperature: float = 0.7) -> GenerationResult:
        print(f"[generation] Generating content with {model_id}")
        keys = await self.keys.load_all()

        model = await self.find_model(model_id)
        if not model:
            raise ModelNotFound(model_id)

        model_type = model.get("type")
        provider_model = model.get("originalId") or model["id"]

        if model_type == "text":
            api_key = keys.get(self.openrouter.name)
            if not api_key:
                raise ConfigurationMissing("OpenRouter API key not configured. Please configure it in the admin panel.")
            async with self._client() as client:
                return await self.openrouter.complete(client, api_key, provider_model, prompt, temperature)

        if model_type == "image":
            api_key = keys.get(self.falai.name)
            if not api_key:
                raise ConfigurationMissing("Fal.ai API key not configured. Please configure it in the admin panel.")
            async with self._client() as client:
                return await self.falai.generate_image(client, api_key, provider_model, prompt)

        raise UnsupportedModelType(model_type)

    async def available_models(self) -> List[dict]:
        """Fallback models whose provider has a key; all of them if none do."""
        keys = await self.keys.load_all()
        models = [m for m in self.fallback_models if keys.get(m["provider"])]
        if not models:
            print("[generation] No API keys configured, returning all models")
            return list(self.fallback_models)
        return models

    async def check_configuration(self) -> Dict[str, bool]:
        keys = await self.keys.load_all()
        status = {provider: bool(key) for provider, key in keys.items()}
        status["configured"] = any(status.values())
        return status

    def _client(self):
        if self.client is not None:
            return _Borrowed(self.client)
        return httpx.AsyncClient(timeout=PROVIDER_TIMEOUT_SECONDS)


class _Borrowed:
    """Async context manager that hands out a caller-owned client without closing it."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def __aenter__(self) -> httpx.AsyncClient:
        return self.client

    async def __aexit__(self, *exc):
        return False
