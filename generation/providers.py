"""
Provider adapters for OpenRouter (text) and Fal.ai (image).

An adapter knows three things about its provider: which models it offers,
how to call it, and how to turn its response into a TextResult/ImageResult.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from config import APP_ORIGIN, APP_TITLE, FAL_AI_BASE_URL, OPENROUTER_BASE_URL
from errors import ConfigurationMissing, ProviderError
from generation.results import ImageResult, TextResult

MODEL_TYPES = ("text", "image", "audio", "video", "code")

NO_TEXT_PLACEHOLDER = "No response generated"
NO_IMAGE_PLACEHOLDER = "No image generated"


class ModelCandidate(BaseModel):
    """A model as offered by a provider, before it is written to the catalog."""
    original_id: str
    name: str
    description: Optional[str] = None
    provider: str
    type: Optional[str] = None


def categorize_model_type(name: str, description: Optional[str] = None) -> str:
    """Guess a model type from its display name when the provider gives none."""
    name_lower = (name or "").lower()

    if any(k in name_lower for k in ("dall-e", "midjourney", "stable-diffusion")):
        return "image"
    if any(k in name_lower for k in ("whisper", "tts", "audio")):
        return "audio"
    if any(k in name_lower for k in ("video", "sora", "runway")):
        return "video"
    if "code" in name_lower:
        return "code"
    return "text"


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _openrouter_error(response: httpx.Response) -> str:
    error = _error_body(response).get("error")
    message = error.get("message") if isinstance(error, dict) else error
    return message or response.reason_phrase


class OpenRouterAdapter:
    """Text generation through OpenRouter's OpenAI-compatible API."""

    name = "openrouter"
    label = "OpenRouter"

    CATALOG = [
        # OpenAI models
        {"original_id": "openai/gpt-4", "name": "GPT-4", "description": "Most advanced GPT-4 model"},
        {"original_id": "openai/gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "description": "Fast and efficient model"},
        {"original_id": "openai/gpt-4o", "name": "GPT-4o", "description": "Latest GPT-4 model"},
        # Anthropic models
        {"original_id": "anthropic/claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "description": "Advanced reasoning model"},
        {"original_id": "anthropic/claude-3-haiku", "name": "Claude 3 Haiku", "description": "Fast and efficient Claude model"},
        # Meta models
        {"original_id": "meta-llama/llama-3.1-8b-instruct", "name": "Llama 3.1 8B", "description": "Fast and efficient text model"},
        {"original_id": "meta-llama/llama-3.1-70b-instruct", "name": "Llama 3.1 70B", "description": "More capable text model"},
        # Google models
        {"original_id": "google/gemini-pro", "name": "Gemini Pro", "description": "Google's advanced AI model"},
        {"original_id": "google/gemini-pro-vision", "name": "Gemini Pro Vision", "description": "Google's multimodal AI model"},
    ]

    def __init__(self, base_url: str = OPENROUTER_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": APP_ORIGIN,
            "X-Title": APP_TITLE,
        }

    async def fetch_models(
        self,
        api_key: Optional[str],
        live: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ) -> List[ModelCandidate]:
        """
        Return the models OpenRouter offers.
        The curated static list is used unless live=True, in which case the
        provider's /models listing is read instead.
        """
        if not api_key:
            raise ConfigurationMissing("OpenRouter API key not configured")

        if not live:
            models = [ModelCandidate(provider=self.name, type="text", **m) for m in self.CATALOG]
            print(f"[openrouter] Fetched {len(models)} models from static catalog")
            return models

        if client is None:
            async with httpx.AsyncClient() as http_client:
                return await self.fetch_models(api_key, live=True, client=http_client)

        response = await client.get(f"{self.base_url}/models", headers=self.headers(api_key))
        if not response.is_success:
            raise ProviderError(self.label, response.status_code, _openrouter_error(response))

        models = []
        for item in response.json().get("data", []):
            architecture = item.get("architecture") or {}
            outputs = architecture.get("output_modalities") or []
            model_type = "image" if "image" in outputs else categorize_model_type(item.get("name", ""))
            models.append(ModelCandidate(
                original_id=item["id"],
                name=item.get("name") or item["id"],
                description=item.get("description"),
                provider=self.name,
                type=model_type,
            ))
        print(f"[openrouter] Fetched {len(models)} models from provider API")
        return models

    def build_payload(self, model: str, prompt: str, temperature: float) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": 2000,
        }

    def parse_completion(self, model: str, data: Dict[str, Any]) -> TextResult:
        choices = data.get("choices") or []
        content = None
        if choices:
            content = (choices[0].get("message") or {}).get("content")
        return TextResult(text=content or NO_TEXT_PLACEHOLDER, model=model)

    async def complete(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model: str,
        prompt: str,
        temperature: float = 0.7,
    ) -> TextResult:
        response = await client.post(
            f"{self.base_url}/chat/completions",
            headers=self.headers(api_key),
            json=self.build_payload(model, prompt, temperature),
        )
        if not response.is_success:
            raise ProviderError(self.label, response.status_code, _openrouter_error(response))

        return self.parse_completion(model, response.json())


class FalAIAdapter:
    """Image generation through Fal.ai's synchronous run endpoint."""

    name = "fal-ai"
    label = "Fal.ai"

    # Fal.ai has no listing endpoint; only image models work there
    CATALOG = [
        {"original_id": "fal-ai/flux/dev", "name": "FLUX Dev", "description": "High-quality image generation model"},
        {"original_id": "fal-ai/recraft-v3", "name": "Recraft V3", "description": "Vector art and image generation model"},
    ]

    def __init__(self, base_url: str = FAL_AI_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Key {api_key}",
            "Content-Type": "application/json",
        }

    async def fetch_models(self, api_key: Optional[str], live: bool = False, client=None) -> List[ModelCandidate]:
        if not api_key:
            raise ConfigurationMissing("Fal.ai API key not configured")
        models = [ModelCandidate(provider=self.name, type="image", **m) for m in self.CATALOG]
        print(f"[fal-ai] Fetched {len(models)} models from static catalog")
        return models

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "prompt": prompt,
            "num_inference_steps": 20,
            "guidance_scale": 7.5,
        }

    def parse_image(self, model: str, data: Dict[str, Any]) -> ImageResult:
        for key in ("images", "data"):
            items = data.get(key)
            if isinstance(items, list) and items and isinstance(items[0], dict) and items[0].get("url"):
                return ImageResult(url=items[0]["url"], model=model)
        return ImageResult(url=NO_IMAGE_PLACEHOLDER, model=model)

    async def generate_image(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        model_path: str,
        prompt: str,
    ) -> ImageResult:
        response = await client.post(
            f"{self.base_url}/{model_path.lstrip('/')}",
            headers=self.headers(api_key),
            json=self.build_payload(prompt),
        )
        if not response.is_success:
            detail = _error_body(response).get("detail")
            if detail is not None and not isinstance(detail, str):
                detail = str(detail)
            raise ProviderError(self.label, response.status_code, detail or response.reason_phrase)

        return self.parse_image(model_path, response.json())


ADAPTERS = {
    OpenRouterAdapter.name: OpenRouterAdapter,
    FalAIAdapter.name: FalAIAdapter,
}


def get_adapter(provider: str):
    """Instantiate the adapter for a provider name, or None if unknown."""
    adapter_cls = ADAPTERS.get(provider)
    return adapter_cls() if adapter_cls else None
