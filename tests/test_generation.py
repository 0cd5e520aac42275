import asyncio
import json

import httpx
import pytest

import seed_database
from errors import (
    ConfigStoreUnavailable,
    ConfigurationMissing,
    ModelNotFound,
    ProviderError,
    UnsupportedModelType,
)
from generation import (
    GenerationDispatcher,
    ImageResult,
    MongoCatalogSource,
    ProviderKeyCache,
    RemoteCatalogSource,
    TextResult,
)


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


class UnavailableSource:
    async def get_provider_config(self, provider):
        raise ConfigStoreUnavailable("store down")

    async def list_active_models(self):
        raise ConfigStoreUnavailable("store down")


def add_model(db, model_id, original_id, model_type, provider, status="active"):
    db.models.insert_one({
        "_id": model_id,
        "originalId": original_id,
        "name": model_id,
        "type": model_type,
        "provider": provider,
        "status": status,
    })


def configure(db, provider, api_key, enabled=True):
    db.admin.insert_one({"_id": f"{provider}-config", "apiKey": api_key, "enabled": enabled})


def run_generate(source, handler, prompt, model_id, env_keys=None):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            keys = ProviderKeyCache(source, env_keys=env_keys or {})
            dispatcher = GenerationDispatcher(source, client=client, key_cache=keys)
            return await dispatcher.generate(prompt, model_id)

    return asyncio.run(scenario())


def test_unknown_model_fails_without_network_call(db):
    configure(db, "openrouter", "or-key")
    recorder = Recorder()

    with pytest.raises(ModelNotFound) as exc:
        run_generate(MongoCatalogSource(db), recorder, "hi", "no-such-model")

    assert str(exc.value) == "Model no-such-model not found"
    assert recorder.requests == []


def test_image_model_without_key_fails_before_network_call(db):
    add_model(db, "flux-dev", "fal-ai/flux/dev", "image", "fal-ai")
    recorder = Recorder()

    with pytest.raises(ConfigurationMissing) as exc:
        run_generate(MongoCatalogSource(db), recorder, "a cat", "flux-dev")

    assert "Fal.ai API key not configured" in str(exc.value)
    assert recorder.requests == []


def test_builtin_id_resolves_to_seeded_catalog_entry(db, monkeypatch):
    monkeypatch.setattr(seed_database, "db", db)
    seed_database.seed_models()
    assert db.models.find_one({"_id": "fal-ai-flux-dev"})["status"] == "active"
    recorder = Recorder()

    with pytest.raises(ConfigurationMissing) as exc:
        run_generate(MongoCatalogSource(db), recorder, "a cat", "flux-dev")

    assert "Fal.ai API key not configured" in str(exc.value)
    assert recorder.requests == []


def test_builtin_text_id_dispatches_against_seeded_catalog(db, monkeypatch):
    monkeypatch.setattr(seed_database, "db", db)
    seed_database.seed_models()
    configure(db, "openrouter", "or-key")
    recorder = Recorder(body={"choices": [{"message": {"content": "hi there"}}]})

    result = run_generate(MongoCatalogSource(db), recorder, "hi", "gpt-3.5-turbo")

    assert result == TextResult(text="hi there", model="openai/gpt-3.5-turbo")


def test_builtin_id_does_not_reach_deactivated_catalog_entry(db, monkeypatch):
    monkeypatch.setattr(seed_database, "db", db)
    seed_database.seed_models()
    configure(db, "fal-ai", "fal-key")
    db.models.update_one({"_id": "fal-ai-flux-dev"}, {"$set": {"status": "inactive"}})

    with pytest.raises(ModelNotFound):
        run_generate(MongoCatalogSource(db), Recorder(), "a cat", "flux-dev")


def test_text_generation_returns_completion(db):
    configure(db, "openrouter", "or-key")
    add_model(db, "openai-gpt-4o", "openai/gpt-4o", "text", "openrouter")
    recorder = Recorder(body={"choices": [{"message": {"content": "hello"}}]})

    result = run_generate(MongoCatalogSource(db), recorder, "Say hello", "openai-gpt-4o")

    assert result == TextResult(text="hello", model="openai/gpt-4o")
    request = recorder.requests[0]
    assert request.url.path.endswith("/chat/completions")
    assert request.headers["Authorization"] == "Bearer or-key"
    assert request.headers["X-Title"] == "GPT Cells App"
    payload = json.loads(request.content)
    assert payload["model"] == "openai/gpt-4o"
    assert payload["max_tokens"] == 2000
    assert payload["messages"] == [{"role": "user", "content": "Say hello"}]


def test_model_resolves_by_original_id(db):
    configure(db, "openrouter", "or-key")
    add_model(db, "openai-gpt-4o", "openai/gpt-4o", "text", "openrouter")
    recorder = Recorder(body={"choices": []})

    result = run_generate(MongoCatalogSource(db), recorder, "hi", "openai/gpt-4o")

    assert result.text == "No response generated"


def test_rate_limit_surfaces_provider_message(db):
    configure(db, "openrouter", "or-key")
    add_model(db, "openai-gpt-4o", "openai/gpt-4o", "text", "openrouter")
    recorder = Recorder(status_code=429, body={"error": {"message": "Rate limit exceeded"}})

    with pytest.raises(ProviderError) as exc:
        run_generate(MongoCatalogSource(db), recorder, "hi", "openai-gpt-4o")

    assert exc.value.status_code == 429
    assert exc.value.message == "Rate limit exceeded"
    assert str(exc.value) == "OpenRouter API error: Rate limit exceeded"


@pytest.mark.parametrize("body, expected", [
    ({"images": [{"url": "https://cdn.fal.ai/a.png"}]}, "https://cdn.fal.ai/a.png"),
    ({"data": [{"url": "https://cdn.fal.ai/b.png"}]}, "https://cdn.fal.ai/b.png"),
    ({}, "No image generated"),
])
def test_image_generation_reads_url(db, body, expected):
    configure(db, "fal-ai", "fal-key")
    add_model(db, "fal-ai-flux-dev", "fal-ai/flux/dev", "image", "fal-ai")
    recorder = Recorder(body=body)

    result = run_generate(MongoCatalogSource(db), recorder, "a cat", "fal-ai-flux-dev")

    assert result == ImageResult(url=expected, model="fal-ai/flux/dev")
    request = recorder.requests[0]
    assert request.url.path == "/fal-ai/flux/dev"
    assert request.headers["Authorization"] == "Key fal-key"
    assert json.loads(request.content) == {"prompt": "a cat", "num_inference_steps": 20, "guidance_scale": 7.5}


def test_image_error_uses_detail(db):
    configure(db, "fal-ai", "fal-key")
    add_model(db, "fal-ai-flux-dev", "fal-ai/flux/dev", "image", "fal-ai")
    recorder = Recorder(status_code=401, body={"detail": "Invalid key"})

    with pytest.raises(ProviderError) as exc:
        run_generate(MongoCatalogSource(db), recorder, "a cat", "fal-ai-flux-dev")

    assert str(exc.value) == "Fal.ai API error: Invalid key"


def test_unsupported_model_type(db):
    configure(db, "openrouter", "or-key")
    add_model(db, "whisper", "openai/whisper", "audio", "openrouter")

    with pytest.raises(UnsupportedModelType):
        run_generate(MongoCatalogSource(db), Recorder(), "hi", "whisper")


def test_inactive_models_are_not_dispatched(db):
    configure(db, "openrouter", "or-key")
    add_model(db, "openai-gpt-4o", "openai/gpt-4o", "text", "openrouter")
    add_model(db, "hidden", "vendor/hidden", "text", "openrouter", status="inactive")

    with pytest.raises(ModelNotFound):
        run_generate(MongoCatalogSource(db), Recorder(), "hi", "hidden")


def test_unavailable_store_counts_keys_as_missing_and_uses_fallback_models():
    with pytest.raises(ConfigurationMissing) as exc:
        run_generate(UnavailableSource(), Recorder(), "hi", "gpt-4")

    assert "OpenRouter API key not configured" in str(exc.value)


def test_env_key_used_when_store_has_no_enabled_key(db):
    configure(db, "openrouter", "stored-key", enabled=False)
    recorder = Recorder(body={"choices": [{"message": {"content": "ok"}}]})

    result = run_generate(MongoCatalogSource(db), recorder, "hi", "gpt-4", env_keys={"openrouter": "env-key"})

    assert result.text == "ok"
    assert recorder.requests[0].headers["Authorization"] == "Bearer env-key"


def test_key_cache_reads_through_once_until_invalidated(db):
    configure(db, "openrouter", "first")

    class CountingSource(MongoCatalogSource):
        reads = 0

        async def get_provider_config(self, provider):
            CountingSource.reads += 1
            return await super().get_provider_config(provider)

    async def scenario():
        cache = ProviderKeyCache(CountingSource(db), env_keys={})
        first = await cache.get("openrouter")
        db.admin.update_one({"_id": "openrouter-config"}, {"$set": {"apiKey": "second"}})
        cached = await cache.get("openrouter")
        cache.invalidate("openrouter")
        refreshed = await cache.get("openrouter")
        return first, cached, refreshed

    assert asyncio.run(scenario()) == ("first", "first", "second")
    assert CountingSource.reads == 2


def test_check_configuration_and_available_models(db):
    configure(db, "fal-ai", "fal-key")

    async def scenario():
        source = MongoCatalogSource(db)
        dispatcher = GenerationDispatcher(source, key_cache=ProviderKeyCache(source, env_keys={}))
        return await dispatcher.check_configuration(), await dispatcher.available_models()

    status, models = asyncio.run(scenario())

    assert status == {"fal-ai": True, "openrouter": False, "configured": True}
    assert {m["provider"] for m in models} == {"fal-ai"}


def test_remote_source_reads_api_with_bearer_token():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer id-token"
        if request.url.path == "/api/providers/openrouter/config":
            return httpx.Response(200, json={"apiKey": "or-key", "enabled": True})
        if request.url.path == "/api/providers/fal-ai/config":
            return httpx.Response(404, json={"detail": "fal-ai is not configured"})
        return httpx.Response(200, json=[{"id": "gpt-4", "originalId": "openai/gpt-4", "type": "text"}])

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = RemoteCatalogSource("http://api.test", "id-token", client=client)
            return (
                await source.get_provider_config("openrouter"),
                await source.get_provider_config("fal-ai"),
                await source.list_active_models(),
            )

    openrouter, fal, models = asyncio.run(scenario())

    assert openrouter["apiKey"] == "or-key"
    assert fal is None
    assert models[0]["originalId"] == "openai/gpt-4"


def test_remote_source_network_failure_is_store_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            source = RemoteCatalogSource("http://api.test", "id-token", client=client)
            await source.list_active_models()

    with pytest.raises(ConfigStoreUnavailable):
        asyncio.run(scenario())
