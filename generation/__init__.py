from generation.dispatcher import GenerationDispatcher, FALLBACK_MODELS
from generation.providers import FalAIAdapter, ModelCandidate, OpenRouterAdapter, get_adapter
from generation.results import GenerationResult, ImageResult, TextResult
from generation.sources import MongoCatalogSource, ProviderKeyCache, RemoteCatalogSource

__all__ = [
    "GenerationDispatcher",
    "FALLBACK_MODELS",
    "FalAIAdapter",
    "ModelCandidate",
    "OpenRouterAdapter",
    "get_adapter",
    "GenerationResult",
    "ImageResult",
    "TextResult",
    "MongoCatalogSource",
    "ProviderKeyCache",
    "RemoteCatalogSource",
]
