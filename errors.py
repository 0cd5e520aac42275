#!/usr/bin/env python3
"""
Error taxonomy shared by the sync engine, the generation dispatcher and the
admin routers.
"""

from typing import Optional


class GPTCellsError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationMissing(GPTCellsError):
    """No API key is configured for the provider a request needs."""


class ConfigStoreUnavailable(GPTCellsError):
    """The provider configuration / model catalog could not be read."""


class ModelNotFound(GPTCellsError):
    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model {model_id} not found")


class UnsupportedModelType(GPTCellsError):
    def __init__(self, model_type: Optional[str]):
        self.model_type = model_type
        super().__init__(f"Unsupported model type: {model_type}")


class ProviderError(GPTCellsError):
    """Non-2xx answer from a generation provider."""

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"{provider} API error: {message}")


class PersistenceError(GPTCellsError):
    """A document store write failed."""
