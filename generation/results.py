"""
Normalized generation results.

Each provider adapter converts its own wire format into one of these, so
callers never probe optional response fields themselves.
"""

from dataclasses import dataclass
from typing import Literal, Union


@dataclass(frozen=True)
class TextResult:
    text: str
    model: str
    kind: Literal["text"] = "text"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "model": self.model, "text": self.text}


@dataclass(frozen=True)
class ImageResult:
    url: str
    model: str
    kind: Literal["image"] = "image"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "model": self.model, "url": self.url}


GenerationResult = Union[TextResult, ImageResult]
