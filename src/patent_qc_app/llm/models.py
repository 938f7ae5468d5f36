"""Request and outcome models for inference calls."""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any, Iterable, Union

from pydantic import BaseModel, ConfigDict, Field


class ModelTier(str, Enum):
    SMART = "smart"
    FAST = "fast"


class TextPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class InlineDataPart(BaseModel):
    """Binary content tagged with its mime type, e.g. a rendered page."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    data: bytes

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


ContentPart = Union[TextPart, InlineDataPart]


class InferenceRequest(BaseModel):
    """One model call. The model id is resolved from the active tier at attempt time."""

    model_config = ConfigDict(frozen=True)

    parts: tuple[ContentPart, ...]
    response_schema: dict[str, Any] | None = None
    label: str = "inference"

    @classmethod
    def from_parts(
        cls,
        parts: Iterable[ContentPart],
        *,
        response_schema: dict[str, Any] | None = None,
        label: str = "inference",
    ) -> "InferenceRequest":
        return cls(parts=tuple(parts), response_schema=response_schema, label=label)


class InferenceOutcome(BaseModel):
    text: str
    model: str
    tier: ModelTier
    input_chars: int = Field(ge=0)
    output_chars: int = Field(ge=0)
    cost: float = Field(ge=0.0)
