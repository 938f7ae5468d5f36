"""Data models for the section extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from pydantic import BaseModel, Field

from patent_qc_app.extraction.sections import SectionMap

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class Document:
    """Opaque handle to an opened document plus its page count."""

    name: str
    page_count: int
    handle: Any = field(default=None, repr=False, compare=False)


class TextToken(BaseModel):
    text: str
    x: float
    y: float


class PageContent(BaseModel):
    index: int
    tokens: list[TextToken] = Field(default_factory=list)
    height: float


class ExtractionChunk(BaseModel):
    """Contiguous page indices transcribed by one inference call."""

    chunk_index: int
    page_indices: list[int]


class ExtractionResult(BaseModel):
    sections: SectionMap
    text: str = ""
    cost: float = 0.0
    pages_processed: int = 0
    failed_chunks: list[int] = Field(default_factory=list)


class SectionExtractor(Protocol):
    async def extract(self, document: Document, on_progress: ProgressCallback | None = None) -> ExtractionResult:
        ...
