"""Shared fakes and fixtures for the test suite."""

from __future__ import annotations

import asyncio
import random
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import pytest

from patent_qc_app.config.settings import AppSettings
from patent_qc_app.extraction.models import Document, PageContent, TextToken
from patent_qc_app.llm.context import CredentialPool, InferenceContext
from patent_qc_app.llm.models import InlineDataPart, TextPart
from patent_qc_app.llm.orchestrator import InferenceOrchestrator


def make_settings(**overrides: Any) -> AppSettings:
    values: dict[str, Any] = {
        "llm_api_keys": "key-a",
        "smart_model": "smart-model",
        "fast_model": "fast-model",
        "max_retries": 3,
        "initial_backoff_ms": 100,
        "backoff_jitter_ms": 0,
        "request_timeout_ms": 2000,
        "rotation_delay_ms": 0,
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


class ScriptedClient:
    """InferenceClient fake replaying one scripted result per call.

    A result is either text (streamed back in two fragments), an exception to
    raise, or a callable ``(model, parts) -> text | exception`` which may be async.
    """

    def __init__(self, script: list[Any] | None = None, *, responder: Callable[..., Any] | None = None) -> None:
        self.script = list(script or [])
        self.responder = responder
        self.calls: list[dict[str, Any]] = []

    async def stream_generate(self, model, parts, response_schema=None):
        self.calls.append({"model": model, "parts": list(parts), "schema": response_schema})
        if self.responder is not None:
            result = self.responder(model, list(parts))
            if asyncio.iscoroutine(result):
                result = await result
        else:
            result = self.script.pop(0)
        if isinstance(result, BaseException):
            raise result
        middle = len(result) // 2
        for fragment in (result[:middle], result[middle:]):
            if fragment:
                yield fragment

    @property
    def models(self) -> list[str]:
        return [call["model"] for call in self.calls]


class RecordingFactory:
    """Client factory returning one shared fake and remembering the credentials used."""

    def __init__(self, client: ScriptedClient) -> None:
        self.client = client
        self.credentials: list[str | None] = []

    def __call__(self, credential: str | None) -> ScriptedClient:
        self.credentials.append(credential)
        return self.client


class FakeRenderer:
    def __init__(self, pages: list[PageContent] | None = None) -> None:
        self.pages = pages or []
        self.rendered: list[int] = []

    def get_page(self, document: Document, index: int) -> PageContent:
        return self.pages[index]

    def render_image(self, document: Document, index: int, scale: float) -> bytes:
        self.rendered.append(index)
        return f"page-{index}".encode()


def page_from_lines(index: int, lines: list[tuple[float, str]], *, height: float = 800.0) -> PageContent:
    """Build a page whose lines sit at the given vertical positions, one token per word."""
    tokens: list[TextToken] = []
    for y, line in lines:
        for position, word in enumerate(line.split(" ")):
            tokens.append(TextToken(text=word, x=50.0 + position * 40.0, y=y))
    return PageContent(index=index, tokens=tokens, height=height)


def page_indices_in(parts: list[Any]) -> list[int]:
    return [int(part.data.decode().split("-")[1]) for part in parts if isinstance(part, InlineDataPart)]


def prompt_text(parts: list[Any]) -> str:
    return "\n".join(part.text for part in parts if isinstance(part, TextPart))


def build_orchestrator(
    settings: AppSettings,
    client: ScriptedClient,
    *,
    seed: int = 7,
) -> tuple[InferenceOrchestrator, InferenceContext, RecordingFactory, list[float]]:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    context = InferenceContext(
        smart_model=settings.smart_model,
        fast_model=settings.fast_model,
        credentials=CredentialPool(settings.credentials, rng=random.Random(seed)),
    )
    factory = RecordingFactory(client)
    orchestrator = InferenceOrchestrator(
        settings=settings,
        context=context,
        client_factory=factory,
        sleep=fake_sleep,
        rng=random.Random(seed),
    )
    return orchestrator, context, factory, sleeps


class FakeCursor:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._documents = sorted(self._documents, key=lambda doc: doc.get(key), reverse=direction < 0)
        return self

    def skip(self, count: int) -> "FakeCursor":
        self._documents = self._documents[count:]
        return self

    def limit(self, count: int) -> "FakeCursor":
        self._documents = self._documents[:count]
        return self

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._documents)


class FakeDeleteResult:
    def __init__(self, deleted_count: int) -> None:
        self.deleted_count = deleted_count


class FakeCollection:
    """Just enough of a pymongo collection for the history repository."""

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self._next_id = 0

    def insert_one(self, document: dict[str, Any]) -> None:
        self._next_id += 1
        self.documents.append({"_id": self._next_id, **document})

    def find(self, query: dict[str, Any], projection: dict[str, int] | None = None) -> FakeCursor:
        documents = [dict(doc) for doc in self.documents]
        if projection and projection.get("_id") == 0:
            for doc in documents:
                doc.pop("_id", None)
        return FakeCursor(documents)

    def delete_many(self, query: dict[str, Any]) -> FakeDeleteResult:
        if not query:
            removed = len(self.documents)
            self.documents = []
            return FakeDeleteResult(removed)
        targets = set(query["_id"]["$in"])
        before = len(self.documents)
        self.documents = [doc for doc in self.documents if doc["_id"] not in targets]
        return FakeDeleteResult(before - len(self.documents))

    def count_documents(self, query: dict[str, Any]) -> int:
        return len(self.documents)


@contextmanager
def fake_opener(source: Any, *, name: str | None = None) -> Iterator[Document]:
    page_count = int(source.decode()) if isinstance(source, bytes) and source.isdigit() else 2
    yield Document(name=name or "fake.pdf", page_count=page_count)


@pytest.fixture
def settings() -> AppSettings:
    return make_settings()
